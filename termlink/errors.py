"""
Exceptions raised by termlink.
"""


class TermlinkError(Exception):
    """Base class for termlink errors."""


class ProtocolError(TermlinkError):
    """Inbound frame could not be decoded."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class AuthChallengeError(TermlinkError):
    """A response was submitted that does not match the open challenge."""
