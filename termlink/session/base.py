"""
Abstract session interface.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional, Callable


class ConnectionState(Enum):
    """Session lifecycle states."""
    IDLE = auto()
    CONNECTING = auto()
    AWAITING_AUTH = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    CLOSED = auto()


class ChallengeKind(Enum):
    """What the server is asking for while the session awaits auth."""
    TOTP = "totp"
    PASSWORD = "password"
    KEYBOARD_INTERACTIVE = "keyboard_interactive"
    CREDENTIALS = "credentials"


class CloseReason(Enum):
    """Why a session reached CLOSED."""
    USER_REQUESTED = "user_requested"
    SERVER_DISCONNECTED = "server_disconnected"
    TIMEOUT = "timeout"
    AUTH_TIMEOUT = "auth_timeout"
    AUTH_FAILED = "auth_failed"
    AUTH_EXPIRED = "auth_expired"
    AUTH_CANCELLED = "auth_cancelled"
    AUTH_REQUIRED = "auth_required"
    MAX_ATTEMPTS = "max_attempts"
    SUPERSEDED = "superseded"


@dataclass
class SessionEvent:
    """Base class for session events."""
    pass


@dataclass
class DataReceived(SessionEvent):
    """Terminal output from the remote."""
    data: str


@dataclass
class StateChanged(SessionEvent):
    """Session state changed."""
    old_state: ConnectionState
    new_state: ConnectionState
    message: str = ""
    auth_kind: Optional[ChallengeKind] = None
    close_reason: Optional[CloseReason] = None


@dataclass
class AuthChallengeRequired(SessionEvent):
    """Server wants more credentials before the shell opens."""
    kind: ChallengeKind
    prompt: str = ""


@dataclass
class AuthRetry(SessionEvent):
    """Wrong one-time code; the TOTP challenge is open again."""
    attempts_remaining: int


@dataclass
class ReconnectScheduled(SessionEvent):
    """Transport was lost and another attempt is queued."""
    attempt: int
    max_attempts: int
    delay: float


@dataclass
class Notice(SessionEvent):
    """Something the user should see. Level is info, warning or error."""
    level: str
    message: str


@dataclass
class SudoPasswordRequested(SessionEvent):
    """A sudo prompt was seen and a stored password can be sent."""
    prompt: str


@dataclass
class SessionClosed(SessionEvent):
    """Terminal outcome for the session."""
    reason: CloseReason
    message: str = ""


class Session(ABC):
    """
    Abstract session interface.

    Handles connection lifecycle, data I/O, and reconnection.
    The terminal controller talks to this and does not know about the wire.
    """

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current session state."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Is session currently connected and usable?"""
        pass

    @abstractmethod
    def connect(self, host, cols: int, rows: int) -> None:
        """
        Initiate connection.
        Async - fires state change events as it progresses.
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close the session for good."""
        pass

    @abstractmethod
    def send_input(self, data: str) -> bool:
        """Send keystrokes to the remote."""
        pass

    @abstractmethod
    def resize(self, cols: int, rows: int) -> None:
        """Notify remote of terminal resize."""
        pass

    @abstractmethod
    def set_event_handler(self, handler: Optional[Callable[[SessionEvent], None]]) -> None:
        """Set callback for session events."""
        pass
