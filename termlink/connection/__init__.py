"""
Host configuration.
"""

from .profile import EnvironmentVariable, TerminalBehavior, HostConfig, HostStore

__all__ = [
    "EnvironmentVariable",
    "TerminalBehavior",
    "HostConfig",
    "HostStore",
]
