"""
termlink - client side of interactive terminal sessions over a websocket.

The server bridges each session to SSH. This package owns the
connection lifecycle:
- Authentication challenges (TOTP, password, keyboard-interactive, credentials)
- Heartbeat and connection timeouts
- Bounded reconnect with exponential backoff
- Debounced resize
- Sudo prompt detection with confirmed password auto-fill
"""

__version__ = "0.1.0"

from .config import SessionSettings, SettingsManager, get_settings
from .connection.profile import HostConfig, HostStore, TerminalBehavior, EnvironmentVariable
from .errors import TermlinkError, ProtocolError, AuthChallengeError
from .session.base import (
    Session, ConnectionState, ChallengeKind, CloseReason,
)
from .session.manager import SessionConnectionManager
from .terminal.controller import TerminalController
from .terminal.surface import TerminalSurface

__all__ = [
    # Config
    "SessionSettings",
    "SettingsManager",
    "get_settings",
    # Hosts
    "HostConfig",
    "HostStore",
    "TerminalBehavior",
    "EnvironmentVariable",
    # Errors
    "TermlinkError",
    "ProtocolError",
    "AuthChallengeError",
    # Sessions
    "Session",
    "ConnectionState",
    "ChallengeKind",
    "CloseReason",
    "SessionConnectionManager",
    # Terminal
    "TerminalController",
    "TerminalSurface",
]
