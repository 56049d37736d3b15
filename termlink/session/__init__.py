"""
Session layer - connection lifecycle over a websocket.
"""

from .base import (
    Session,
    ConnectionState,
    ChallengeKind,
    CloseReason,
    SessionEvent,
    DataReceived,
    StateChanged,
    AuthChallengeRequired,
    AuthRetry,
    ReconnectScheduled,
    Notice,
    SudoPasswordRequested,
    SessionClosed,
)
from .auth import AuthChallengeHandler, PendingChallenge
from .manager import SessionConnectionManager
from .reconnect import ReconnectPolicy
from .resize import ResizeCoordinator
from .scanner import OutputScanner, SudoPromptGuard, SUDO_PROMPT_PATTERN
from .timers import TimerSet, QtTimerSet
from .transport import Transport, QtWebSocketTransport

__all__ = [
    "Session",
    "ConnectionState",
    "ChallengeKind",
    "CloseReason",
    "SessionEvent",
    "DataReceived",
    "StateChanged",
    "AuthChallengeRequired",
    "AuthRetry",
    "ReconnectScheduled",
    "Notice",
    "SudoPasswordRequested",
    "SessionClosed",
    "AuthChallengeHandler",
    "PendingChallenge",
    "SessionConnectionManager",
    "ReconnectPolicy",
    "ResizeCoordinator",
    "OutputScanner",
    "SudoPromptGuard",
    "SUDO_PROMPT_PATTERN",
    "TimerSet",
    "QtTimerSet",
    "Transport",
    "QtWebSocketTransport",
]
