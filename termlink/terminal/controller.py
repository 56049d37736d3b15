"""
Binds a session to a terminal surface and exposes it as Qt signals.
"""

from __future__ import annotations
import logging
from typing import Optional, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from ..connection.profile import HostConfig
from ..session.base import (
    ConnectionState, CloseReason, SessionEvent,
    DataReceived, StateChanged, AuthChallengeRequired, AuthRetry,
    ReconnectScheduled, Notice, SudoPasswordRequested, SessionClosed,
)
from ..session.manager import SessionConnectionManager
from .surface import TerminalSurface

logger = logging.getLogger(__name__)


class TerminalController(QObject):
    """
    Terminal front end for a SessionConnectionManager.

    Output goes to the surface, everything else is re-emitted as signals
    for the hosting UI to act on.
    """

    # Public signals
    session_state_changed = pyqtSignal(object, str)  # ConnectionState, message
    auth_challenge = pyqtSignal(str, str)  # kind, prompt
    auth_retry = pyqtSignal(int)  # attempts remaining
    reconnect_scheduled = pyqtSignal(int, int, float)  # attempt, max, delay
    sudo_confirmation_requested = pyqtSignal(str)  # prompt line
    notice = pyqtSignal(str, str)  # level, message
    session_closed = pyqtSignal(object, str)  # CloseReason, message

    def __init__(
        self,
        surface: TerminalSurface,
        output_formatter: Optional[Callable[[str], str]] = None,
        parent: QObject = None,
    ):
        super().__init__(parent)
        self._surface = surface
        self._formatter = output_formatter
        self._session: Optional[SessionConnectionManager] = None

    @property
    def session(self) -> Optional[SessionConnectionManager]:
        return self._session

    @property
    def surface(self) -> TerminalSurface:
        return self._surface

    def attach_session(self, session: SessionConnectionManager) -> None:
        """Attach a session for I/O, detaching any previous one."""
        if self._session:
            self.detach_session()
        self._session = session
        self._session.set_event_handler(self._on_session_event)
        logger.debug("Attached session")

    def detach_session(self) -> None:
        if self._session:
            self._session.set_event_handler(None)
            self._session = None
            logger.debug("Detached session")

    def connect_host(self, host: HostConfig) -> None:
        """Fit the surface and connect at the resulting size."""
        if not self._session:
            logger.warning("connect_host with no session attached")
            return
        self._surface.fit()
        self._session.connect(host, self._surface.cols, self._surface.rows)

    def disconnect(self) -> None:
        if self._session:
            self._session.disconnect()

    def send_input(self, data: str) -> bool:
        if not self._session:
            return False
        return self._session.send_input(data)

    def fit(self) -> None:
        """Re-fit locally right away and let the session debounce the resize."""
        self._surface.fit()
        if self._session:
            self._session.resize(self._surface.cols, self._surface.rows)

    def _on_session_event(self, event: SessionEvent) -> None:
        """Handle session events."""
        if isinstance(event, DataReceived):
            data = event.data
            if self._formatter:
                try:
                    data = self._formatter(data)
                except Exception as e:
                    logger.warning(f"Output formatter failed: {e}")
                    data = event.data
            self._surface.write(data)

        elif isinstance(event, StateChanged):
            if event.new_state == ConnectionState.CONNECTED:
                self._surface.focus()
            self.session_state_changed.emit(event.new_state, event.message)

        elif isinstance(event, AuthChallengeRequired):
            self.auth_challenge.emit(event.kind.value, event.prompt)

        elif isinstance(event, AuthRetry):
            self.auth_retry.emit(event.attempts_remaining)

        elif isinstance(event, ReconnectScheduled):
            self._surface.clear()
            self.reconnect_scheduled.emit(event.attempt, event.max_attempts, event.delay)

        elif isinstance(event, SudoPasswordRequested):
            self.sudo_confirmation_requested.emit(event.prompt)

        elif isinstance(event, Notice):
            self.notice.emit(event.level, event.message)

        elif isinstance(event, SessionClosed):
            if event.reason == CloseReason.USER_REQUESTED:
                self._surface.clear()
            self.session_closed.emit(event.reason, event.message)
