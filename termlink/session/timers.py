"""
Named timers owned by a session.

Every wait in the session layer is a named timer. Restarting a name
replaces whatever was pending under it, and cancel_all() clears the
lot on teardown.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Callable

from PyQt6.QtCore import QObject, QTimer

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = "connect-timeout"
AUTH_DEADLINE = "auth-deadline"
HEARTBEAT = "heartbeat"
RECONNECT_DELAY = "reconnect-delay"
POST_CONNECT = "post-connect"
RESIZE_DEBOUNCE = "resize-debounce"
SUDO_COOLDOWN = "sudo-cooldown"
SUDO_CEILING = "sudo-ceiling"


class TimerSet(ABC):
    """Single-threaded named timers."""

    @abstractmethod
    def start(
        self,
        name: str,
        delay: float,
        callback: Callable[[], None],
        repeat: bool = False,
    ) -> None:
        """(Re)arm a timer. Delay is in seconds."""
        pass

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Stop a timer. Returns True if it was pending."""
        pass

    @abstractmethod
    def is_active(self, name: str) -> bool:
        pass

    @abstractmethod
    def active_names(self) -> list[str]:
        pass

    def cancel_all(self) -> None:
        for name in self.active_names():
            self.cancel(name)


class QtTimerSet(TimerSet):
    """
    TimerSet backed by QTimer.

    Must be used from the thread that runs the Qt event loop.
    """

    def __init__(self, parent: QObject = None):
        self._parent = parent
        self._timers: dict[str, QTimer] = {}

    def start(
        self,
        name: str,
        delay: float,
        callback: Callable[[], None],
        repeat: bool = False,
    ) -> None:
        self.cancel(name)

        timer = QTimer(self._parent)
        timer.setSingleShot(not repeat)
        timer.setInterval(max(0, int(delay * 1000)))

        def fire():
            if not repeat:
                self._discard(name, timer)
            try:
                callback()
            except Exception as e:
                logger.exception(f"Timer {name} callback error: {e}")

        timer.timeout.connect(fire)
        self._timers[name] = timer
        timer.start()

    def _discard(self, name: str, timer: QTimer) -> None:
        if self._timers.get(name) is timer:
            del self._timers[name]
        timer.deleteLater()

    def cancel(self, name: str) -> bool:
        timer = self._timers.pop(name, None)
        if timer is None:
            return False
        timer.stop()
        timer.deleteLater()
        return True

    def is_active(self, name: str) -> bool:
        timer = self._timers.get(name)
        return timer is not None and timer.isActive()

    def active_names(self) -> list[str]:
        return [name for name, timer in self._timers.items() if timer.isActive()]
