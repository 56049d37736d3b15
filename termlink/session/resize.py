"""
Debounced resize notifications to the remote PTY.

Re-fitting the local grid is cheap and happens often. Telling the server
is a network message, so it waits for a quiet period and is skipped when
the size has not changed since the last one that went out.
"""

from __future__ import annotations
import logging
from typing import Optional, Callable

from . import protocol
from .timers import TimerSet, RESIZE_DEBOUNCE

logger = logging.getLogger(__name__)

Size = tuple[int, int]


class ResizeCoordinator:

    def __init__(
        self,
        timers: TimerSet,
        send: Callable[[dict], bool],
        quiet_period: float = 0.14,
    ):
        self._timers = timers
        self._send = send
        self.quiet_period = quiet_period
        self._pending: Optional[Size] = None
        self._last_sent: Optional[Size] = None

    @property
    def pending(self) -> Optional[Size]:
        return self._pending

    @property
    def last_sent(self) -> Optional[Size]:
        return self._last_sent

    def request_resize(self, cols: int, rows: int) -> None:
        if cols <= 0 or rows <= 0:
            return
        self._pending = (cols, rows)
        self._timers.start(RESIZE_DEBOUNCE, self.quiet_period, self._flush)

    def mark_sent(self, cols: int, rows: int) -> None:
        """Record a size the server already has (e.g. from connectToHost)."""
        self._last_sent = (cols, rows)

    def reset(self) -> None:
        self._timers.cancel(RESIZE_DEBOUNCE)
        self._pending = None
        self._last_sent = None

    def _flush(self) -> None:
        size = self._pending
        if size is None or size == self._last_sent:
            return
        if self._send(protocol.resize_message(*size)):
            self._last_sent = size
            logger.debug(f"Sent resize {size[0]}x{size[1]}")
