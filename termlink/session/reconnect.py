"""
Reconnect backoff and attempt cap.
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Optional, Callable

logger = logging.getLogger(__name__)


@dataclass
class ReconnectState:
    attempts: int = 0
    last_attempt_at: Optional[float] = None


class ReconnectPolicy:
    """
    Decides whether a lost session gets another attempt, and when.

    Delay for attempt n (1-indexed) is min(base * 2**(n-1), cap).
    Attempts persist across reconnect cycles and only go back to zero
    on a successful connect or a fresh user-initiated connect.
    """

    def __init__(
        self,
        base_delay: float = 2.0,
        max_delay: float = 8.0,
        max_attempts: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._clock = clock
        self._state = ReconnectState()

    @property
    def state(self) -> ReconnectState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._state.attempts

    @property
    def exhausted(self) -> bool:
        return self._state.attempts >= self.max_attempts

    def reset(self) -> None:
        self._state = ReconnectState()

    def should_retry(
        self,
        tearing_down: bool = False,
        in_flight: bool = False,
        graceful: bool = False,
    ) -> bool:
        if tearing_down or in_flight or graceful:
            return False
        return not self.exhausted

    def record_attempt(self) -> int:
        """Count a new attempt and return its 1-indexed number."""
        self._state.attempts += 1
        self._state.last_attempt_at = self._clock()
        logger.debug(f"Reconnect attempt {self._state.attempts}/{self.max_attempts}")
        return self._state.attempts

    def delay_for(self, attempt: int) -> float:
        attempt = max(1, attempt)
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def next_delay(self) -> float:
        """Delay before the most recently recorded attempt."""
        return self.delay_for(self._state.attempts)
