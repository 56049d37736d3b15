"""
Sudo prompt detection on the output stream.
"""

from __future__ import annotations
import logging
import re
from typing import Optional

from .timers import TimerSet, SUDO_COOLDOWN, SUDO_CEILING

logger = logging.getLogger(__name__)

# "[sudo] password for alice:" in any locale, or
# "sudo: a terminal is required ... password is required"
SUDO_PROMPT_PATTERN = re.compile(
    r"(?:\[sudo\][^\n]*:\s*$|sudo:[^\n]*password[^\n]*required)",
    re.IGNORECASE,
)


class SudoPromptGuard:
    """
    In-flight flag for one burst of sudo prompt text.

    Released by a short cool-down after the password goes out, or by the
    hard ceiling if nobody answers.
    """

    def __init__(self, timers: TimerSet, cooldown: float = 3.0, ceiling: float = 15.0):
        self._timers = timers
        self.cooldown = cooldown
        self.ceiling = ceiling
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def activate(self) -> None:
        self._active = True
        self._timers.start(SUDO_CEILING, self.ceiling, self.release)

    def cool_down(self) -> None:
        if self._active:
            self._timers.start(SUDO_COOLDOWN, self.cooldown, self.release)

    def release(self) -> None:
        self._active = False
        self._timers.cancel(SUDO_COOLDOWN)
        self._timers.cancel(SUDO_CEILING)


class OutputScanner:
    """
    Watches inbound text for a sudo password prompt.

    A match never sends anything by itself: the caller must ask the user
    and call confirm() before the stored password goes out.
    """

    def __init__(self, timers: TimerSet, cooldown: float = 3.0, reset_ceiling: float = 15.0):
        self.guard = SudoPromptGuard(timers, cooldown, reset_ceiling)
        self._autofill = False
        self._password: Optional[str] = None
        self._awaiting_confirmation = False

    @property
    def awaiting_confirmation(self) -> bool:
        return self._awaiting_confirmation

    def configure(self, autofill: bool, password: Optional[str]) -> None:
        self._autofill = autofill
        self._password = password

    def scan(self, chunk: str) -> bool:
        """True if this chunk should trigger a sudo password confirmation."""
        if not self._autofill or not self._password or self.guard.active:
            return False
        if not SUDO_PROMPT_PATTERN.search(chunk):
            return False
        self.guard.activate()
        self._awaiting_confirmation = True
        logger.debug("Sudo prompt detected")
        return True

    def confirm(self) -> Optional[str]:
        """User agreed. Returns the password to send, if a prompt is pending."""
        if not self._awaiting_confirmation or not self.guard.active:
            return None
        self._awaiting_confirmation = False
        self.guard.cool_down()
        return self._password

    def decline(self) -> None:
        # Guard stays up until the ceiling so the same burst cannot re-prompt
        self._awaiting_confirmation = False

    def reset(self) -> None:
        self._awaiting_confirmation = False
        self.guard.release()
