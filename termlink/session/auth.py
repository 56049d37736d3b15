"""
Authentication challenge sub-protocol.

The server can pause the handshake to ask for a password, a one-time
code, a keyboard-interactive exchange, or a full set of credentials.
One challenge is open at a time, and each one runs against a deadline
measured in minutes.
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Optional, Callable

from ..errors import AuthChallengeError
from . import protocol
from .base import ChallengeKind
from .timers import TimerSet, AUTH_DEADLINE

logger = logging.getLogger(__name__)


@dataclass
class PendingChallenge:
    kind: ChallengeKind
    prompt: str
    deadline: float
    attempts_used: int = 0
    attempts_remaining: Optional[int] = None


class AuthChallengeHandler:
    """
    Tracks the open challenge and its deadline.

    on_expired is called once, with the challenge kind, when a challenge
    runs out of time. The owner decides what that does to the session.
    """

    DEFAULT_PROMPTS = {
        ChallengeKind.TOTP: "Verification code",
        ChallengeKind.PASSWORD: "Password",
        ChallengeKind.KEYBOARD_INTERACTIVE: "Keyboard-interactive authentication",
        ChallengeKind.CREDENTIALS: "The server needs credentials to continue",
    }

    def __init__(
        self,
        timers: TimerSet,
        timeout: float = 180.0,
        keyboard_interactive_timeout: Optional[float] = None,
        totp_attempts: int = 3,
        on_expired: Optional[Callable[[ChallengeKind], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._timers = timers
        self.timeout = timeout
        self.keyboard_interactive_timeout = (
            timeout if keyboard_interactive_timeout is None else keyboard_interactive_timeout
        )
        self.totp_attempts = totp_attempts
        self._on_expired = on_expired
        self._clock = clock
        self._pending: Optional[PendingChallenge] = None
        # Survives submit(); the server only sends totp_retry after a code went out
        self._code_kind: Optional[ChallengeKind] = None
        self._code_prompt: Optional[str] = None
        self._code_deadline: Optional[float] = None
        self._totp_attempts_used = 0

    @property
    def pending(self) -> Optional[PendingChallenge]:
        return self._pending

    @property
    def totp_attempts_used(self) -> int:
        return self._totp_attempts_used

    def set_expiry_handler(self, handler: Optional[Callable[[ChallengeKind], None]]) -> None:
        self._on_expired = handler

    def _timeout_for(self, kind: ChallengeKind) -> float:
        if kind is ChallengeKind.KEYBOARD_INTERACTIVE:
            return self.keyboard_interactive_timeout
        return self.timeout

    def present(
        self,
        kind: ChallengeKind,
        prompt: Optional[str] = None,
        reset_attempts: bool = True,
    ) -> PendingChallenge:
        """
        Open a challenge, replacing any earlier one, and arm its deadline.

        A fresh TOTP or password challenge from the server restarts the
        attempt count and the deadline. reset_attempts=False continues the
        last one, keeping both, for reopening after a rejected code.
        """
        prompt = prompt or self.DEFAULT_PROMPTS[kind]
        deadline = self._clock() + self._timeout_for(kind)
        if kind in (ChallengeKind.TOTP, ChallengeKind.PASSWORD):
            if reset_attempts or self._code_deadline is None:
                self._totp_attempts_used = 0
                self._code_deadline = deadline
            deadline = self._code_deadline
            self._code_kind = kind
            self._code_prompt = prompt
        else:
            self._code_kind = None
            self._code_deadline = None
        self._pending = PendingChallenge(
            kind=kind,
            prompt=prompt,
            deadline=deadline,
            attempts_used=self._totp_attempts_used if kind is ChallengeKind.TOTP else 0,
        )
        remaining = max(0.0, deadline - self._clock())
        self._timers.start(AUTH_DEADLINE, remaining, self._expire)
        logger.info(f"Auth challenge: {kind.value} (deadline {remaining:.0f}s)")
        return self._pending

    def record_retry(self, attempts_remaining: Optional[int] = None) -> Optional[int]:
        """
        Server rejected a one-time code.

        Counts against the last TOTP challenge whether or not a code has
        been submitted since. An open challenge keeps its deadline.
        Returns the attempts left for display, or None if the session has
        no TOTP challenge to count against.
        """
        if self._code_kind is not ChallengeKind.TOTP:
            logger.debug("totp_retry without a TOTP challenge")
            return None
        self._totp_attempts_used += 1
        if attempts_remaining is None:
            attempts_remaining = max(0, self.totp_attempts - self._totp_attempts_used)
        challenge = self._pending
        if challenge is not None and challenge.kind is ChallengeKind.TOTP:
            challenge.attempts_used = self._totp_attempts_used
            challenge.attempts_remaining = attempts_remaining
        logger.warning(f"Invalid verification code, {attempts_remaining} attempts remaining")
        return attempts_remaining

    def reopen_totp(self, attempts_remaining: Optional[int] = None) -> PendingChallenge:
        """Open the last TOTP challenge again after a rejected code."""
        if self._code_kind is not ChallengeKind.TOTP:
            raise AuthChallengeError("No TOTP challenge to reopen")
        challenge = self.present(ChallengeKind.TOTP, self._code_prompt, reset_attempts=False)
        challenge.attempts_remaining = attempts_remaining
        return challenge

    def submit(self, code: str) -> dict:
        """
        Answer a TOTP or password challenge.

        Returns the response message to send.

        Raises:
            AuthChallengeError: nothing open, empty code, or a challenge
                kind that is not answered with a code
        """
        challenge = self._require(ChallengeKind.TOTP, ChallengeKind.PASSWORD)
        if not code:
            raise AuthChallengeError("Empty code")
        message = protocol.auth_response(challenge.kind, code)
        self.clear()
        return message

    def submit_credentials(
        self,
        cols: int,
        rows: int,
        host_config: dict,
        password: Optional[str] = None,
        ssh_key: Optional[str] = None,
        key_password: Optional[str] = None,
    ) -> dict:
        """Answer a credentials challenge. Returns the message to send."""
        self._require(ChallengeKind.CREDENTIALS)
        if not password and not ssh_key:
            raise AuthChallengeError("A password or an SSH key is required")
        message = protocol.reconnect_with_credentials(
            cols, rows, host_config,
            password=password, ssh_key=ssh_key, key_password=key_password,
        )
        self.clear()
        return message

    def cancel(self) -> bool:
        """Drop the open challenge. Returns True if one was open."""
        was_open = self._pending is not None
        self.clear()
        return was_open

    def clear(self) -> None:
        self._timers.cancel(AUTH_DEADLINE)
        self._pending = None

    def reset(self) -> None:
        """Clear and forget the attempt count. Used when a session ends."""
        self.clear()
        self._code_kind = None
        self._code_prompt = None
        self._code_deadline = None
        self._totp_attempts_used = 0

    def _require(self, *kinds: ChallengeKind) -> PendingChallenge:
        challenge = self._pending
        if challenge is None:
            raise AuthChallengeError("No authentication challenge is open")
        if challenge.kind not in kinds:
            raise AuthChallengeError(
                f"Open challenge is {challenge.kind.value}, not "
                f"{'/'.join(k.value for k in kinds)}"
            )
        return challenge

    def _expire(self) -> None:
        challenge = self._pending
        if challenge is None:
            return
        self._pending = None
        logger.warning(f"Auth challenge {challenge.kind.value} timed out")
        if self._on_expired:
            self._on_expired(challenge.kind)
