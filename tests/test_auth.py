"""Tests for the authentication challenge handler."""

import pytest

from termlink.errors import AuthChallengeError
from termlink.session.auth import AuthChallengeHandler
from termlink.session.base import ChallengeKind
from termlink.session.timers import AUTH_DEADLINE

from .fakes import FakeTimers


class TestAuthChallengeHandler:

    def setup_method(self):
        self.timers = FakeTimers()
        self.expired = []
        self.handler = AuthChallengeHandler(
            self.timers,
            timeout=180.0,
            keyboard_interactive_timeout=60.0,
            on_expired=self.expired.append,
            clock=self.timers.clock,
        )

    def test_present_uses_default_prompt(self):
        challenge = self.handler.present(ChallengeKind.PASSWORD)

        assert challenge.prompt == "Password"
        assert challenge.deadline == 180.0
        assert self.timers.due_in(AUTH_DEADLINE) == 180.0

    def test_keyboard_interactive_deadline(self):
        self.handler.present(ChallengeKind.KEYBOARD_INTERACTIVE, "Duo")
        assert self.timers.due_in(AUTH_DEADLINE) == 60.0

    def test_expiry_fires_once(self):
        self.handler.present(ChallengeKind.TOTP)
        self.timers.advance(500)

        assert self.expired == [ChallengeKind.TOTP]
        assert self.handler.pending is None

    def test_submit_totp(self):
        self.handler.present(ChallengeKind.TOTP)
        message = self.handler.submit("123456")

        assert message == {"type": "totp_response", "data": {"code": "123456"}}
        assert self.handler.pending is None
        assert not self.timers.is_active(AUTH_DEADLINE)

    def test_submit_empty_code(self):
        self.handler.present(ChallengeKind.TOTP)
        with pytest.raises(AuthChallengeError):
            self.handler.submit("")
        assert self.handler.pending is not None

    def test_submit_without_challenge(self):
        with pytest.raises(AuthChallengeError):
            self.handler.submit("123456")

    def test_submit_code_to_credentials_challenge(self):
        self.handler.present(ChallengeKind.CREDENTIALS)
        with pytest.raises(AuthChallengeError):
            self.handler.submit("123456")

    def test_retry_counts_down(self):
        self.handler.present(ChallengeKind.TOTP)

        assert self.handler.record_retry() == 2
        assert self.handler.record_retry(5) == 5
        assert self.handler.pending.attempts_used == 2

    def test_retry_does_not_rearm_deadline(self):
        self.handler.present(ChallengeKind.TOTP)
        self.timers.advance(100)
        self.handler.record_retry()

        assert self.timers.due_in(AUTH_DEADLINE) == 80.0

    def test_retry_counts_after_submit(self):
        self.handler.present(ChallengeKind.TOTP, "Code:")
        self.timers.advance(50)
        self.handler.submit("000000")

        assert self.handler.pending is None
        assert self.handler.record_retry() == 2

        challenge = self.handler.reopen_totp(2)
        assert challenge.prompt == "Code:"
        assert challenge.attempts_used == 1
        assert challenge.attempts_remaining == 2
        assert challenge.deadline == 180.0
        assert self.timers.due_in(AUTH_DEADLINE) == 130.0

    def test_present_resets_count(self):
        self.handler.present(ChallengeKind.TOTP)
        self.handler.record_retry()
        self.handler.present(ChallengeKind.TOTP)

        assert self.handler.totp_attempts_used == 0

    def test_reset_forgets_challenge(self):
        self.handler.present(ChallengeKind.TOTP)
        self.handler.reset()

        assert self.handler.record_retry() is None
        with pytest.raises(AuthChallengeError):
            self.handler.reopen_totp()

    def test_retry_ignored_for_password(self):
        self.handler.present(ChallengeKind.PASSWORD)
        assert self.handler.record_retry() is None

    def test_submit_credentials_with_key(self):
        self.handler.present(ChallengeKind.CREDENTIALS)
        message = self.handler.submit_credentials(
            80, 24, {"ip": "10.0.0.5"}, ssh_key="-----BEGIN KEY-----", key_password="pp"
        )

        assert message["type"] == "reconnect_with_credentials"
        assert message["data"]["sshKey"] == "-----BEGIN KEY-----"
        assert message["data"]["keyPassword"] == "pp"
        assert "password" not in message["data"]

    def test_submit_credentials_needs_secret(self):
        self.handler.present(ChallengeKind.CREDENTIALS)
        with pytest.raises(AuthChallengeError):
            self.handler.submit_credentials(80, 24, {})

    def test_cancel(self):
        self.handler.present(ChallengeKind.PASSWORD)

        assert self.handler.cancel() is True
        assert self.handler.cancel() is False
        self.timers.advance(500)
        assert self.expired == []
