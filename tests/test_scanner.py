"""Tests for sudo prompt detection."""

import pytest

from termlink.session.scanner import OutputScanner, SUDO_PROMPT_PATTERN
from termlink.session.timers import SUDO_COOLDOWN, SUDO_CEILING

from .fakes import FakeTimers


@pytest.mark.parametrize("text", [
    "[sudo] password for deploy: ",
    "[SUDO] Passwort für deploy:",
    "output\r\n[sudo] password for root:",
    "sudo: a terminal is required to read the password; a password is required",
])
def test_pattern_matches_prompts(text):
    assert SUDO_PROMPT_PATTERN.search(text)


@pytest.mark.parametrize("text", [
    "sudo apt update\r\n",
    "[sudo] password for deploy: \r\nSorry, try again.\r\nfoo",
    "Password: ",
])
def test_pattern_ignores_other_output(text):
    assert not SUDO_PROMPT_PATTERN.search(text)


class TestOutputScanner:

    def setup_method(self):
        self.timers = FakeTimers()
        self.scanner = OutputScanner(self.timers, cooldown=3.0, reset_ceiling=15.0)
        self.scanner.configure(True, "hunter2")

    def test_disabled_without_autofill(self):
        self.scanner.configure(False, "hunter2")
        assert not self.scanner.scan("[sudo] password for deploy: ")

    def test_disabled_without_password(self):
        self.scanner.configure(True, None)
        assert not self.scanner.scan("[sudo] password for deploy: ")

    def test_one_trigger_per_burst(self):
        assert self.scanner.scan("[sudo] password for deploy: ")
        assert not self.scanner.scan("[sudo] password for deploy: ")
        assert self.scanner.awaiting_confirmation

    def test_confirm_returns_password_once(self):
        self.scanner.scan("[sudo] password for deploy: ")

        assert self.scanner.confirm() == "hunter2"
        assert self.scanner.confirm() is None
        assert self.timers.is_active(SUDO_COOLDOWN)

    def test_cooldown_releases_guard(self):
        self.scanner.scan("[sudo] password for deploy: ")
        self.scanner.confirm()
        self.timers.advance(3.0)

        assert not self.scanner.guard.active
        assert not self.timers.is_active(SUDO_CEILING)
        assert self.scanner.scan("[sudo] password for deploy: ")

    def test_ceiling_releases_unanswered_guard(self):
        self.scanner.scan("[sudo] password for deploy: ")
        self.scanner.decline()
        self.timers.advance(14.9)
        assert self.scanner.guard.active

        self.timers.advance(0.1)
        assert not self.scanner.guard.active

    def test_confirm_without_prompt(self):
        assert self.scanner.confirm() is None

    def test_reset(self):
        self.scanner.scan("[sudo] password for deploy: ")
        self.scanner.reset()

        assert not self.scanner.awaiting_confirmation
        assert self.timers.active_names() == []
