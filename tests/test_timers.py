"""Tests for QTimer-backed named timers."""

import logging

from termlink.session.timers import QtTimerSet


class TestQtTimerSet:

    def test_single_shot_fires_and_forgets(self, qtbot):
        timers = QtTimerSet()
        fired = []
        timers.start("connect-timeout", 0.01, lambda: fired.append(True))
        assert timers.is_active("connect-timeout")

        qtbot.waitUntil(lambda: fired == [True], timeout=1000)
        assert not timers.is_active("connect-timeout")
        assert timers.active_names() == []

    def test_restart_replaces_pending(self, qtbot):
        timers = QtTimerSet()
        fired = []
        timers.start("resize", 0.01, lambda: fired.append("first"))
        timers.start("resize", 0.02, lambda: fired.append("second"))

        qtbot.waitUntil(lambda: fired, timeout=1000)
        qtbot.wait(50)
        assert fired == ["second"]

    def test_repeat_until_cancelled(self, qtbot):
        timers = QtTimerSet()
        ticks = []
        timers.start("heartbeat", 0.01, lambda: ticks.append(1), repeat=True)

        qtbot.waitUntil(lambda: len(ticks) >= 3, timeout=1000)
        assert timers.cancel("heartbeat") is True
        count = len(ticks)
        qtbot.wait(50)
        assert len(ticks) == count

    def test_cancel_all(self, qtbot):
        timers = QtTimerSet()
        fired = []
        timers.start("a", 0.01, lambda: fired.append("a"))
        timers.start("b", 0.01, lambda: fired.append("b"), repeat=True)
        timers.cancel_all()

        qtbot.wait(50)
        assert fired == []
        assert timers.active_names() == []
        assert timers.cancel("a") is False

    def test_callback_error_is_logged(self, qtbot, caplog):
        timers = QtTimerSet()
        after = []

        def boom():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="termlink.session.timers"):
            timers.start("bad", 0.01, boom)
            timers.start("good", 0.02, lambda: after.append(True))
            qtbot.waitUntil(lambda: after, timeout=1000)

        assert "Timer bad callback error" in caplog.text
