"""Tests for the console surface."""

import io
import os

from termlink.terminal.surface import ConsoleSurface


class TestConsoleSurface:

    def test_write_flushes_to_stream(self):
        stream = io.StringIO()
        surface = ConsoleSurface(stream)
        surface.write("hello")

        assert stream.getvalue() == "hello"

    def test_clear_skipped_when_not_a_tty(self):
        stream = io.StringIO()
        ConsoleSurface(stream).clear()

        assert stream.getvalue() == ""

    def test_fit_reads_terminal_size(self, monkeypatch):
        monkeypatch.setattr(
            "termlink.terminal.surface.shutil.get_terminal_size",
            lambda fallback: os.terminal_size((132, 43)),
        )
        surface = ConsoleSurface(io.StringIO())

        assert (surface.cols, surface.rows) == (132, 43)
