"""
Rendering collaborator for a terminal session.
"""

from __future__ import annotations
import shutil
import sys
from abc import ABC, abstractmethod
from typing import TextIO


class TerminalSurface(ABC):
    """Whatever draws the terminal grid and knows its size."""

    @abstractmethod
    def write(self, data: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def focus(self) -> None:
        pass

    @abstractmethod
    def fit(self) -> None:
        """Recompute cols/rows from the available space."""
        pass

    @property
    @abstractmethod
    def cols(self) -> int:
        pass

    @property
    @abstractmethod
    def rows(self) -> int:
        pass


class ConsoleSurface(TerminalSurface):
    """Surface that writes straight to a text stream, sized from the tty."""

    CLEAR_SCREEN = "\x1b[2J\x1b[H"

    def __init__(self, stream: TextIO = None, fallback: tuple[int, int] = (80, 24)):
        self._stream = stream or sys.stdout
        self._fallback = fallback
        self._cols, self._rows = fallback
        self.fit()

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def rows(self) -> int:
        return self._rows

    def write(self, data: str) -> None:
        self._stream.write(data)
        self._stream.flush()

    def clear(self) -> None:
        if self._stream.isatty():
            self.write(self.CLEAR_SCREEN)

    def focus(self) -> None:
        pass

    def fit(self) -> None:
        size = shutil.get_terminal_size(self._fallback)
        self._cols, self._rows = size.columns, size.lines
