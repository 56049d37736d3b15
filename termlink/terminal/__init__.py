"""
Terminal front end.
"""

from .surface import TerminalSurface, ConsoleSurface
from .controller import TerminalController

__all__ = ["TerminalSurface", "ConsoleSurface", "TerminalController"]
