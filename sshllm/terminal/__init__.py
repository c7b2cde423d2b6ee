"""Raw terminal input handling."""

from .editor import LineEditor
from .events import EmptyLine, Echo, Interrupt, LineCompleted, TerminalEvent

__all__ = [
    "Echo",
    "EmptyLine",
    "Interrupt",
    "LineCompleted",
    "LineEditor",
    "TerminalEvent",
]
