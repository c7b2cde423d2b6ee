"""Events emitted by the line editor."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Echo:
    """Bytes to write back to the terminal immediately."""

    data: bytes


@dataclass(frozen=True)
class LineCompleted:
    """A non-empty, whitespace-trimmed line of input."""

    text: str


@dataclass(frozen=True)
class EmptyLine:
    """A terminator arrived with nothing but whitespace buffered."""


@dataclass(frozen=True)
class Interrupt:
    """Ctrl-C was pressed; the connection should close."""


TerminalEvent = Union[Echo, LineCompleted, EmptyLine, Interrupt]
