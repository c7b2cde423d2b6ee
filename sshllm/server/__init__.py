"""SSH server: connection registry, line dispatch and transport."""

from .dispatch import LineDispatcher
from .registry import ConnectionRegistry, ConnectionState, OutputHandle
from .ssh import ChatServer

__all__ = [
    "ChatServer",
    "ConnectionRegistry",
    "ConnectionState",
    "LineDispatcher",
    "OutputHandle",
]
