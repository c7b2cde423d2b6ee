"""Per-connection conversation handling."""

from .commands import CommandInterpreter, CommandOutcome
from .models import Message, Role, normalize_role
from .session import ChatSession, TurnResult

__all__ = [
    "ChatSession",
    "CommandInterpreter",
    "CommandOutcome",
    "Message",
    "Role",
    "TurnResult",
    "normalize_role",
]
