"""Local slash-command interpreter.

Commands are handled without a backend round trip. Each command is a
handler registered under one or more names; the first whitespace-delimited
token selects it case-insensitively.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .session import ChatSession

COMMAND_MARKER = "/"

HELP_TEXT = (
    "Commands:\n"
    "  /set-name <name> - Set your name (alias: /name)\n"
    "  /clear - Clear history\n"
    "  /help - Show this\n"
    "  /quit - Exit (alias: /exit)"
)
UNKNOWN_TEXT = "Unknown command. Type /help for available commands."


@dataclass
class CommandOutcome:
    """Result of a local command."""

    text: str
    quit: bool = False


CommandHandler = Callable[["ChatSession", str], CommandOutcome]


def _set_name(session: "ChatSession", arg: str) -> CommandOutcome:
    if not arg:
        return CommandOutcome("Usage: /set-name <your name>")
    session.set_name(arg)
    return CommandOutcome(f"Nice to meet you, {arg}!")


def _clear(session: "ChatSession", arg: str) -> CommandOutcome:
    session.clear_history()
    return CommandOutcome("Chat history cleared.")


def _help(session: "ChatSession", arg: str) -> CommandOutcome:
    return CommandOutcome(HELP_TEXT)


def _quit(session: "ChatSession", arg: str) -> CommandOutcome:
    return CommandOutcome("Goodbye!", quit=True)


class CommandInterpreter:
    """Registry of local commands keyed by name."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}

    def register(self, handler: CommandHandler, *names: str) -> None:
        """Register a handler under one or more command names."""
        for name in names:
            self._handlers[name.lower()] = handler

    @staticmethod
    def is_command(line: str) -> bool:
        return line.startswith(COMMAND_MARKER)

    def execute(self, session: "ChatSession", line: str) -> CommandOutcome:
        """Run a command line (including the marker) against a session."""
        parts = line[len(COMMAND_MARKER) :].split(None, 1)
        token = parts[0].lower() if parts else ""
        arg = parts[1].strip() if len(parts) > 1 else ""
        handler: Optional[CommandHandler] = self._handlers.get(token)
        if handler is None:
            return CommandOutcome(UNKNOWN_TEXT)
        return handler(session, arg)

    @classmethod
    def default(cls) -> "CommandInterpreter":
        """Interpreter with the built-in command set."""
        interpreter = cls()
        interpreter.register(_set_name, "set-name", "name")
        interpreter.register(_clear, "clear")
        interpreter.register(_help, "help")
        interpreter.register(_quit, "quit", "exit")
        return interpreter
