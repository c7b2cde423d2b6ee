"""Chat session -- one connection's conversation with the backend.

Owns the bounded message history for a connection, builds the prompt sent
to the chat backend, and routes slash commands to the local interpreter.
History is seeded from today's transcript on start and every turn is
appended to it, so the transcript doubles as conversational memory.
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional

import structlog

from ..llm.interface import BackendError, ChatBackend
from ..memory.models import UserSummary
from ..memory.store import SessionMemoryStore
from .commands import CommandInterpreter
from .models import Message, Role, normalize_role

logger = structlog.get_logger()

DEFAULT_HISTORY_LIMIT = 40


@dataclass
class TurnResult:
    """Outcome of one line of user input."""

    text: str
    quit: bool = False


class ChatSession:
    """Conversation state and prompt building for a single connection.

    A session is not safe for concurrent ``process_input`` calls; the
    dispatcher serializes them with a per-connection lock.
    """

    def __init__(
        self,
        identity: str,
        backend: ChatBackend,
        store: SessionMemoryStore,
        system_prompt: str,
        model: Optional[str] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        commands: Optional[CommandInterpreter] = None,
    ) -> None:
        self.identity = identity
        self._backend = backend
        self._store = store
        self._system_prompt = system_prompt
        self._model = model
        self._commands = commands or CommandInterpreter.default()
        self._history_limit = history_limit
        self.messages: deque[Message] = deque()
        self.summary = UserSummary()

    @classmethod
    def start(
        cls,
        identity: str,
        backend: ChatBackend,
        store: SessionMemoryStore,
        system_prompt: str,
        **kwargs,
    ) -> "ChatSession":
        """Open a session: bump the session count and reload today's turns."""
        session = cls(identity, backend, store, system_prompt, **kwargs)
        session.summary = store.record_session_start(identity)

        for entry in store.load_recent_transcript(identity):
            role = normalize_role(entry.role)
            if role is None:
                continue
            session.messages.append(Message(role, entry.content))
        session._trim_history()

        logger.info(
            "Chat session started",
            identity=identity,
            total_sessions=session.summary.total_sessions,
            restored_messages=len(session.messages),
        )
        return session

    def welcome_message(self) -> str:
        if self.summary.name:
            return f"Welcome back, {self.summary.name}! How can I help you today?"
        return (
            "Welcome! Type /set-name <your name> to introduce yourself, "
            "or just start chatting!"
        )

    def system_message(self) -> Message:
        """Base prompt plus personalization, rebuilt on every turn."""
        prompt = self._system_prompt
        if self.summary.name:
            prompt += (
                f"\n\nThe user's name is {self.summary.name}. "
                "Address them by name occasionally."
            )
        if self.summary.total_sessions > 1:
            prompt += f"\nThis is session #{self.summary.total_sessions} with this user."
        return Message(Role.SYSTEM, prompt)

    def build_prompt(self) -> list[dict[str, str]]:
        """System message followed by history, oldest first."""
        msgs = [self.system_message()]
        msgs.extend(self.messages)
        return [m.to_dict() for m in msgs]

    async def process_input(self, raw_line: str) -> TurnResult:
        """Handle one completed line of input.

        Raises:
            BackendError: If the chat backend call fails. The user message
                stays in history; no assistant turn is recorded.
        """
        line = raw_line.strip()
        if not line:
            return TurnResult("")

        if self._commands.is_command(line):
            outcome = self._commands.execute(self, line)
            return TurnResult(outcome.text, quit=outcome.quit)

        self._store.append_transcript(self.identity, Role.USER.value, line)
        self.messages.append(Message(Role.USER, line))

        try:
            response = await self._backend.chat(self.build_prompt(), model=self._model)
        except BackendError as exc:
            logger.warning(
                "Chat backend call failed", identity=self.identity, error=str(exc)
            )
            raise

        reply = response.content
        self._store.append_transcript(self.identity, Role.ASSISTANT.value, reply)
        self.messages.append(Message(Role.ASSISTANT, reply))
        self._trim_history()
        return TurnResult(reply)

    def _trim_history(self) -> None:
        # Only trimmed after a completed turn; a failed turn evicts nothing
        while len(self.messages) > self._history_limit:
            self.messages.popleft()

    # --- command hooks ---

    def set_name(self, name: str) -> None:
        self.summary.name = name
        # Re-reads the file so a count bumped by another connection survives
        self._store.set_name(self.identity, name)

    def clear_history(self) -> None:
        self.messages.clear()
