"""Chat backend interface and shared types.

Defines the Protocol the chat session talks to. Any OpenAI-compatible
server (llama.cpp, vLLM, Ollama, OpenAI itself) is reached through the
same ``chat`` call; tests substitute an in-memory fake.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class ChatResponse:
    """Reply from a chat completion."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0


class BackendError(Exception):
    """A chat completion failed; the message is safe to show to the user."""


class ChatBackend(Protocol):
    """Protocol for chat-completion backends."""

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
    ) -> ChatResponse:
        """Send an ordered list of ``{role, content}`` messages.

        Returns:
            ChatResponse with the single reply.

        Raises:
            BackendError: On transport, status, or parse failure.
        """
        ...
