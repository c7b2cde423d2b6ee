"""Conversation data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Closed set of message roles understood by chat backends."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# Tags accepted when reading transcripts back; "ai" was written by older builds.
_TRANSCRIPT_ROLES = {
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "ai": Role.ASSISTANT,
}


def normalize_role(tag: str) -> Optional[Role]:
    """Map a transcript role tag to a conversation role.

    Only user and assistant turns are replayed into history; anything else
    (including ``system``) yields None and is dropped.
    """
    return _TRANSCRIPT_ROLES.get(tag.strip().lower())


@dataclass(frozen=True)
class Message:
    """One conversation message."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        """Wire form for chat-completion requests."""
        return {"role": self.role.value, "content": self.content}
