"""Memory data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class UserSummary:
    """Small personalization record kept per identity."""

    name: Optional[str] = None
    total_sessions: int = 0
    last_seen: Optional[datetime] = None


@dataclass(frozen=True)
class TranscriptEntry:
    """One turn as read back from a transcript file."""

    role: str  # raw tag as written; normalized by the chat layer
    content: str
