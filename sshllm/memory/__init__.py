"""Per-identity persistent memory: user summary and daily transcripts."""

from .models import TranscriptEntry, UserSummary
from .store import SessionMemoryStore

__all__ = ["SessionMemoryStore", "TranscriptEntry", "UserSummary"]
