"""Chat-completion backend access."""

from .chat_provider import ChatProvider, ChatResponse
from .factory import create_chat_backend
from .interface import BackendError, ChatBackend

__all__ = [
    "BackendError",
    "ChatBackend",
    "ChatProvider",
    "ChatResponse",
    "create_chat_backend",
]
