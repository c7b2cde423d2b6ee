"""Chat backend factory.

Creates the ChatBackend used by every connection from application settings.
"""

from typing import Any

from .chat_provider import ChatProvider
from .interface import ChatBackend


def create_chat_backend(settings: Any) -> ChatBackend:
    """Create a chat backend based on settings.

    Args:
        settings: Application settings exposing ``api_url``, ``model``,
            ``api_key_str`` and ``backend_timeout``.

    Returns:
        A ChatBackend implementation shared by all connections.
    """
    return ChatProvider(
        model=settings.model,
        base_url=settings.api_url,
        api_key=settings.api_key_str,
        timeout=settings.backend_timeout,
    )
