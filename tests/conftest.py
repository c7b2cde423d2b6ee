"""Shared test fixtures."""

import asyncio
from datetime import datetime
from typing import Optional

import pytest

from sshllm.llm.interface import BackendError, ChatResponse
from sshllm.memory.store import SessionMemoryStore

FIXED_NOW = datetime(2024, 5, 17, 14, 30, 5)


class FakeBackend:
    """In-memory chat backend recording every prompt it receives.

    Replies are taken from ``replies`` in order (an Exception entry is
    raised instead); once exhausted it echoes the last user message.
    If ``gate`` is set, each call waits on it before answering.
    """

    def __init__(self, replies: Optional[list] = None) -> None:
        self.replies = list(replies or [])
        self.calls: list[list[dict[str, str]]] = []
        self.models: list[Optional[str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def chat(self, messages, model=None) -> ChatResponse:
        self.calls.append([dict(m) for m in messages])
        self.models.append(model)
        if self.gate is not None:
            await self.gate.wait()
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
        else:
            reply = f"echo: {messages[-1]['content']}"
        return ChatResponse(content=reply, model=model or "fake")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store(tmp_path) -> SessionMemoryStore:
    return SessionMemoryStore(tmp_path / "logs", clock=lambda: FIXED_NOW)


@pytest.fixture
def backend_error() -> BackendError:
    return BackendError("API error 500: upstream exploded")


@pytest.fixture
def make_backend():
    """Factory for FakeBackend instances with scripted replies."""
    return FakeBackend
