"""Integration test: keystrokes in, replies out, memory across reconnects."""

import asyncio
from unittest.mock import MagicMock

import pytest

from sshllm.chat.session import ChatSession
from sshllm.llm.interface import BackendError
from sshllm.memory.store import SessionMemoryStore
from sshllm.server import render
from sshllm.server.dispatch import LineDispatcher
from sshllm.server.registry import ConnectionRegistry, OutputHandle
from sshllm.terminal.events import Echo, LineCompleted


class Terminal:
    """One simulated client: editor output plus dispatcher replies."""

    def __init__(self, registry, dispatcher, state) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.state = state

    @classmethod
    async def connect(cls, registry, dispatcher, conn_id, identity, backend, store, out):
        chat = ChatSession.start(identity, backend, store, "base prompt")
        state = await registry.open(
            conn_id, identity, OutputHandle(out.append, MagicMock()), chat
        )
        out.append(render.welcome(chat.welcome_message()).encode())
        return cls(registry, dispatcher, state)

    def type(self, data: bytes) -> list:
        tasks = []
        for event in self.state.editor.feed(data):
            if isinstance(event, Echo):
                self.state.output.write(event.data)
            elif isinstance(event, LineCompleted):
                tasks.append(self.dispatcher.submit(self.state, event.text))
        return tasks


@pytest.fixture
def memory(tmp_path):
    return SessionMemoryStore(tmp_path / "logs")


@pytest.mark.asyncio
async def test_name_and_history_survive_reconnect(make_backend, memory):
    """Set a name, chat, disconnect, reconnect: both are remembered."""
    backend = make_backend(["Hi Ada!", "Paris."])
    registry = ConnectionRegistry()
    dispatcher = LineDispatcher()
    out: list[bytes] = []

    term = await Terminal.connect(registry, dispatcher, 0, "key_ada", backend, memory, out)
    await asyncio.gather(*term.type(b"/set-name Ada\r"))
    await asyncio.gather(*term.type(b"hello\r"))
    await asyncio.gather(*term.type(b"capital of Frence\x7f\x7f\x7f\x7fance?\r"))
    await registry.close(0)

    text = b"".join(out).decode()
    assert "Nice to meet you, Ada!" in text
    assert render.reply("Paris.") in text
    assert backend.calls[1][-1] == {"role": "user", "content": "capital of France?"}

    out2: list[bytes] = []
    again = await Terminal.connect(
        registry, dispatcher, 1, "key_ada", make_backend(), memory, out2
    )

    assert "Welcome back, Ada!" in b"".join(out2).decode()
    assert [m.content for m in again.state.chat.messages] == [
        "hello",
        "Hi Ada!",
        "capital of France?",
        "Paris.",
    ]
    system = again.state.chat.system_message().content
    assert "The user's name is Ada." in system
    assert "session #2" in system


@pytest.mark.asyncio
async def test_two_users_progress_independently(make_backend, memory):
    """A hung backend call for one user does not stall another."""
    slow_backend = make_backend(["eventually"])
    slow_backend.gate = asyncio.Event()
    registry = ConnectionRegistry()
    dispatcher = LineDispatcher()
    slow_out: list[bytes] = []
    fast_out: list[bytes] = []

    slow = await Terminal.connect(
        registry, dispatcher, 0, "10.0.0.1", slow_backend, memory, slow_out
    )
    fast = await Terminal.connect(
        registry, dispatcher, 1, "10.0.0.2", make_backend(["right away"]), memory, fast_out
    )

    pending = slow.type(b"first\r")
    slow.type(b"sec")  # keystrokes still echo while the backend is busy
    await asyncio.gather(*fast.type(b"ping\r"))

    assert render.reply("right away") in b"".join(fast_out).decode()
    assert b"".join(slow_out).endswith(render.THINKING.encode() + b"sec")

    slow_backend.gate.set()
    await asyncio.gather(*pending)
    assert render.reply("eventually") in b"".join(slow_out).decode()


@pytest.mark.asyncio
async def test_failed_turn_leaves_no_phantom_reply(make_backend, memory):
    backend = make_backend([BackendError("Request failed: connection refused"), "ok"])
    registry = ConnectionRegistry()
    dispatcher = LineDispatcher()
    out: list[bytes] = []
    term = await Terminal.connect(registry, dispatcher, 0, "u", backend, memory, out)

    await asyncio.gather(*term.type(b"one\r"))
    await asyncio.gather(*term.type(b"two\r"))

    assert "Error: Request failed: connection refused" in b"".join(out).decode()
    assert [m["role"] for m in backend.calls[1]] == ["system", "user", "user"]
    assert [e.role for e in memory.load_recent_transcript("u")] == [
        "user",
        "user",
        "assistant",
    ]
