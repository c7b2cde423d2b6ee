"""Test the SSH front end: identity, host keys and the input loop."""

import asyncio
import hashlib
from typing import Optional
from unittest.mock import MagicMock

import asyncssh
import pytest

from sshllm.config.settings import Settings
from sshllm.server import render
from sshllm.server.ssh import (
    ChatServer,
    ChatSSHServer,
    key_identity,
    load_or_create_host_key,
    resolve_identity,
)


class FakeProcess:
    """Stands in for asyncssh.SSHServerProcess."""

    def __init__(
        self,
        chunks: list,
        identity_hint: Optional[str] = None,
        peername=("192.0.2.10", 50022),
        command: Optional[str] = None,
    ) -> None:
        self.command = command
        self._extra = {"identity_hint": identity_hint, "peername": peername}
        self._chunks = list(chunks)
        self.release = asyncio.Event()
        self.written: list[bytes] = []
        self.exit_codes: list[int] = []
        self.stdin = MagicMock()
        self.stdin.read = self._read
        self.stdout = MagicMock()
        self.stdout.write = self.written.append

    def get_extra_info(self, name, default=None):
        return self._extra.get(name, default)

    async def _read(self, n: int) -> bytes:
        if self._chunks:
            item = self._chunks.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        await self.release.wait()
        return b""

    def exit(self, status: int) -> None:
        self.exit_codes.append(status)
        self.release.set()

    @property
    def text(self) -> str:
        return b"".join(self.written).decode()


@pytest.fixture
def server(tmp_path, backend, store) -> ChatServer:
    settings = Settings(
        logs_dir=tmp_path / "logs",
        host_key_path=tmp_path / "keys" / "host",
        system_prompt="sys",
        model="test-model",
    )
    return ChatServer(settings, backend=backend, store=store)


class TestIdentity:
    def test_key_identity_hashes_public_blob(self) -> None:
        key = MagicMock()
        key.public_data = b"\x00\x00\x00\x0bssh-ed25519blob"
        expected = hashlib.sha256(key.public_data).hexdigest()
        assert key_identity(key) == f"key_{expected}"

    def test_key_identity_is_stable_for_real_key(self) -> None:
        key = asyncssh.generate_private_key("ssh-ed25519")
        public = asyncssh.import_public_key(key.export_public_key())
        assert key_identity(key) == key_identity(public)

    def test_resolve_prefers_key(self) -> None:
        assert resolve_identity("key_ab", ("10.1.1.1", 22)) == "key_ab"

    def test_resolve_falls_back_to_address(self) -> None:
        assert resolve_identity(None, ("10.1.1.1", 22)) == "10.1.1.1"
        assert resolve_identity(None, None) == "127.0.0.1"


class TestHostKey:
    def test_generates_then_reloads_same_key(self, tmp_path) -> None:
        path = tmp_path / "keys" / "host_ed25519"
        created = load_or_create_host_key(path)
        assert path.exists()
        assert path.stat().st_mode & 0o777 == 0o600

        loaded = load_or_create_host_key(path)
        assert loaded.public_data == created.public_data


class TestAuthCallbacks:
    def test_public_key_sets_identity_hint(self) -> None:
        conn = MagicMock()
        server = ChatSSHServer()
        server.connection_made(conn)
        key = MagicMock(public_data=b"blob")

        assert server.begin_auth("guest") is True
        assert server.validate_public_key("guest", key) is True
        conn.set_extra_info.assert_called_with(identity_hint=key_identity(key))

    def test_password_clears_identity_hint(self) -> None:
        conn = MagicMock()
        server = ChatSSHServer()
        server.connection_made(conn)

        assert server.validate_password("guest", "anything") is True
        conn.set_extra_info.assert_called_with(identity_hint=None)


class TestHandleClient:
    async def test_welcome_chat_and_quit(self, server, backend) -> None:
        process = FakeProcess([b"hi\r", b"/quit\r"])

        await asyncio.wait_for(server.handle_client(process), timeout=5)
        await asyncio.wait_for(server.dispatcher.shutdown(), timeout=5)

        text = process.text
        assert text.startswith(render.BANNER)
        assert "Welcome!" in text
        assert render.reply("echo: hi") in text
        assert text.endswith(render.GOODBYE)
        assert process.exit_codes[0] == 0
        assert backend.models == ["test-model"]
        assert len(server.registry) == 0

    async def test_identity_from_key_hint_used_for_storage(self, server, store) -> None:
        process = FakeProcess([b""], identity_hint="key_deadbeef")
        await server.handle_client(process)

        assert store.load("key_deadbeef").total_sessions == 1
        assert store.load("192.0.2.10").total_sessions == 0

    async def test_address_identity_without_key(self, server, store) -> None:
        await server.handle_client(FakeProcess([b""]))
        assert store.load("192.0.2.10").total_sessions == 1

    async def test_ctrl_c_closes_connection(self, server, backend) -> None:
        process = FakeProcess([b"typed\x03"])
        await asyncio.wait_for(server.handle_client(process), timeout=5)

        assert process.text.endswith("\r\n^C\r\n")
        assert process.exit_codes == [0]
        assert backend.calls == []
        assert len(server.registry) == 0

    async def test_blank_line_redraws_prompt(self, server) -> None:
        process = FakeProcess([b"\r", b""])
        await server.handle_client(process)
        assert process.text.endswith("\r\n" + render.PROMPT)

    async def test_window_resize_is_ignored(self, server) -> None:
        process = FakeProcess(
            [asyncssh.TerminalSizeChanged(80, 24, 0, 0), b"ok", b""]
        )
        await server.handle_client(process)
        assert process.text.endswith("ok")

    async def test_stop_with_open_session(self, server) -> None:
        process = FakeProcess([])
        task = asyncio.create_task(server.handle_client(process))
        for _ in range(10):
            await asyncio.sleep(0)
        assert await server.registry.active_ids() == [0]

        await server.stop()
        process.release.set()
        await asyncio.wait_for(task, timeout=5)
        assert len(server.registry) == 0

    async def test_exec_requests_are_refused(self, server) -> None:
        process = FakeProcess([], command="uptime")
        await server.handle_client(process)

        assert "interactive" in process.text
        assert process.exit_codes == [1]
        assert len(server.registry) == 0
