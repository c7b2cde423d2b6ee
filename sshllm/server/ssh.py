"""SSH front end -- authentication, identity and the per-connection input loop.

Built on asyncssh. Any password or public key is accepted; a key gives the
client a stable identity (its fingerprint), otherwise the peer IP address
is used. asyncssh's own line editor is disabled so raw keystrokes reach
``LineEditor``.
"""

import hashlib
import os
from pathlib import Path
from typing import Optional

import asyncssh
import structlog

from ..chat.session import ChatSession
from ..config.settings import Settings
from ..llm.factory import create_chat_backend
from ..llm.interface import ChatBackend
from ..memory.store import SessionMemoryStore
from ..terminal.events import EmptyLine, Echo, Interrupt, LineCompleted
from . import render
from .dispatch import LineDispatcher
from .registry import ConnectionRegistry, ConnectionState, OutputHandle

logger = structlog.get_logger()

READ_CHUNK = 1024
FALLBACK_ADDRESS = "127.0.0.1"


def key_identity(key: asyncssh.SSHKey) -> str:
    """Stable identity for a client public key."""
    return "key_" + hashlib.sha256(key.public_data).hexdigest()


def resolve_identity(key_hint: Optional[str], peername: Optional[tuple]) -> str:
    """Key fingerprint if one was presented, else the peer address."""
    if key_hint:
        return key_hint
    if peername:
        return str(peername[0])
    return FALLBACK_ADDRESS


def load_or_create_host_key(path: Path) -> asyncssh.SSHKey:
    """Read the host key, generating an Ed25519 key on first start."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        logger.info("Loading host key", path=str(path))
        return asyncssh.read_private_key(str(path))

    logger.info("Generating new host key", path=str(path))
    key = asyncssh.generate_private_key("ssh-ed25519")
    key.write_private_key(str(path))
    os.chmod(path, 0o600)
    return key


class ChatSSHServer(asyncssh.SSHServer):
    """Per-connection auth callbacks; records the identity hint."""

    def __init__(self) -> None:
        self._conn: Optional[asyncssh.SSHServerConnection] = None

    def connection_made(self, conn: asyncssh.SSHServerConnection) -> None:
        self._conn = conn
        logger.debug("SSH connection made", peer=conn.get_extra_info("peername"))

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.info("SSH connection lost", error=str(exc))

    def begin_auth(self, username: str) -> bool:
        # Refuse "none" so clients offer a key before falling back
        return True

    def password_auth_supported(self) -> bool:
        return True

    def validate_password(self, username: str, password: str) -> bool:
        if self._conn is not None:
            self._conn.set_extra_info(identity_hint=None)
        logger.info("Client authenticated with password", username=username)
        return True

    def public_key_auth_supported(self) -> bool:
        return True

    def validate_public_key(self, username: str, key: asyncssh.SSHKey) -> bool:
        fingerprint = key_identity(key)
        if self._conn is not None:
            self._conn.set_extra_info(identity_hint=fingerprint)
        logger.info("Client offered public key", username=username, identity=fingerprint)
        return True


class ChatServer:
    """Wires transport, registry, dispatcher and chat sessions together."""

    def __init__(
        self,
        settings: Settings,
        backend: Optional[ChatBackend] = None,
        store: Optional[SessionMemoryStore] = None,
    ) -> None:
        self.settings = settings
        self.backend = backend or create_chat_backend(settings)
        self.store = store or SessionMemoryStore(
            settings.logs_dir,
            reload_limit=settings.reload_limit,
            escape_newlines=settings.escape_transcript_newlines,
        )
        self.registry = ConnectionRegistry()
        self.dispatcher = LineDispatcher()
        self._acceptor: Optional[asyncssh.SSHAcceptor] = None

    async def start(self) -> None:
        host_key = load_or_create_host_key(self.settings.host_key_path)
        self._acceptor = await asyncssh.create_server(
            ChatSSHServer,
            self.settings.host,
            self.settings.port,
            server_host_keys=[host_key],
            process_factory=self.handle_client,
            encoding=None,
            line_editor=False,
        )
        logger.info(
            "sshllm server listening",
            host=self.settings.host,
            port=self.settings.port,
            endpoint=self.settings.api_url,
            model=self.settings.model,
            logs_dir=str(self.settings.logs_dir),
        )

    async def stop(self) -> None:
        open_ids = await self.registry.active_ids()
        if open_ids:
            logger.info("Stopping with open connections", conn_ids=open_ids)
        if self._acceptor is not None:
            self._acceptor.close()
            await self._acceptor.wait_closed()
            self._acceptor = None
        await self.dispatcher.shutdown()
        logger.info("sshllm server stopped")

    def open_session(self, identity: str) -> ChatSession:
        return ChatSession.start(
            identity,
            self.backend,
            self.store,
            self.settings.system_prompt,
            model=self.settings.model,
            history_limit=self.settings.history_limit,
        )

    async def handle_client(self, process: asyncssh.SSHServerProcess) -> None:
        """Input loop for one session channel."""
        if process.command:
            process.stdout.write(b"Only interactive shells are supported.\r\n")
            process.exit(1)
            return

        conn_id = await self.registry.allocate_id()
        identity = resolve_identity(
            process.get_extra_info("identity_hint"),
            process.get_extra_info("peername"),
        )
        structlog.contextvars.bind_contextvars(conn_id=conn_id, identity=identity)

        output = OutputHandle(process.stdout.write, lambda: process.exit(0))
        state = await self.registry.open(
            conn_id, identity, output, self.open_session(identity)
        )
        output.write(render.welcome(state.chat.welcome_message()))
        logger.info("Session opened", active_connections=len(self.registry))

        try:
            await self._read_loop(process, state)
        finally:
            output.hangup()
            await self.registry.close(conn_id)
            self.dispatcher.cancel_pending(state)
            logger.info(
                "Session closed",
                duration_s=round(state.connected_for(), 3),
                active_connections=len(self.registry),
            )
            structlog.contextvars.unbind_contextvars("conn_id", "identity")

    async def _read_loop(
        self, process: asyncssh.SSHServerProcess, state: ConnectionState
    ) -> None:
        while True:
            try:
                chunk = await process.stdin.read(READ_CHUNK)
            except (asyncssh.TerminalSizeChanged, asyncssh.BreakReceived):
                continue
            except (asyncssh.Error, BrokenPipeError, ConnectionError) as exc:
                logger.info("Channel read ended", error=str(exc))
                return

            if not chunk:
                logger.info("Client closed channel")
                return

            for event in state.editor.feed(chunk):
                if isinstance(event, Echo):
                    state.output.write(event.data)
                elif isinstance(event, EmptyLine):
                    state.output.write(render.PROMPT)
                elif isinstance(event, LineCompleted):
                    self.dispatcher.submit(state, event.text)
                elif isinstance(event, Interrupt):
                    logger.info("Client interrupted session")
                    return

