"""Connection registry -- process-wide map of live connections."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

import structlog

from ..chat.session import ChatSession
from ..terminal.editor import LineEditor

logger = structlog.get_logger()


class OutputHandle:
    """Write side of a connection that outlives the connection itself.

    Once detached (connection closed) or once the transport refuses a
    write, every further write is a silent no-op.
    """

    def __init__(
        self,
        write: Callable[[bytes], None],
        hangup: Optional[Callable[[], None]] = None,
    ) -> None:
        self._write = write
        self._hangup = hangup
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def write(self, data: bytes | str) -> bool:
        """Write to the client; returns False if nothing was sent."""
        if self._detached:
            return False
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            self._write(data)
        except (BrokenPipeError, ConnectionError, OSError) as exc:
            logger.debug("Write to closed channel dropped", error=str(exc))
            self._detached = True
            return False
        return True

    def hangup(self) -> None:
        """Ask the transport to close the channel."""
        if self._detached or self._hangup is None:
            return
        try:
            self._hangup()
        except (BrokenPipeError, ConnectionError, OSError) as exc:
            logger.debug("Hangup on closed channel ignored", error=str(exc))

    def detach(self) -> None:
        self._detached = True


@dataclass
class ConnectionState:
    """Everything the server keeps for one open session channel."""

    conn_id: int
    identity: str
    output: OutputHandle
    chat: ChatSession
    editor: LineEditor = field(default_factory=LineEditor)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    tasks: Set["asyncio.Task[None]"] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def connected_for(self) -> float:
        """Seconds since the channel was registered."""
        return (datetime.now(timezone.utc) - self.connected_at).total_seconds()


class ConnectionRegistry:
    """Owns the id -> ConnectionState map.

    Every mutation happens under a single lock that is only held for the
    map operation itself. Entries never expire; they are removed only by
    ``close``.
    """

    def __init__(self) -> None:
        self._connections: Dict[int, ConnectionState] = {}
        self._lock = asyncio.Lock()
        self._next_id = 0

    async def allocate_id(self) -> int:
        async with self._lock:
            conn_id = self._next_id
            self._next_id += 1
            return conn_id

    async def open(
        self,
        conn_id: int,
        identity: str,
        output: OutputHandle,
        chat: ChatSession,
    ) -> ConnectionState:
        """Insert a fresh entry for a newly opened channel."""
        state = ConnectionState(
            conn_id=conn_id, identity=identity, output=output, chat=chat
        )
        async with self._lock:
            if conn_id in self._connections:
                raise ValueError(f"Connection {conn_id} is already registered")
            self._connections[conn_id] = state
        logger.info("Connection registered", conn_id=conn_id, identity=identity)
        return state

    async def get(self, conn_id: int) -> Optional[ConnectionState]:
        async with self._lock:
            return self._connections.get(conn_id)

    async def close(self, conn_id: int) -> Optional[ConnectionState]:
        """Remove an entry; later writes to its output become no-ops."""
        async with self._lock:
            state = self._connections.pop(conn_id, None)
        if state is None:
            return None
        state.output.detach()
        logger.info(
            "Connection unregistered", conn_id=conn_id, identity=state.identity
        )
        return state

    async def active_ids(self) -> list[int]:
        async with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        return len(self._connections)
