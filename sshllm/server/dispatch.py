"""LineDispatcher -- runs completed input lines off the input path.

Each completed line becomes its own asyncio task so the connection's input
loop never waits on the backend. Tasks for one connection serialize on that
connection's lock, which is held across the whole backend round trip: a
second line queues until the first reply is recorded, and backend calls are
issued in the order lines were completed.

Join/cancel policy:
- connection close cancels tasks still queued on the lock; the task that
  holds the lock runs to completion and its output write is dropped
- server shutdown cancels and awaits every task
"""

import asyncio
from typing import Dict, Optional, Set

import structlog

from ..llm.interface import BackendError
from . import render
from .registry import ConnectionState

logger = structlog.get_logger()

INTERNAL_ERROR_TEXT = "Something went wrong handling that message. Please try again."


class LineDispatcher:
    """Schedules per-line work and tracks it per connection."""

    def __init__(self) -> None:
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._running: Dict[int, "asyncio.Task[None]"] = {}
        self._seq = 0

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def submit(self, state: ConnectionState, line: str) -> "asyncio.Task[None]":
        """Acknowledge a line and schedule its processing.

        Never blocks; must be called from the event loop thread.
        """
        state.output.write(render.THINKING)

        self._seq += 1
        task = asyncio.create_task(
            self._run(state, line), name=f"line-{state.conn_id}-{self._seq}"
        )
        self._tasks.add(task)
        state.tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(state.tasks.discard)
        return task

    async def _run(self, state: ConnectionState, line: str) -> None:
        async with state.lock:
            if state.output.detached:
                logger.debug("Dropping line for closed connection", conn_id=state.conn_id)
                return

            self._running[state.conn_id] = asyncio.current_task()  # type: ignore[assignment]
            try:
                result = await state.chat.process_input(line)
            except BackendError as exc:
                state.output.write(render.error(str(exc)))
                return
            except Exception:
                logger.exception(
                    "Unexpected error processing line",
                    conn_id=state.conn_id,
                    identity=state.identity,
                )
                state.output.write(render.error(INTERNAL_ERROR_TEXT))
                return
            finally:
                self._running.pop(state.conn_id, None)

        if result.quit:
            logger.info("Client requested quit", conn_id=state.conn_id)
            state.output.write(render.GOODBYE)
            state.output.hangup()
            return

        state.output.write(render.reply(result.text))

    def cancel_pending(self, state: ConnectionState) -> int:
        """Cancel a closed connection's queued tasks; returns how many."""
        running: Optional[asyncio.Task[None]] = self._running.get(state.conn_id)
        cancelled = 0
        for task in list(state.tasks):
            if task is running or task.done():
                continue
            task.cancel()
            cancelled += 1
        if cancelled:
            logger.info(
                "Cancelled queued lines for closed connection",
                conn_id=state.conn_id,
                cancelled=cancelled,
            )
        return cancelled

    async def shutdown(self) -> None:
        """Cancel all outstanding tasks and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Dispatcher stopped", cancelled=len(tasks))
