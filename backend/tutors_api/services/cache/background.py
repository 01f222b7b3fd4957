"""
Background Writer

Fire-and-forget execution of cache writes spawned from request handling.
Failures only reach the log; they never touch the response that spawned
the write.
"""

import asyncio
from typing import Awaitable, Optional, Set

import structlog

from ...core.metrics import BACKGROUND_WRITE_FAILURES

logger = structlog.get_logger(__name__)


class BackgroundWriter:
    """Tracks detached write tasks so they can be drained on shutdown."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, write: Awaitable[object], description: str) -> asyncio.Task:
        """Schedule ``write`` on the running loop without awaiting it."""
        task = asyncio.create_task(self._run(write, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, write: Awaitable[object], description: str) -> None:
        try:
            await write
        except asyncio.CancelledError:
            logger.warning("Background write cancelled", task=description)
            raise
        except Exception as e:
            BACKGROUND_WRITE_FAILURES.inc()
            logger.error(
                "Background write failed",
                task=description,
                error=str(e),
                exc_info=True,
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every pending write, up to ``timeout`` seconds."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("Background writes still pending after drain", count=len(pending))
