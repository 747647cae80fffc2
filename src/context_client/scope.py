"""Task ownership for structured cancellation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskScope:
    """Owns a set of asyncio tasks and cancels them together.

    Used as ``async with TaskScope() as scope``: leaving the block, normally
    or through an exception or cancellation, cancels every task still running.
    """

    def __init__(self, name: str = "scope") -> None:
        self.name = name
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def spawn(
        self, coro: Coroutine[Any, Any, T], *, name: Optional[str] = None
    ) -> asyncio.Task[T]:
        if self._closed:
            coro.close()
            raise RuntimeError(f"{self.name} is closed")
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Task %s in %s failed: %r", task.get_name(), self.name, exc)

    def cancel(self) -> None:
        """Cancel every owned task; no new tasks may be spawned afterwards."""

        self._closed = True
        for task in list(self._tasks):
            task.cancel()

    async def aclose(self) -> None:
        self.cancel()
        tasks = list(self._tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "TaskScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.aclose()
        return False
