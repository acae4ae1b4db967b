"""Utilities for tracking fire-and-forget asyncio tasks spawned per update."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Coroutine

logger = logging.getLogger(__name__)


class BackgroundTaskSet:
    """Keep strong references to spawned tasks and log how each one ends."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and track it until it finishes."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("background_task_cancelled", extra={"task": task.get_name()})
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                extra={"task": task.get_name(), "error": str(exc)},
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    @property
    def active(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every tracked task; tasks still running after ``timeout`` are cancelled."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("background_tasks_cancelled", extra={"count": len(still_running)})
        logger.debug("background_tasks_drained", extra={"count": len(done)})
