"""Detached background sends.

Guest notices must not hold up the HTTP response that triggered them, but
they must not vanish either: every task is tracked until it finishes and
any failure is logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Fire-and-forget task pool bound to the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=label)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task '%s' cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task '%s' failed: %s", task.get_name(), exc)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight tasks, then cancel whatever is left."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info("Waiting for %d background task(s)", len(tasks))
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
