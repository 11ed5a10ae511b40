"""
Fire-and-forget background jobs.

Memory extraction, summary refresh and access-count updates run after the
reply has been delivered. Their failures are logged and never reach the user.

Usage:
    runner = BackgroundTaskRunner()
    runner.spawn(some_coroutine(), name="memory-extraction")

    # At shutdown, or in tests to wait for pending work
    await runner.drain(timeout=5.0)
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Owns background tasks so they are not garbage collected mid-flight."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        """Schedule a coroutine without awaiting it.

        Must be called from inside a running event loop.
        """
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"Background task {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            self.failed += 1
            logger.error(f"Background task {task.get_name()} failed: {error}")
        else:
            self.completed += 1

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every pending task (including ones spawned meanwhile) finishes.

        Args:
            timeout: Maximum time to wait; remaining tasks are left running.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.warning(f"Drain timed out with {len(self._tasks)} tasks pending")
                return
            await asyncio.wait(set(self._tasks), timeout=remaining)

    async def cancel_all(self) -> None:
        """Cancel every pending task and wait for the cancellations to land."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} background tasks")
