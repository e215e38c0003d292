"""Bounded worker pool over a fixed list of database names.

``run_pool`` queues every name up front, starts ``workers`` tasks that
pull names until the queue is empty, and returns once every worker has
exited.  A failing job is logged and the worker moves on; there are no
retries.  Setting the cancellation event stops workers from taking new
names.

Usage:
    from pg_backup.pool import run_pool

    async def backup_one(name: str) -> None:
        ...

    summary = await run_pool(["a", "b", "c"], 2, backup_one, cancel, logger,
                             action="Backing up")
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable

from pydantic import BaseModel, Field

from pg_backup.log import Logger, NullLogger


class PoolSummary(BaseModel):
    """Names processed by ``run_pool``, grouped by outcome."""

    completed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    not_started: list[str] = Field(default_factory=list)  # left behind by cancellation

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.failed) + len(self.not_started)

    def format_report(self) -> str:
        """One-line human-readable outcome counts."""
        line = f"{len(self.completed)} finished, {len(self.failed)} failed"
        if self.not_started:
            line += f", {len(self.not_started)} not started"
        return line


async def run_pool(
    names: Iterable[str],
    workers: int,
    unit: Callable[[str], Awaitable[object]],
    cancel: asyncio.Event | None = None,
    logger: Logger | None = None,
    action: str = "Processing",
) -> PoolSummary:
    """Run ``unit(name)`` for every name with at most ``workers`` at once.

    Args:
        names: Names to process; each is handed to exactly one worker.
        workers: Maximum number of concurrent jobs (floored at 1).
        unit: Coroutine function doing the work for one name.
        cancel: When set, workers stop taking names.  Jobs already running
            are expected to observe the event themselves.
        logger: Receives job failures.  Defaults to ``NullLogger``.
        action: Verb used in failure messages (``"{action} {name} failed"``).

    Returns:
        ``PoolSummary`` of completed, failed and never-started names.
    """
    logger = logger or NullLogger()
    queue: asyncio.Queue[str] = asyncio.Queue()
    for name in names:
        queue.put_nowait(name)

    summary = PoolSummary()

    async def worker() -> None:
        while cancel is None or not cancel.is_set():
            try:
                name = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                await unit(name)
            except Exception as e:
                logger.warning(f"{action} {name} failed: {e}")
                summary.failed.append(name)
            else:
                summary.completed.append(name)
            finally:
                queue.task_done()

    await asyncio.gather(*(worker() for _ in range(max(workers, 1))))

    while not queue.empty():
        summary.not_started.append(queue.get_nowait())

    return summary
