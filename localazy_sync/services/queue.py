"""
Paced batch execution of async jobs.

Used to fan out uploads, key fetches and write-backs per language or
collection at a courteous pace, on top of the hard caps enforced by the
RequestThrottler.

Usage:
    queue = AsyncBatchQueue()
    queue.add([lambda: upload(chunk) for chunk in chunks])
    results = await queue.execute(delay_between=0.15)
    failed = [r for r in results if r.error is not None]
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from localazy_sync.core.utils import sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[Any]]


class JobResult(BaseModel, Generic[T]):
    """Outcome of one job: ``data`` on success, ``error`` on failure."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AsyncBatchQueue:
    """
    Runs a growing list of jobs with a fixed delay between job starts.

    Jobs added while ``execute`` is running are picked up before it
    returns. A failing job is recorded in its result and never stops
    the others. Results come back in the order the jobs were added.
    """

    def __init__(self):
        self._jobs: list[Job] = []
        self._running = False

    def add(self, job: Job | list[Job]) -> None:
        if isinstance(job, list):
            self._jobs.extend(job)
        else:
            self._jobs.append(job)

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def is_running(self) -> bool:
        return self._running

    async def execute(self, delay_between: float = 0.0, concurrency: int = 1) -> list[JobResult]:
        """
        Run every queued job and return one result per job.

        Args:
            delay_between: Seconds to wait between two job starts
            concurrency: Maximum number of jobs in flight at once
        """
        semaphore = asyncio.Semaphore(max(concurrency, 1))
        results: list[JobResult | None] = []
        tasks: list[asyncio.Task] = []
        index = 0

        async def run(position: int, job: Job) -> None:
            try:
                results[position] = JobResult(data=await job())
            except Exception as e:
                logger.debug(f"Queued job {position} failed: {e}")
                results[position] = JobResult(error=e)
            finally:
                semaphore.release()

        self._running = True
        try:
            while index < len(self._jobs):
                while index < len(self._jobs):
                    if index > 0 and delay_between > 0:
                        await sleep(delay_between)
                    await semaphore.acquire()
                    results.append(None)
                    tasks.append(asyncio.create_task(run(index, self._jobs[index])))
                    index += 1

                # Jobs may have been queued by the ones still running
                await asyncio.gather(*tasks)
        finally:
            self._running = False
            self._jobs = []

        return [result or JobResult() for result in results]


async def run_paced(jobs: list[Job], delay_between: float = 0.0, concurrency: int = 1) -> list[JobResult]:
    """Run a fixed list of jobs on a fresh queue."""
    queue = AsyncBatchQueue()
    queue.add(jobs)
    return await queue.execute(delay_between=delay_between, concurrency=concurrency)
