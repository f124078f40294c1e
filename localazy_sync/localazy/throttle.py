"""
Request throttling for the Localazy API.

Localazy rejects clients that exceed 10 requests per second or 100
requests per minute. Every call the synchronization makes goes through
one RequestThrottler, which serializes the calls and keeps both rates
under their caps with two fixed windows.

Usage:
    throttler = RequestThrottler()
    api = ThrottledLocalazyApi(HttpLocalazyClient(token), throttler)
    projects = await api.list_projects()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

from localazy_sync.config import Settings, get_settings
from localazy_sync.core.models import (
    KeyValueEntry,
    LocalazyFile,
    LocalazyKey,
    LocalazyProject,
)
from localazy_sync.core.utils import sleep
from localazy_sync.localazy.client import LocalazyClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECOND = 1.0
MINUTE = 60.0


class RequestThrottler:
    """
    FIFO queue of deferred calls drained by a single task.

    ``submit`` only appends to the queue and returns a future; the
    drain task is the only code that pops tasks or touches the window
    counters. On every iteration it sleeps one quantum, resets any
    window whose duration has elapsed, and runs the head task if both
    counters are below their caps. When a cap is reached it parks until
    the blocking window ends.

    A window starts with the first call made in it, so a burst after an
    idle period gets a full window. A failing task settles only its own
    future.
    """

    def __init__(
        self,
        max_per_second: int = 10,
        max_per_minute: int = 100,
        interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_per_second = max_per_second
        self.max_per_minute = max_per_minute
        self.interval = interval
        self._clock = clock

        self._pending: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._drain_task: asyncio.Task | None = None

        self._second_started: float | None = None
        self._minute_started: float | None = None
        self._requests_in_second = 0
        self._requests_in_minute = 0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RequestThrottler:
        settings = settings or get_settings()
        return cls(
            max_per_second=settings.localazy_max_requests_per_second,
            max_per_minute=settings.localazy_max_requests_per_minute,
            interval=settings.localazy_throttle_interval,
        )

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, task: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Queue a call; the returned future settles once it has run."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._pending.append((task, future))
        self._ensure_draining()
        return future

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue a call and wait for its result."""
        return await self.submit(task)

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def _ensure_draining(self) -> None:
        if self.is_draining:
            return
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    # =========================================================================
    # Drain loop
    # =========================================================================

    async def _drain(self) -> None:
        while self._pending:
            await sleep(self.interval)

            now = self._clock()
            self._roll_windows(now)

            if self._has_capacity():
                task, future = self._pending.popleft()
                self._record_request(now)
                await self._settle(task, future)
            else:
                wait = self._time_until_capacity(now)
                logger.debug(f"Localazy rate cap reached, parking for {wait:.2f}s ({len(self._pending)} pending)")
                await sleep(wait)

    def _roll_windows(self, now: float) -> None:
        if self._second_started is not None and now - self._second_started >= SECOND:
            self._second_started = None
            self._requests_in_second = 0
        if self._minute_started is not None and now - self._minute_started >= MINUTE:
            self._minute_started = None
            self._requests_in_minute = 0

    def _has_capacity(self) -> bool:
        return (
            self._requests_in_second < self.max_per_second
            and self._requests_in_minute < self.max_per_minute
        )

    def _record_request(self, now: float) -> None:
        if self._second_started is None:
            self._second_started = now
        if self._minute_started is None:
            self._minute_started = now
        self._requests_in_second += 1
        self._requests_in_minute += 1

    def _time_until_capacity(self, now: float) -> float:
        wait = 0.0
        if self._requests_in_second >= self.max_per_second and self._second_started is not None:
            wait = max(wait, self._second_started + SECOND - now)
        if self._requests_in_minute >= self.max_per_minute and self._minute_started is not None:
            wait = max(wait, self._minute_started + MINUTE - now)
        return max(wait, 0.0)

    @staticmethod
    async def _settle(task: Callable[[], Awaitable[Any]], future: asyncio.Future) -> None:
        try:
            result = await task()
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)


class ThrottledLocalazyApi:
    """
    LocalazyClient operations routed through a RequestThrottler.

    Mirrors the client's methods; each call is queued on the throttler
    and awaited.
    """

    def __init__(self, client: LocalazyClient, throttler: RequestThrottler | None = None):
        self.client = client
        self.throttler = throttler or RequestThrottler.from_settings()

    async def import_json(self, project_id: str, file_name: str, language: str, content: KeyValueEntry) -> dict[str, Any]:
        return await self.throttler.run(
            lambda: self.client.import_json(project_id, file_name, language, content)
        )

    async def list_files(self, project_id: str) -> list[LocalazyFile]:
        return await self.throttler.run(lambda: self.client.list_files(project_id))

    async def list_keys(self, project_id: str, file_id: str, language: str) -> list[LocalazyKey]:
        return await self.throttler.run(lambda: self.client.list_keys(project_id, file_id, language))

    async def list_projects(self, organization: bool = True, languages: bool = True) -> list[LocalazyProject]:
        return await self.throttler.run(lambda: self.client.list_projects(organization, languages))

    async def update_key(self, project_id: str, key_id: str, deprecated: int = 0) -> None:
        await self.throttler.run(lambda: self.client.update_key(project_id, key_id, deprecated))
