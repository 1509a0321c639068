"""Process-wide FIFO that spaces outbound scraping requests."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from market_intel_core.constants import DEFAULT_FETCH_DELAY_SECONDS
from market_intel_core.exceptions import ExternalSourceUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class _FetchJob(Generic[T]):
    task: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]
    label: str
    enqueued_at: float


class RateLimitedFetchQueue:
    """Runs queued fetch tasks one at a time, at least ``min_delay`` apart.

    One worker task owns ``_last_finished``; callers only ever append to the
    queue, so the spacing state has a single mutation point. A failing task
    resolves its own handle with the error and the worker moves on.

    The clock and sleep functions are injectable so tests can drive time.
    """

    def __init__(
        self,
        min_delay: float = DEFAULT_FETCH_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if min_delay < 0:
            msg = "min_delay must be non-negative"
            raise ValueError(msg)
        self._min_delay = min_delay
        self._clock = clock
        self._sleep = sleep
        self._queue: asyncio.Queue[_FetchJob[Any]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._last_finished: float | None = None
        self._current: _FetchJob[Any] | None = None
        self.completed = 0
        self.failed = 0

    @property
    def min_delay(self) -> float:
        return self._min_delay

    @property
    def queue_length(self) -> int:
        """Tasks waiting for the worker (excludes the one running)."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker on the running loop; idempotent."""
        if self.running:
            return
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="rate-limited-fetch-queue"
        )
        logger.debug("fetch_queue_started", min_delay=self._min_delay)

    def enqueue(self, task: Callable[[], Awaitable[T]], label: str = "") -> asyncio.Future[T]:
        """Append a task and return the handle its outcome will resolve."""
        self.start()
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(
            _FetchJob(task=task, future=future, label=label, enqueued_at=self._clock())
        )
        if self._queue.qsize() > 1:
            logger.info("fetch_queue_backlog", queue_length=self._queue.qsize(), label=label)
        return future

    async def submit(self, task: Callable[[], Awaitable[T]], label: str = "") -> T:
        """Enqueue and wait for the result (or the task's exception)."""
        return await self.enqueue(task, label=label)

    async def stop(self) -> None:
        """Stop the worker; tasks still waiting are failed, not dropped silently."""
        worker, self._worker = self._worker, None
        current = self._current
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        if current is not None and not current.future.done():
            current.future.set_exception(
                ExternalSourceUnavailableError("fetch queue stopped while task was running")
            )
        while not self._queue.empty():
            job = self._queue.get_nowait()
            if not job.future.done():
                job.future.set_exception(
                    ExternalSourceUnavailableError("fetch queue stopped before task ran")
                )
            self._queue.task_done()

    async def __aenter__(self) -> RateLimitedFetchQueue:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _wait_turn(self) -> None:
        if self._last_finished is None:
            return
        remaining = self._min_delay - (self._clock() - self._last_finished)
        if remaining > 0:
            await self._sleep(remaining)

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                self._current = job
                if job.future.done():
                    # Caller gave up while waiting
                    continue
                await self._wait_turn()
                started = self._clock()
                try:
                    result = await job.task()
                except Exception as exc:
                    self.failed += 1
                    logger.warning(
                        "fetch_task_failed",
                        label=job.label,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    if not job.future.done():
                        job.future.set_exception(exc)
                else:
                    self.completed += 1
                    if not job.future.done():
                        job.future.set_result(result)
                finally:
                    self._last_finished = self._clock()
                    logger.debug(
                        "fetch_task_done",
                        label=job.label,
                        waited_seconds=round(started - job.enqueued_at, 3),
                        queue_length=self._queue.qsize(),
                    )
            finally:
                self._current = None
                self._queue.task_done()
