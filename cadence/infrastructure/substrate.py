"""
Scheduling substrate shared by the retry executor and the task runner.

Clock supplies monotonic time, wall time and a non-blocking sleep.
WorkerPool runs task bodies: coroutine functions are awaited on the event
loop, plain callables are pushed to a bounded thread pool so they never
block it.
"""
import asyncio
import functools
import inspect
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Optional


class Clock(ABC):
    """Time source for scheduling decisions."""

    @abstractmethod
    def monotonic(self) -> float:
        """Monotonic seconds, used for all fire-time arithmetic."""

    @abstractmethod
    def now(self) -> datetime:
        """Aware wall-clock time, used for cron matching and reporting."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine without blocking the event loop."""


class SystemClock(Clock):
    """Clock backed by time.monotonic() and asyncio.sleep()."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self._tz = tz or timezone.utc

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(self._tz)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class WorkerPool:
    """
    Bounded executor for synchronous callables.

    Usage:
        pool = WorkerPool(max_workers=4)
        result = await pool.call(blocking_io)
        result = await pool.call(async_fetch)
        pool.shutdown()
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "cadence-worker"):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix=self._thread_name_prefix,
            )
        return self._executor

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Invoke `func` and return its result, awaiting it if needed."""
        if inspect.iscoroutinefunction(func):
            return await func(*args, **kwargs)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            self._get_executor(),
            functools.partial(func, *args, **kwargs),
        )
        if inspect.isawaitable(result):
            result = await result
        return result

    def shutdown(self, wait: bool = True) -> None:
        """Release the worker threads. The pool restarts lazily if used again."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
