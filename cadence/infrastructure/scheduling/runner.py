"""Periodic task runner."""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from cadence.domain.entities import ScheduledTaskHandle, TaskState
from cadence.domain.errors import InvalidPolicyError, SchedulerStateError
from cadence.domain.events import FailureKind, FailureReport
from cadence.domain.schedule_value_objects import SchedulePolicy
from cadence.infrastructure.config.settings import SchedulerSettings
from cadence.infrastructure.logging.failure_reporter import FailureReporter, LoggingFailureReporter
from cadence.infrastructure.substrate import Clock, SystemClock, WorkerPool

logger = logging.getLogger(__name__)


def _task_name(task: Callable) -> str:
    if isinstance(task, functools.partial):
        task = task.func
    return getattr(task, "__qualname__", None) or repr(task)


def _running_in(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class PeriodicTaskRunner:
    """
    Runs registered tasks on their schedule policies.

    Each handle gets one loop coroutine, so firings of the same handle never
    overlap while different handles run concurrently. Synchronous task bodies
    run on a bounded worker pool; coroutine functions run on the event loop.

    Usage:
        runner = PeriodicTaskRunner()
        async with runner:
            handle = runner.schedule(refresh_cache, FixedRate(60))
            ...
            handle.cancel()
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        pool: Optional[WorkerPool] = None,
        reporter: Optional[FailureReporter] = None,
        settings: Optional[SchedulerSettings] = None,
    ):
        settings = settings or SchedulerSettings()
        self._clock = clock or SystemClock(settings.tzinfo)
        self._pool = pool or WorkerPool(settings.max_workers, thread_name_prefix="cadence-task")
        self._reporter = reporter or LoggingFailureReporter.from_settings(settings)
        self._shutdown_timeout = settings.shutdown_timeout

        self._lock = threading.Lock()  # Protect registration state
        self._handles: Dict[str, ScheduledTaskHandle] = {}
        self._bodies: Dict[str, Callable] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._done: Dict[str, concurrent.futures.Future] = {}  # Resolved when a handle's loop is over
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._closed = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._started and not self._closed

    @property
    def handles(self) -> List[ScheduledTaskHandle]:
        with self._lock:
            return list(self._handles.values())

    async def __aenter__(self) -> PeriodicTaskRunner:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.shutdown()
        return False

    async def start(self) -> None:
        """Bind to the running event loop and activate every registered task."""
        with self._lock:
            if self._closed:
                raise SchedulerStateError("Task runner has been shut down")
            if self._started:
                return
            self._loop = asyncio.get_running_loop()
            self._started = True  # Set early so schedule() spawns directly from now on
            waiting = [h for h in self._handles.values() if h.id not in self._tasks]

        registered_at = self._clock.monotonic()
        for handle in waiting:
            self._spawn(handle, registered_at)
        logger.info("Task runner started with %d task(s)", len(waiting))

    def schedule(self, task: Callable, policy: SchedulePolicy, name: Optional[str] = None) -> ScheduledTaskHandle:
        """
        Register a recurring task. Safe to call from any thread.

        Tasks registered before start() are activated when the runner starts.
        """
        if not callable(task):
            raise TypeError(f"Task must be callable, got {task!r}")
        if not isinstance(policy, SchedulePolicy):
            raise InvalidPolicyError(f"Unknown schedule policy: {policy!r}")

        handle = ScheduledTaskHandle(name or _task_name(task), policy)
        handle._bind(self._on_cancel)

        with self._lock:
            if self._closed:
                raise SchedulerStateError("Task runner has been shut down")
            self._handles[handle.id] = handle
            self._bodies[handle.id] = task
            self._done[handle.id] = concurrent.futures.Future()
            loop = self._loop if self._started else None

        logger.info("Registered task %s (%s) with %r", handle.name, handle.id, policy)

        if loop is not None:
            registered_at = self._clock.monotonic()
            if _running_in(loop):
                self._spawn(handle, registered_at)
            else:
                loop.call_soon_threadsafe(self._spawn, handle, registered_at)
        return handle

    def cancel(self, handle: ScheduledTaskHandle) -> None:
        """Cancel a task. A firing already in progress completes but is not rescheduled."""
        handle.cancel()

    async def join(self, handle: ScheduledTaskHandle) -> None:
        """
        Wait until the task's loop has finished (after cancellation or shutdown).

        A task registered before start() is waited on through start() until it
        stops; one cancelled before it ever ran returns at once.
        """
        with self._lock:
            done = self._done.get(handle.id)
        if done is not None:
            await asyncio.wrap_future(done)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel every task and wait for in-flight firings to complete."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            handles = list(self._handles.values())

        for handle in handles:
            handle.cancel()

        with self._lock:
            tasks = [t for t in self._tasks.values() if not t.done()]

        if tasks:
            timeout = self._shutdown_timeout if timeout is None else timeout
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(
                    "%d task(s) still running after %.1fs, interrupting",
                    len(pending),
                    timeout,
                )
                for task in pending:
                    task.cancel()
                await asyncio.wait(pending)

        self._pool.shutdown(wait=False)
        logger.info("Task runner stopped")

    def get_status(self) -> Dict[str, Any]:
        """Return runner health for monitoring endpoints."""
        with self._lock:
            handles = list(self._handles.values())
            status = {
                "running": self._started and not self._closed,
                "closed": self._closed,
                "max_workers": self._pool.max_workers,
            }
        status["tasks"] = {handle.id: handle.snapshot() for handle in handles}
        return status

    # --- Internals ---

    def _spawn(self, handle: ScheduledTaskHandle, registered_at: float) -> None:
        """Create the handle's loop coroutine. Must run on the runner's loop."""
        if handle.cancelled:
            self._mark_done(handle)
            return
        with self._lock:
            body = self._bodies[handle.id]
            self._tasks[handle.id] = self._loop.create_task(
                self._run_task_loop(handle, body, registered_at),
                name=f"task-{handle.name}",
            )

    def _on_cancel(self, handle: ScheduledTaskHandle) -> None:
        """Wake a waiting loop after cancellation. Called from any thread."""
        with self._lock:
            loop = self._loop
            has_task = handle.id in self._tasks
        if not has_task:
            # No loop will run for it, or it has already finished
            self._mark_done(handle)
            return
        if _running_in(loop):
            self._interrupt_wait(handle)
        else:
            loop.call_soon_threadsafe(self._interrupt_wait, handle)

    def _mark_done(self, handle: ScheduledTaskHandle) -> None:
        with self._lock:
            done = self._done.get(handle.id)
            if done is not None and not done.done():
                done.set_result(None)

    def _interrupt_wait(self, handle: ScheduledTaskHandle) -> None:
        # Only a waiting loop is interrupted; an in-flight firing runs to completion
        if handle.state != TaskState.CANCELLED:
            return
        with self._lock:
            task = self._tasks.get(handle.id)
        if task is not None and not task.done():
            task.cancel()

    def _wall_at(self, fire_time: float) -> datetime:
        return self._clock.now() + timedelta(seconds=fire_time - self._clock.monotonic())

    async def _run_task_loop(self, handle: ScheduledTaskHandle, body: Callable, registered_at: float) -> None:
        """Run a task on its schedule until cancelled."""
        try:
            next_fire = handle.policy.first_fire_time(registered_at, self._clock.now())
            fire_at = self._wall_at(next_fire)
            if not handle._set_next_fire(next_fire, fire_at):
                return

            while True:
                delay = next_fire - self._clock.monotonic()
                logger.debug("Task %s scheduled in %.3fs", handle.name, max(0.0, delay))
                await self._clock.sleep(max(0.0, delay))

                if not handle._begin_firing(self._clock.now()):
                    break

                error = await self._fire(handle, body)

                completed_at = self._clock.monotonic()
                next_fire = handle.policy.next_fire_time(next_fire, completed_at, self._clock.now(), fire_at)
                fire_at = self._wall_at(next_fire)
                if not handle._finish_firing(self._clock.now(), error, next_fire, fire_at):
                    break
        except asyncio.CancelledError:
            if not handle.cancelled:
                raise
        finally:
            handle._mark_cancelled()
            with self._lock:
                self._tasks.pop(handle.id, None)
            self._mark_done(handle)
            logger.info("Task %s stopped after %d firing(s)", handle.name, handle.fire_count)

    async def _fire(self, handle: ScheduledTaskHandle, body: Callable) -> Optional[Exception]:
        """Run one firing. Failures are reported, never propagated."""
        start_time = self._clock.monotonic()
        logger.debug("Task %s starting", handle.name)
        try:
            await self._pool.call(body)
        except Exception as exc:
            duration = self._clock.monotonic() - start_time
            logger.info("Task %s failed after %.2fs", handle.name, duration)
            self._report(handle, exc)
            return exc

        logger.debug("Task %s completed in %.2fs", handle.name, self._clock.monotonic() - start_time)
        return None

    def _report(self, handle: ScheduledTaskHandle, exc: Exception) -> None:
        try:
            self._reporter.report(FailureReport(
                source_id=handle.id,
                failure=exc,
                kind=FailureKind.TASK_BODY,
                attempt=handle.fire_count,
            ))
        except Exception:
            logger.exception("Failure reporter raised while reporting task %s", handle.name)
