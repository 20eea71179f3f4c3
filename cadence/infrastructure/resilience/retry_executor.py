"""
Retry Executor

Re-invokes a fallible operation under a RetryPolicy until it succeeds, fails
with a non-retryable failure, or runs out of attempts; exhausted retries are
handed to a recovery handler.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cadence.domain.events import FailureKind, FailureReport
from cadence.domain.retry_value_objects import RetryAttempt, RetryPolicy, RetryResult
from cadence.infrastructure.logging.failure_reporter import FailureReporter, LoggingFailureReporter
from cadence.infrastructure.resilience.recovery import Recover, resolve_recovery
from cadence.infrastructure.substrate import Clock, SystemClock, WorkerPool

logger = logging.getLogger(__name__)

OnRetry = Callable[[RetryAttempt], Any]


def _operation_name(operation: Callable) -> str:
    if isinstance(operation, functools.partial):
        operation = operation.func
    return getattr(operation, "__qualname__", None) or repr(operation)


@dataclass
class _LoopState:
    attempts: int = 0
    recovered: bool = False


class RetryExecutor:
    """
    Executes operations with retry, backoff and recovery.

    Usage:
        executor = RetryExecutor()
        policy = RetryPolicy(max_attempts=3, initial_delay=2.0, multiplier=1.5)

        result = await executor.execute(fetch_feed, policy, recover=lambda exc: [])

        # Or with decorator
        @retryable(policy, recover=lambda exc: [])
        async def fetch_feed():
            return await client.get(url)
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        pool: Optional[WorkerPool] = None,
        reporter: Optional[FailureReporter] = None,
        on_retry: Optional[OnRetry] = None,
    ):
        self._clock = clock or SystemClock()
        self._pool = pool or WorkerPool()
        self._reporter = reporter or LoggingFailureReporter()
        self._on_retry = on_retry
        self._total_calls = 0
        self._total_attempts = 0
        self._total_successes = 0
        self._total_failures = 0
        self._total_recoveries = 0

    @property
    def total_attempts(self) -> int:
        return self._total_attempts

    @property
    def success_rate(self) -> float:
        if self._total_calls == 0:
            return 0.0
        return self._total_successes / self._total_calls

    async def execute(
        self,
        operation: Callable,
        policy: Optional[RetryPolicy] = None,
        recover: Recover = None,
        operation_id: Optional[str] = None,
    ) -> Any:
        """
        Execute an operation with retry logic.

        Args:
            operation: Zero-argument callable, sync or async
            policy: Retry policy (defaults to RetryPolicy())
            recover: Handler or RecoveryRegistry used once retries are exhausted
            operation_id: Identifier used in failure reports

        Returns:
            Result of the operation, or of the recovery handler

        Raises:
            Exception: The original failure, if it is not retryable or if all
                attempts fail and no recovery handler matches
        """
        return await self._run(operation, policy or RetryPolicy(), recover, operation_id, _LoopState())

    async def execute_for_result(
        self,
        operation: Callable,
        policy: Optional[RetryPolicy] = None,
        recover: Recover = None,
        operation_id: Optional[str] = None,
    ) -> RetryResult:
        """Execute like execute(), but capture the outcome in a RetryResult instead of raising."""
        state = _LoopState()
        start_time = self._clock.monotonic()
        try:
            result = await self._run(operation, policy or RetryPolicy(), recover, operation_id, state)
        except Exception as e:
            return RetryResult(
                success=False,
                attempts=state.attempts,
                total_time=self._clock.monotonic() - start_time,
                last_exception=e,
            )
        return RetryResult(
            success=True,
            attempts=state.attempts,
            total_time=self._clock.monotonic() - start_time,
            result=result,
            recovered=state.recovered,
        )

    async def _run(
        self,
        operation: Callable,
        policy: RetryPolicy,
        recover: Recover,
        operation_id: Optional[str],
        state: _LoopState,
    ) -> Any:
        source_id = operation_id or _operation_name(operation)
        started = self._clock.monotonic()
        self._total_calls += 1
        attempt = 1

        while True:
            state.attempts = attempt
            self._total_attempts += 1
            try:
                result = await self._pool.call(operation)
            except Exception as e:
                if not policy.is_retryable(e):
                    self._report(source_id, e, FailureKind.NON_RETRYABLE, attempt)
                    self._total_failures += 1
                    raise

                delay = self._next_delay(policy, attempt, started)
                if delay is None:
                    self._report(source_id, e, FailureKind.EXHAUSTED, attempt)
                    return await self._recover(recover, e, state)

                self._report(source_id, e, FailureKind.RETRYABLE, attempt)
                await self._notify_retry(RetryAttempt(attempt, e, delay))
                await self._clock.sleep(delay)
                attempt += 1
            else:
                self._total_successes += 1
                return result

    def _next_delay(self, policy: RetryPolicy, attempt: int, started: float) -> Optional[float]:
        """Backoff before the next attempt, or None if retries are exhausted."""
        if attempt >= policy.max_attempts:
            return None
        delay = policy.delay_for(attempt)
        if policy.max_elapsed is not None:
            elapsed = self._clock.monotonic() - started
            if elapsed + delay > policy.max_elapsed:
                logger.debug(
                    "Retry deadline of %.2fs reached after %d attempts",
                    policy.max_elapsed,
                    attempt,
                )
                return None
        return delay

    async def _recover(self, recover: Recover, failure: Exception, state: _LoopState) -> Any:
        handler = resolve_recovery(recover, failure)
        if handler is None:
            self._total_failures += 1
            raise failure

        try:
            result = await self._pool.call(handler, failure)
        except Exception:
            self._total_failures += 1
            raise
        self._total_successes += 1
        self._total_recoveries += 1
        state.recovered = True
        return result

    async def _notify_retry(self, attempt: RetryAttempt) -> None:
        if self._on_retry is None:
            return
        try:
            await self._pool.call(self._on_retry, attempt)
        except Exception:
            logger.warning("on_retry callback failed", exc_info=True)

    def _report(self, source_id: str, failure: Exception, kind: FailureKind, attempt: int) -> None:
        try:
            self._reporter.report(FailureReport(
                source_id=source_id,
                failure=failure,
                kind=kind,
                attempt=attempt,
            ))
        except Exception:
            logger.exception("Failure reporter raised while reporting %s", source_id)

    def get_stats(self) -> dict:
        """Get retry statistics."""
        return {
            "total_calls": self._total_calls,
            "total_attempts": self._total_attempts,
            "total_successes": self._total_successes,
            "total_failures": self._total_failures,
            "total_recoveries": self._total_recoveries,
            "success_rate": self.success_rate,
        }


def retryable(
    policy: Optional[RetryPolicy] = None,
    recover: Recover = None,
    executor: Optional[RetryExecutor] = None,
    operation_id: Optional[str] = None,
) -> Callable:
    """
    Decorator to add retry logic to a function.

    The decorated function becomes a coroutine function; sync functions run
    on the executor's worker pool.
    """
    def decorator(func: Callable) -> Callable:
        runner = executor or RetryExecutor()
        name = operation_id or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await runner.execute(
                functools.partial(func, *args, **kwargs),
                policy,
                recover=recover,
                operation_id=name,
            )
        return wrapper
    return decorator
