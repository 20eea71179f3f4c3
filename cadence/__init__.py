"""
cadence: periodic task scheduling and retry with backoff for asyncio.

Usage:
    from cadence import FixedRate, PeriodicTaskRunner, RetryExecutor, RetryPolicy

    executor = RetryExecutor()
    result = await executor.execute(
        fetch_rates,
        RetryPolicy(max_attempts=3, initial_delay=2.0, multiplier=1.5),
        recover=lambda exc: cached_rates(),
    )

    async with PeriodicTaskRunner() as runner:
        handle = runner.schedule(publish_metrics, FixedRate(60))
        ...
        handle.cancel()
"""
from cadence.domain.cron import CronExpression
from cadence.domain.entities import ScheduledTaskHandle, TaskState
from cadence.domain.errors import (
    CadenceError,
    CronExpressionError,
    InvalidPolicyError,
    NonRetryableFailure,
    RetryableFailure,
    SchedulerStateError,
)
from cadence.domain.events import FailureKind, FailureReport
from cadence.domain.retry_value_objects import RetryAttempt, RetryPolicy, RetryResult
from cadence.domain.schedule_value_objects import (
    Cron,
    FixedDelay,
    FixedRate,
    InitialDelayThenFixedRate,
    SchedulePolicy,
)
from cadence.infrastructure.config import SchedulerSettings
from cadence.infrastructure.resilience import RecoveryRegistry, RetryExecutor, retryable
from cadence.infrastructure.scheduling import PeriodicTaskRunner
from cadence.infrastructure.substrate import Clock, SystemClock, WorkerPool

__version__ = "0.1.0"

__all__ = [
    # Policies
    "RetryPolicy",
    "SchedulePolicy",
    "FixedRate",
    "FixedDelay",
    "InitialDelayThenFixedRate",
    "Cron",
    "CronExpression",
    # Records
    "RetryAttempt",
    "RetryResult",
    "FailureKind",
    "FailureReport",
    "ScheduledTaskHandle",
    "TaskState",
    # Execution
    "RetryExecutor",
    "RecoveryRegistry",
    "retryable",
    "PeriodicTaskRunner",
    "SchedulerSettings",
    "Clock",
    "SystemClock",
    "WorkerPool",
    # Errors
    "CadenceError",
    "InvalidPolicyError",
    "CronExpressionError",
    "SchedulerStateError",
    "RetryableFailure",
    "NonRetryableFailure",
]
