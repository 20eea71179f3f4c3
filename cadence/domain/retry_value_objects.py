"""
Retry Value Objects

Immutable retry policy plus the transient records produced while a retry
loop runs.
"""
import random
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Optional, Type

from cadence.domain.errors import InvalidPolicyError, NonRetryableFailure


def _as_kinds(kinds) -> FrozenSet[Type[BaseException]]:
    kinds = frozenset(kinds or ())
    for kind in kinds:
        if not (isinstance(kind, type) and issubclass(kind, BaseException)):
            raise InvalidPolicyError(f"Failure kind must be an exception type, got {kind!r}")
    return kinds


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration with exponential backoff.

    The delay before attempt k+1 is: initial_delay * multiplier ^ (k - 1),
    capped by max_delay and spread by jitter when those are set.

    Usage:
        policy = RetryPolicy(max_attempts=3, initial_delay=2.0, multiplier=1.5)
        policy.delay_for(1)  # 2.0
        policy.delay_for(2)  # 3.0
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    retryable_failures: FrozenSet[Type[BaseException]] = field(
        default_factory=lambda: frozenset({Exception})
    )
    non_retryable_failures: FrozenSet[Type[BaseException]] = field(
        default_factory=lambda: frozenset({NonRetryableFailure})
    )
    retry_if: Optional[Callable[[BaseException], bool]] = None
    max_delay: Optional[float] = None
    jitter: float = 0.0  # Random factor (0-1)
    max_elapsed: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise InvalidPolicyError(f"max_attempts must be an integer, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise InvalidPolicyError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise InvalidPolicyError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.multiplier < 1:
            raise InvalidPolicyError(f"multiplier must be >= 1, got {self.multiplier}")
        if self.max_delay is not None and self.max_delay < 0:
            raise InvalidPolicyError(f"max_delay must be >= 0, got {self.max_delay}")
        if not 0 <= self.jitter <= 1:
            raise InvalidPolicyError(f"jitter must be between 0 and 1, got {self.jitter}")
        if self.max_elapsed is not None and self.max_elapsed < 0:
            raise InvalidPolicyError(f"max_elapsed must be >= 0, got {self.max_elapsed}")

        object.__setattr__(self, "retryable_failures", _as_kinds(self.retryable_failures))
        object.__setattr__(self, "non_retryable_failures", _as_kinds(self.non_retryable_failures))

    def is_retryable(self, failure: BaseException) -> bool:
        """
        Determine if the failure should trigger another attempt.

        Non-retryable kinds are checked first and win over retryable ones.
        """
        for non_retryable in self.non_retryable_failures:
            if isinstance(failure, non_retryable):
                return False

        if not any(isinstance(failure, kind) for kind in self.retryable_failures):
            return False

        if self.retry_if is not None:
            return bool(self.retry_if(failure))
        return True

    def base_delay_for(self, attempt: int) -> float:
        """Delay before attempt `attempt + 1`, without jitter."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def delay_for(self, attempt: int) -> float:
        """
        Calculate the backoff inserted after failed attempt `attempt`.

        Args:
            attempt: Attempt number that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay_for(attempt)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)


@dataclass(frozen=True)
class RetryAttempt:
    """
    Snapshot of a failed attempt inside one retry loop.

    next_delay is the backoff about to be applied before the next attempt.
    """
    attempt_number: int
    last_failure: BaseException
    next_delay: float


@dataclass(frozen=True)
class RetryResult:
    """
    Result of a retry operation.

    Captures success/failure and metrics.
    """
    success: bool
    attempts: int
    total_time: float
    result: Any = None
    last_exception: Optional[BaseException] = None
    recovered: bool = False

    @property
    def failed(self) -> bool:
        return not self.success
