"""
Policy configuration models.

Pydantic schemas for retry and schedule policies coming from an external
configuration source (JSON/YAML files, environment-backed dicts). Each
model validates its input and builds the immutable domain policy through
to_policy(), so bad values fail when the configuration is loaded.

Example payload:
    {
        "name": "refresh_cache",
        "schedule": {"kind": "fixed_rate", "period": 60},
        "retry": {"max_attempts": 3, "initial_delay": 2.0, "multiplier": 1.5,
                  "retryable_failures": ["builtins.TimeoutError"]}
    }
"""
import importlib
from typing import Annotated, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, field_validator

from cadence.domain.retry_value_objects import RetryPolicy
from cadence.domain.schedule_value_objects import (
    Cron,
    FixedDelay,
    FixedRate,
    InitialDelayThenFixedRate,
    SchedulePolicy,
)


def resolve_failure_kind(dotted_name: str) -> Type[BaseException]:
    """
    Resolve "package.module.ClassName" to an exception type.

    Bare names are looked up in builtins.

    Raises:
        ValueError: If the name does not resolve to an exception class
    """
    module_name, _, attr = dotted_name.rpartition(".")
    module_name = module_name or "builtins"
    try:
        module = importlib.import_module(module_name)
        kind = getattr(module, attr)
    except (ImportError, AttributeError):
        raise ValueError(f"Cannot resolve failure kind {dotted_name!r}") from None

    if not (isinstance(kind, type) and issubclass(kind, BaseException)):
        raise ValueError(f"{dotted_name!r} is not an exception type")
    return kind


class RetryPolicyConfig(BaseModel):
    """Schema for a retry policy."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, including the first")
    initial_delay: float = Field(default=1.0, ge=0, description="Delay before the second attempt (seconds)")
    multiplier: float = Field(default=2.0, ge=1, description="Backoff growth factor; 1 means fixed delay")
    max_delay: Optional[float] = Field(default=None, ge=0, description="Cap for each delay (seconds)")
    jitter: float = Field(default=0.0, ge=0, le=1, description="Random spread applied to each delay")
    max_elapsed: Optional[float] = Field(default=None, ge=0, description="Overall retry deadline (seconds)")
    retryable_failures: List[str] = Field(
        default_factory=lambda: ["builtins.Exception"],
        description="Dotted exception names that trigger a retry",
    )
    non_retryable_failures: List[str] = Field(
        default_factory=lambda: ["cadence.domain.errors.NonRetryableFailure"],
        description="Dotted exception names that are never retried",
    )

    @field_validator("retryable_failures", "non_retryable_failures")
    @classmethod
    def _check_kinds(cls, value: List[str]) -> List[str]:
        for name in value:
            resolve_failure_kind(name)
        return value

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            multiplier=self.multiplier,
            retryable_failures=frozenset(resolve_failure_kind(n) for n in self.retryable_failures),
            non_retryable_failures=frozenset(resolve_failure_kind(n) for n in self.non_retryable_failures),
            max_delay=self.max_delay,
            jitter=self.jitter,
            max_elapsed=self.max_elapsed,
        )


class FixedRateConfig(BaseModel):
    kind: Literal["fixed_rate"] = "fixed_rate"
    period: float = Field(gt=0, description="Seconds between firings, from the first firing")

    def to_policy(self) -> SchedulePolicy:
        return FixedRate(self.period)


class FixedDelayConfig(BaseModel):
    kind: Literal["fixed_delay"] = "fixed_delay"
    period: float = Field(gt=0, description="Seconds between one completion and the next firing")

    def to_policy(self) -> SchedulePolicy:
        return FixedDelay(self.period)


class InitialDelayConfig(BaseModel):
    kind: Literal["initial_delay_then_fixed_rate"] = "initial_delay_then_fixed_rate"
    initial_delay: float = Field(ge=0, description="Seconds before the first firing")
    period: float = Field(gt=0, description="Seconds between firings afterwards")

    def to_policy(self) -> SchedulePolicy:
        return InitialDelayThenFixedRate(self.initial_delay, self.period)


class CronConfig(BaseModel):
    kind: Literal["cron"] = "cron"
    expression: str = Field(description="Five-field cron expression or @macro")

    @field_validator("expression")
    @classmethod
    def _check_expression(cls, value: str) -> str:
        # CronExpressionError is a ValueError, so pydantic reports it as a validation error
        Cron(value)
        return value

    def to_policy(self) -> SchedulePolicy:
        return Cron(self.expression)


ScheduleConfig = Annotated[
    Union[FixedRateConfig, FixedDelayConfig, InitialDelayConfig, CronConfig],
    Field(discriminator="kind"),
]


class TaskConfig(BaseModel):
    """Schema for one scheduled task entry."""

    name: str = Field(min_length=1)
    schedule: ScheduleConfig
    retry: Optional[RetryPolicyConfig] = None
    enabled: bool = True
