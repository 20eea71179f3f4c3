"""
Configuration for cadence.

Environment-backed settings plus pydantic schemas for policies supplied by
an external configuration source.
"""
from .settings import SchedulerSettings
from .policy_models import (
    RetryPolicyConfig,
    FixedRateConfig,
    FixedDelayConfig,
    InitialDelayConfig,
    CronConfig,
    ScheduleConfig,
    TaskConfig,
    resolve_failure_kind,
)

__all__ = [
    "SchedulerSettings",
    "RetryPolicyConfig",
    "FixedRateConfig",
    "FixedDelayConfig",
    "InitialDelayConfig",
    "CronConfig",
    "ScheduleConfig",
    "TaskConfig",
    "resolve_failure_kind",
]
