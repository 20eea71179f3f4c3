"""
Cadence Settings

Runtime configuration for the task runner, its worker pool, logging and the
default retry policy.

Usage:
    settings = SchedulerSettings.from_env()
    runner = PeriodicTaskRunner(settings=settings)
    executor_policy = settings.default_retry_policy()
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cadence.domain.retry_value_objects import RetryPolicy


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got: {raw!r})") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got: {raw!r})") from None


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Configuration settings for cadence.

    Attributes:
        max_workers: Threads available to synchronous task bodies and operations
        timezone: IANA zone used for wall-clock time and cron matching
        shutdown_timeout: Seconds shutdown() waits for in-flight firings
        log_level: Level for cadence loggers
        log_json: Emit JSON log lines instead of human-readable ones
        log_dir: Directory for log files (no file logging when None)
        retry_max_attempts: Default RetryPolicy.max_attempts
        retry_initial_delay: Default RetryPolicy.initial_delay (seconds)
        retry_multiplier: Default RetryPolicy.multiplier
    """

    max_workers: int = 4
    timezone: str = "UTC"
    shutdown_timeout: float = 30.0
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: Optional[str] = None
    retry_max_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1 (got: {self.max_workers})")
        if self.shutdown_timeout < 0:
            raise ValueError(f"shutdown_timeout must be >= 0 (got: {self.shutdown_timeout})")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {self.log_level}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone}") from None

    @classmethod
    def from_env(cls) -> SchedulerSettings:
        """
        Load settings from environment variables.

        Optional environment variables:
            - CADENCE_MAX_WORKERS (default: 4)
            - CADENCE_TIMEZONE (default: UTC)
            - CADENCE_SHUTDOWN_TIMEOUT (default: 30.0)
            - CADENCE_LOG_LEVEL (default: INFO)
            - CADENCE_LOG_JSON (default: false)
            - CADENCE_LOG_DIR (default: unset)
            - CADENCE_RETRY_MAX_ATTEMPTS (default: 3)
            - CADENCE_RETRY_INITIAL_DELAY (default: 1.0)
            - CADENCE_RETRY_MULTIPLIER (default: 2.0)

        Raises:
            ValueError: If a variable is present but invalid
        """
        return cls(
            max_workers=_env_int("CADENCE_MAX_WORKERS", 4),
            timezone=os.environ.get("CADENCE_TIMEZONE", "UTC"),
            shutdown_timeout=_env_float("CADENCE_SHUTDOWN_TIMEOUT", 30.0),
            log_level=os.environ.get("CADENCE_LOG_LEVEL", "INFO").upper(),
            log_json=os.environ.get("CADENCE_LOG_JSON", "false").lower() == "true",
            log_dir=os.environ.get("CADENCE_LOG_DIR") or None,
            retry_max_attempts=_env_int("CADENCE_RETRY_MAX_ATTEMPTS", 3),
            retry_initial_delay=_env_float("CADENCE_RETRY_INITIAL_DELAY", 1.0),
            retry_multiplier=_env_float("CADENCE_RETRY_MULTIPLIER", 2.0),
        )

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def default_retry_policy(self) -> RetryPolicy:
        """
        Build the default RetryPolicy.

        Raises:
            InvalidPolicyError: If the retry values are out of range
        """
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            initial_delay=self.retry_initial_delay,
            multiplier=self.retry_multiplier,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_workers": self.max_workers,
            "timezone": self.timezone,
            "shutdown_timeout": self.shutdown_timeout,
            "log_level": self.log_level,
            "log_json": self.log_json,
            "log_dir": self.log_dir,
            "retry_max_attempts": self.retry_max_attempts,
            "retry_initial_delay": self.retry_initial_delay,
            "retry_multiplier": self.retry_multiplier,
        }
