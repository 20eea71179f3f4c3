"""
Cadence Error Types

Exception hierarchy shared by the retry executor and the periodic task runner.
Policy errors are raised synchronously at construction or registration time,
never while a loop is running.
"""
from typing import Optional


class CadenceError(Exception):
    """Base exception for all cadence errors."""
    pass


class InvalidPolicyError(CadenceError, ValueError):
    """
    A retry or schedule policy was constructed with invalid values.

    Examples: max_attempts < 1, negative delays, non-positive periods.
    """
    pass


class CronExpressionError(InvalidPolicyError):
    """
    Cron expression could not be parsed or can never match.

    Carries the offending expression and, when known, the field name.
    """
    def __init__(self, message: str, expression: str = "", field: Optional[str] = None):
        super().__init__(message)
        self.expression = expression
        self.field = field


class SchedulerStateError(CadenceError):
    """Operation not allowed in the runner's current lifecycle state."""
    pass


class RetryableFailure(Exception):
    """Marker base for failures callers want retried."""
    pass


class NonRetryableFailure(Exception):
    """
    Marker base for failures that must never be retried.

    Excluded by the default retry policy even though it is an Exception.
    """
    pass
