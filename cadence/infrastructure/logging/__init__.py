"""
Logging for cadence.

Structured logger plus the failure reporters used as the error-reporting
collaborator of the retry executor and the task runner.
"""
from .structured_logger import (
    LogContext,
    LogEntry,
    JSONFormatter,
    HumanFormatter,
    StructuredLogger,
    create_logger,
    get_logger,
)
from .failure_reporter import (
    FailureReporter,
    LoggingFailureReporter,
    CollectingFailureReporter,
)

__all__ = [
    "LogContext",
    "LogEntry",
    "JSONFormatter",
    "HumanFormatter",
    "StructuredLogger",
    "create_logger",
    "get_logger",
    "FailureReporter",
    "LoggingFailureReporter",
    "CollectingFailureReporter",
]
