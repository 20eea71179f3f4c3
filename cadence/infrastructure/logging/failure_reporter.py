"""
Error-reporting collaborators.

The retry executor and the task runner hand every caught failure to a
reporter as a FailureReport. Any object with a report(FailureReport) method
can be used; the default writes to the structured logger.
"""
import threading
from typing import List, Optional, Protocol

from cadence.domain.events import FailureKind, FailureReport
from cadence.infrastructure.config.settings import SchedulerSettings
from cadence.infrastructure.logging.structured_logger import LogContext, StructuredLogger, create_logger, get_logger


class FailureReporter(Protocol):
    """Sink for caught failures."""

    def report(self, report: FailureReport) -> None:
        ...


class LoggingFailureReporter:
    """Logs each failure report with its source, kind, attempt and timestamp."""

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self._logger = logger or get_logger("failures")

    @classmethod
    def from_settings(cls, settings: SchedulerSettings) -> "LoggingFailureReporter":
        """Build a reporter whose logger follows the configured level, format and log directory."""
        return cls(create_logger(
            "failures",
            level=settings.log_level,
            json_output=settings.log_json,
            log_dir=settings.log_dir,
        ))

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    def report(self, report: FailureReport) -> None:
        context = LogContext(
            source_id=report.source_id,
            fields={
                "kind": report.kind.value,
                "attempt": report.attempt,
                "failure_type": report.failure_type,
                "timestamp": report.timestamp.isoformat(),
            },
        )
        # Retryable failures are expected noise; the rest deserve a traceback
        if report.kind == FailureKind.RETRYABLE:
            self._logger.warning(report.describe(), context)
        else:
            self._logger.error(report.describe(), context, exc_info=report.failure)


class CollectingFailureReporter:
    """
    Reporter that keeps reports in memory.

    Useful for tests and for surfacing recent failures on a status endpoint.
    """

    def __init__(self, max_reports: Optional[int] = None):
        self._max_reports = max_reports
        self._lock = threading.Lock()
        self._reports: List[FailureReport] = []

    def report(self, report: FailureReport) -> None:
        with self._lock:
            self._reports.append(report)
            if self._max_reports is not None and len(self._reports) > self._max_reports:
                del self._reports[: len(self._reports) - self._max_reports]

    @property
    def reports(self) -> List[FailureReport]:
        with self._lock:
            return list(self._reports)

    def for_source(self, source_id: str) -> List[FailureReport]:
        """Reports emitted for one operation or task handle."""
        return [r for r in self.reports if r.source_id == source_id]

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()
