"""
Cadence Domain Events

Immutable records handed to the error-reporting collaborator.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FailureKind(Enum):
    """Classification of a caught failure."""
    RETRYABLE = "RETRYABLE"
    NON_RETRYABLE = "NON_RETRYABLE"
    EXHAUSTED = "EXHAUSTED"
    TASK_BODY = "TASK_BODY"


@dataclass(frozen=True)
class FailureReport:
    """Event: a failure was caught by the retry executor or the task runner."""
    source_id: str
    failure: BaseException
    kind: FailureKind
    attempt: Optional[int] = None
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def failure_type(self) -> str:
        """Name of the failure's class."""
        return type(self.failure).__name__

    def describe(self) -> str:
        """One-line human description."""
        parts = [f"{self.kind.value.lower()} failure in {self.source_id}"]
        if self.attempt is not None:
            parts.append(f"attempt {self.attempt}")
        parts.append(f"{self.failure_type}: {self.failure}")
        return ", ".join(parts)
