"""
Scheduling Entities

ScheduledTaskHandle is the one mutable domain object: it tracks a registered
recurring task across firings. Callers only read it and cancel it; the runner
drives its state transitions through the underscore methods, each of which
is applied atomically under the handle's lock.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from cadence.domain.schedule_value_objects import SchedulePolicy


class TaskState(Enum):
    """Lifecycle state of a scheduled task."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    CANCELLED = "CANCELLED"


class ScheduledTaskHandle:
    """
    A registered recurring task.

    State machine: PENDING -> RUNNING -> PENDING ... -> CANCELLED (terminal).
    Cancelling while RUNNING lets the current firing finish; the handle then
    moves to CANCELLED instead of back to PENDING.
    """

    def __init__(self, name: str, policy: SchedulePolicy, handle_id: Optional[str] = None):
        self._id = handle_id or uuid.uuid4().hex[:12]
        self._name = name
        self._policy = policy
        self._lock = threading.Lock()
        self._state = TaskState.PENDING
        self._cancel_requested = False
        self._canceller: Optional[Callable[[ScheduledTaskHandle], None]] = None

        self._next_fire_time: Optional[float] = None
        self._next_fire_at: Optional[datetime] = None
        self._fire_count = 0
        self._failure_count = 0
        self._consecutive_failures = 0
        self._last_started_at: Optional[datetime] = None
        self._last_completed_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def __repr__(self) -> str:
        return f"<ScheduledTaskHandle {self._name} id={self._id} state={self.state.value}>"

    # --- Read-only view ---

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def policy(self) -> SchedulePolicy:
        return self._policy

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    @property
    def cancelled(self) -> bool:
        """True once cancellation was requested, even if a firing is still finishing."""
        with self._lock:
            return self._cancel_requested

    @property
    def next_fire_time(self) -> Optional[float]:
        """Next fire instant on the runner clock's monotonic scale."""
        with self._lock:
            return self._next_fire_time

    @property
    def next_fire_at(self) -> Optional[datetime]:
        """Next fire instant as wall-clock time (informational)."""
        with self._lock:
            return self._next_fire_at

    @property
    def fire_count(self) -> int:
        with self._lock:
            return self._fire_count

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    def cancel(self) -> None:
        """Request cancellation. Safe to call from any thread, more than once."""
        with self._lock:
            if self._cancel_requested:
                return
            self._cancel_requested = True
            if self._state == TaskState.PENDING:
                self._state = TaskState.CANCELLED
                self._next_fire_time = None
                self._next_fire_at = None
            canceller = self._canceller

        if canceller is not None:
            canceller(self)

    def snapshot(self) -> Dict[str, Any]:
        """Consistent copy of the handle's status for monitoring."""
        with self._lock:
            return {
                "id": self._id,
                "name": self._name,
                "policy": repr(self._policy),
                "state": self._state.value,
                "cancelled": self._cancel_requested,
                "next_fire_time": self._next_fire_time,
                "next_fire_at": self._next_fire_at.isoformat() if self._next_fire_at else None,
                "fire_count": self._fire_count,
                "failure_count": self._failure_count,
                "consecutive_failures": self._consecutive_failures,
                "last_started_at": self._last_started_at.isoformat() if self._last_started_at else None,
                "last_completed_at": self._last_completed_at.isoformat() if self._last_completed_at else None,
                "last_error": self._last_error,
            }

    # --- Runner-side transitions ---

    def _bind(self, canceller: Callable[[ScheduledTaskHandle], None]) -> None:
        with self._lock:
            self._canceller = canceller

    def _set_next_fire(self, next_fire_time: float, next_fire_at: Optional[datetime]) -> bool:
        """Record the first fire time. Returns False if already cancelled."""
        with self._lock:
            if self._cancel_requested:
                return False
            self._next_fire_time = next_fire_time
            self._next_fire_at = next_fire_at
            return True

    def _begin_firing(self, started_at: datetime) -> bool:
        """PENDING -> RUNNING. Returns False if the handle was cancelled."""
        with self._lock:
            if self._cancel_requested or self._state != TaskState.PENDING:
                return False
            self._state = TaskState.RUNNING
            self._fire_count += 1
            self._last_started_at = started_at
            return True

    def _finish_firing(
        self,
        completed_at: datetime,
        error: Optional[BaseException],
        next_fire_time: float,
        next_fire_at: Optional[datetime],
    ) -> bool:
        """
        RUNNING -> PENDING with the next fire time, or RUNNING -> CANCELLED.

        Returns True if the task should keep running.
        """
        with self._lock:
            self._last_completed_at = completed_at
            if error is None:
                self._consecutive_failures = 0
            else:
                self._failure_count += 1
                self._consecutive_failures += 1
                self._last_error = f"{type(error).__name__}: {error}"

            if self._cancel_requested:
                self._state = TaskState.CANCELLED
                self._next_fire_time = None
                self._next_fire_at = None
                return False

            self._state = TaskState.PENDING
            self._next_fire_time = next_fire_time
            self._next_fire_at = next_fire_at
            return True

    def _mark_cancelled(self) -> None:
        with self._lock:
            self._cancel_requested = True
            self._state = TaskState.CANCELLED
            self._next_fire_time = None
            self._next_fire_at = None
