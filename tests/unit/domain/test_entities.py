"""
Tests for ScheduledTaskHandle state transitions.
"""
import threading
from datetime import datetime, timezone

import pytest

from cadence.domain.entities import ScheduledTaskHandle, TaskState
from cadence.domain.schedule_value_objects import FixedRate

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def handle():
    return ScheduledTaskHandle("refresh", FixedRate(10))


class TestHandleCreation:
    """Tests for a freshly registered handle."""

    def test_initial_state(self, handle):
        assert handle.name == "refresh"
        assert handle.policy == FixedRate(10)
        assert handle.state == TaskState.PENDING
        assert handle.cancelled is False
        assert handle.next_fire_time is None
        assert handle.fire_count == 0
        assert handle.failure_count == 0
        assert handle.last_error is None

    def test_generated_ids_are_unique(self):
        ids = {ScheduledTaskHandle("t", FixedRate(1)).id for _ in range(100)}

        assert len(ids) == 100

    def test_explicit_id(self):
        handle = ScheduledTaskHandle("t", FixedRate(1), handle_id="abc")

        assert handle.id == "abc"
        assert "abc" in repr(handle)


class TestHandleFiring:
    """Tests for the runner-side transitions."""

    def test_pending_to_running_to_pending(self, handle):
        assert handle._set_next_fire(5.0, NOW) is True
        assert handle.next_fire_time == 5.0

        assert handle._begin_firing(NOW) is True
        assert handle.state == TaskState.RUNNING
        assert handle.fire_count == 1

        assert handle._finish_firing(NOW, None, 15.0, NOW) is True
        assert handle.state == TaskState.PENDING
        assert handle.next_fire_time == 15.0

    def test_cannot_begin_twice(self, handle):
        handle._begin_firing(NOW)

        assert handle._begin_firing(NOW) is False
        assert handle.fire_count == 1

    def test_failure_counters(self, handle):
        handle._begin_firing(NOW)
        handle._finish_firing(NOW, ValueError("boom"), 1.0, None)
        handle._begin_firing(NOW)
        handle._finish_firing(NOW, KeyError("k"), 2.0, None)

        assert handle.failure_count == 2
        assert handle.consecutive_failures == 2
        assert handle.last_error == "KeyError: 'k'"

    def test_success_resets_consecutive_failures(self, handle):
        handle._begin_firing(NOW)
        handle._finish_firing(NOW, ValueError("boom"), 1.0, None)
        handle._begin_firing(NOW)
        handle._finish_firing(NOW, None, 2.0, None)

        assert handle.failure_count == 1
        assert handle.consecutive_failures == 0
        assert handle.last_error == "ValueError: boom"


class TestHandleCancellation:
    """Tests for cancel()."""

    def test_cancel_pending(self, handle):
        handle._set_next_fire(5.0, NOW)
        handle.cancel()

        assert handle.state == TaskState.CANCELLED
        assert handle.cancelled is True
        assert handle.next_fire_time is None

    def test_cancelled_handle_never_fires(self, handle):
        handle.cancel()

        assert handle._begin_firing(NOW) is False
        assert handle._set_next_fire(5.0, NOW) is False
        assert handle.fire_count == 0

    def test_cancel_while_running_lets_firing_finish(self, handle):
        handle._begin_firing(NOW)
        handle.cancel()

        assert handle.state == TaskState.RUNNING
        assert handle.cancelled is True

        assert handle._finish_firing(NOW, None, 20.0, NOW) is False
        assert handle.state == TaskState.CANCELLED
        assert handle.next_fire_time is None
        assert handle.fire_count == 1

    def test_cancel_is_idempotent(self, handle):
        calls = []
        handle._bind(calls.append)

        handle.cancel()
        handle.cancel()

        assert calls == [handle]
        assert handle.state == TaskState.CANCELLED

    def test_cancel_from_many_threads(self, handle):
        calls = []
        handle._bind(calls.append)

        threads = [threading.Thread(target=handle.cancel) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1

    def test_mark_cancelled(self, handle):
        handle._begin_firing(NOW)
        handle._mark_cancelled()

        assert handle.state == TaskState.CANCELLED
        assert handle.cancelled is True


class TestHandleSnapshot:
    """Tests for snapshot()."""

    def test_snapshot_contents(self, handle):
        handle._set_next_fire(5.0, NOW)
        handle._begin_firing(NOW)
        handle._finish_firing(NOW, RuntimeError("x"), 15.0, NOW)

        snap = handle.snapshot()

        assert snap["id"] == handle.id
        assert snap["name"] == "refresh"
        assert snap["state"] == "PENDING"
        assert snap["cancelled"] is False
        assert snap["next_fire_time"] == 15.0
        assert snap["next_fire_at"] == NOW.isoformat()
        assert snap["fire_count"] == 1
        assert snap["failure_count"] == 1
        assert snap["last_error"] == "RuntimeError: x"
        assert "FixedRate" in snap["policy"]
