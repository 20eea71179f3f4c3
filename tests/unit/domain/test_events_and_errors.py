"""
Tests for failure reports and the error hierarchy.
"""
from datetime import timezone

import pytest

from cadence.domain.errors import (
    CadenceError,
    CronExpressionError,
    InvalidPolicyError,
    NonRetryableFailure,
    RetryableFailure,
    SchedulerStateError,
)
from cadence.domain.events import FailureKind, FailureReport


class TestFailureReport:
    """Tests for FailureReport."""

    def test_describe_with_attempt(self):
        report = FailureReport("sync-users", ValueError("bad row"), FailureKind.RETRYABLE, attempt=2)

        assert report.describe() == "retryable failure in sync-users, attempt 2, ValueError: bad row"

    def test_describe_without_attempt(self):
        report = FailureReport("abc123", KeyError("x"), FailureKind.TASK_BODY)

        assert report.describe() == "task_body failure in abc123, KeyError: 'x'"

    def test_failure_type(self):
        report = FailureReport("op", TimeoutError(), FailureKind.EXHAUSTED, attempt=3)

        assert report.failure_type == "TimeoutError"

    def test_timestamp_is_aware_utc(self):
        report = FailureReport("op", RuntimeError(), FailureKind.NON_RETRYABLE)

        assert report.timestamp.tzinfo == timezone.utc

    def test_report_is_immutable(self):
        report = FailureReport("op", RuntimeError(), FailureKind.NON_RETRYABLE)

        with pytest.raises(AttributeError):
            report.source_id = "other"


class TestErrorHierarchy:
    """Tests for the cadence exception types."""

    @pytest.mark.parametrize(
        "error_cls",
        [InvalidPolicyError, CronExpressionError, SchedulerStateError],
    )
    def test_all_derive_from_cadence_error(self, error_cls):
        assert issubclass(error_cls, CadenceError)

    def test_policy_errors_are_value_errors(self):
        assert issubclass(InvalidPolicyError, ValueError)
        assert issubclass(CronExpressionError, InvalidPolicyError)

    def test_cron_error_attributes(self):
        error = CronExpressionError("bad minute", expression="99 * * * *", field="minute")

        assert str(error) == "bad minute"
        assert error.expression == "99 * * * *"
        assert error.field == "minute"

    def test_failure_markers_are_plain_exceptions(self):
        assert issubclass(RetryableFailure, Exception)
        assert issubclass(NonRetryableFailure, Exception)
        assert not issubclass(NonRetryableFailure, CadenceError)
