"""
Tests for pydantic policy configuration models.
"""
import pytest
from pydantic import TypeAdapter, ValidationError

from cadence.domain.errors import NonRetryableFailure
from cadence.domain.retry_value_objects import RetryPolicy
from cadence.domain.schedule_value_objects import Cron, FixedDelay, FixedRate, InitialDelayThenFixedRate
from cadence.infrastructure.config.policy_models import (
    CronConfig,
    FixedRateConfig,
    RetryPolicyConfig,
    ScheduleConfig,
    TaskConfig,
    resolve_failure_kind,
)


class TestResolveFailureKind:
    """Tests for resolve_failure_kind."""

    def test_bare_builtin_name(self):
        assert resolve_failure_kind("TimeoutError") is TimeoutError

    def test_dotted_name(self):
        assert resolve_failure_kind("builtins.ConnectionError") is ConnectionError
        assert resolve_failure_kind("cadence.domain.errors.NonRetryableFailure") is NonRetryableFailure

    @pytest.mark.parametrize("name", ["NoSuchError", "no.such.module.Error", "builtins.len", "json.JSONDecoder"])
    def test_unresolvable(self, name):
        with pytest.raises(ValueError):
            resolve_failure_kind(name)


class TestRetryPolicyConfig:
    """Tests for RetryPolicyConfig."""

    def test_defaults_match_domain_policy(self):
        assert RetryPolicyConfig().to_policy() == RetryPolicy()

    def test_to_policy(self):
        config = RetryPolicyConfig(
            max_attempts=5,
            initial_delay=2.0,
            multiplier=1.5,
            max_delay=30,
            jitter=0.1,
            max_elapsed=120,
            retryable_failures=["TimeoutError", "builtins.ConnectionError"],
            non_retryable_failures=["ConnectionRefusedError"],
        )

        policy = config.to_policy()

        assert policy.max_attempts == 5
        assert policy.initial_delay == 2.0
        assert policy.multiplier == 1.5
        assert policy.max_delay == 30
        assert policy.jitter == 0.1
        assert policy.max_elapsed == 120
        assert policy.retryable_failures == frozenset({TimeoutError, ConnectionError})
        assert policy.non_retryable_failures == frozenset({ConnectionRefusedError})

    @pytest.mark.parametrize(
        "data",
        [
            {"max_attempts": 0},
            {"initial_delay": -1},
            {"multiplier": 0.9},
            {"jitter": 2},
            {"max_delay": -5},
            {"retryable_failures": ["NotAnError"]},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            RetryPolicyConfig.model_validate(data)


class TestScheduleConfig:
    """Tests for the schedule union."""

    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"kind": "fixed_rate", "period": 10}, FixedRate(10)),
            ({"kind": "fixed_delay", "period": 2.5}, FixedDelay(2.5)),
            ({"kind": "initial_delay_then_fixed_rate", "initial_delay": 5, "period": 60}, InitialDelayThenFixedRate(5, 60)),
            ({"kind": "cron", "expression": "@daily"}, Cron("@daily")),
        ],
    )
    def test_discriminated_by_kind(self, data, expected):
        config = TypeAdapter(ScheduleConfig).validate_python(data)

        assert config.to_policy() == expected

    @pytest.mark.parametrize(
        "data",
        [
            {"kind": "fixed_rate", "period": 0},
            {"kind": "fixed_delay"},
            {"kind": "initial_delay_then_fixed_rate", "initial_delay": -1, "period": 1},
            {"kind": "cron", "expression": "* * *"},
            {"kind": "weekly"},
            {"period": 5},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            TypeAdapter(ScheduleConfig).validate_python(data)

    def test_kind_defaults_on_direct_construction(self):
        assert FixedRateConfig(period=3).kind == "fixed_rate"
        assert CronConfig(expression="0 * * * *").to_policy() == Cron("0 * * * *")


class TestTaskConfig:
    """Tests for TaskConfig."""

    def test_minimal(self):
        config = TaskConfig.model_validate({"name": "heartbeat", "schedule": {"kind": "fixed_rate", "period": 30}})

        assert config.enabled is True
        assert config.retry is None
        assert config.schedule.to_policy() == FixedRate(30)

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            TaskConfig.model_validate({"name": "", "schedule": {"kind": "fixed_rate", "period": 30}})

    def test_with_retry(self):
        config = TaskConfig.model_validate({
            "name": "sync",
            "schedule": {"kind": "cron", "expression": "*/10 * * * *"},
            "retry": {"max_attempts": 4},
        })

        assert config.retry.to_policy().max_attempts == 4
