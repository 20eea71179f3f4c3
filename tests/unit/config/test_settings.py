"""
Tests for SchedulerSettings.
"""
from zoneinfo import ZoneInfo

import pytest

from cadence.domain.errors import InvalidPolicyError
from cadence.domain.retry_value_objects import RetryPolicy
from cadence.infrastructure.config.settings import SchedulerSettings

ENV_VARS = [
    "CADENCE_MAX_WORKERS",
    "CADENCE_TIMEZONE",
    "CADENCE_SHUTDOWN_TIMEOUT",
    "CADENCE_LOG_LEVEL",
    "CADENCE_LOG_JSON",
    "CADENCE_LOG_DIR",
    "CADENCE_RETRY_MAX_ATTEMPTS",
    "CADENCE_RETRY_INITIAL_DELAY",
    "CADENCE_RETRY_MULTIPLIER",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSchedulerSettingsDefaults:
    """Tests for default values and validation."""

    def test_defaults(self):
        settings = SchedulerSettings()

        assert settings.max_workers == 4
        assert settings.timezone == "UTC"
        assert settings.shutdown_timeout == 30.0
        assert settings.log_level == "INFO"
        assert settings.log_json is False
        assert settings.log_dir is None

    def test_settings_are_frozen(self):
        settings = SchedulerSettings()

        with pytest.raises(AttributeError):
            settings.max_workers = 8

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_workers": 0},
            {"shutdown_timeout": -1},
            {"log_level": "VERBOSE"},
            {"timezone": "Mars/Olympus_Mons"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SchedulerSettings(**kwargs)

    def test_tzinfo(self):
        settings = SchedulerSettings(timezone="America/Mexico_City")

        assert settings.tzinfo == ZoneInfo("America/Mexico_City")

    def test_default_retry_policy(self):
        settings = SchedulerSettings(retry_max_attempts=5, retry_initial_delay=0.5, retry_multiplier=3.0)

        policy = settings.default_retry_policy()

        assert policy == RetryPolicy(max_attempts=5, initial_delay=0.5, multiplier=3.0)

    def test_default_retry_policy_validates(self):
        settings = SchedulerSettings(retry_max_attempts=0)

        with pytest.raises(InvalidPolicyError):
            settings.default_retry_policy()

    def test_to_dict(self):
        data = SchedulerSettings(max_workers=2).to_dict()

        assert data["max_workers"] == 2
        assert data["timezone"] == "UTC"
        assert set(data) == {
            "max_workers",
            "timezone",
            "shutdown_timeout",
            "log_level",
            "log_json",
            "log_dir",
            "retry_max_attempts",
            "retry_initial_delay",
            "retry_multiplier",
        }


class TestSchedulerSettingsFromEnv:
    """Tests for SchedulerSettings.from_env."""

    def test_from_env_defaults(self, clean_env):
        assert SchedulerSettings.from_env() == SchedulerSettings()

    def test_from_env_reads_variables(self, clean_env):
        clean_env.setenv("CADENCE_MAX_WORKERS", "8")
        clean_env.setenv("CADENCE_TIMEZONE", "Europe/Madrid")
        clean_env.setenv("CADENCE_SHUTDOWN_TIMEOUT", "5.5")
        clean_env.setenv("CADENCE_LOG_LEVEL", "debug")
        clean_env.setenv("CADENCE_LOG_JSON", "TRUE")
        clean_env.setenv("CADENCE_LOG_DIR", "/var/log/cadence")
        clean_env.setenv("CADENCE_RETRY_MAX_ATTEMPTS", "5")
        clean_env.setenv("CADENCE_RETRY_INITIAL_DELAY", "0.25")
        clean_env.setenv("CADENCE_RETRY_MULTIPLIER", "1.5")

        settings = SchedulerSettings.from_env()

        assert settings.max_workers == 8
        assert settings.timezone == "Europe/Madrid"
        assert settings.shutdown_timeout == 5.5
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True
        assert settings.log_dir == "/var/log/cadence"
        assert settings.retry_max_attempts == 5
        assert settings.retry_initial_delay == 0.25
        assert settings.retry_multiplier == 1.5

    def test_empty_log_dir_means_none(self, clean_env):
        clean_env.setenv("CADENCE_LOG_DIR", "")

        assert SchedulerSettings.from_env().log_dir is None

    @pytest.mark.parametrize(
        "name,value",
        [
            ("CADENCE_MAX_WORKERS", "many"),
            ("CADENCE_SHUTDOWN_TIMEOUT", "soon"),
            ("CADENCE_MAX_WORKERS", "0"),
            ("CADENCE_TIMEZONE", "Nowhere/Special"),
        ],
    )
    def test_from_env_invalid(self, clean_env, name, value):
        clean_env.setenv(name, value)

        with pytest.raises(ValueError):
            SchedulerSettings.from_env()
