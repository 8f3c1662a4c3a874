import pydantic
import pytest

from transit_alerts.settings import EngineSettings


def test_defaults():
    s = EngineSettings()
    assert s.cache_capacity >= 1
    assert s.immediate_days <= s.soon_days <= s.upcoming_days <= s.advance_days


def test_from_env_reads_prefixed_values():
    s = EngineSettings.from_env(
        {
            "TRANSIT_CACHE_CAPACITY": "10",
            "TRANSIT_NOTIFY_LOG_ENABLED": "false",
            "TRANSIT_DEFAULT_ORB": "3.5",
            "CACHE_CAPACITY": "99",
        }
    )
    assert s.cache_capacity == 10
    assert s.notify_log_enabled is False
    assert s.default_orb == 3.5


@pytest.mark.parametrize(
    "env",
    [
        {"TRANSIT_CACHE_CAPACITY": "0"},
        {"TRANSIT_IMMEDIATE_DAYS": "10", "TRANSIT_SOON_DAYS": "5"},
        {"TRANSIT_NOTIFY_WEBHOOK_ENABLED": "true"},
        {"TRANSIT_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_fail_at_startup(env):
    with pytest.raises(pydantic.ValidationError):
        EngineSettings.from_env(env)
