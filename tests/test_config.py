"""
Tests for TimeclockSettings environment loading.
"""

import pytest
from pydantic import ValidationError

from timeclock.config import TimeclockSettings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("TIMECLOCK_RAGIC_API_KEY", "TIMECLOCK_TIMEZONE", "TIMECLOCK_EXEMPT_EMPLOYEES",
                 "TIMECLOCK_CACHE_TTL_ON_WORK", "TIMECLOCK_AUTO_CHECKOUT_HOUR"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = TimeclockSettings(_env_file=None)

    assert settings.timezone == "Asia/Bangkok"
    assert settings.auto_checkout_hour == 23
    assert settings.auto_checkout_minute == 59
    assert settings.rate_limit_burst == 75
    assert settings.exempt_employees == []
    assert settings.ragic_api_key.get_secret_value() == ""


def test_prefixed_environment_variables(clean_env):
    clean_env.setenv("TIMECLOCK_RAGIC_API_KEY", "from-env")
    clean_env.setenv("TIMECLOCK_TIMEZONE", "Asia/Tokyo")
    clean_env.setenv("TIMECLOCK_EXEMPT_EMPLOYEES", '["Night Guard", "Gate Keeper"]')
    clean_env.setenv("TIMECLOCK_CACHE_TTL_ON_WORK", "15")

    settings = TimeclockSettings(_env_file=None)

    assert settings.ragic_api_key.get_secret_value() == "from-env"
    assert "from-env" not in repr(settings)
    assert settings.timezone == "Asia/Tokyo"
    assert settings.exempt_employees == ["Night Guard", "Gate Keeper"]
    assert settings.dataset_ttls()["on_work"] == 15.0


def test_dataset_ttls_cover_every_dataset(settings):
    assert set(settings.dataset_ttls()) == {"roster", "on_work", "ledger", "stats"}


def test_cutoff_hour_is_validated(clean_env):
    clean_env.setenv("TIMECLOCK_AUTO_CHECKOUT_HOUR", "24")
    with pytest.raises(ValidationError):
        TimeclockSettings(_env_file=None)
