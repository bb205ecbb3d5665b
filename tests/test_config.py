"""Tests for settings defaults and validation."""

import pytest
from pydantic import ValidationError

from shortlink.config import Settings, get_settings


def test_defaults(monkeypatch):
    for name in (
        "CACHE_TTL_SECONDS",
        "CACHE_SET_TIMEOUT_SECONDS",
        "STD_ALIAS_LENGTH",
        "ALIAS_MAX_ATTEMPTS",
        "REQUEST_LIMIT",
        "REQUEST_WINDOW_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.CACHE_TTL_SECONDS == 3600
    assert settings.CACHE_KEY_PREFIX == "url:"
    assert settings.CACHE_SET_TIMEOUT_SECONDS == 1.0
    assert settings.STD_ALIAS_LENGTH == 6
    assert settings.ALIAS_MAX_ATTEMPTS == 10
    assert settings.REDIS_PING_RETRIES == 5
    assert settings.REDIS_PING_DELAY_SECONDS == 0.5
    assert settings.REQUEST_LIMIT == 100
    assert settings.REQUEST_WINDOW_SECONDS == 60.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STD_ALIAS_LENGTH", "8")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.STD_ALIAS_LENGTH == 8
    assert settings.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"LOG_LEVEL": "chatty"},
        {"STD_ALIAS_LENGTH": 0},
        {"ALIAS_MAX_ATTEMPTS": 0},
        {"CACHE_TTL_SECONDS": -1},
        {"CACHE_SET_TIMEOUT_SECONDS": 0},
        {"REQUEST_LIMIT": 0},
        {"REQUEST_WINDOW_SECONDS": 0},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
