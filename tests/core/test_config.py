"""Tests for Settings validation and computed values."""
import pytest
from pydantic import ValidationError

from studio_cache.core.cache import CacheOptions
from studio_cache.core.config import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.environment == "development"
    assert settings.api_prefix == "/api/v1"
    assert settings.default_cache_options == CacheOptions(ttl_ms=300_000, max_size=1000)
    assert settings.cache_enabled is True
    assert settings.memoize_coalesce is False
    assert settings.log_cache_events is False


def test_environment_is_normalized():
    settings = Settings(_env_file=None, environment="PRODUCTION")

    assert settings.environment == "production"
    assert settings.is_production is True


def test_invalid_environment_rejected():
    with pytest.raises(ValidationError, match="Environment must be one of"):
        Settings(_env_file=None, environment="qa")


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError, match="Log level must be one of"):
        Settings(_env_file=None, log_level="verbose")


def test_debug_forces_debug_console_level():
    settings = Settings(_env_file=None, debug=True, log_level="warning")

    assert settings.log_level == "WARNING"
    assert settings.effective_console_log_level == "DEBUG"
    assert settings.effective_file_log_level == "DEBUG"


def test_file_log_level_overrides_console():
    settings = Settings(_env_file=None, log_level="INFO", log_file_level="error")

    assert settings.effective_file_log_level == "ERROR"


def test_production_hides_docs():
    kwargs = Settings(_env_file=None, environment="production").fastapi_kwargs

    assert kwargs["docs_url"] is None
    assert kwargs["openapi_url"] is None


def test_unbounded_cache_options():
    settings = Settings(_env_file=None, cache_default_ttl_ms=None, cache_max_size=None)

    assert settings.default_cache_options == CacheOptions()


def test_environment_variables_are_read(monkeypatch):
    monkeypatch.setenv("CACHE_MAX_SIZE", "25")
    monkeypatch.setenv("CACHE_NAMES", '["sessions"]')

    settings = Settings(_env_file=None)

    assert settings.cache_max_size == 25
    assert settings.cache_names == ["sessions"]


def test_cache_switches_read_from_environment(monkeypatch):
    monkeypatch.setenv("CACHE_ENABLED", "false")
    monkeypatch.setenv("MEMOIZE_COALESCE", "true")

    settings = Settings(_env_file=None)

    assert settings.cache_enabled is False
    assert settings.memoize_coalesce is True


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
