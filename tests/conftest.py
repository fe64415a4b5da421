"""Shared fixtures for the cache test suite."""
import pytest

from studio_cache.core.config import Settings


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def clock():
    """Create a FakeClock to patch onto a cache's ``_now``.

    Returns:
        FakeClock: Clock starting at an arbitrary fixed time.
    """
    return FakeClock()


@pytest.fixture
def test_settings():
    """Settings for building isolated test applications.

    Returns:
        Settings: Development settings with two small caches and no file sink.
    """
    return Settings(
        environment="development",
        cache_names=["sessions", "bookings"],
        cache_default_ttl_ms=60_000,
        cache_max_size=10,
        log_level="WARNING",
        log_file=None,
    )
