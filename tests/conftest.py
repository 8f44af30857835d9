"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any import of the settings module so
the global Settings instance never points at a real Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("RATE_LIMIT_STORE", "memory")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from typing import Any, Callable  # noqa: E402

import pytest  # noqa: E402

from ratelimit_api.core.config import (  # noqa: E402
    AppSettings,
    LogSettings,
    RateLimitSettings,
    RedisSettings,
    Settings,
)


class FakeTime:
    """Deterministic clock used to simulate window expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build an isolated Settings object with rate limit overrides."""

    def _make(**rate_limit: Any) -> Settings:
        rate_limit.setdefault("store", "memory")
        return Settings(
            app=AppSettings(),
            log=LogSettings(),
            redis=RedisSettings(),
            rate_limit=RateLimitSettings(**rate_limit),
        )

    return _make
