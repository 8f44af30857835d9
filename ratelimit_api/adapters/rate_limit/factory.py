"""Factory functions for counter stores and the rate limiter."""

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore
from ratelimit_api.adapters.rate_limit.fixed_window import (
    FixedWindowRateLimiter,
    RateLimitPolicy,
)
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.core.config import Settings, settings as default_settings
from ratelimit_api.core.errors import ConfigurationError


def create_counter_store(settings: Settings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by RATE_LIMIT_STORE.

    Args:
        settings: Settings to read; defaults to the global instance.

    Returns:
        AbstractCounterStore: Redis-backed (shared) or in-memory store.

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    cfg = settings or default_settings
    backend = cfg.rate_limit.store.lower()

    if backend == "redis":
        return RedisCounterStore.from_url(
            cfg.redis.url,
            socket_timeout_seconds=cfg.redis.socket_timeout_seconds,
            max_connections=cfg.redis.max_connections,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ConfigurationError(
        code="unknown_rate_limit_store",
        message=f"Unknown rate limit store: '{backend}'. Supported stores: redis, memory",
        details={"field": "store", "value": backend},
    )


def create_rate_limiter(
    store: AbstractCounterStore,
    settings: Settings | None = None,
) -> FixedWindowRateLimiter:
    """Build the limiter from settings.

    Raises:
        ConfigurationError: If the window or request budget is not positive.
    """
    cfg = settings or default_settings
    policy = RateLimitPolicy(
        window_ms=cfg.rate_limit.window_ms,
        max_requests=cfg.rate_limit.max_requests,
    )
    return FixedWindowRateLimiter(
        store,
        policy,
        key_prefix=cfg.rate_limit.key_prefix,
        fail_open=cfg.rate_limit.fail_open,
    )
