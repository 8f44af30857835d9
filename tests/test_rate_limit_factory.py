"""Tests for settings defaults and the store/limiter factories."""

import pytest

from ratelimit_api.adapters.rate_limit.factory import create_counter_store, create_rate_limiter
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.core.config import RateLimitSettings
from ratelimit_api.core.errors import ConfigurationError


def test_rate_limit_defaults_match_fifteen_minute_window(monkeypatch) -> None:
    for name in ("RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_FAIL_OPEN"):
        monkeypatch.delenv(name, raising=False)

    cfg = RateLimitSettings()

    assert cfg.window_ms == 900_000
    assert cfg.max_requests == 100
    assert cfg.fail_open is False
    assert cfg.key_strategy == "ip"
    assert cfg.standard_headers is True
    assert cfg.legacy_headers is False


def test_rate_limit_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_WINDOW_MS", "1000")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("RATE_LIMIT_FAIL_OPEN", "true")

    cfg = RateLimitSettings()

    assert cfg.window_ms == 1000
    assert cfg.max_requests == 7
    assert cfg.fail_open is True


def test_memory_backend(make_settings) -> None:
    assert isinstance(create_counter_store(make_settings(store="memory")), InMemoryCounterStore)


def test_redis_backend_is_built_lazily(make_settings) -> None:
    # from_url only builds a pool; nothing connects until the first command
    store = create_counter_store(make_settings(store="redis"))

    assert isinstance(store, RedisCounterStore)


def test_unknown_backend(make_settings) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        create_counter_store(make_settings(store="memcached"))

    assert exc_info.value.code == "unknown_rate_limit_store"


def test_limiter_carries_configured_policy(make_settings) -> None:
    cfg = make_settings(window_ms=5000, max_requests=9, key_prefix="api:", fail_open=True)

    limiter = create_rate_limiter(InMemoryCounterStore(), cfg)

    assert limiter.policy.window_ms == 5000
    assert limiter.policy.max_requests == 9
    assert limiter.fail_open is True
    assert limiter.store_key("ip:1.2.3.4") == "api:ip:1.2.3.4"


@pytest.mark.parametrize("overrides", [{"window_ms": 0}, {"max_requests": -3}])
def test_invalid_policy_is_a_configuration_error(make_settings, overrides) -> None:
    with pytest.raises(ConfigurationError):
        create_rate_limiter(InMemoryCounterStore(), make_settings(**overrides))


def test_factories_accept_documented_keywords(make_settings) -> None:
    cfg = make_settings(max_requests=4)

    limiter = create_rate_limiter(store=InMemoryCounterStore(), settings=cfg)
    store = RedisCounterStore.from_url(
        "redis://localhost:6379/15", socket_timeout_seconds=0.5, max_connections=5
    )

    assert limiter.policy.max_requests == 4
    assert isinstance(store, RedisCounterStore)
    assert isinstance(create_counter_store(settings=cfg), InMemoryCounterStore)
