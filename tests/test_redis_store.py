"""Tests for the Redis counter store, run against fakeredis."""

import asyncio
from unittest.mock import MagicMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ratelimit_api.adapters.rate_limit.fixed_window import (
    FixedWindowRateLimiter,
    RateLimitPolicy,
)
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.core.errors import StoreUnavailableError


def _fake_client() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


def test_first_hit_creates_counter_with_expiry() -> None:
    async def scenario():
        client = _fake_client()
        store = RedisCounterStore(client)

        hit = await store.hit("rl:ip:1.2.3.4", 60_000)
        raw = await client.get("rl:ip:1.2.3.4")
        pttl = await client.pttl("rl:ip:1.2.3.4")
        await store.close()
        return hit, raw, pttl

    hit, raw, pttl = asyncio.run(scenario())

    assert hit.count == 1
    assert 0 < hit.ttl_ms <= 60_000
    assert raw == "1"
    assert 0 < pttl <= 60_000


def test_subsequent_hits_increment_without_extending_window() -> None:
    async def scenario():
        client = _fake_client()
        store = RedisCounterStore(client)
        hits = [await store.hit("k", 60_000) for _ in range(5)]
        await store.close()
        return hits

    hits = asyncio.run(scenario())

    assert [h.count for h in hits] == [1, 2, 3, 4, 5]
    assert hits[-1].ttl_ms <= hits[0].ttl_ms


def test_counter_without_ttl_gets_one_attached() -> None:
    async def scenario():
        client = _fake_client()
        await client.set("k", 7)
        store = RedisCounterStore(client)

        hit = await store.hit("k", 30_000)
        pttl = await client.pttl("k")
        await store.close()
        return hit, pttl

    hit, pttl = asyncio.run(scenario())

    assert hit.count == 8
    assert hit.ttl_ms == 30_000
    assert 0 < pttl <= 30_000


def test_reset_deletes_counter() -> None:
    async def scenario():
        client = _fake_client()
        store = RedisCounterStore(client)
        await store.hit("k", 60_000)
        await store.hit("k", 60_000)
        await store.reset("k")
        hit = await store.hit("k", 60_000)
        await store.close()
        return hit

    assert asyncio.run(scenario()).count == 1


def test_ping_reports_reachable_store() -> None:
    async def scenario():
        store = RedisCounterStore(_fake_client())
        ok = await store.ping()
        await store.close()
        return ok

    assert asyncio.run(scenario()) is True


def test_limiter_over_redis_scenario() -> None:
    async def scenario():
        store = RedisCounterStore(_fake_client())
        limiter = FixedWindowRateLimiter(
            store, RateLimitPolicy(window_ms=900_000, max_requests=100)
        )
        decisions = [await limiter.check("1.2.3.4") for _ in range(101)]
        await store.close()
        return decisions

    decisions = asyncio.run(scenario())

    assert [d.remaining for d in decisions[:100]] == list(range(99, -1, -1))
    assert all(d.allowed for d in decisions[:100])
    assert decisions[100].allowed is False
    assert decisions[100].remaining == 0


@pytest.mark.parametrize("parallel", [8, 20])
def test_concurrent_hits_are_not_lost(parallel: int) -> None:
    async def scenario():
        store = RedisCounterStore(_fake_client())
        limiter = FixedWindowRateLimiter(
            store, RateLimitPolicy(window_ms=60_000, max_requests=10)
        )
        decisions = await asyncio.gather(*(limiter.check("k") for _ in range(parallel)))
        final = await store.hit(limiter.store_key("k"), 60_000)
        await store.close()
        return decisions, final

    decisions, final = asyncio.run(scenario())

    assert sum(d.allowed for d in decisions) == min(parallel, 10)
    assert final.count == parallel + 1


def test_two_processes_share_one_limit() -> None:
    async def scenario():
        server = fakeredis.FakeServer()
        policy = RateLimitPolicy(window_ms=60_000, max_requests=3)
        a = FixedWindowRateLimiter(
            RedisCounterStore(fakeredis.FakeAsyncRedis(server=server)), policy
        )
        b = FixedWindowRateLimiter(
            RedisCounterStore(fakeredis.FakeAsyncRedis(server=server)), policy
        )
        return [
            await a.check("k"),
            await b.check("k"),
            await a.check("k"),
            await b.check("k"),
        ]

    decisions = asyncio.run(scenario())

    assert [d.allowed for d in decisions] == [True, True, True, False]


@pytest.mark.parametrize(
    "error",
    [RedisConnectionError("refused"), RedisTimeoutError("timeout"), OSError("unreachable")],
)
def test_store_errors_map_to_store_unavailable(error: Exception) -> None:
    client = MagicMock()
    client.pipeline.side_effect = error
    store = RedisCounterStore(client)

    with pytest.raises(StoreUnavailableError) as exc_info:
        asyncio.run(store.hit("k", 1000))

    assert exc_info.value.code == "store_unavailable"
    assert exc_info.value.__cause__ is error


def test_limiter_fails_closed_on_redis_outage() -> None:
    client = MagicMock()
    client.pipeline.side_effect = RedisConnectionError("refused")
    limiter = FixedWindowRateLimiter(
        RedisCounterStore(client), RateLimitPolicy(window_ms=1000, max_requests=5)
    )

    decision = asyncio.run(limiter.check("k"))

    assert decision.allowed is False
    assert decision.remaining == 0


def test_ping_returns_false_on_error() -> None:
    client = MagicMock()

    async def _refuse():
        raise RedisConnectionError("refused")

    client.ping.side_effect = _refuse
    store = RedisCounterStore(client)

    assert asyncio.run(store.ping()) is False


def test_window_expiry_opens_a_fresh_counter() -> None:
    async def scenario():
        client = _fake_client()
        limiter = FixedWindowRateLimiter(
            RedisCounterStore(client), RateLimitPolicy(window_ms=50, max_requests=1)
        )
        first = await limiter.check("k")
        second = await limiter.check("k")
        await asyncio.sleep(0.1)
        third = await limiter.check("k")
        raw = await client.get(limiter.store_key("k"))
        await client.aclose()
        return first, second, third, raw

    first, second, third, raw = asyncio.run(scenario())

    assert first.allowed is True
    assert second.allowed is False
    assert third.allowed is True
    assert third.remaining == 0
    assert raw == "1"


def test_fail_closed_outage_rejects_client_with_prior_hits() -> None:
    async def scenario():
        server = fakeredis.FakeServer()
        client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
        limiter = FixedWindowRateLimiter(
            RedisCounterStore(client), RateLimitPolicy(window_ms=60_000, max_requests=5)
        )
        before = [await limiter.check("k") for _ in range(2)]
        server.connected = False
        during = [await limiter.check("k") for _ in range(3)]
        return before, during

    before, during = asyncio.run(scenario())

    assert [d.remaining for d in before] == [4, 3]
    assert all(d.allowed is False for d in during)
    assert all(d.remaining == 0 for d in during)
