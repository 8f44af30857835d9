"""Redis-backed fixed-window counter store.

All server processes pointing at the same Redis share one counter per client
key, so the limit is enforced globally. Each hit is a single MULTI/EXEC
round trip:

    SET key 0 PX <window> NX   # create the window with its expiry, if absent
    INCR key                   # atomic increment, keeps the TTL
    PTTL key                   # remaining window

Creating the key and its expiry in one command means the expiry can never
be lost between the increment and a separate EXPIRE call.
"""

from __future__ import annotations

import logging

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore, WindowHit
from ratelimit_api.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_STORE_ERRORS = (RedisError, OSError)


class RedisCounterStore(AbstractCounterStore):
    """Counter store over a shared, pooled ``redis.asyncio.Redis`` client.

    The client is safe to use from concurrent tasks; no local locks are taken.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout_seconds: float = 1.0,
        max_connections: int = 50,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL (redis://, rediss:// or unix://).
            socket_timeout_seconds: Connect and command timeout.
            max_connections: Pool size limit.

        Returns:
            RedisCounterStore owning the new client.
        """
        client = aioredis.from_url(
            url,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=socket_timeout_seconds,
            max_connections=max_connections,
            decode_responses=True,
        )
        return cls(client)

    async def hit(self, key: str, window_ms: int) -> WindowHit:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, px=window_ms, nx=True)
                pipe.incr(key)
                pipe.pttl(key)
                _, count, ttl_ms = await pipe.execute()

            if ttl_ms < 0:
                # Counter exists without expiry (written by something else);
                # attach one so the window cannot stay open forever.
                await self._client.pexpire(key, window_ms)
                ttl_ms = window_ms
        except _STORE_ERRORS as exc:
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Counter store is unavailable",
                details={"backend": "redis", "context": {"error_type": type(exc).__name__}},
            ) from exc

        return WindowHit(count=int(count), ttl_ms=int(ttl_ms))

    async def reset(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except _STORE_ERRORS as exc:
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Counter store is unavailable",
                details={"backend": "redis"},
            ) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except _STORE_ERRORS as exc:
            logger.warning(
                "rate_limit.store_ping_failed",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
            return False

    async def close(self) -> None:
        await self._client.aclose()
