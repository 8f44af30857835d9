"""Fixed-window rate limiter over a counter store.

The limiter keeps no mutable state of its own: the window for a client key
lives entirely in the store's counter and TTL, so any number of processes
sharing the store enforce one limit.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from ratelimit_api.adapters.rate_limit.base import (
    AbstractCounterStore,
    RateLimitDecision,
    WindowHit,
)
from ratelimit_api.core.errors import ConfigurationError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "rl:"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable limiter policy.

    Attributes:
        window_ms: Fixed window length in milliseconds.
        max_requests: Requests allowed per client key per window (inclusive).

    Raises:
        ConfigurationError: If either value is not a positive integer.
    """

    window_ms: int
    max_requests: int

    def __post_init__(self) -> None:
        for field_name in ("window_ms", "max_requests"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(
                    code="invalid_rate_limit_policy",
                    message=f"{field_name} must be a positive integer",
                    details={"field": field_name, "value": value},
                )

    @property
    def window_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)


class FixedWindowRateLimiter:
    """Decide ALLOW/REJECT per client key using a fixed-window counter."""

    def __init__(
        self,
        store: AbstractCounterStore,
        policy: RateLimitPolicy,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        fail_open: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Counter store providing atomic increment-with-expiry.
            policy: Window length and request budget.
            key_prefix: Namespace prepended to every client key in the store.
            fail_open: Allow requests when the store is unavailable. When
                False (the default) such requests are rejected.
            clock: Time source returning UNIX seconds, used for reset_at only.
        """
        self._store = store
        self._policy = policy
        self._key_prefix = key_prefix
        self._fail_open = fail_open
        self._clock = clock

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    @property
    def fail_open(self) -> bool:
        return self._fail_open

    def store_key(self, client_key: str) -> str:
        return f"{self._key_prefix}{client_key}"

    async def check(self, client_key: str) -> RateLimitDecision:
        """Charge one request to ``client_key`` and decide whether it may proceed.

        Store outages are resolved here according to ``fail_open`` and are
        never raised to the caller.

        Args:
            client_key: Identity the request is counted against (e.g. "ip:1.2.3.4").

        Returns:
            RateLimitDecision for this request.

        Raises:
            ValueError: If client_key is empty.
        """
        if not client_key:
            raise ValueError("client_key must be a non-empty string")

        try:
            hit = await self._store.hit(self.store_key(client_key), self._policy.window_ms)
        except StoreUnavailableError as exc:
            return self._decide_on_outage(exc)

        return self._decide(hit)

    async def reset(self, client_key: str) -> None:
        """Forget the current window for ``client_key``."""
        await self._store.reset(self.store_key(client_key))

    def _decide(self, hit: WindowHit) -> RateLimitDecision:
        now = self._clock()
        limit = self._policy.max_requests
        ttl_ms = max(0, hit.ttl_ms)
        reset_at = now + ttl_ms / 1000

        if hit.count <= limit:
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=limit - hit.count,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitDecision(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(1, math.ceil(ttl_ms / 1000)),
        )

    def _decide_on_outage(self, exc: StoreUnavailableError) -> RateLimitDecision:
        now = self._clock()
        limit = self._policy.max_requests
        reset_at = now + self._policy.window_ms / 1000

        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "error_code": exc.code,
                "fail_open": self._fail_open,
                "cause": type(exc.__cause__).__name__ if exc.__cause__ else None,
            },
        )

        if self._fail_open:
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitDecision(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=self._policy.window_seconds,
        )
