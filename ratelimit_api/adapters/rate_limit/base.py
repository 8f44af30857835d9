"""Rate limiter interfaces.

The HTTP layer depends on the limiter, and the limiter depends on the
``AbstractCounterStore`` capability only, so the shared store (Redis) can be
swapped for the per-process one without touching either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


@dataclass(frozen=True)
class WindowHit:
    """Counter state right after an increment.

    Attributes:
        count: Counter value including this hit.
        ttl_ms: Milliseconds until the window (counter) expires.
    """

    count: int
    ttl_ms: int


class AbstractCounterStore(ABC):
    """Interface for fixed-window counter stores.

    Implementations must make ``hit`` atomic per key: concurrent hits on the
    same key never lose an increment, and the expiry is attached exactly when
    the counter is created.
    """

    @abstractmethod
    async def hit(self, key: str, window_ms: int) -> WindowHit:
        """Increment the counter for ``key``, creating it with a TTL if absent.

        Args:
            key: Fully namespaced store key.
            window_ms: TTL applied when the counter is created.

        Returns:
            WindowHit with the post-increment count and remaining TTL.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Drop the counter for ``key`` so the next hit opens a new window."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers. Never raises."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
