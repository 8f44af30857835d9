"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore, WindowHit


@dataclass
class _Counter:
    count: int
    expires_at_ms: int


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping one expiring counter per key in a dict.

    Mirrors the shared store semantics (counter created at 1 with a TTL,
    incremented until it expires) so the limiter behaves the same against
    either backend.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _purge_expired_locked(self, now_ms: int) -> None:
        expired = [k for k, c in self._counters.items() if c.expires_at_ms <= now_ms]
        for key in expired:
            del self._counters[key]

    async def hit(self, key: str, window_ms: int) -> WindowHit:
        now_ms = self._now_ms()

        with self._lock:
            counter = self._counters.get(key)
            if counter is None or counter.expires_at_ms <= now_ms:
                # Opportunistic cleanup when a new window opens
                self._purge_expired_locked(now_ms)
                counter = _Counter(count=0, expires_at_ms=now_ms + window_ms)
                self._counters[key] = counter

            counter.count += 1
            return WindowHit(count=counter.count, ttl_ms=counter.expires_at_ms - now_ms)

    async def reset(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    async def ping(self) -> bool:
        return True
