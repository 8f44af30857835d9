"""Rate limiting adapters.

Fixed-window limiter plus the counter stores it runs on: Redis for a limit
shared by every server process, and an in-memory store for single-process
runs and tests.
"""

from ratelimit_api.adapters.rate_limit.base import (
    AbstractCounterStore,
    RateLimitDecision,
    WindowHit,
)
from ratelimit_api.adapters.rate_limit.factory import (
    create_counter_store,
    create_rate_limiter,
)
from ratelimit_api.adapters.rate_limit.fixed_window import (
    FixedWindowRateLimiter,
    RateLimitPolicy,
)
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "FixedWindowRateLimiter",
    "InMemoryCounterStore",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RedisCounterStore",
    "WindowHit",
    "create_counter_store",
    "create_rate_limiter",
]
