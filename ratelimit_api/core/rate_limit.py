"""Rate limiting stage for the HTTP pipeline.

This module wires the fixed-window limiter into the request pipeline.

Every non-exempt request is charged once against its client key before any
route runs. Allowed requests continue with rate limit headers attached;
rejected requests short-circuit with a 429 and a stable JSON body. A
fail-closed store outage produces the same 429 as a real breach.

Client key strategies:
- ip: the socket peer address (default)
- forwarded: first hop of X-Forwarded-For, falling back to the peer address
- api_key: SHA-256 of the X-API-Key header, falling back to the peer address
"""

from __future__ import annotations

import hashlib
import logging
import math
import time

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from ratelimit_api.adapters.rate_limit.base import RateLimitDecision
from ratelimit_api.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from ratelimit_api.core.config import RateLimitSettings
from ratelimit_api.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_STRATEGIES = ("ip", "forwarded", "api_key")


def parse_exempt_paths(paths: str | None) -> set[str]:
    """Parse comma-separated request paths into a set.

    Examples:
        >>> sorted(parse_exempt_paths("/health, /health/ready"))
        ['/health', '/health/ready']
        >>> parse_exempt_paths(None)
        set()
    """
    if not paths:
        return set()

    return {path.strip() for path in paths.split(",") if path.strip()}


def validate_key_strategy(strategy: str) -> str:
    """Normalize the client key strategy name.

    Raises:
        ConfigurationError: If the strategy is not one of KEY_STRATEGIES.
    """
    normalized = strategy.strip().lower()
    if normalized not in KEY_STRATEGIES:
        raise ConfigurationError(
            code="unknown_key_strategy",
            message=(
                f"Unknown rate limit key strategy: '{strategy}'. "
                f"Supported strategies: {', '.join(KEY_STRATEGIES)}"
            ),
            details={"field": "key_strategy", "value": strategy},
        )
    return normalized


def get_client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def build_client_key(request: Request, strategy: str) -> tuple[str, str]:
    """Resolve the limiter key for the current request.

    Args:
        request: Incoming request.
        strategy: One of KEY_STRATEGIES.

    Returns:
        Tuple of (key_type, namespaced client key).
    """
    if strategy == "api_key":
        api_key = request.headers.get("X-API-Key")
        if api_key:
            # The store is shared infrastructure; only a digest of the secret goes there.
            digest = hashlib.sha256(api_key.encode()).hexdigest()
            return "api_key", f"api_key:{digest}"

    if strategy == "forwarded":
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return "ip", f"ip:{first_hop}"

    return "ip", f"ip:{get_client_address(request)}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def build_rate_limit_headers(
    decision: RateLimitDecision,
    limiter: FixedWindowRateLimiter,
    cfg: RateLimitSettings,
    *,
    now: float | None = None,
) -> dict[str, str]:
    """Build RateLimit-* / X-RateLimit-* / Retry-After headers for a decision."""

    current = time.time() if now is None else now
    reset_in = max(0, math.ceil(decision.reset_at - current))
    headers: dict[str, str] = {}

    if cfg.standard_headers:
        headers["RateLimit-Policy"] = f"{decision.limit};w={limiter.policy.window_seconds}"
        headers["RateLimit-Limit"] = str(decision.limit)
        headers["RateLimit-Remaining"] = str(decision.remaining)
        headers["RateLimit-Reset"] = str(reset_in)

    if cfg.legacy_headers:
        headers["X-RateLimit-Limit"] = str(decision.limit)
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
        headers["X-RateLimit-Reset"] = str(math.ceil(decision.reset_at))

    if not decision.allowed and decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)

    return headers


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Return the process-wide limiter created during app startup."""
    return request.app.state.rate_limiter


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the fixed-window rate limit.

    Args:
        request: The incoming HTTP request.
        call_next: The next stage of the pipeline.

    Returns:
        Response: 429 JSON response when rejected, otherwise the downstream
            response with rate limit headers added.
    """

    cfg: RateLimitSettings = request.app.state.settings.rate_limit

    if not cfg.enabled or request.url.path in request.app.state.rate_limit_exempt_paths:
        return await call_next(request)

    limiter = get_rate_limiter(request)
    key_type, key = build_client_key(request, request.app.state.rate_limit_key_strategy)

    decision = await limiter.check(key)
    headers = build_rate_limit_headers(decision, limiter, cfg)

    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": _hash_limiter_key(key),
                "limit": decision.limit,
                "remaining": decision.remaining,
            },
        )
        response: Response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": _hash_limiter_key(key),
            "client_ip": get_client_address(request),
            "limit": decision.limit,
            "window_ms": limiter.policy.window_ms,
            "retry_after_s": decision.retry_after_seconds,
            "request_path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "message": cfg.message},
        headers=headers,
    )
