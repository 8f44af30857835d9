"""Application factory for the FastAPI app.

Centralizes app construction (settings, limiter, middleware pipeline,
handlers, routers) so tests can build isolated apps with their own settings
and counter store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore
from ratelimit_api.adapters.rate_limit.factory import create_counter_store, create_rate_limiter
from ratelimit_api.api.routes import health_router, root_router
from ratelimit_api.core.config import Settings, settings as default_settings
from ratelimit_api.core.exception_handlers import setup_exception_handlers
from ratelimit_api.core.logging import configure_logging, mask_url_credentials
from ratelimit_api.core.middleware import request_id_middleware, request_logging_middleware
from ratelimit_api.core.rate_limit import (
    parse_exempt_paths,
    rate_limit_middleware,
    validate_key_strategy,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    limiter = app.state.rate_limiter
    cfg: Settings = app.state.settings

    store_ok = await limiter.store.ping()
    logger.info(
        "app.startup",
        extra={
            "store_backend": cfg.rate_limit.store,
            "store_url": mask_url_credentials(cfg.redis.url) if cfg.rate_limit.store == "redis" else None,
            "store_reachable": store_ok,
            "window_ms": limiter.policy.window_ms,
            "max_requests": limiter.policy.max_requests,
            "fail_open": limiter.fail_open,
            "rate_limit_enabled": cfg.rate_limit.enabled,
        },
    )
    try:
        yield
    finally:
        await limiter.store.close()
        logger.info("app.shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    store: AbstractCounterStore | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to build from; defaults to the global instance.
        store: Counter store to use instead of the configured backend.
        configure_logs: Install the root log handler (disabled in tests).

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationError: If the rate limit policy, store backend or key
            strategy is invalid. The app is never built in that case.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    key_strategy = validate_key_strategy(cfg.rate_limit.key_strategy)
    counter_store = store if store is not None else create_counter_store(cfg)
    limiter = create_rate_limiter(counter_store, cfg)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "HTTP server with a distributed fixed-window rate limiter backed "
            "by Redis."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.rate_limiter = limiter
    app.state.rate_limit_key_strategy = key_strategy
    app.state.rate_limit_exempt_paths = parse_exempt_paths(cfg.rate_limit.exempt_paths)

    # Pipeline: the last registered middleware runs first, so register from
    # the innermost stage outwards.
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(request_id_middleware)

    # Error boundary
    setup_exception_handlers(app)

    # Routers
    app.include_router(root_router)
    app.include_router(health_router)

    return app
