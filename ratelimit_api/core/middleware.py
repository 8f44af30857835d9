"""HTTP middleware for request correlation and access logging.

The request pipeline is registered explicitly in ``create_app`` and runs in
this order for every request:

    request_id_middleware -> request_logging_middleware
        -> rate_limit_middleware -> route -> exception handlers

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from ratelimit_api.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the configured request id header (X-Request-ID by
    default) that value is used, otherwise a UUID is generated. The id is
    stored in contextvars for log correlation and echoed back in the
    response headers together with the request duration.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    request.state.request_id = request_id
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def request_logging_middleware(request: Request, call_next) -> Response:
    """Log one line when a request arrives and one when its response leaves."""

    client_ip = request.client.host if request.client else "unknown"
    logger.info(
        "http.request",
        extra={
            "request_method": request.method,
            "request_path": request.url.path,
            "client_ip": client_ip,
        },
    )

    start = time.perf_counter()
    response: Response = await call_next(request)

    logger.info(
        "http.response",
        extra={
            "request_method": request.method,
            "request_path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        },
    )
    return response
