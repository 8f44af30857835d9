"""Global exception handlers for consistent error responses.

This is the single error boundary of the pipeline: anything a stage or
route raises ends up here.

Design:
- AppError subclasses → mapped HTTP status (400, 500, 503)
- Unexpected Exception → generic 500 (safety net), details only in logs
- All responses include request_id for tracing
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ratelimit_api.core.errors import AppError, ConfigurationError, StoreUnavailableError
from ratelimit_api.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _resolve_request_id(request: Request) -> str | None:
    # The catch-all handler runs outside the request id middleware, after the
    # contextvar has been cleared; fall back to the copy kept on request.state.
    request_id = get_request_id()
    if request_id:
        return request_id
    state_id = getattr(request.state, "request_id", None)
    return state_id if isinstance(state_id, str) else None


def _status_for(exc: AppError) -> int:
    if isinstance(exc, StoreUnavailableError):
        return 503
    if isinstance(exc, ConfigurationError):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - StoreUnavailableError → 503 Service Unavailable
    - ConfigurationError → 500 Internal Server Error
    - any other AppError → 400 Bad Request

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)
    request_id = _resolve_request_id(request)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": request_id,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": request_id,
    }

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the error type, message and traceback for debugging while returning
    a generic message. No stack traces or internal messages reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    request_id = _resolve_request_id(request)

    logger.error(
        "unhandled_exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": request_id,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": request_id,
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
