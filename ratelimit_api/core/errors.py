"""Application-level exception types.

This module defines domain errors used across the limiter, its stores and
the HTTP layer, enabling consistent error handling, logging, and API
responses.

Note that exceeding a rate limit is *not* an error: it is a regular
``RateLimitDecision`` with ``allowed=False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    field: str
    value: Any
    backend: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Raised when the limiter policy or server wiring is invalid.

    Fatal at startup: the app must not accept traffic with a bad policy.
    """


class StoreUnavailableError(AppError):
    """Raised when the shared counter store cannot be reached or times out."""
