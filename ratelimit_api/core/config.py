"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "ratelimit-api",
        description="Service name used as the OpenAPI title",
    )
    host: str = Field(
        "0.0.0.0",
        description="Interface uvicorn binds to when started via main.py",
    )
    port: int = Field(
        5000,
        description="Port uvicorn listens on when started via main.py",
        ge=1,
        le=65535,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' (structured) or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection settings for the shared counter store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Per-command socket timeout; a timeout counts as store outage",
        gt=0,
    )
    max_connections: int = Field(
        50,
        description="Upper bound of the shared connection pool",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting policy and HTTP behaviour.

    Policy values are validated again when the limiter is built, where a bad
    value raises ConfigurationError instead of a pydantic ValidationError.
    """

    enabled: bool = Field(
        True,
        description="Enable the rate limiting stage",
    )
    store: str = Field(
        "redis",
        description="Counter store backend: 'redis' (shared) or 'memory' (per-process)",
    )
    window_ms: int = Field(
        15 * 60 * 1000,
        description="Fixed window length in milliseconds",
    )
    max_requests: int = Field(
        100,
        description="Maximum requests per client key per window",
    )
    key_prefix: str = Field(
        "rl:",
        description="Namespace prefix for counter keys in the store",
    )
    fail_open: bool = Field(
        False,
        description="Allow traffic when the store is unavailable (default rejects)",
    )
    key_strategy: str = Field(
        "ip",
        description="Client key extraction: 'ip', 'forwarded' or 'api_key'",
    )
    standard_headers: bool = Field(
        True,
        description="Send RateLimit-* headers",
    )
    legacy_headers: bool = Field(
        False,
        description="Send X-RateLimit-* headers",
    )
    message: str = Field(
        "Too many requests. Please try again later.",
        description="Message returned in the 429 body",
    )
    exempt_paths: str = Field(
        "/health,/health/ready",
        description="Comma-separated request paths that bypass rate limiting",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


def _build_app_settings() -> AppSettings:
    return AppSettings()


def _build_log_settings() -> LogSettings:
    return LogSettings()


def _build_redis_settings() -> RedisSettings:
    return RedisSettings()


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
