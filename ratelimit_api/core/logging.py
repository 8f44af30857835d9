"""Structured JSON logging for the rate limit server.

One handler on the root logger, two filters in front of it:
- RequestIdFilter stamps the request correlation id kept in a contextvar
- RedactionFilter blanks secret-bearing fields and masks credentials in
  connection URLs (redis://:password@host) wherever they appear in extras

Limiter events (``rate_limit.*``) carry their context as flat extras such as
``key_type``, ``key_hash`` and ``client_ip``; the formatter writes each extra
as a top-level JSON key.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ratelimit_api.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "authorization",
        "password",
        "token",
        "cookie",
    }
)

# scheme://[user]:password@ -> keep scheme and user, mask the password
_URL_CREDENTIALS = re.compile(r"(?P<prefix>[a-zA-Z][a-zA-Z0-9+.-]*://[^:/@\s]*):[^@/\s]*@")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def mask_url_credentials(value: str) -> str:
    """Replace the password part of any URL in ``value`` with ``***``.

    Examples:
        >>> mask_url_credentials("redis://:hunter2@cache:6379/0")
        'redis://:***@cache:6379/0'
        >>> mask_url_credentials("redis://cache:6379/0")
        'redis://cache:6379/0'
    """
    return _URL_CREDENTIALS.sub(r"\g<prefix>:***@", value)


def _record_extras(record: LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class RedactionFilter(logging.Filter):
    """Blank sensitive extras and mask URL credentials before formatting."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _record_extras(record).items():
            if key.lower() in SENSITIVE_KEYS:
                setattr(record, key, REDACTED)
            elif isinstance(value, str) and "://" in value:
                setattr(record, key, mask_url_credentials(value))
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line: envelope fields, then extras."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_record_extras(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() == "file":
        file_path = Path(log_settings.file_path or "logs/app.log")
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if log_settings.max_bytes:
            return RotatingFileHandler(
                file_path,
                maxBytes=log_settings.max_bytes,
                backupCount=log_settings.backup_count,
                encoding="utf-8",
            )
        return logging.FileHandler(file_path, encoding="utf-8")

    return logging.StreamHandler(sys.stdout)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the root handler with request id stamping and redaction.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RedactionFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records out of ours
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
