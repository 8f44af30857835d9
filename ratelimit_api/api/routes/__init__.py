from __future__ import annotations

from ratelimit_api.api.routes.health import router as health_router
from ratelimit_api.api.routes.root import router as root_router

__all__ = ["health_router", "root_router"]
