from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: the process is up and the counter store answers.

    Returns 503 while the store is unreachable so load balancers can take
    the instance out of rotation instead of letting it reject (or, with
    fail-open, pass) all traffic.
    """

    store_ok = await request.app.state.rate_limiter.store.ping()
    if store_ok:
        return JSONResponse(status_code=200, content={"status": "ok", "store": "ok"})
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "store": "unavailable"},
    )
