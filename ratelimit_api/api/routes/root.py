from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Root"])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Hello from FastAPI!"
