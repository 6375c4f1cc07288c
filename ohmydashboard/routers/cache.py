"""Reader cache + storage backend observability API."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

logger = logging.getLogger("ohmydashboard.cache")

cache_router = APIRouter(prefix="/api/cache", tags=["cache"])


class InvalidateRequest(BaseModel):
    # One of "projects", "sessions", "messages", "messages:<sessionId>"; empty clears everything.
    key: Optional[str] = None


def _get_reader(request: Request):
    reader = getattr(request.app.state, "reader", None)
    if not reader:
        raise HTTPException(status_code=503, detail="Dashboard reader not initialized")
    return reader


@cache_router.get("/status")
async def get_cache_status(request: Request):
    """Return the resolved storage backend and live cache keys."""
    reader = _get_reader(request)
    return {"status": "active", **reader.describe()}


@cache_router.post("/invalidate")
async def invalidate_cache(request: Request, body: InvalidateRequest | None = None):
    """Drop cached listings so the next request reads storage again."""
    reader = _get_reader(request)
    key = ((body.key if body else None) or "").strip() or None
    reader.invalidate_cache(key)
    return {
        "status": "ok",
        "invalidated": key or "all",
        "cacheKeys": reader.describe()["cacheKeys"],
    }
