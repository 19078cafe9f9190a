"""Cache management API endpoints.

Admin-only endpoints for inspecting and evicting cached entries.

GET  /api/cache/stats       - Backend diagnostics (admin only)
POST /api/cache/invalidate  - Delete cached entries by prefix (admin only)

``/api/cache`` is on the HTTP cache skip-list, so stats are always live.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from talentflow.api.deps import CurrentUser, get_cache_backend, require_admin
from talentflow.cache.backend import CacheBackend
from talentflow.cache.keys import Namespace

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class CacheStatsResponse(BaseModel):
    backend: str
    configured: bool
    connected: bool
    db_size: int = 0
    used_memory_human: str = "n/a"
    extra: dict[str, Any] = {}


class InvalidateRequest(BaseModel):
    namespace: Namespace = Namespace.API
    prefix: str = Field(default="", max_length=500)


class InvalidateResponse(BaseModel):
    pattern: str
    invalidated: bool
    message: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/stats",
    response_model=CacheStatsResponse,
    summary="Cache statistics (admin only)",
)
async def get_cache_stats(
    current_user: CurrentUser = Depends(require_admin),
    backend: CacheBackend = Depends(get_cache_backend),
) -> CacheStatsResponse:
    """Return backend diagnostics; useful for checking whether Redis is reachable."""
    info = await backend.info()
    known = {"backend", "configured", "connected", "db_size", "used_memory_human"}
    return CacheStatsResponse(
        backend=str(info.get("backend", "unknown")),
        configured=bool(info.get("configured", False)),
        connected=bool(info.get("connected", False)),
        db_size=int(info.get("db_size", 0) or 0),
        used_memory_human=str(info.get("used_memory_human", "n/a")),
        extra={k: v for k, v in info.items() if k not in known},
    )


@router.post(
    "/invalidate",
    response_model=InvalidateResponse,
    summary="Invalidate cached entries (admin only)",
)
async def invalidate_cache(
    body: InvalidateRequest,
    current_user: CurrentUser = Depends(require_admin),
    backend: CacheBackend = Depends(get_cache_backend),
) -> InvalidateResponse:
    """Delete every entry under ``<namespace>:<prefix>*``.

    An empty prefix clears the whole namespace, e.g. all cached HTTP
    responses or all analysis results of one kind.
    """
    if any(ch in body.prefix for ch in "*?[]"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="prefix must not contain glob characters",
        )

    pattern = f"{body.namespace}:{body.prefix}*"
    invalidated = await backend.delete_by_pattern(pattern)

    log.info(
        "cache.admin.invalidate",
        admin_user_id=current_user.id,
        pattern=pattern,
        invalidated=invalidated,
    )
    return InvalidateResponse(
        pattern=pattern,
        invalidated=invalidated,
        message="Cache entries invalidated" if invalidated else "Cache store unavailable",
    )
