"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: reports cache store reachability

The cache is fail-open, so an unreachable store degrades performance but
does not make the service unready; ``ready`` stays true and ``cache``
says what is going on.

These are public endpoints - no auth required.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from talentflow.api.deps import get_cache_backend
from talentflow.cache.backend import CacheBackend

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(backend: CacheBackend = Depends(get_cache_backend)) -> dict:
    """Readiness probe - pings the cache store."""
    cache_ok = await backend.ping()
    return {
        "status": "ready",
        "cache": {"backend": backend.name, "status": "ok" if cache_ok else "unavailable"},
        "timestamp": datetime.now(UTC).isoformat(),
    }
