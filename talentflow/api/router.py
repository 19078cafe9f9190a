"""Main API router - aggregates all sub-routers.

Application routes are mounted under the configured API prefix (``/api``
by default); health checks are mounted there too so probes can reach
them next to the API.
"""

from __future__ import annotations

from fastapi import APIRouter

from talentflow.api import analysis, analytics, auth, cache, cv_intelligence, health, support


def build_api_router(prefix: str) -> APIRouter:
    api_router = APIRouter(prefix=prefix)
    api_router.include_router(health.router)
    api_router.include_router(auth.router)
    api_router.include_router(cv_intelligence.router)
    api_router.include_router(analysis.router)
    api_router.include_router(support.router)
    api_router.include_router(analytics.router)
    api_router.include_router(cache.router)
    return api_router
