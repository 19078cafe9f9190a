"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Connect the cache store (fail-open: a dead store is logged, not fatal)

Shutdown order:
1. Close the cache store client

Request path (outermost first):
    RequestIdMiddleware -> InvalidationMiddleware -> ResponseCacheMiddleware -> routes
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from talentflow.analysis.gateway import AnalysisGateway
from talentflow.analysis.llm import Analyzer, LLMClient
from talentflow.analysis.operations import build_policies
from talentflow.api.router import build_api_router
from talentflow.cache.backend import CacheBackend, get_cache_backend
from talentflow.cache.middleware import InvalidationMiddleware, ResponseCacheMiddleware
from talentflow.cache.policy import RouteCachePolicy
from talentflow.cache.session import SessionCache
from talentflow.config import Settings, get_settings
from talentflow.repositories import Repositories
from talentflow.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings

    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    backend: CacheBackend = app.state.cache_backend
    log.info(
        "app.starting",
        environment=settings.environment,
        cache_backend=backend.name,
        cache_enabled=settings.cache_enabled,
    )

    if await backend.connect() is None:
        log.warning("app.cache_unavailable", backend=backend.name)

    log.info("app.ready")
    yield

    await backend.close()
    log.info("app.shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    cache_backend: CacheBackend | None = None,
    analyzer: Analyzer | None = None,
    repositories: Repositories | None = None,
) -> FastAPI:
    """Application factory.

    Collaborators default to the production wiring and can be replaced
    by tests.
    """
    settings = settings or get_settings()
    backend = cache_backend or get_cache_backend(settings)
    policy = RouteCachePolicy.from_settings(settings)

    app = FastAPI(
        title="TalentFlow API",
        description="HR and recruiting backend with cached LLM analysis.",
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.cache_backend = backend
    app.state.cache_policy = policy
    app.state.session_cache = SessionCache(backend, settings.cache_session_ttl_seconds)
    app.state.analysis_gateway = AnalysisGateway(
        backend,
        analyzer or LLMClient(settings),
        build_policies(settings),
    )
    app.state.repositories = repositories or Repositories()

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    # Serve cached GET responses and write fresh ones back
    app.add_middleware(
        ResponseCacheMiddleware,
        backend=backend,
        policy=policy,
        enabled=settings.cache_enabled,
    )

    # Evict cached responses after successful mutations
    app.add_middleware(
        InvalidationMiddleware,
        backend=backend,
        policy=policy,
        enabled=settings.cache_enabled,
    )

    # Unique request ID for log correlation
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(build_api_router(settings.api_prefix))

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
