"""Cache middlewares for FastAPI.

ResponseCacheMiddleware serves GET responses from the cache and writes
fresh ones back. InvalidationMiddleware evicts cached responses after a
successful mutation. Both run cache I/O in Starlette background tasks
after the response has been sent, so a slow or dead store never delays
the client.

Caching rules:
- Only GET requests are cached; skip-listed paths always reach the handler
- Requests without an X-User-Id header are never served from or written
  to the cache, so the route's own identity check (401) still runs
- Only 200 responses with a JSON body are stored (errors are never cached)
- Responses carrying Set-Cookie are not stored
- The key is path + merged params only; anything per-caller must be on the
  skip-list or it would be served to other callers

Invalidation rules:
- Only POST/PUT/PATCH/DELETE, only when the handler returned 2xx
- Patterns: the route's base path, its own path, and configured
  cross-resource prefixes
- A failed delete is logged and not retried; stale entries then live until
  their TTL expires

Headers added to responses:
- X-Cache: HIT   - served from cache, handler not run
- X-Cache: MISS  - handler ran
- X-Cache: SKIP  - caching was not applicable
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from talentflow.cache.backend import CacheBackend
from talentflow.cache.keys import api_cache_key, request_params
from talentflow.cache.policy import RouteCachePolicy

log = structlog.get_logger(__name__)

CACHE_HEADER = "X-Cache"
IDENTITY_HEADER = "X-User-Id"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _attach_background(response: Response, task: BackgroundTask) -> None:
    """Run ``task`` after the response is sent, keeping any existing task."""
    if response.background is None:
        response.background = task
        return
    tasks = BackgroundTasks()
    tasks.add_task(response.background)
    tasks.add_task(task)
    response.background = tasks


def _is_json(response: Response) -> bool:
    return "application/json" in response.headers.get("content-type", "")


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """Cache-aside for read endpoints."""

    def __init__(
        self,
        app: ASGIApp,
        backend: CacheBackend,
        policy: RouteCachePolicy,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self._backend = backend
        self._policy = policy
        self._enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self._enabled or request.method != "GET" or self._policy.is_skipped(path):
            response = await call_next(request)
            response.headers[CACHE_HEADER] = "SKIP"
            return response

        if not request.headers.get(IDENTITY_HEADER, "").strip():
            # No caller identity - the handler decides (usually 401)
            response = await call_next(request)
            response.headers[CACHE_HEADER] = "SKIP"
            return response

        cache_key = api_cache_key(
            path,
            request_params(request.query_params.multi_items(), request.path_params),
        )

        # --- Cache lookup ---
        cached = await self._backend.get(cache_key)
        if cached is not None:
            log.debug("cache.middleware.hit", path=path, key=cache_key)
            return JSONResponse(content=cached, headers={CACHE_HEADER: "HIT"})

        # --- Cache miss - run the handler ---
        response = await call_next(request)
        response.headers[CACHE_HEADER] = "MISS"

        if (
            response.status_code != 200
            or not _is_json(response)
            or "set-cookie" in response.headers
        ):
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode()

        rebuilt = Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
        try:
            payload = json.loads(body)
        except ValueError as exc:
            log.warning("cache.middleware.unparseable_body", path=path, error=str(exc))
            return rebuilt

        ttl = self._policy.ttl_for(path)
        _attach_background(rebuilt, BackgroundTask(self._store, cache_key, payload, ttl, path))
        return rebuilt

    async def _store(self, cache_key: str, payload: Any, ttl: int, path: str) -> None:
        if await self._backend.set_with_ttl(cache_key, payload, ttl):
            log.debug("cache.middleware.stored", path=path, key=cache_key, ttl=ttl)
        else:
            log.warning("cache.middleware.store_failed", path=path, key=cache_key)


class InvalidationMiddleware(BaseHTTPMiddleware):
    """Write-through invalidation for mutating endpoints."""

    def __init__(
        self,
        app: ASGIApp,
        backend: CacheBackend,
        policy: RouteCachePolicy,
        extra_patterns: Sequence[str] = (),
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self._backend = backend
        self._policy = policy
        self._extra_patterns = tuple(extra_patterns)
        self._enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._enabled or request.method not in MUTATING_METHODS:
            return await call_next(request)

        response = await call_next(request)

        path = request.url.path
        if not 200 <= response.status_code < 300:
            log.debug(
                "cache.invalidation.skipped",
                path=path,
                method=request.method,
                status_code=response.status_code,
            )
            return response

        patterns = self._policy.invalidation_patterns(path, self._extra_patterns)
        _attach_background(response, BackgroundTask(self._invalidate, patterns, path))
        return response

    async def _invalidate(self, patterns: list[str], path: str) -> None:
        for pattern in patterns:
            if not await self._backend.delete_by_pattern(pattern):
                log.warning("cache.invalidation.failed", path=path, pattern=pattern)
        log.debug("cache.invalidation.done", path=path, patterns=patterns)
