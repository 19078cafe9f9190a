"""Per-user session snapshot cache.

Keeps a JSON snapshot of a user's profile under ``session:<user_id>`` so
that profile reads do not hit the user store on every request. Profile
routes are on the HTTP skip-list, so this is the only caching they get,
and it is keyed by identity.
"""

from __future__ import annotations

from typing import Any

import structlog

from talentflow.cache.backend import CacheBackend
from talentflow.cache.keys import session_cache_key

log = structlog.get_logger(__name__)


class SessionCache:
    def __init__(self, backend: CacheBackend, ttl: int) -> None:
        if ttl < 1:
            raise ValueError("session TTL must be a positive integer")
        self._backend = backend
        self._ttl = ttl

    async def get(self, user_id: Any) -> dict[str, Any] | None:
        snapshot = await self._backend.get(session_cache_key(user_id))
        if snapshot is not None and not isinstance(snapshot, dict):
            log.warning("cache.session.unexpected_type", user_id=str(user_id))
            return None
        return snapshot

    async def store(self, user_id: Any, snapshot: dict[str, Any]) -> bool:
        stored = await self._backend.set_with_ttl(session_cache_key(user_id), snapshot, self._ttl)
        if not stored:
            log.debug("cache.session.store_skipped", user_id=str(user_id))
        return stored

    async def invalidate(self, user_id: Any) -> bool:
        return await self._backend.delete(session_cache_key(user_id))
