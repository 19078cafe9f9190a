"""Response Caching Layer.

Public API:
    CacheBackend             - Abstract base for all backends
    RedisCacheBackend        - Redis-backed production cache
    NullCacheBackend         - Used when caching is disabled
    InMemoryCacheBackend     - Dict-backed cache for dev/testing
    get_cache_backend        - Factory: selects backend from settings

    RouteCachePolicy         - Per-route TTLs, skip-list, invalidation map
    SessionCache             - Per-user profile snapshots

    ResponseCacheMiddleware  - Cache-aside for GET responses
    InvalidationMiddleware   - Evicts cached responses after mutations
"""

from talentflow.cache.backend import (
    CacheBackend,
    InMemoryCacheBackend,
    NullCacheBackend,
    RedisCacheBackend,
    get_cache_backend,
)
from talentflow.cache.middleware import InvalidationMiddleware, ResponseCacheMiddleware
from talentflow.cache.policy import RouteCachePolicy
from talentflow.cache.session import SessionCache

__all__ = [
    "CacheBackend",
    "RedisCacheBackend",
    "NullCacheBackend",
    "InMemoryCacheBackend",
    "get_cache_backend",
    "RouteCachePolicy",
    "SessionCache",
    "ResponseCacheMiddleware",
    "InvalidationMiddleware",
]
