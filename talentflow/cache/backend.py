"""Cache backend implementations.

Defines the CacheBackend ABC and three concrete implementations:
- RedisCacheBackend: Production backend using redis.asyncio with JSON values
- NullCacheBackend: Caching switched off by configuration
- InMemoryCacheBackend: Dict-based backend with TTL, for testing/dev

Every public operation is fail-open: a broken or missing store makes reads
miss and writes return False, it never raises into the request path.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

log = structlog.get_logger(__name__)

# Transport failures that mean the client is no longer usable
_TRANSPORT_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)

_DELETE_BATCH_SIZE = 500


def glob_regex(pattern: str) -> re.Pattern[str]:
    """Compile a Redis MATCH glob: ``*``, ``?``, ``[...]``, ``[^...]`` and ``\\x``."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        elif ch == "[" and (end := pattern.find("]", i + 1)) != -1:
            body = pattern[i + 1:end]
            negate = body.startswith("^")
            body = "".join("\\" + c if c in "\\[]^" else c for c in body[negate:])
            # An empty class matches nothing
            out.append(f"[{'^' if negate else ''}{body}]" if body else "(?!)")
            i = end + 1
            continue
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out), re.DOTALL)


def _valid_ttl(ttl: Any) -> bool:
    return isinstance(ttl, int) and not isinstance(ttl, bool) and ttl > 0


class CacheBackend(ABC):
    """Abstract interface all cache backends must implement."""

    name: str = "abstract"

    async def connect(self) -> Any | None:
        """Return a live handle, or None when the cache is unavailable."""
        return self

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return cached value for key, or None if missing, expired or unreadable."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        """Store value under key for ttl seconds. Returns False on any failure."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a single key. Deleting a missing key is a success."""

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> bool:
        """Delete all keys matching a glob. Zero matches is a success."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the store answers."""

    @abstractmethod
    async def info(self) -> dict[str, Any]:
        """Return backend-specific diagnostics."""

    async def close(self) -> None:
        """Release connections. Safe to call more than once."""


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisCacheBackend(CacheBackend):
    """Production cache backend backed by Redis.

    The client is created lazily on first use so import and app construction
    never block on the network. Connecting issues a PING; a failed probe
    leaves the backend disconnected and returns None, which callers treat as
    "cache disabled". Any transport error during an operation drops the
    client so the next call reconnects instead of reusing a broken handle.
    An empty URL means caching is not configured: connect() always returns
    None and every operation degrades to a miss.
    """

    name = "redis"

    def __init__(
        self,
        redis_url: str | None,
        *,
        connect_timeout: float = 5.0,
        command_timeout: float = 5.0,
        reconnect_interval: float = 5.0,
        scan_count: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._redis_url = redis_url or ""
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._reconnect_interval = reconnect_interval
        self._scan_count = scan_count
        self._clock = clock
        self._client: Any = None  # redis.asyncio.Redis once connected
        self._connected = False
        self._retry_at = 0.0
        self._connect_lock = asyncio.Lock()
        self._warned_unconfigured = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    async def connect(self) -> Any | None:
        if self.is_connected:
            return self._client

        if not self._redis_url:
            if not self._warned_unconfigured:
                log.warning("cache.redis.not_configured", reason="REDIS_URL is empty, caching disabled")
                self._warned_unconfigured = True
            return None

        async with self._connect_lock:
            if self.is_connected:
                return self._client

            now = self._clock()
            if now < self._retry_at:
                return None

            client = None
            try:
                client = aioredis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=self._connect_timeout,
                    socket_timeout=self._command_timeout,
                )
                await client.ping()
            except Exception as exc:
                log.warning("cache.redis.connect_failed", error=str(exc))
                self._retry_at = now + self._reconnect_interval
                if client is not None:
                    await self._close_client(client)
                return None

            self._client = client
            self._connected = True
            log.info("cache.redis.connected")
            return client

    async def _mark_disconnected(self, exc: BaseException) -> None:
        """Drop the current client after a transport error."""
        client, self._client = self._client, None
        self._connected = False
        log.warning("cache.redis.disconnected", error=str(exc))
        if client is not None:
            await self._close_client(client)

    @staticmethod
    async def _close_client(client: Any) -> None:
        try:
            await client.aclose()
        except Exception as exc:
            log.debug("cache.redis.close_failed", error=str(exc))

    async def get(self, key: str) -> Any | None:
        client = await self.connect()
        if client is None:
            return None
        try:
            raw = await client.get(key)
        except _TRANSPORT_ERRORS as exc:
            await self._mark_disconnected(exc)
            return None
        except Exception as exc:
            log.warning("cache.redis.get_failed", key=key, error=str(exc))
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            log.warning("cache.redis.corrupt_value", key=key, error=str(exc))
            return None

    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        if not _valid_ttl(ttl):
            log.error("cache.redis.invalid_ttl", key=key, ttl=ttl)
            return False
        try:
            serialised = json.dumps(value, default=str)
        except (TypeError, ValueError) as exc:
            log.warning("cache.redis.serialise_failed", key=key, error=str(exc))
            return False

        client = await self.connect()
        if client is None:
            return False
        try:
            await client.set(key, serialised, ex=ttl)
            return True
        except _TRANSPORT_ERRORS as exc:
            await self._mark_disconnected(exc)
            return False
        except Exception as exc:
            log.warning("cache.redis.set_failed", key=key, error=str(exc))
            return False

    async def delete(self, key: str) -> bool:
        client = await self.connect()
        if client is None:
            return False
        try:
            await client.delete(key)
            return True
        except _TRANSPORT_ERRORS as exc:
            await self._mark_disconnected(exc)
            return False
        except Exception as exc:
            log.warning("cache.redis.delete_failed", key=key, error=str(exc))
            return False

    async def delete_by_pattern(self, pattern: str) -> bool:
        """Resolve the pattern with SCAN, then DEL in batches."""
        client = await self.connect()
        if client is None:
            return False
        try:
            keys = [key async for key in client.scan_iter(match=pattern, count=self._scan_count)]
            for start in range(0, len(keys), _DELETE_BATCH_SIZE):
                await client.delete(*keys[start:start + _DELETE_BATCH_SIZE])
        except _TRANSPORT_ERRORS as exc:
            await self._mark_disconnected(exc)
            return False
        except Exception as exc:
            log.warning("cache.redis.delete_pattern_failed", pattern=pattern, error=str(exc))
            return False

        log.debug("cache.redis.pattern_deleted", pattern=pattern, deleted=len(keys))
        return True

    async def ping(self) -> bool:
        client = await self.connect()
        if client is None:
            return False
        try:
            return bool(await client.ping())
        except _TRANSPORT_ERRORS as exc:
            await self._mark_disconnected(exc)
            return False
        except Exception as exc:
            log.warning("cache.redis.ping_failed", error=str(exc))
            return False

    async def info(self) -> dict[str, Any]:
        base: dict[str, Any] = {"backend": self.name, "configured": bool(self._redis_url)}
        client = await self.connect()
        if client is None:
            return {**base, "connected": False}
        try:
            redis_info = await client.info()
            dbsize = await client.dbsize()
        except Exception as exc:
            if isinstance(exc, _TRANSPORT_ERRORS):
                await self._mark_disconnected(exc)
            return {**base, "connected": False, "error": str(exc)}
        return {
            **base,
            "connected": True,
            "db_size": dbsize,
            "used_memory_human": redis_info.get("used_memory_human", "unknown"),
            "connected_clients": redis_info.get("connected_clients", 0),
            "keyspace_hits": redis_info.get("keyspace_hits", 0),
            "keyspace_misses": redis_info.get("keyspace_misses", 0),
        }

    async def close(self) -> None:
        """Close the Redis connection pool."""
        client, self._client = self._client, None
        self._connected = False
        if client is not None:
            await self._close_client(client)
            log.info("cache.redis.closed")


# ---------------------------------------------------------------------------
# Null backend (cache switched off)
# ---------------------------------------------------------------------------


class NullCacheBackend(CacheBackend):
    """Backend used when caching is disabled: every read misses."""

    name = "disabled"

    async def connect(self) -> Any | None:
        return None

    async def get(self, key: str) -> Any | None:
        return None

    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_by_pattern(self, pattern: str) -> bool:
        return False

    async def ping(self) -> bool:
        return False

    async def info(self) -> dict[str, Any]:
        return {"backend": self.name, "configured": False, "connected": False}


# ---------------------------------------------------------------------------
# In-memory backend (testing / dev)
# ---------------------------------------------------------------------------


class _CacheEntry:
    """Single entry stored by InMemoryCacheBackend."""

    __slots__ = ("raw", "expires_at")

    def __init__(self, raw: str, expires_at: float) -> None:
        self.raw = raw
        self.expires_at = expires_at


class InMemoryCacheBackend(CacheBackend):
    """Dict-backed stand-in for Redis with TTL support.

    Values are stored JSON-encoded so callers see the same copy semantics
    and serialisation failures as with Redis. Expiry is evaluated against
    an injectable clock so tests can move time forward. Holds state for
    the life of the instance only; not for production use.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def _live(self, key: str) -> _CacheEntry | None:
        entry = self._store.get(key)
        if entry is not None and self._clock() >= entry.expires_at:
            del self._store[key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            raw = entry.raw
        try:
            return json.loads(raw)
        except ValueError as exc:
            log.warning("cache.memory.corrupt_value", key=key, error=str(exc))
            return None

    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        if not _valid_ttl(ttl):
            log.error("cache.memory.invalid_ttl", key=key, ttl=ttl)
            return False
        try:
            raw = json.dumps(value, default=str)
        except (TypeError, ValueError) as exc:
            log.warning("cache.memory.serialise_failed", key=key, error=str(exc))
            return False
        async with self._lock:
            self._store[key] = _CacheEntry(raw, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._store.pop(key, None)
        return True

    async def delete_by_pattern(self, pattern: str) -> bool:
        async with self._lock:
            matcher = glob_regex(pattern)
            doomed = [k for k in self._store if matcher.fullmatch(k)]
            for k in doomed:
                del self._store[k]
        log.debug("cache.memory.pattern_deleted", pattern=pattern, deleted=len(doomed))
        return True

    async def ping(self) -> bool:
        return True

    async def info(self) -> dict[str, Any]:
        async with self._lock:
            for key in list(self._store):
                self._live(key)
            total = self._hits + self._misses
            return {
                "backend": self.name,
                "configured": True,
                "connected": True,
                "db_size": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
            }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_cache_backend(settings: Any) -> CacheBackend:
    """Return the CacheBackend selected by settings.

    ``cache_enabled=False`` selects the null backend. Otherwise a Redis
    backend is returned even when REDIS_URL is empty: it reports itself
    as unconfigured and degrades every call to a miss.
    """
    if not getattr(settings, "cache_enabled", True):
        log.info("cache.backend_selected", backend=NullCacheBackend.name)
        return NullCacheBackend()

    redis_url: str = getattr(settings, "redis_url", "") or ""
    log.info(
        "cache.backend_selected",
        backend=RedisCacheBackend.name,
        configured=bool(redis_url),
        url=redis_url.split("@")[-1] if redis_url else None,
    )
    return RedisCacheBackend(
        redis_url,
        connect_timeout=settings.redis_connect_timeout_seconds,
        command_timeout=settings.redis_command_timeout_seconds,
        reconnect_interval=settings.cache_reconnect_interval_seconds,
    )
