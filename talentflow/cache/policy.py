"""Route-level cache policy for the HTTP middlewares.

Answers three questions for a request path:
- may a GET on this path be cached at all (skip-list)?
- for how long (longest matching prefix in the route TTL table)?
- which key families must a successful mutation on this path evict?
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from talentflow.cache.keys import api_invalidation_pattern
from talentflow.config import Settings

_PER_CALLER_SEGMENT_PREFIX = "my-"


@dataclass(frozen=True)
class RouteCachePolicy:
    default_ttl: int
    api_prefix: str = ""
    route_ttls: Mapping[str, int] = field(default_factory=dict)
    skip_paths: tuple[str, ...] = ()
    invalidation_map: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_ttl < 1:
            raise ValueError("default_ttl must be a positive integer")
        for path, ttl in self.route_ttls.items():
            if not isinstance(ttl, int) or ttl < 1:
                raise ValueError(f"TTL for {path} must be a positive integer, got {ttl!r}")

    @classmethod
    def from_settings(cls, settings: Settings) -> RouteCachePolicy:
        return cls(
            default_ttl=settings.cache_api_ttl_seconds,
            api_prefix=settings.api_prefix,
            route_ttls=dict(settings.cache_route_ttls),
            skip_paths=tuple(settings.cache_skip_paths),
            invalidation_map={k: tuple(v) for k, v in settings.cache_invalidation_map.items()},
        )

    def is_skipped(self, path: str) -> bool:
        """Per-caller paths are never cached: the key carries no identity."""
        if any(fragment in path for fragment in self.skip_paths):
            return True
        return any(
            segment.startswith(_PER_CALLER_SEGMENT_PREFIX)
            for segment in path.split("/")
        )

    def ttl_for(self, path: str) -> int:
        best: str | None = None
        for prefix in self.route_ttls:
            if _has_prefix(path, prefix) and (best is None or len(prefix) > len(best)):
                best = prefix
        return self.route_ttls[best] if best is not None else self.default_ttl

    def base_path(self, path: str) -> str:
        """API prefix plus the first path segment, i.e. the router mount point."""
        prefix = self.api_prefix if _has_prefix(path, self.api_prefix) else ""
        first = path[len(prefix):].lstrip("/").split("/", 1)[0]
        if not first:
            return prefix or "/"
        return f"{prefix}/{first}"

    def invalidation_patterns(self, path: str, extra: Iterable[str] = ()) -> list[str]:
        """Patterns a successful mutation on ``path`` must delete, deduplicated."""
        targets = [self.base_path(path), path]
        for prefix, related in self.invalidation_map.items():
            if _has_prefix(path, prefix):
                targets.extend(related)
        patterns = [api_invalidation_pattern(t) for t in targets]
        patterns.extend(extra)
        return list(dict.fromkeys(patterns))


def _has_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix test: ``/api/support`` does not match ``/api/supportx``."""
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/") or not prefix
