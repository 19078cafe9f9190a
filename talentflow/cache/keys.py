"""Cache key derivation.

Every key is ``<namespace>:<segment>``. Namespaces keep families of keys
apart so that a glob such as ``api:/api/support*`` can only ever match
HTTP response entries and never an analysis result or a session snapshot.

Digests:
- Structured parameters are canonicalised as sorted-key compact JSON and
  hashed with SHA-256, truncated to 32 hex chars (128 bits).
- Free text is hashed with full SHA-256. Each text is framed with its
  length before joining, so ``("ab", "c")`` and ``("a", "bc")`` can never
  produce the same digest input.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any


class Namespace(StrEnum):
    CV_ANALYSIS = "cv_analysis"
    JD_ANALYSIS = "jd_analysis"
    CANDIDATE_RANKING = "candidate_ranking"
    API = "api"
    SESSION = "session"


NO_PARAMS = "no-params"
_PARAMS_DIGEST_LENGTH = 32
_FRAME_SEPARATOR = "\x1f"
_PART_SEPARATOR = "\x1e"
_GLOB_SPECIALS_RE = re.compile(r"([\\*?\[\]])")


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string, got {value!r}")
    return value


def canonical_json(value: Any) -> str:
    """Stable JSON encoding: sorted keys, no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def params_digest(params: Mapping[str, Any] | None) -> str:
    """Hash a parameter mapping independently of key insertion order."""
    if not params:
        return NO_PARAMS
    raw = canonical_json(dict(params))
    return hashlib.sha256(raw.encode()).hexdigest()[:_PARAMS_DIGEST_LENGTH]


def text_digest(*parts: str) -> str:
    """Full SHA-256 over length-framed text parts."""
    if not parts:
        raise ValueError("text_digest() needs at least one part")
    framed = _PART_SEPARATOR.join(
        f"{len(part)}{_FRAME_SEPARATOR}{part}" for part in parts
    )
    return hashlib.sha256(framed.encode()).hexdigest()


def request_params(
    query_items: Iterable[tuple[str, str]],
    path_params: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Merge query-string items and path params into one mapping.

    Repeated query keys become a list in request order. Path params win
    over query params of the same name.
    """
    merged: dict[str, Any] = {}
    for key, value in query_items:
        if key in merged:
            existing = merged[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                merged[key] = [existing, value]
        else:
            merged[key] = value
    if path_params:
        merged.update({k: str(v) for k, v in path_params.items()})
    return merged


def api_cache_key(path: str, params: Mapping[str, Any] | None = None) -> str:
    """Key for a cached GET response: ``api:<path>:<params digest>``."""
    _require_text(path, "path")
    return f"{Namespace.API}:{path}:{params_digest(params)}"


def escape_glob(text: str) -> str:
    """Backslash-escape ``* ? [ ] \\`` so ``text`` matches itself in a MATCH glob."""
    return _GLOB_SPECIALS_RE.sub(r"\\\1", text)


def api_invalidation_pattern(path: str) -> str:
    """Glob matching every cached response whose path starts with ``path``."""
    _require_text(path, "path")
    return f"{Namespace.API}:{escape_glob(path)}*"


def content_cache_key(namespace: Namespace | str, *texts: str) -> str:
    """Content-addressed key for an analysis result."""
    ns = Namespace(namespace)
    if ns in (Namespace.API, Namespace.SESSION):
        raise ValueError(f"namespace {ns} is not content-addressed")
    for index, text in enumerate(texts):
        if not isinstance(text, str):
            raise ValueError(f"text part {index} must be a string, got {type(text).__name__}")
    return f"{ns}:{text_digest(*texts)}"


def session_cache_key(user_id: Any) -> str:
    """Key for a user's session snapshot: ``session:<user_id>``."""
    if user_id is None:
        raise ValueError("user_id is required")
    return f"{Namespace.SESSION}:{_require_text(str(user_id), 'user_id')}"
