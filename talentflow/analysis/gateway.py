"""Memoizing analysis gateway.

Every analysis call goes through ``AnalysisGateway.run``:

    LOOKUP -> HIT                   -> return cached result
           -> MISS -> LLM success   -> store with the analysis TTL
                   -> LLM failure   -> local fallback, store with the fallback TTL

A failure is anything that prevents a valid result: timeout, provider
error, text without a JSON object, JSON that does not match the
operation's response model, or a response the finaliser rejects. The
caller always gets a result of the same shape.

Per miss there is exactly one LLM attempt and exactly one cache write
attempt. Concurrent identical misses are not coalesced.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, NamedTuple

import structlog
from pydantic import BaseModel, ValidationError

from talentflow.analysis.llm import Analyzer, LLMResponseError
from talentflow.analysis.operations import AnalysisOperation, OperationPolicy
from talentflow.cache.backend import CacheBackend
from talentflow.cache.keys import content_cache_key

log = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class Provenance(StrEnum):
    CACHE = "cache"
    EXTERNAL = "external"
    FALLBACK = "fallback"


class AnalysisOutcome(NamedTuple):
    result: dict[str, Any]
    provenance: Provenance
    key: str


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first JSON object in ``text``, tolerating Markdown fences.

    Raises:
        LLMResponseError: No decodable JSON object was found.
    """
    candidates = [m.group(1) for m in _FENCE_RE.finditer(text)] + [text]
    decoder = json.JSONDecoder()
    for candidate in candidates:
        start = candidate.find("{")
        while start != -1:
            try:
                value, _ = decoder.raw_decode(candidate, start)
            except ValueError:
                start = candidate.find("{", start + 1)
                continue
            if isinstance(value, dict):
                return value
            start = candidate.find("{", start + 1)
    raise LLMResponseError("no JSON object found in LLM response")


class AnalysisGateway:
    """Cache-aside front for the LLM analysis operations."""

    def __init__(
        self,
        backend: CacheBackend,
        analyzer: Analyzer,
        policies: Mapping[AnalysisOperation, OperationPolicy],
    ) -> None:
        self._backend = backend
        self._analyzer = analyzer
        self._policies = dict(policies)

    def policy(self, operation: AnalysisOperation | str) -> OperationPolicy:
        try:
            return self._policies[AnalysisOperation(operation)]
        except (KeyError, ValueError) as exc:
            raise ValueError(f"unknown analysis operation: {operation!r}") from exc

    def cache_key(self, operation: AnalysisOperation | str, payload: BaseModel) -> str:
        policy = self.policy(operation)
        return content_cache_key(policy.namespace, *policy.key_material(payload))

    async def run(
        self,
        operation: AnalysisOperation | str,
        payload: BaseModel | Mapping[str, Any],
    ) -> AnalysisOutcome:
        policy = self.policy(operation)
        data = (
            payload
            if isinstance(payload, policy.input_model)
            else policy.input_model.model_validate(payload)
        )
        key = content_cache_key(policy.namespace, *policy.key_material(data))

        # --- Lookup ---
        cached = await self._backend.get(key)
        if cached is not None:
            try:
                result = policy.result_model.model_validate(cached).model_dump(mode="json")
            except ValidationError as exc:
                log.warning(
                    "analysis.cache.invalid_entry",
                    operation=policy.operation,
                    key=key,
                    error_count=exc.error_count(),
                )
            else:
                log.info("analysis.cache_hit", operation=policy.operation, key=key)
                return AnalysisOutcome(result, Provenance.CACHE, key)

        # --- Miss: one external attempt ---
        try:
            text = await self._analyzer.analyze(
                policy.build_messages(data),
                max_tokens=policy.max_tokens,
                temperature=policy.temperature,
            )
            parsed = policy.response_model.model_validate(extract_json_object(text))
            final = policy.finalize(data, parsed)
            provenance, ttl = Provenance.EXTERNAL, policy.ttl
        except Exception as exc:
            log.warning(
                "analysis.fallback_used",
                operation=policy.operation,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            final = policy.finalize(data, policy.fallback(data))
            provenance, ttl = Provenance.FALLBACK, policy.fallback_ttl

        result = final.model_dump(mode="json")

        # --- Store: one write attempt ---
        if not await self._backend.set_with_ttl(key, result, ttl):
            log.warning("analysis.cache_store_failed", operation=policy.operation, key=key)

        log.info(
            "analysis.completed",
            operation=policy.operation,
            provenance=provenance,
            key=key,
            ttl=ttl,
        )
        return AnalysisOutcome(result, provenance, key)

    async def analyze(
        self,
        operation: AnalysisOperation | str,
        payload: BaseModel | Mapping[str, Any],
    ) -> dict[str, Any]:
        outcome = await self.run(operation, payload)
        return outcome.result

    async def analyze_cv(self, cv_text: str, jd_text: str) -> dict[str, Any]:
        return await self.analyze(
            AnalysisOperation.CV_ANALYSIS, {"cv_text": cv_text, "jd_text": jd_text}
        )

    async def analyze_jd(self, jd_text: str) -> dict[str, Any]:
        return await self.analyze(AnalysisOperation.JD_ANALYSIS, {"jd_text": jd_text})

    async def rank_candidates(
        self, jd_text: str, candidates: list[Mapping[str, Any]]
    ) -> dict[str, Any]:
        return await self.analyze(
            AnalysisOperation.CANDIDATE_RANKING,
            {"jd_text": jd_text, "candidates": list(candidates)},
        )
