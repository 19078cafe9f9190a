"""Operation-policy table for the analysis gateway.

Each analysis operation is described by one ``OperationPolicy``: where
its results live in the cache, for how long, how to ask the LLM, how to
validate the answer, how to degrade when the LLM is not usable, and how
to turn either answer into the public result shape.

Adding an operation means adding a row here; the gateway itself never
branches on the operation.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from talentflow.analysis import heuristics
from talentflow.analysis.schemas import (
    CVAnalysisInput,
    CVAnalysisResult,
    CVScoreResponse,
    JDAnalysisInput,
    JDAnalysisResponse,
    JDAnalysisResult,
    RankedCandidate,
    RankingInput,
    RankingResponse,
    RankingResult,
)
from talentflow.cache.keys import Namespace
from talentflow.config import Settings


class AnalysisOperation(StrEnum):
    CV_ANALYSIS = "cv_analysis"
    JD_ANALYSIS = "jd_analysis"
    CANDIDATE_RANKING = "candidate_ranking"


@dataclass(frozen=True)
class OperationPolicy:
    operation: AnalysisOperation
    namespace: Namespace
    ttl: int
    fallback_ttl: int
    input_model: type[BaseModel]
    response_model: type[BaseModel]
    result_model: type[BaseModel]
    key_material: Callable[[Any], tuple[str, ...]]
    build_messages: Callable[[Any], list[dict[str, str]]]
    fallback: Callable[[Any], BaseModel]
    finalize: Callable[[Any, Any], BaseModel]
    max_tokens: int = 800
    temperature: float = 0.2


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_CV_SYSTEM = (
    "You are an expert HR analyst who scores CVs against job descriptions. "
    "Always return valid JSON only."
)
_JD_SYSTEM = "You are an expert HR analyst who parses job descriptions. Return valid JSON only."
_RANK_SYSTEM = (
    "You are an expert HR manager who ranks candidates based on job fit. Return valid JSON only."
)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _cv_messages(data: CVAnalysisInput, limit: int) -> list[dict[str, str]]:
    prompt = (
        "Score this CV against the job description on a 0-10 scale.\n\n"
        f"JOB DESCRIPTION:\n{_truncate(data.jd_text, limit)}\n\n"
        f"CV:\n{_truncate(data.cv_text, limit)}\n\n"
        "Return JSON with exactly these fields:\n"
        '{"score": <0-10>, "recommendation": "Highly Recommended|Recommended|Consider|Not Recommended", '
        '"matched_skills": [..], "missing_skills": [..], "summary": "<two sentences>"}'
    )
    return [{"role": "system", "content": _CV_SYSTEM}, {"role": "user", "content": prompt}]


def _jd_messages(data: JDAnalysisInput, limit: int) -> list[dict[str, str]]:
    prompt = (
        "Extract the structured requirements from this job description.\n\n"
        f"{_truncate(data.jd_text, limit)}\n\n"
        "Return JSON with exactly these fields:\n"
        '{"job_title": "..", "required_skills": [..], "preferred_skills": [..], '
        '"experience_required": "..", "education_required": "..", "key_responsibilities": [..]}'
    )
    return [{"role": "system", "content": _JD_SYSTEM}, {"role": "user", "content": prompt}]


def _rank_messages(data: RankingInput, limit: int) -> list[dict[str, str]]:
    per_candidate = max(200, limit // len(data.candidates))
    summary = [
        {
            "candidate_id": c.candidate_id,
            "name": c.name,
            "cv_excerpt": _truncate(c.cv_text, per_candidate),
        }
        for c in data.candidates
    ]
    prompt = (
        "Rank these candidates from BEST to WORST fit for the job.\n\n"
        f"JOB DESCRIPTION:\n{_truncate(data.jd_text, limit)}\n\n"
        f"CANDIDATES:\n{json.dumps(summary, indent=2)}\n\n"
        "Every candidate_id must appear exactly once. Return JSON:\n"
        '{"ranking": [{"candidate_id": "..", "rank": 1, "ranking_reason": "..", '
        '"recommendation": ".."}], "overall_assessment": ".."}'
    )
    return [{"role": "system", "content": _RANK_SYSTEM}, {"role": "user", "content": prompt}]


# ---------------------------------------------------------------------------
# Finalisers
# ---------------------------------------------------------------------------


def finalize_cv(data: CVAnalysisInput, scored: CVScoreResponse) -> CVAnalysisResult:
    """Merge an LLM (or fallback) score with locally extracted CV details."""
    score = scored.score
    matched = list(scored.matched_skills)
    return CVAnalysisResult(
        name=heuristics.extract_name(data.cv_text) or heuristics.NOT_FOUND,
        email=heuristics.extract_email(data.cv_text) or heuristics.NOT_FOUND,
        phone=heuristics.extract_phone(data.cv_text) or heuristics.NOT_FOUND,
        score=round(score * 10),
        score_out_of_10=score,
        skills_match=min(100, len(matched) * 10),
        experience_match=round(score * 8),
        education_match=round(score * 9),
        experience_years=heuristics.extract_experience_years(data.cv_text),
        education=heuristics.extract_education(data.cv_text),
        strengths=[f"{len(matched)} relevant skills", "Professional background"],
        weaknesses=list(scored.missing_skills[:3]),
        skills_matched=matched,
        skills_missing=list(scored.missing_skills),
        recommendation=scored.recommendation,
        summary=scored.summary,
    )


def finalize_jd(data: JDAnalysisInput, parsed: JDAnalysisResponse) -> JDAnalysisResult:
    return JDAnalysisResult(**parsed.model_dump())


def finalize_ranking(data: RankingInput, ranked: RankingResponse) -> RankingResult:
    """Attach names and order by rank.

    Raises:
        ValueError: The ranking does not cover the input candidates exactly once.
    """
    expected = [c.candidate_id for c in data.candidates]
    returned = [entry.candidate_id for entry in ranked.ranking]
    if sorted(returned) != sorted(expected):
        raise ValueError(f"ranking covers {sorted(returned)}, expected {sorted(expected)}")

    names = {c.candidate_id: c.name for c in data.candidates}
    ordered = sorted(ranked.ranking, key=lambda entry: (entry.rank, expected.index(entry.candidate_id)))
    return RankingResult(
        candidates=[
            RankedCandidate(
                candidate_id=entry.candidate_id,
                name=names[entry.candidate_id],
                rank=position,
                ranking_reason=entry.ranking_reason,
                recommendation=entry.recommendation,
            )
            for position, entry in enumerate(ordered, start=1)
        ],
        overall_assessment=ranked.overall_assessment,
    )


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


def _ranking_key_material(data: RankingInput) -> tuple[str, ...]:
    parts = [data.jd_text]
    for candidate in data.candidates:
        parts.extend((candidate.candidate_id, candidate.name, candidate.cv_text))
    return tuple(parts)


def build_policies(settings: Settings) -> dict[AnalysisOperation, OperationPolicy]:
    """Build the policy table from settings."""
    limit = settings.llm_max_input_chars
    ttl = settings.cache_analysis_ttl_seconds
    fallback_ttl = settings.cache_fallback_ttl_seconds

    return {
        AnalysisOperation.CV_ANALYSIS: OperationPolicy(
            operation=AnalysisOperation.CV_ANALYSIS,
            namespace=Namespace.CV_ANALYSIS,
            ttl=ttl,
            fallback_ttl=fallback_ttl,
            input_model=CVAnalysisInput,
            response_model=CVScoreResponse,
            result_model=CVAnalysisResult,
            key_material=lambda data: (data.cv_text, data.jd_text),
            build_messages=lambda data: _cv_messages(data, limit),
            fallback=heuristics.fallback_cv_score,
            finalize=finalize_cv,
        ),
        AnalysisOperation.JD_ANALYSIS: OperationPolicy(
            operation=AnalysisOperation.JD_ANALYSIS,
            namespace=Namespace.JD_ANALYSIS,
            ttl=ttl,
            fallback_ttl=fallback_ttl,
            input_model=JDAnalysisInput,
            response_model=JDAnalysisResponse,
            result_model=JDAnalysisResult,
            key_material=lambda data: (data.jd_text,),
            build_messages=lambda data: _jd_messages(data, limit),
            fallback=heuristics.fallback_jd_analysis,
            finalize=finalize_jd,
            max_tokens=600,
        ),
        AnalysisOperation.CANDIDATE_RANKING: OperationPolicy(
            operation=AnalysisOperation.CANDIDATE_RANKING,
            namespace=Namespace.CANDIDATE_RANKING,
            ttl=ttl,
            fallback_ttl=fallback_ttl,
            input_model=RankingInput,
            response_model=RankingResponse,
            result_model=RankingResult,
            key_material=_ranking_key_material,
            build_messages=lambda data: _rank_messages(data, limit),
            fallback=heuristics.fallback_ranking,
            finalize=finalize_ranking,
            max_tokens=1200,
            temperature=0.1,
        ),
    }
