"""Direct access to the analysis gateway.

POST /api/analysis/cv    - Score one CV against a job description
POST /api/analysis/jd    - Parse a job description
POST /api/analysis/rank  - Rank candidates for a job description

Responses carry ``provenance`` (cache / external / fallback) next to the
result so callers can tell a degraded answer from an LLM one.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from talentflow.analysis.gateway import AnalysisGateway, AnalysisOutcome
from talentflow.analysis.operations import AnalysisOperation
from talentflow.analysis.schemas import CVAnalysisInput, JDAnalysisInput, RankingInput
from talentflow.api.deps import CurrentUser, get_current_user, get_gateway

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _envelope(outcome: AnalysisOutcome) -> dict[str, Any]:
    return {"success": True, "data": outcome.result, "provenance": outcome.provenance}


@router.post("/cv")
async def analyze_cv(
    body: CVAnalysisInput,
    user: CurrentUser = Depends(get_current_user),
    gateway: AnalysisGateway = Depends(get_gateway),
) -> dict[str, Any]:
    return _envelope(await gateway.run(AnalysisOperation.CV_ANALYSIS, body))


@router.post("/jd")
async def analyze_jd(
    body: JDAnalysisInput,
    user: CurrentUser = Depends(get_current_user),
    gateway: AnalysisGateway = Depends(get_gateway),
) -> dict[str, Any]:
    return _envelope(await gateway.run(AnalysisOperation.JD_ANALYSIS, body))


@router.post("/rank")
async def rank_candidates(
    body: RankingInput,
    user: CurrentUser = Depends(get_current_user),
    gateway: AnalysisGateway = Depends(get_gateway),
) -> dict[str, Any]:
    return _envelope(await gateway.run(AnalysisOperation.CANDIDATE_RANKING, body))
