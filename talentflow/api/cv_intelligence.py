"""CV intelligence endpoints: batches of CVs scored against one job.

POST /api/cv-intelligence/batch                     - Create a batch (201)
GET  /api/cv-intelligence/batches                   - List batches (HTTP cached)
GET  /api/cv-intelligence/batch/{id}/candidates     - Candidates of a batch (HTTP cached)
POST /api/cv-intelligence/batch/{id}/process        - Analyse CVs and rank them

Batch listings are organisation-wide, not per caller, which is what makes
them safe to cache under a path-only key. Every POST here evicts the
cached listings through the invalidation middleware.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from talentflow.analysis.gateway import AnalysisGateway
from talentflow.api.deps import CurrentUser, get_current_user, get_gateway, get_repositories
from talentflow.repositories import BatchStatus, Candidate, Repositories

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/cv-intelligence", tags=["cv-intelligence"])


class CreateBatchRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class CVDocument(BaseModel):
    filename: str = Field(min_length=1)
    text: str = Field(min_length=1)


class ProcessBatchRequest(BaseModel):
    jd_text: str = Field(min_length=1)
    cvs: list[CVDocument] = Field(min_length=1, max_length=50)


@router.post("/batch", status_code=status.HTTP_201_CREATED)
async def create_batch(
    body: CreateBatchRequest,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    batch = await repos.batches.create(name=body.name, user_id=user.id)
    log.info("cv_intelligence.batch_created", batch_id=batch.id)
    return {"success": True, "data": batch.to_dict()}


@router.get("/batches")
async def list_batches(
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    batches = await repos.batches.list_all()
    return {"success": True, "data": [b.to_dict() for b in batches]}


@router.get("/batch/{batch_id}/candidates")
async def list_candidates(
    batch_id: str,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    batch = await repos.batches.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    candidates = await repos.candidates.list_for_batch(batch_id)
    return {
        "success": True,
        "data": {"batch": batch.to_dict(), "candidates": [c.to_dict() for c in candidates]},
    }


@router.post("/batch/{batch_id}/process")
async def process_batch(
    batch_id: str,
    body: ProcessBatchRequest,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
    gateway: AnalysisGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Score every CV against the job description, then rank the batch."""
    batch = await repos.batches.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")

    await repos.batches.update(batch_id, status=BatchStatus.PROCESSING, cv_count=len(body.cvs))
    jd = await gateway.analyze_jd(body.jd_text)

    candidates: list[Candidate] = []
    for cv in body.cvs:
        analysis = await gateway.analyze_cv(cv.text, body.jd_text)
        candidate = await repos.candidates.add(
            Candidate(
                batch_id=batch_id,
                filename=cv.filename,
                name=analysis["name"],
                email=analysis["email"],
                phone=analysis["phone"],
                score=analysis["score"],
                recommendation=analysis["recommendation"],
                skills_matched=analysis["skills_matched"],
                skills_missing=analysis["skills_missing"],
                experience_years=analysis["experience_years"],
                analysis=analysis,
            )
        )
        candidates.append(candidate)

    ranking = await gateway.rank_candidates(
        body.jd_text,
        [
            {"candidate_id": c.id, "name": c.name, "cv_text": cv.text}
            for c, cv in zip(candidates, body.cvs, strict=True)
        ],
    )
    for entry in ranking["candidates"]:
        await repos.candidates.update(
            entry["candidate_id"],
            rank=entry["rank"],
            ranking_reason=entry["ranking_reason"],
        )

    await repos.batches.update(
        batch_id,
        status=BatchStatus.COMPLETED,
        candidate_count=len(candidates),
        job_title=jd["job_title"],
    )
    log.info("cv_intelligence.batch_processed", batch_id=batch_id, candidates=len(candidates))

    ranked = await repos.candidates.list_for_batch(batch_id)
    return {
        "success": True,
        "data": {
            "batch_id": batch_id,
            "status": BatchStatus.COMPLETED,
            "job": jd,
            "candidates": [c.to_dict() for c in ranked],
            "overall_assessment": ranking["overall_assessment"],
        },
    }
