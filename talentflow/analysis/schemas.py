"""Analysis inputs, LLM response models and result shapes.

LLM responses are validated against the ``*Response`` models; anything
that does not validate is treated as a failed call. Final results are
always serialised through the ``*Result`` models, which is what keeps the
LLM path and the fallback path byte-compatible for callers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class CVAnalysisInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    cv_text: str = Field(min_length=1)
    jd_text: str = Field(min_length=1)


class JDAnalysisInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    jd_text: str = Field(min_length=1)


class CandidateProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidate_id: str = Field(min_length=1)
    name: str = ""
    cv_text: str = Field(min_length=1)


class RankingInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    jd_text: str = Field(min_length=1)
    candidates: list[CandidateProfile] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Raw LLM responses
# ---------------------------------------------------------------------------


class CVScoreResponse(BaseModel):
    score: float = Field(ge=0, le=10)
    recommendation: str
    matched_skills: list[str]
    missing_skills: list[str]
    summary: str


class JDAnalysisResponse(BaseModel):
    job_title: str
    required_skills: list[str]
    preferred_skills: list[str] = Field(default_factory=list)
    experience_required: str = "Not specified"
    education_required: str = "Not specified"
    key_responsibilities: list[str] = Field(default_factory=list)


class RankEntry(BaseModel):
    candidate_id: str
    rank: int = Field(ge=1)
    ranking_reason: str
    recommendation: str


class RankingResponse(BaseModel):
    ranking: list[RankEntry] = Field(min_length=1)
    overall_assessment: str


# ---------------------------------------------------------------------------
# Results returned to callers
# ---------------------------------------------------------------------------


class CVAnalysisResult(BaseModel):
    name: str
    email: str
    phone: str
    score: int = Field(ge=0, le=100)
    score_out_of_10: float = Field(ge=0, le=10)
    skills_match: int = Field(ge=0, le=100)
    experience_match: int = Field(ge=0, le=100)
    education_match: int = Field(ge=0, le=100)
    experience_years: int = Field(ge=0)
    education: list[str]
    strengths: list[str]
    weaknesses: list[str]
    skills_matched: list[str]
    skills_missing: list[str]
    recommendation: str
    summary: str


class JDAnalysisResult(JDAnalysisResponse):
    pass


class RankedCandidate(BaseModel):
    candidate_id: str
    name: str
    rank: int = Field(ge=1)
    ranking_reason: str
    recommendation: str


class RankingResult(BaseModel):
    candidates: list[RankedCandidate]
    overall_assessment: str
