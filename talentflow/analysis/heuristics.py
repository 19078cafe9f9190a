"""Regex heuristics over CV and job-description text.

Used twice: to fill contact details the LLM is never asked for, and as
the degraded fallback when the LLM call fails. Everything here is pure
and deterministic for a given input, which is what makes fallback
results safe to cache.
"""

from __future__ import annotations

import re

from talentflow.analysis.schemas import (
    CVAnalysisInput,
    CVScoreResponse,
    JDAnalysisInput,
    JDAnalysisResponse,
    RankEntry,
    RankingInput,
    RankingResponse,
)

_SKILL_TERMS = (
    "python", "javascript", "typescript", "java", "golang", "rust", "swift", "php", "ruby",
    "react", "angular", "vue", "node.js", "django", "flask", "fastapi", "spring", "express",
    "laravel", "sql", "postgresql", "mysql", "mongodb", "redis", "elasticsearch", "nosql",
    "aws", "azure", "gcp", "docker", "kubernetes", "terraform", "ansible", "jenkins",
    "ci/cd", "devops", "linux", "git", "kafka", "rabbitmq", "nginx", "microservices",
    "rest api", "graphql", "machine learning", "deep learning", "data science", "nlp",
    "computer vision", "tensorflow", "pytorch", "keras", "pandas", "numpy", "agile",
    "scrum", "html", "css", "tdd", "selenium", "cypress", "jest", "prometheus", "grafana",
)
_SKILL_RE = re.compile(
    r"(?<![\w.])("
    + "|".join(re.escape(t).replace(r"node\.js", r"node\.?js") for t in _SKILL_TERMS)
    + r")(?![\w])",
    re.IGNORECASE,
)
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)|\d{2,4})[\s.-]?\d{3,4}[\s.-]?\d{3,4}")
_YEARS_RE = re.compile(r"\b(\d{1,2})\+?\s*(?:years?|yrs?)\b", re.IGNORECASE)
_EDUCATION_RE = re.compile(
    r"\b(phd|doctorate|master(?:'s)?|mba|bachelor(?:'s)?|diploma|degree|certificate)\b",
    re.IGNORECASE,
)
_NAME_LINE_RE = re.compile(r"^[A-Za-z][A-Za-z .'-]{1,48}$")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+)$")
_MUST_HAVE_RE = re.compile(
    r"(?:required|requirements|must[- ]have|essential)[^\n]*\n(.*?)(?:\n\s*\n|$)",
    re.IGNORECASE | re.DOTALL,
)
_NICE_TO_HAVE_RE = re.compile(
    r"(?:preferred|nice[- ]to[- ]have|bonus)[^\n]*\n(.*?)(?:\n\s*\n|$)",
    re.IGNORECASE | re.DOTALL,
)

NOT_FOUND = "Not found"


def extract_skills(text: str) -> list[str]:
    """Known skill terms in order of first appearance, lowercased and unique."""
    seen: dict[str, None] = {}
    for match in _SKILL_RE.finditer(text):
        skill = match.group(1).lower()
        if skill == "nodejs":
            skill = "node.js"
        seen.setdefault(skill, None)
    return list(seen)


def extract_email(text: str) -> str | None:
    match = _EMAIL_RE.search(text)
    return match.group(0) if match else None


def extract_phone(text: str) -> str | None:
    for match in _PHONE_RE.finditer(text):
        if sum(ch.isdigit() for ch in match.group(0)) >= 9:
            return match.group(0).strip()
    return None


def extract_name(text: str) -> str | None:
    """First short, letters-only line near the top that is not a title."""
    for line in text.splitlines()[:5]:
        candidate = line.strip()
        lowered = candidate.lower()
        if (
            _NAME_LINE_RE.match(candidate)
            and len(candidate.split()) >= 2
            and not set(lowered.split()) & {"resume", "curriculum", "cv"}
        ):
            return candidate.title() if candidate.isupper() else candidate
    return None


def extract_experience_years(text: str) -> int:
    return max((int(m.group(1)) for m in _YEARS_RE.finditer(text)), default=0)


def extract_education(text: str) -> list[str]:
    seen: dict[str, None] = {}
    for match in _EDUCATION_RE.finditer(text):
        seen.setdefault(match.group(1).lower().replace("'s", ""), None)
    return list(seen)[:3]


def experience_level(text: str) -> str:
    lowered = text.lower()
    if re.search(r"\b(senior|lead|principal|architect|head of|director)\b", lowered):
        return "Senior"
    if re.search(r"\b(mid|intermediate|experienced)\b", lowered):
        return "Mid-level"
    if re.search(r"\b(junior|entry|graduate|intern)\b", lowered):
        return "Junior"
    return "Not specified"


def extract_job_title(jd_text: str) -> str:
    for line in jd_text.splitlines():
        stripped = line.strip().strip("#*: ")
        if stripped:
            return stripped[:80]
    return "Position"


def extract_bullets(text: str, limit: int = 5) -> list[str]:
    bullets = [m.group(1).strip() for m in map(_BULLET_RE.match, text.splitlines()) if m]
    return bullets[:limit]


def _section_skills(pattern: re.Pattern[str], text: str) -> list[str]:
    match = pattern.search(text)
    return extract_skills(match.group(1)) if match else []


def required_skills(jd_text: str) -> list[str]:
    """Skills from a "required / must have" section, else every skill in the JD."""
    return _section_skills(_MUST_HAVE_RE, jd_text) or extract_skills(jd_text)


def preferred_skills(jd_text: str) -> list[str]:
    required = set(required_skills(jd_text))
    return [s for s in _section_skills(_NICE_TO_HAVE_RE, jd_text) if s not in required]


def skill_overlap(cv_text: str, jd_skills: list[str]) -> tuple[list[str], list[str]]:
    """Split JD skills into (matched, missing) for a CV."""
    cv_skills = set(extract_skills(cv_text))
    matched = [s for s in jd_skills if s in cv_skills]
    missing = [s for s in jd_skills if s not in cv_skills]
    return matched, missing


# ---------------------------------------------------------------------------
# Fallback generators
# ---------------------------------------------------------------------------


def _recommendation(score: float) -> str:
    if score >= 7.5:
        return "Recommended"
    if score >= 5.0:
        return "Consider"
    return "Not Recommended"


def fallback_cv_score(data: CVAnalysisInput) -> CVScoreResponse:
    jd_skills = required_skills(data.jd_text)
    matched, missing = skill_overlap(data.cv_text, jd_skills)
    score = round(10 * len(matched) / len(jd_skills), 1) if jd_skills else 5.0
    return CVScoreResponse(
        score=score,
        recommendation=_recommendation(score),
        matched_skills=matched,
        missing_skills=missing,
        summary=(
            f"Automated keyword screening: {len(matched)} of {len(jd_skills)} "
            "required skills found. Manual review recommended."
        ),
    )


def fallback_jd_analysis(data: JDAnalysisInput) -> JDAnalysisResponse:
    years = extract_experience_years(data.jd_text)
    education = extract_education(data.jd_text)
    return JDAnalysisResponse(
        job_title=extract_job_title(data.jd_text),
        required_skills=required_skills(data.jd_text),
        preferred_skills=preferred_skills(data.jd_text),
        experience_required=f"{years}+ years" if years else experience_level(data.jd_text),
        education_required=education[0].title() if education else "Not specified",
        key_responsibilities=extract_bullets(data.jd_text),
    )


def fallback_ranking(data: RankingInput) -> RankingResponse:
    """Order candidates by required-skill overlap; ties keep input order."""
    jd_skills = required_skills(data.jd_text)
    scored = []
    for index, candidate in enumerate(data.candidates):
        matched, _ = skill_overlap(candidate.cv_text, jd_skills)
        scored.append((-len(matched), index, candidate.candidate_id, len(matched)))
    scored.sort()

    ranking = [
        RankEntry(
            candidate_id=candidate_id,
            rank=position,
            ranking_reason=(
                f"Automatic ranking by skill overlap ({matched}/{len(jd_skills)} required skills) "
                "- manual review recommended"
            ),
            recommendation="Review Required",
        )
        for position, (_, _, candidate_id, matched) in enumerate(scored, start=1)
    ]
    return RankingResponse(
        ranking=ranking,
        overall_assessment="AI ranking unavailable - candidates ordered by keyword overlap",
    )
