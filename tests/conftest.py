"""
Shared test fixtures for pytest.

Provides common fakes and test data for all test modules:
- fake_settings: Test environment configuration
- fake_clock: Manually advanced monotonic clock
- memory_backend: InMemoryCacheBackend driven by fake_clock
- fake_analyzer: Scriptable stand-in for the LLM client
- repositories: Fresh in-memory repositories
- test_app / client: FastAPI app wired with the fakes, and a TestClient
- user_headers / admin_headers: Identity headers for requests
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from talentflow.cache.backend import InMemoryCacheBackend
from talentflow.config import Environment, Settings, get_settings
from talentflow.repositories import Repositories

# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ------------------------------------------------------------------ #
# Sample documents
# ------------------------------------------------------------------ #

SAMPLE_JD = """Senior Python Developer

Requirements:
- 5+ years of Python
- FastAPI, PostgreSQL and Redis
- Docker and AWS

Nice to have:
- Kubernetes
- Terraform

Responsibilities:
- Build backend services
- Review code
"""

SAMPLE_CV = """Jane Doe
jane.doe@example.com
+44 7700 900123

Backend engineer with 7 years of experience.
Skills: Python, FastAPI, PostgreSQL, Docker, Git
Education: Master's degree in Computer Science
"""

SAMPLE_CV_2 = """John Smith
john.smith@example.com

Frontend developer, 3 years.
Skills: JavaScript, React, CSS, Docker
Education: Bachelor's degree
"""


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAnalyzer:
    """Analyzer double: returns queued replies, or raises queued exceptions.

    With an empty queue it answers with ``default``. Every call is recorded.
    """

    def __init__(self, default: str | None = None) -> None:
        self.default = default
        self.replies: list[Any] = []
        self.calls: list[list[dict[str, str]]] = []

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def analyze(
        self,
        messages: list[dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        if reply is None:
            raise TimeoutError("analyzer not scripted")
        return reply


def cv_reply(score: float = 8.0, **overrides: Any) -> str:
    payload = {
        "score": score,
        "recommendation": "Recommended",
        "matched_skills": ["python", "fastapi"],
        "missing_skills": ["aws"],
        "summary": "Strong backend profile.",
    }
    payload.update(overrides)
    return json.dumps(payload)


def jd_reply(**overrides: Any) -> str:
    payload = {
        "job_title": "Senior Python Developer",
        "required_skills": ["python", "fastapi", "postgresql"],
        "preferred_skills": ["kubernetes"],
        "experience_required": "5+ years",
        "education_required": "Not specified",
        "key_responsibilities": ["Build backend services"],
    }
    payload.update(overrides)
    return json.dumps(payload)


# ------------------------------------------------------------------ #
# Settings & App Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture
def fake_settings() -> Settings:
    """Test environment settings with safe defaults."""
    return Settings(
        environment=Environment.TEST,
        redis_url="",
        llm_base_url="http://localhost:4000",
        llm_api_key="sk-test-key",
        llm_timeout_seconds=5.0,
        debug=True,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend(fake_clock: FakeClock) -> InMemoryCacheBackend:
    return InMemoryCacheBackend(clock=fake_clock)


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def repositories() -> Repositories:
    return Repositories()


@pytest.fixture
def test_app(
    fake_settings: Settings,
    memory_backend: InMemoryCacheBackend,
    fake_analyzer: FakeAnalyzer,
    repositories: Repositories,
) -> FastAPI:
    """FastAPI app wired with the in-memory backend and the fake analyzer."""
    from talentflow.main import create_app

    return create_app(
        fake_settings,
        cache_backend=memory_backend,
        analyzer=fake_analyzer,
        repositories=repositories,
    )


@pytest.fixture
def client(test_app: FastAPI) -> Iterator[TestClient]:
    """Synchronous TestClient; background tasks finish before each call returns."""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-Id": "user-1", "X-User-Role": "recruiter"}


@pytest.fixture
def other_user_headers() -> dict[str, str]:
    return {"X-User-Id": "user-2", "X-User-Role": "recruiter"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}
