"""End-to-end API tests through the full middleware stack.

The app is built by create_app() with an InMemoryCacheBackend and a
FakeAnalyzer, so cache behaviour is observable through X-Cache headers
and the backend's stored keys.
"""

from __future__ import annotations

import json

import pytest

from talentflow.cache.keys import api_cache_key
from tests.conftest import SAMPLE_CV, SAMPLE_CV_2, SAMPLE_JD, cv_reply, jd_reply

# ---------------------------------------------------------------------------
# CV intelligence
# ---------------------------------------------------------------------------


class TestBatches:
    def test_create_then_list_sees_new_batch(self, client, user_headers):
        empty = client.get("/api/cv-intelligence/batches", headers=user_headers)
        assert empty.headers["X-Cache"] == "MISS"
        assert empty.json()["data"] == []

        cached = client.get("/api/cv-intelligence/batches", headers=user_headers)
        assert cached.headers["X-Cache"] == "HIT"

        created = client.post(
            "/api/cv-intelligence/batch", json={"name": "Backend hiring"}, headers=user_headers
        )
        assert created.status_code == 201
        batch_id = created.json()["data"]["id"]

        listed = client.get("/api/cv-intelligence/batches", headers=user_headers)
        assert listed.headers["X-Cache"] == "MISS"
        assert [b["id"] for b in listed.json()["data"]] == [batch_id]

    def test_listing_requires_identity(self, client, user_headers):
        response = client.get("/api/cv-intelligence/batches")
        assert response.status_code == 401

        client.get("/api/cv-intelligence/batches", headers=user_headers)
        assert client.get("/api/cv-intelligence/batches").status_code == 401

    def test_unknown_batch_is_404_and_not_cached(self, client, user_headers, memory_backend):
        response = client.get("/api/cv-intelligence/batch/missing/candidates", headers=user_headers)
        assert response.status_code == 404
        assert api_cache_key("/api/cv-intelligence/batch/missing/candidates") not in memory_backend._store

    def test_process_batch_scores_and_ranks(self, client, user_headers, fake_analyzer):
        batch_id = client.post(
            "/api/cv-intelligence/batch", json={"name": "Backend"}, headers=user_headers
        ).json()["data"]["id"]
        candidates_url = f"/api/cv-intelligence/batch/{batch_id}/candidates"
        assert client.get(candidates_url, headers=user_headers).json()["data"]["candidates"] == []

        fake_analyzer.queue(
            jd_reply(),
            cv_reply(8.5),
            cv_reply(4.0, matched_skills=["docker"], missing_skills=["python", "fastapi"]),
        )
        # Ranking reply is not queued: the analyzer times out and the ranking falls back.
        response = client.post(
            f"/api/cv-intelligence/batch/{batch_id}/process",
            json={
                "jd_text": SAMPLE_JD,
                "cvs": [
                    {"filename": "jane.pdf", "text": SAMPLE_CV},
                    {"filename": "john.pdf", "text": SAMPLE_CV_2},
                ],
            },
            headers=user_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["job"]["job_title"] == "Senior Python Developer"
        assert [c["name"] for c in data["candidates"]] == ["Jane Doe", "John Smith"]
        assert [c["rank"] for c in data["candidates"]] == [1, 2]
        assert data["candidates"][0]["score"] == 85
        assert len(fake_analyzer.calls) == 4

        after = client.get(candidates_url, headers=user_headers)
        assert after.headers["X-Cache"] == "MISS"
        assert len(after.json()["data"]["candidates"]) == 2

    def test_reprocessing_reuses_cached_analyses(self, client, user_headers, fake_analyzer):
        fake_analyzer.default = None
        body = {"jd_text": SAMPLE_JD, "cvs": [{"filename": "jane.pdf", "text": SAMPLE_CV}]}
        for name in ("First", "Second"):
            batch_id = client.post(
                "/api/cv-intelligence/batch", json={"name": name}, headers=user_headers
            ).json()["data"]["id"]
            assert client.post(
                f"/api/cv-intelligence/batch/{batch_id}/process", json=body, headers=user_headers
            ).status_code == 200

        # JD and CV are reused; ranking keys on candidate ids, so it runs per batch.
        assert len(fake_analyzer.calls) == 4


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class TestAnalysisEndpoints:
    def test_cv_analysis_reports_provenance(self, client, user_headers, fake_analyzer):
        fake_analyzer.queue(cv_reply(9.0))
        body = {"cv_text": SAMPLE_CV, "jd_text": SAMPLE_JD}

        first = client.post("/api/analysis/cv", json=body, headers=user_headers)
        second = client.post("/api/analysis/cv", json=body, headers=user_headers)

        assert first.json()["provenance"] == "external"
        assert second.json()["provenance"] == "cache"
        assert first.json()["data"] == second.json()["data"]

    def test_llm_outage_degrades_to_fallback(self, client, user_headers):
        response = client.post("/api/analysis/jd", json={"jd_text": SAMPLE_JD}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["provenance"] == "fallback"
        assert response.json()["data"]["required_skills"][:2] == ["python", "fastapi"]

    def test_rank_validates_input(self, client, user_headers):
        response = client.post(
            "/api/analysis/rank", json={"jd_text": SAMPLE_JD, "candidates": []}, headers=user_headers
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Support + analytics
# ---------------------------------------------------------------------------


class TestSupport:
    def _create(self, client, headers, subject="Login broken"):
        response = client.post(
            "/api/support/tickets",
            json={"subject": subject, "description": "Cannot sign in", "priority": "high"},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()["data"]

    def test_ticket_creation_invalidates_support_and_analytics(self, client, user_headers):
        assert client.get("/api/support/tickets", headers=user_headers).json()["total"] == 0
        dashboard = client.get("/api/analytics/dashboard", headers=user_headers)
        assert dashboard.json()["total_tickets"] == 0
        assert client.get("/api/analytics/dashboard", headers=user_headers).headers["X-Cache"] == "HIT"

        self._create(client, user_headers)

        tickets = client.get("/api/support/tickets", headers=user_headers)
        assert tickets.headers["X-Cache"] == "MISS"
        assert tickets.json()["total"] == 1
        dashboard = client.get("/api/analytics/dashboard", headers=user_headers)
        assert dashboard.headers["X-Cache"] == "MISS"
        assert dashboard.json()["open_tickets"] == 1
        assert dashboard.json()["tickets_by_priority"] == {"high": 1}

    def test_my_tickets_is_never_shared(self, client, user_headers, other_user_headers):
        self._create(client, user_headers)

        mine = client.get("/api/support/my-tickets", headers=user_headers)
        theirs = client.get("/api/support/my-tickets", headers=other_user_headers)

        assert mine.headers["X-Cache"] == theirs.headers["X-Cache"] == "SKIP"
        assert mine.json()["total"] == 1
        assert theirs.json()["total"] == 0

    def test_status_filter_is_part_of_the_key(self, client, user_headers):
        self._create(client, user_headers)
        open_ = client.get("/api/support/tickets", params={"status": "open"}, headers=user_headers)
        closed = client.get("/api/support/tickets", params={"status": "closed"}, headers=user_headers)
        assert open_.json()["total"] == 1
        assert closed.json()["total"] == 0

    def test_update_evicts_cached_ticket(self, client, user_headers):
        ticket = self._create(client, user_headers)
        url = f"/api/support/tickets/{ticket['id']}"
        client.get(url, headers=user_headers)
        assert client.get(url, headers=user_headers).headers["X-Cache"] == "HIT"

        updated = client.put(url, json={"status": "resolved"}, headers=user_headers)
        assert updated.status_code == 200

        fresh = client.get(url, headers=user_headers)
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json()["data"]["status"] == "resolved"

    def test_forbidden_update_keeps_cache(self, client, user_headers, other_user_headers):
        ticket = self._create(client, user_headers)
        url = f"/api/support/tickets/{ticket['id']}"
        client.get(url, headers=user_headers)

        response = client.put(url, json={"status": "closed"}, headers=other_user_headers)

        assert response.status_code == 403
        assert client.get(url, headers=user_headers).headers["X-Cache"] == "HIT"

    def test_warm_entries_still_require_identity(self, client, user_headers):
        ticket = self._create(client, user_headers)
        url = f"/api/support/tickets/{ticket['id']}"
        client.get(url, headers=user_headers)
        client.get("/api/support/tickets", headers=user_headers)
        assert client.get(url, headers=user_headers).headers["X-Cache"] == "HIT"

        for path in (url, "/api/support/tickets"):
            anonymous = client.get(path)
            assert anonymous.status_code == 401
            assert anonymous.headers["X-Cache"] == "SKIP"
            assert "data" not in anonymous.json()

    def test_delete_ticket(self, client, user_headers, admin_headers):
        ticket = self._create(client, user_headers)
        url = f"/api/support/tickets/{ticket['id']}"

        assert client.delete(url, headers=admin_headers).status_code == 200
        assert client.get(url, headers=user_headers).status_code == 404


# ---------------------------------------------------------------------------
# Profile / session cache
# ---------------------------------------------------------------------------


class TestProfile:
    def test_profile_uses_session_cache_not_http_cache(self, client, user_headers, repositories):
        first = client.get("/api/auth/profile", headers=user_headers)
        second = client.get("/api/auth/profile", headers=user_headers)

        assert first.headers["X-Cache"] == second.headers["X-Cache"] == "SKIP"
        assert first.headers["X-Session-Cache"] == "MISS"
        assert second.headers["X-Session-Cache"] == "HIT"
        assert first.json() == second.json()
        assert repositories.users.reads == 1

    def test_profiles_are_per_user(self, client, user_headers, other_user_headers):
        mine = client.get("/api/auth/profile", headers=user_headers).json()["data"]
        theirs = client.get("/api/auth/profile", headers=other_user_headers).json()["data"]
        assert mine["user_id"] == "user-1"
        assert theirs["user_id"] == "user-2"

    def test_update_drops_snapshot(self, client, user_headers):
        client.get("/api/auth/profile", headers=user_headers)

        client.put("/api/auth/profile", json={"first_name": "Jane"}, headers=user_headers)
        refreshed = client.get("/api/auth/profile", headers=user_headers)

        assert refreshed.headers["X-Session-Cache"] == "MISS"
        assert refreshed.json()["data"]["first_name"] == "Jane"


# ---------------------------------------------------------------------------
# Cache admin + health
# ---------------------------------------------------------------------------


class TestCacheAdmin:
    def test_stats_requires_admin(self, client, user_headers):
        assert client.get("/api/cache/stats", headers=user_headers).status_code == 403

    def test_stats(self, client, admin_headers, user_headers):
        client.get("/api/support/tickets", headers=user_headers)

        response = client.get("/api/cache/stats", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["X-Cache"] == "SKIP"
        body = response.json()
        assert body["backend"] == "memory"
        assert body["connected"] is True
        assert body["db_size"] == 1

    def test_invalidate_namespace(self, client, admin_headers, user_headers):
        client.get("/api/support/tickets", headers=user_headers)
        client.get("/api/analytics/dashboard", headers=user_headers)

        response = client.post(
            "/api/cache/invalidate",
            json={"namespace": "api", "prefix": "/api/support"},
            headers=admin_headers,
        )

        assert response.json() == {
            "pattern": "api:/api/support*",
            "invalidated": True,
            "message": "Cache entries invalidated",
        }
        assert client.get("/api/support/tickets", headers=user_headers).headers["X-Cache"] == "MISS"
        assert client.get("/api/analytics/dashboard", headers=user_headers).headers["X-Cache"] == "HIT"

    def test_invalidate_rejects_globs(self, client, admin_headers):
        response = client.post(
            "/api/cache/invalidate", json={"prefix": "/api/*"}, headers=admin_headers
        )
        assert response.status_code == 422


class TestHealth:
    def test_live(self, client):
        response = client.get("/api/health/live")
        assert response.status_code == 200
        assert response.headers["X-Cache"] == "SKIP"

    def test_ready_reports_cache(self, client):
        body = client.get("/api/health/ready").json()
        assert body["status"] == "ready"
        assert body["cache"] == {"backend": "memory", "status": "ok"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health/live", headers={"X-Request-ID": "req_test123"})
        assert response.headers["X-Request-ID"] == "req_test123"
        assert client.get("/api/health/live").headers["X-Request-ID"].startswith("req_")


class TestDegradedStore:
    @pytest.fixture
    def test_app(self, fake_settings, fake_analyzer, repositories):
        from talentflow.cache.backend import RedisCacheBackend
        from talentflow.main import create_app

        return create_app(
            fake_settings,
            cache_backend=RedisCacheBackend(""),
            analyzer=fake_analyzer,
            repositories=repositories,
        )

    def test_everything_works_without_a_store(self, client, user_headers, fake_analyzer):
        fake_analyzer.queue(cv_reply())
        created = client.post(
            "/api/cv-intelligence/batch", json={"name": "No cache"}, headers=user_headers
        )
        listed = client.get("/api/cv-intelligence/batches", headers=user_headers)
        analysed = client.post(
            "/api/analysis/cv",
            json={"cv_text": SAMPLE_CV, "jd_text": SAMPLE_JD},
            headers=user_headers,
        )
        profile = client.get("/api/auth/profile", headers=user_headers)
        ready = client.get("/api/health/ready")

        assert created.status_code == 201
        assert listed.headers["X-Cache"] == "MISS"
        assert len(listed.json()["data"]) == 1
        assert analysed.json()["provenance"] == "external"
        assert profile.status_code == 200
        assert json.loads(ready.text)["cache"]["status"] == "unavailable"
