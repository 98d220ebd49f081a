"""
Integration tests for API endpoints.

Tests the FastAPI endpoints against a temporary SQLite database.
"""

import pytest

pytestmark = pytest.mark.integration

REFERENCE_TIME = "2025-06-15T12:00:00Z"


class TestHealthEndpoint:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_api_health_check(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["api_version"] == "v1"


class TestVerificationEndpoints:

    def test_score(self, client, full_extraction):
        response = client.post("/api/v1/verification/score", json={
            "extraction": full_extraction,
            "profile": {"first_name": "John", "last_name": "Smith"},
            "reference_time": REFERENCE_TIME,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 100
        assert data["level"] == "high"
        assert data["is_verified"] is True
        assert len(data["checks"]) == 7

    def test_score_without_profile(self, client, full_extraction):
        response = client.post("/api/v1/verification/score", json={
            "extraction": full_extraction,
            "reference_time": REFERENCE_TIME,
        })

        data = response.json()
        assert data["score"] == 85
        assert data["is_verified"] is True

    def test_score_requires_extraction(self, client):
        response = client.post("/api/v1/verification/score", json={})
        assert response.status_code == 422

    def test_merge(self, client):
        page_one = {
            "score": 25, "level": "low", "is_verified": False,
            "checks": [
                {"name": "recognized_lab", "passed": True, "points": 25, "max_points": 25},
                {"name": "health_card", "passed": False, "points": 0, "max_points": 20},
            ],
        }
        page_two = {
            "score": 20, "level": "unverified", "is_verified": False, "has_future_date": True,
            "checks": [
                {"name": "recognized_lab", "passed": False, "points": 0, "max_points": 25},
                {"name": "health_card", "passed": True, "points": 20, "max_points": 20},
            ],
        }

        response = client.post("/api/v1/verification/merge", json=[page_one, page_two])

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 45
        assert data["level"] == "low"
        assert data["has_future_date"] is True
        assert data["is_verified"] is False

    def test_merge_accepts_self_reported_level(self, client):
        page = {
            "score": 0, "level": "self_reported", "is_verified": False,
            "checks": [{"name": "recognized_lab", "passed": False, "points": 0, "max_points": 25}],
        }

        response = client.post("/api/v1/verification/merge", json=[page, dict(page)])

        assert response.status_code == 200
        assert response.json()["level"] == "no_signals"

    def test_merge_empty(self, client):
        response = client.post("/api/v1/verification/merge", json=[])

        assert response.status_code == 200
        assert response.json() is None

    def test_group_documents(self, client):
        documents = [
            {"collection_date": "2025-06-01", "tests": [{"name": "HIV", "result": "Non-reactive", "status": "negative"}]},
            {"collection_date": "2025-06-01", "tests": [{"name": "HIV", "result": "Reactive", "status": "positive"}]},
        ]

        response = client.post("/api/v1/documents/group", json=documents)

        assert response.status_code == 200
        groups = response.json()
        assert len(groups) == 1
        assert groups[0]["overall_status"] == "positive"
        assert len(groups[0]["conflicts"]) == 1


class TestResultEndpoints:

    def submit(self, client, documents, profile=None, user_id="user-1"):
        body = {"user_id": user_id, "documents": documents, "reference_time": REFERENCE_TIME}
        if profile:
            body["profile"] = profile
        response = client.post("/api/v1/results", json=body)
        assert response.status_code == 200
        return response.json()

    def test_submit_groups_by_date(self, client, full_extraction, make_extraction):
        data = self.submit(
            client,
            [full_extraction, make_extraction(collection_date="2025-01-10")],
            profile={"first_name": "John", "last_name": "Smith"},
        )

        results = data["results"]
        assert [r["collection_date"] for r in results] == ["2025-06-01", "2025-01-10"]
        assert results[0]["is_verified"] is True
        assert results[0]["verification_score"] == 100
        assert results[0]["test_type"] == "Full STI Panel"
        assert results[0]["status"] == "negative"
        assert results[0]["extracted_patient_name"] == "SMITH, JOHN"
        assert results[0]["has_future_date"] is False
        assert data["errors"] == []

    def test_submit_reports_failed_documents(self, client, full_extraction, make_extraction, monkeypatch):
        from workers.verification import pipeline

        real_scorer = pipeline.calculate_verification_score

        def scorer(extraction, **kwargs):
            if extraction.lab_name == "Broken Lab":
                raise RuntimeError("scoring failed")
            return real_scorer(extraction, **kwargs)

        monkeypatch.setattr(pipeline, "calculate_verification_score", scorer)

        data = self.submit(client, [full_extraction, make_extraction(lab_name="Broken Lab")])

        assert len(data["results"]) == 1
        assert data["errors"][0]["step"] == "normalization"
        assert data["errors"][0]["file_identifier"] == "document_1"

    def test_submit_numeric_fields(self, client, make_extraction):
        data = self.submit(
            client,
            [make_extraction(accession_number=12345678, tests=[{"name": "HIV", "result": 0}])],
            profile={"first_name": "John", "last_name": "Smith"},
        )

        assert data["errors"] == []
        checks = {c["name"]: c for c in data["results"][0]["verification_checks"]}
        assert checks["accession_number"]["passed"] is True

    def test_list_and_get(self, client, full_extraction):
        created = self.submit(client, [full_extraction])["results"][0]
        self.submit(client, [full_extraction], user_id="someone-else")

        listing = client.get("/api/v1/results", params={"user_id": "user-1"}).json()
        assert listing["total"] == 1
        assert listing["results"][0]["id"] == created["id"]

        fetched = client.get(f"/api/v1/results/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["tests"] == created["tests"]

    def test_list_requires_user_id(self, client):
        assert client.get("/api/v1/results").status_code == 422

    def test_get_missing_result(self, client):
        response = client.get("/api/v1/results/does-not-exist")

        assert response.status_code == 404
        assert response.json()["detail"] == "Result not found"

    def test_reverify_after_name_change(self, client, full_extraction):
        created = self.submit(
            client, [full_extraction], profile={"first_name": "Jane", "last_name": "Doe"}
        )["results"][0]
        assert created["is_verified"] is False

        body = {"user_id": "user-1", "first_name": "John", "last_name": "Smith"}
        first = client.post("/api/v1/profile/reverify", json=body)
        second = client.post("/api/v1/profile/reverify", json=body)

        assert first.json() == {"updated": 1}
        assert second.json() == {"updated": 0}

        result = client.get(f"/api/v1/results/{created['id']}").json()
        assert result["is_verified"] is True
        assert result["verification_score"] == 100

    def test_reverify_without_name(self, client, full_extraction):
        self.submit(client, [full_extraction], profile={"first_name": "Jane", "last_name": "Doe"})

        response = client.post("/api/v1/profile/reverify", json={"user_id": "user-1"})

        assert response.json() == {"updated": 0}
