"""
FastAPI contract tests.

The coordinator is injected through dependency_overrides, so the lifespan
(database warm-up and recompute workers) never runs and scores only change
where a test sets them.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from coldcase.core.dependencies import get_coordinator
from coldcase.core.errors import TransientDependencyError
from coldcase.main import create_app


@pytest.fixture
def client(coordinator):
    app = create_app(coordinator)
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    return TestClient(app)


@pytest.fixture
def load_case(client, case_factory):
    """PUT a case record through the API and return the response JSON."""

    def _load(case_id: str = "case-1", **overrides):
        body = case_factory(case_id, **overrides).model_dump(mode="json", by_alias=True)
        response = client.put("/cold-cases/records", json=body)
        assert response.status_code == 200
        return response.json()

    return _load


class TestHealth:

    def test_health(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestColdCaseQueries:

    def test_record_classified_on_load(self, client, load_case) -> None:
        result = load_case()

        assert result["outcome"] == "newly_cold"
        assert result["classification"] == "auto_classified"
        assert result["criteriaNoLeads90Days"] is True

    def test_ranked_by_score(self, client, coordinator, load_case) -> None:
        load_case("case-1")
        load_case("case-2")
        load_case("case-3", lead_days=5)
        coordinator.store.profile_for_case("case-1").revival_priority_score = 40.0
        coordinator.store.profile_for_case("case-2").revival_priority_score = 75.0

        response = client.get("/cold-cases")

        assert response.status_code == 200
        rows = response.json()
        assert [r["caseId"] for r in rows] == ["case-2", "case-1"]
        assert rows[0]["revivalPriorityScore"] == 75.0
        assert rows[0]["hasOpenReview"] is False

        filtered = client.get("/cold-cases", params={"minScore": 50})
        assert [r["caseId"] for r in filtered.json()] == ["case-2"]

    def test_priority_breakdown(self, client, load_case) -> None:
        load_case()

        response = client.get("/cold-cases/case-1/priority")

        assert response.status_code == 200
        assert response.json()["score"] == 0.0
        assert response.json()["factors"] == []

    def test_unknown_case_is_404(self, client) -> None:
        response = client.get("/cold-cases/missing")

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["code"] == "not_found"
        assert detail["message"]


class TestErrorMapping:

    def test_second_open_review_is_409(self, client, coordinator, load_case) -> None:
        load_case()
        profile_id = coordinator.store.profile_for_case("case-1").id

        first = client.post("/reviews", json={"profileId": profile_id})
        second = client.post("/reviews", json={"profileId": profile_id})

        assert first.status_code == 201
        assert first.json()["status"] == "pending"
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "open_review_exists"

    def test_invalid_transition_is_400(self, client, load_case) -> None:
        load_case()
        created = client.post("/forensics/dna", json={"caseId": "case-1", "databaseName": "NDDB"})
        assert created.status_code == 201

        response = client.post(
            f"/forensics/dna/{created.json()['id']}/advance", json={"status": "match_found"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_transition"

    def test_request_body_validation_is_422(self, client) -> None:
        response = client.post("/forensics/dna", json={"caseId": "case-1", "databaseName": ""})

        assert response.status_code == 422


class TestTriggerStream:

    def test_tip_appends_triggers_in_order(self, client, load_case) -> None:
        load_case()
        load_case("case-2")

        tip = client.post("/cold-cases/events/tips", json={"caseId": "case-1", "summary": "Caller sighting"})
        assert tip.status_code == 200
        assert tip.json()["seq"] == 1

        page = client.get("/triggers", params={"after": 0}).json()
        assert [t["triggerType"] for t in page["triggers"]] == ["new_tip", "eligibility_engine"]
        assert page["nextAfter"] == 2

        assert client.get("/triggers", params={"after": 2}).json() == {"triggers": [], "nextAfter": 2}
        only_case_2 = client.get("/triggers", params={"after": 0, "caseId": "case-2"}).json()
        assert only_case_2 == {"triggers": [], "nextAfter": 2}


class TestMetricsEndpoint:

    def test_metrics_snapshot_and_history(self, client, load_case) -> None:
        load_case()

        response = client.get("/metrics", params={"record": True})

        assert response.status_code == 200
        assert response.json()["totalColdCases"] == 1
        history = client.get("/metrics/history").json()
        assert len(history) == 1
        assert client.get("/metrics/latest").json()["totalColdCases"] == 1

    def test_no_recorded_snapshot(self, client) -> None:
        response = client.get("/metrics/latest")

        assert response.status_code == 404


class TestReviewQueries:

    def test_due_reviews(self, client, load_case) -> None:
        load_case("case-1")
        load_case("case-2", last_seen_date="2019-06-25")

        response = client.get("/reviews/due")

        assert response.status_code == 200
        assert response.json() == {"periodic": [], "anniversary": ["case-2"]}


class TestRepositoryRefresh:

    def test_refresh_reclassifies(self, client, case_factory) -> None:
        with patch("coldcase.services.repository.load_case", new=AsyncMock(return_value=case_factory())):
            response = client.post("/cold-cases/case-1/refresh")

        assert response.status_code == 200
        assert response.json()["outcome"] == "newly_cold"

    def test_refresh_unknown_case(self, client) -> None:
        with patch("coldcase.services.repository.load_case", new=AsyncMock(return_value=None)):
            response = client.post("/cold-cases/case-9/refresh")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    def test_refresh_repository_down(self, client) -> None:
        down = AsyncMock(side_effect=TransientDependencyError("Case repository unavailable"))
        with patch("coldcase.services.repository.load_case", new=down):
            response = client.post("/cold-cases/case-1/refresh")

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "dependency_unavailable"
