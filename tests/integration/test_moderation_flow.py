"""
Integration tests for the complete moderation flows.

Runs the real application (lifespan, dependencies, routes, engine) over the
in-memory backend. Principals are seeded directly into the account
directory; the bootstrap admin comes from settings.

Flows:
- Breeder submits documents -> admin reviews -> admin approves
- Adopter files a report -> admin investigates -> admin suspends the breeder
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.config.settings import get_settings
from src.domain.models import Principal
from tests.factories import ADMIN_ID, ADOPTER_ID, BREEDER_ID

ADMIN_AUTH = (ADMIN_ID, "admin-api-key")
BREEDER_AUTH = (BREEDER_ID, "breeder-api-key")
ADOPTER_AUTH = (ADOPTER_ID, "adopter-api-key")


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch, breeder: Principal, adopter: Principal
) -> Generator[TestClient, None, None]:
    """Application over in-memory storage with one principal per role."""
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_ID", ADMIN_ID)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_API_KEY", ADMIN_AUTH[1])
    monkeypatch.setenv("BCRYPT_COST", "4")
    get_settings.cache_clear()
    with TestClient(app) as test_client:
        accounts = test_client.app.state.backend.accounts
        accounts.ensure_principal(breeder, BREEDER_AUTH[1])
        accounts.ensure_principal(adopter, ADOPTER_AUTH[1])
        yield test_client
    get_settings.cache_clear()


class TestHealth:
    def test_health_is_ok_on_memory_backend(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestVerificationFlow:
    """Breeder verification from submission to approval."""

    def submit(self, client: TestClient) -> dict:
        response = client.post(
            "/v1/verification",
            json={
                "documents": [{"type": "business_license", "url": "https://f/license.pdf"}],
                "plan": "premium",
                "subjectName": "Happy Paws Kennel",
            },
            auth=BREEDER_AUTH,
        )
        assert response.status_code == 200
        return response.json()

    def test_submit_review_approve(self, client: TestClient) -> None:
        submitted = self.submit(client)
        assert submitted["status"] == "pending"
        assert submitted["plan"] == "premium"

        queue = client.get("/v1/admin/verification/pending", auth=ADMIN_AUTH).json()
        assert queue["pagination"]["totalItems"] == 1
        assert queue["items"][0]["subjectId"] == BREEDER_ID
        assert queue["items"][0]["documentUrls"] == ["https://f/license.pdf"]

        reviewing = client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={"status": "reviewing", "message": "Looking at your papers"},
            auth=ADMIN_AUTH,
        )
        assert reviewing.status_code == 200
        assert reviewing.json()["item"]["version"] == 2

        approved = client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={"status": "approved", "message": "Welcome aboard", "expectedVersion": 2},
            auth=ADMIN_AUTH,
        )
        assert approved.status_code == 200
        body = approved.json()
        assert body["message"] == "Breeder verification approved"
        assert body["item"]["reviewedBy"] == ADMIN_ID
        assert [h["toStatus"] for h in body["item"]["history"]] == ["reviewing", "approved"]

        standing = client.app.state.backend.accounts.standing(BREEDER_ID)
        assert standing.breeder_verified and standing.breeder_public

        me = client.get("/v1/verification/me", auth=BREEDER_AUTH).json()
        assert me["status"] == "approved"
        assert me["adminMessage"] == "Welcome aboard"

        # Approved records leave the default (open) queue
        queue = client.get("/v1/admin/verification/pending", auth=ADMIN_AUTH).json()
        assert queue["items"] == []

    def test_stale_decision_is_already_processed(self, client: TestClient) -> None:
        self.submit(client)
        client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={"status": "approved", "message": "ok"},
            auth=ADMIN_AUTH,
        )

        response = client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={"status": "rejected", "message": "x"},
            auth=ADMIN_AUTH,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "already_processed"
        me = client.get("/v1/verification/me", auth=BREEDER_AUTH).json()
        assert me["status"] == "approved"

    def test_documents_requested_then_resubmitted(self, client: TestClient) -> None:
        self.submit(client)
        requested = client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={
                "status": "additional_documents_required",
                "message": "Need your kennel club registration",
                "requiredDocuments": ["kennel_club_registration"],
            },
            auth=ADMIN_AUTH,
        )
        assert requested.status_code == 200

        resubmitted = client.post(
            "/v1/verification",
            json={"documents": [{"type": "kennel_club_registration", "url": "https://f/kc.pdf"}]},
            auth=BREEDER_AUTH,
        )

        assert resubmitted.status_code == 200
        body = resubmitted.json()
        assert body["status"] == "additional_documents_required"
        assert len(body["documents"]) == 2

    def test_rejected_breeder_reapplies(self, client: TestClient) -> None:
        self.submit(client)
        rejected = client.put(
            f"/v1/admin/verification/{BREEDER_ID}",
            json={
                "status": "rejected",
                "message": "License scan is unreadable",
                "rejectionReason": "unreadable_documents",
            },
            auth=ADMIN_AUTH,
        )
        assert rejected.status_code == 200

        reapplied = self.submit(client)

        assert reapplied["status"] == "pending"
        assert reapplied["rejectionReason"] is None
        assert [h["toStatus"] for h in reapplied["history"]] == ["rejected", "pending"]
        queue = client.get("/v1/admin/verification/pending", auth=ADMIN_AUTH).json()
        assert queue["items"][0]["subjectId"] == BREEDER_ID


class TestReportFlow:
    """Report moderation from filing to account suspension."""

    def file_report(self, client: TestClient) -> dict:
        response = client.post(
            "/v1/reports",
            json={
                "subjectType": "breeder",
                "subjectId": BREEDER_ID,
                "reason": "animal_abuse",
                "description": "Dogs kept in tiny crates",
                "evidenceUrls": ["https://f/photo.jpg"],
            },
            auth=ADOPTER_AUTH,
        )
        assert response.status_code == 201
        return response.json()

    def test_file_investigate_and_suspend(self, client: TestClient) -> None:
        report = self.file_report(client)
        assert report["priority"] == "high"
        report_id = report["id"]

        queue = client.get("/v1/admin/reports", auth=ADMIN_AUTH).json()
        assert queue["statistics"]["pendingReports"] == 1
        assert queue["items"][0]["id"] == report_id

        investigating = client.put(
            f"/v1/admin/reports/{report_id}",
            json={"status": "investigating", "adminMessage": "Contacting the breeder"},
            auth=ADMIN_AUTH,
        )
        assert investigating.status_code == 200

        resolved = client.put(
            f"/v1/admin/reports/{report_id}",
            json={
                "status": "resolved",
                "adminMessage": "Abuse confirmed",
                "action": "suspend_account",
                "actionDetails": {"suspensionDays": 30},
                "reportValid": True,
            },
            auth=ADMIN_AUTH,
        )
        assert resolved.status_code == 200
        assert resolved.json()["message"] == "Report resolved"
        assert resolved.json()["item"]["resolvedAt"] is not None

        # The suspended breeder can no longer authenticate
        response = client.get("/v1/verification/me", auth=BREEDER_AUTH)
        assert response.status_code == 401

        stats = client.get("/v1/admin/reports", auth=ADMIN_AUTH).json()["statistics"]
        assert stats["resolvedReports"] == 1
        assert stats["pendingReports"] == 0

    def test_reporter_sees_own_report_but_others_do_not(self, client: TestClient) -> None:
        report_id = self.file_report(client)["id"]

        assert client.get(f"/v1/reports/{report_id}", auth=ADOPTER_AUTH).status_code == 200
        assert client.get(f"/v1/reports/{report_id}", auth=BREEDER_AUTH).status_code == 404

    def test_escalation_is_metadata_only(self, client: TestClient) -> None:
        report_id = self.file_report(client)["id"]

        response = client.post(
            f"/v1/admin/reports/{report_id}/escalate",
            json={
                "escalationLevel": "senior_admin",
                "reason": "Repeat offender",
                "urgency": "critical",
            },
            auth=ADMIN_AUTH,
        )

        assert response.status_code == 200
        item = response.json()["item"]
        assert item["status"] == "pending"
        assert item["escalationLevel"] == "senior_admin"
        assert item["priority"] == "critical"
        assert item["history"] == []

    def test_rejecting_without_reason_changes_nothing(self, client: TestClient) -> None:
        report_id = self.file_report(client)["id"]

        response = client.put(
            f"/v1/admin/reports/{report_id}",
            json={"status": "rejected", "adminMessage": "Not enough evidence"},
            auth=ADMIN_AUTH,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"
        report = client.get(f"/v1/admin/reports/{report_id}", auth=ADMIN_AUTH).json()
        assert report["status"] == "pending"
        assert report["version"] == 1
