from __future__ import annotations

import csv
import io
import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from conftest import open_case, seed_parties
from arbitration_awards.audit.reporter import CSV_HEADERS
from arbitration_awards.config import AppSettings
from arbitration_awards.runtime.api import build_app
from arbitration_awards.services import AwardServices

ARBITRATOR = {"X-User-Id": "arb-1"}


@pytest.fixture
def client(settings: AppSettings, services: AwardServices) -> TestClient:
    seed_parties(services)
    open_case(services)
    return TestClient(build_app(settings, services))


def _ingest(client: TestClient, draft_payload: dict[str, Any]) -> dict[str, Any]:
    response = client.post("/cases/case-1/draft-award", json={"draft": draft_payload})
    assert response.status_code == 201
    return response.json()


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/livez").json()["status"] == "ok"

    ready = client.get("/readyz").json()
    assert ready["audit_chain_intact"] is True
    assert ready["audit_entries"] == 0


def test_draft_review_and_issuance_flow(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    modified = client.post(
        "/cases/case-1/draft-award/modify",
        json={"changes": {"award_amount": "4500"}, "change_summary": "apply offset"},
        headers=ARBITRATOR,
    )
    assert modified.status_code == 200
    assert modified.json()["review_status"] == "MODIFY"
    assert modified.json()["changed_fields"] == ["award_amount"]

    approved = client.post("/cases/case-1/draft-award/approve", json={}, headers=ARBITRATOR)
    assert approved.status_code == 200
    assert approved.json()["case_status"] == "DECIDED"

    assert client.get("/cases/case-1/award/can-issue").json() == {"case_id": "case-1", "can_issue": True}

    issued = client.post("/cases/case-1/award", headers=ARBITRATOR)
    assert issued.status_code == 201
    assert issued.json()["award_amount"] == "4500"

    award = client.get("/cases/case-1/award").json()
    assert award["reference_number"] == issued.json()["reference_number"]

    revisions = client.get("/cases/case-1/draft-award/revisions").json()["revisions"]
    assert [revision["version"] for revision in revisions] == [3, 2, 1]

    entries = client.get("/cases/case-1/audit-trail").json()["timeline"]
    assert entries[-1]["ip_address"] == "testclient"


def test_missing_draft_maps_to_404(client: TestClient) -> None:
    response = client.get("/cases/case-1/draft-award")

    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "reason": "Draft award not found", "case_id": "case-1"}


def test_unapproved_finalize_maps_to_409(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    response = client.post("/cases/case-1/award", headers=ARBITRATOR)

    assert response.status_code == 409
    assert response.json()["error"] == "state_conflict"


def test_second_issuance_maps_to_409(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)
    client.post("/cases/case-1/draft-award/approve", json={}, headers=ARBITRATOR)
    assert client.post("/cases/case-1/award", headers=ARBITRATOR).status_code == 201

    response = client.post("/cases/case-1/award", headers=ARBITRATOR)

    assert response.status_code == 409
    assert client.get("/cases/case-1/award/can-issue").json()["can_issue"] is False


def test_empty_modification_maps_to_422(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    response = client.post(
        "/cases/case-1/draft-award/modify",
        json={"changes": {}, "change_summary": "nothing"},
        headers=ARBITRATOR,
    )

    assert response.status_code == 422
    assert response.json()["reason"] == "No modifications provided"


def test_review_requires_user_header(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    response = client.post("/cases/case-1/draft-award/approve", json={})

    assert response.status_code == 422


def test_escalation_is_visible_on_the_draft(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    response = client.post(
        "/cases/case-1/draft-award/escalate",
        json={"reason": "NOVEL_LEGAL_QUESTION", "detail": "first impression", "urgency": "HIGH"},
        headers=ARBITRATOR,
    )

    assert response.status_code == 200
    escalation = client.get("/cases/case-1/draft-award").json()["escalation"]
    assert escalation["assigned_to_id"] == "senior-1"
    assert escalation["urgency"] == "HIGH"


def test_csv_export(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    response = client.get("/cases/case-1/audit-trail/export", params={"format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "audit-trail-case-1.csv" in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert tuple(rows[0]) == CSV_HEADERS
    assert len(rows) == 2


def test_json_export_and_chain_verification(client: TestClient, draft_payload: dict[str, Any]) -> None:
    _ingest(client, draft_payload)

    exported = client.get("/cases/case-1/audit-trail/export")
    verification = client.get("/audit-log/verify").json()

    assert exported.headers["content-type"].startswith("application/json")
    assert json.loads(exported.text)["case_id"] == "case-1"
    assert verification["is_valid"] is True
    assert verification["total_entries"] == 1
