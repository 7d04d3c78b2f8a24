from __future__ import annotations

import csv
import io
import json
from dataclasses import replace
from typing import Any

import pytest

from arbitration_awards.audit.reporter import CSV_HEADERS, ExportFormat
from arbitration_awards.domain import AuditAction
from arbitration_awards.errors import NotFoundError
from arbitration_awards.services import AwardServices


def _issue(services: AwardServices, case_id: str) -> None:
    services.review.approve(case_id, "arb-1")
    services.finalizer.finalize(case_id, "arb-1")


def test_case_audit_trail_summarizes_lifecycle(services: AwardServices, seeded_case: str) -> None:
    _issue(services, seeded_case)

    trail = services.reporter.get_case_audit_trail(seeded_case)

    actions = [entry.action for entry in trail.timeline]
    assert actions == [
        AuditAction.DRAFT_AWARD_GENERATED,
        AuditAction.DRAFT_AWARD_APPROVED,
        AuditAction.AWARD_SIGNED,
        AuditAction.AWARD_ISSUED,
    ]
    assert trail.summary["total_events"] == 4
    assert trail.summary["events_by_category"]["award"] == 2
    milestones = [item["event"] for item in trail.summary["key_milestones"]]
    assert milestones == ["DRAFT_AWARD_APPROVED", "AWARD_ISSUED"]
    assert trail.integrity.is_valid is True
    assert trail.integrity.chain_status == "intact"
    assert trail.parties["claimant"] == {
        "id": "claimant-1",
        "name": "Casey Claimant",
        "email": "casey@example.com",
    }


def test_timeline_resolves_actor_names(services: AwardServices, seeded_case: str) -> None:
    services.review.approve(seeded_case, "arb-1")

    approved = services.reporter.get_case_timeline(seeded_case)[-1]

    assert approved.user_name == "Alex Arbitrator"
    assert approved.user_role == "ARBITRATOR"
    assert approved.description


def test_unknown_case_is_not_found(services: AwardServices) -> None:
    with pytest.raises(NotFoundError, match="Case not found"):
        services.reporter.get_case_audit_trail("nope")


def test_json_export_round_trips_trail(services: AwardServices, seeded_case: str) -> None:
    _issue(services, seeded_case)

    exported = services.reporter.export_timeline(seeded_case, ExportFormat.JSON)

    assert isinstance(exported, str)
    payload: dict[str, Any] = json.loads(exported)
    assert payload["case_id"] == seeded_case
    assert len(payload["timeline"]) == 4
    assert payload["integrity_status"]["is_valid"] is True


def test_csv_export_has_header_and_one_row_per_event(services: AwardServices, seeded_case: str) -> None:
    _issue(services, seeded_case)

    exported = services.reporter.export_timeline(seeded_case, "csv")

    assert isinstance(exported, str)
    rows = list(csv.reader(io.StringIO(exported)))
    assert tuple(rows[0]) == CSV_HEADERS
    assert len(rows) == 5
    assert rows[-1][1] == "AWARD_ISSUED"


def test_print_export_is_a_dictionary(services: AwardServices, seeded_case: str) -> None:
    exported = services.reporter.export_timeline(seeded_case, ExportFormat.PRINT)

    assert isinstance(exported, dict)
    assert exported["summary"]["total_events"] == 1


def test_tampering_marks_case_trail_broken(services: AwardServices, seeded_case: str) -> None:
    services.review.approve(seeded_case, "arb-1")
    table = services.repositories.database.tables["audit_log"]  # type: ignore[attr-defined]
    first = min(table)
    table[first] = replace(table[first], metadata={"draft_award_id": "forged"})

    trail = services.reporter.get_case_audit_trail(seeded_case)
    [summary] = services.reporter.summarize_cases([seeded_case])

    assert trail.integrity.is_valid is False
    assert trail.integrity.chain_status == "broken"
    assert trail.integrity.invalid_entries == 1
    assert summary.has_integrity_issues is True
    assert summary.event_count == 2
