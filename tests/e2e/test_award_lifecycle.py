from __future__ import annotations

import asyncio
import csv
import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

from conftest import RecordingNotifications, open_case, seed_parties
from arbitration_awards.domain import (
    AuditAction,
    AwardModification,
    EscalationReason,
    EscalationRequest,
    EscalationStatus,
    EscalationUrgency,
    GeneratedDraft,
    ReviewStatus,
    UserProfile,
    UserRole,
)
from arbitration_awards.integrations.blob_storage import InMemoryBlobStorage
from arbitration_awards.runtime.worker import EscalationSweepWorker
from arbitration_awards.services import AwardServices
from arbitration_awards.storage.sqlite import build_sqlite_repositories


def test_escalated_draft_is_reviewed_issued_and_audited(
    tmp_path: Path,
    make_services: Callable[..., AwardServices],
    draft_payload: dict[str, Any],
    notifications: RecordingNotifications,
    blobs: InMemoryBlobStorage,
) -> None:
    services = make_services(repositories=build_sqlite_repositories(str(tmp_path / "lifecycle.db")))
    seed_parties(services, senior_reviewers=0)
    case = open_case(services)
    services.review.register_draft(case.id, GeneratedDraft.from_dict(draft_payload))

    outcome = services.review.escalate(
        case.id,
        "arb-1",
        EscalationRequest(
            reason=EscalationReason.CONFLICTING_EVIDENCE,
            detail="receipts disagree on the delivery date",
            urgency=EscalationUrgency.HIGH,
        ),
    )
    assert outcome.escalation is not None
    assert outcome.escalation.status is EscalationStatus.PENDING

    services.repositories.users.save(
        UserProfile(
            "senior-9",
            "Sam Senior",
            "sam@example.com",
            UserRole.ARBITRATOR,
            years_experience=20,
            cases_completed=250,
        )
    )
    worker = EscalationSweepWorker(assignor=services.assignor, poll_interval_seconds=0.01)
    assert asyncio.run(worker.run_once()) == 1
    assert asyncio.run(worker.run_once()) == 0
    assert notifications.templates_for("senior-9") == ["draft_award_escalated"]

    resolved = services.review.resolve_escalation(case.id, "senior-9", "Delivery date per carrier log")
    assert resolved.status is EscalationStatus.RESOLVED

    services.review.modify(
        case.id,
        "arb-1",
        AwardModification.from_dict({"award_amount": "4200"}),
        "credit the partial refund",
    )
    services.review.approve(case.id, "arb-1", "reviewed after escalation")
    assert services.review.get_draft(case.id).review_status is ReviewStatus.APPROVE

    result = services.finalizer.finalize(case.id, "arb-1", ip_address="203.0.113.20")
    document = blobs.objects[f"awards/{case.id}/{result.award_id}.txt"]
    verification = services.finalizer.verify_document(case.id, document)
    assert verification.matches is True
    assert verification.signer_matches is True
    assert services.finalizer.verify_document(case.id, document + b" ").matches is False
    assert b"$4,200.00" in document

    trail = services.reporter.get_case_audit_trail(case.id)
    actions = [entry.action for entry in trail.timeline]
    assert actions == [
        AuditAction.DRAFT_AWARD_GENERATED,
        AuditAction.DRAFT_AWARD_ESCALATED,
        AuditAction.CASE_ASSIGNED,
        AuditAction.ESCALATION_RESOLVED,
        AuditAction.DRAFT_AWARD_MODIFIED,
        AuditAction.DRAFT_AWARD_APPROVED,
        AuditAction.AWARD_SIGNED,
        AuditAction.AWARD_ISSUED,
    ]
    assert trail.integrity.is_valid is True
    assert trail.summary["total_events"] == len(actions)

    rows = list(csv.reader(io.StringIO(str(services.reporter.export_timeline(case.id, "csv")))))
    assert len(rows) == len(actions) + 1
    assert rows[-1][1] == AuditAction.AWARD_ISSUED.value
    assert rows[-1][6] == "203.0.113.20"

    assert services.audit.verify().is_valid is True
