from __future__ import annotations

from typing import Any

import pytest

from conftest import RecordingNotifications, open_case, seed_parties
from arbitration_awards.domain import (
    AuditAction,
    EscalationReason,
    EscalationRequest,
    EscalationStatus,
    EscalationUrgency,
    GeneratedDraft,
    ReviewStatus,
    UserProfile,
    UserRole,
)
from arbitration_awards.errors import StateConflictError
from arbitration_awards.services import AwardServices

LOW_CONFIDENCE = EscalationRequest(
    reason=EscalationReason.AI_CONFIDENCE_LOW,
    detail="Model confidence below threshold",
    urgency=EscalationUrgency.HIGH,
)


def _case_without_seniors(services: AwardServices, draft_payload: dict[str, Any]) -> str:
    seed_parties(services, senior_reviewers=0)
    case = open_case(services)
    services.review.register_draft(case.id, GeneratedDraft.from_dict(draft_payload))
    return case.id


def test_escalation_assigns_qualifying_reviewer(
    services: AwardServices, seeded_case: str, notifications: RecordingNotifications
) -> None:
    outcome = services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)

    escalation = outcome.escalation
    assert escalation is not None
    assert escalation.status == EscalationStatus.ASSIGNED
    assert escalation.assigned_to_id == "senior-1"
    assert escalation.assigned_at is not None
    assert escalation.urgency == EscalationUrgency.HIGH
    assert outcome.draft.review_status == ReviewStatus.ESCALATE
    assert notifications.templates_for("senior-1") == ["draft_award_escalated"]


def test_escalation_without_reviewer_stays_pending(
    services: AwardServices, draft_payload: dict[str, Any], notifications: RecordingNotifications
) -> None:
    case_id = _case_without_seniors(services, draft_payload)

    outcome = services.review.escalate(case_id, "arb-1", LOW_CONFIDENCE)

    assert outcome.escalation is not None
    assert outcome.escalation.status == EscalationStatus.PENDING
    assert outcome.escalation.assigned_to_id is None
    assert notifications.sent == []


def test_reviewer_selection_prefers_most_completed_cases(services: AwardServices) -> None:
    seed_parties(services, senior_reviewers=3)
    services.repositories.users.save(
        UserProfile(
            "senior-inactive",
            "Retired Reviewer",
            "retired@example.com",
            UserRole.ARBITRATOR,
            is_active=False,
            years_experience=30,
            cases_completed=900,
        )
    )
    case = open_case(services)

    reviewer = services.assignor.select_reviewer(case, "arb-1")

    assert reviewer is not None
    assert reviewer.id == "senior-1"


def test_reviewer_selection_excludes_escalator_and_case_arbitrator(services: AwardServices) -> None:
    seed_parties(services, senior_reviewers=2)
    case = open_case(services, arbitrator_id="senior-2")

    reviewer = services.assignor.select_reviewer(case, "senior-1")

    assert reviewer is None


def test_escalating_twice_conflicts(services: AwardServices, seeded_case: str) -> None:
    services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)

    with pytest.raises(StateConflictError, match="already escalated"):
        services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)


def test_resolve_then_reescalate_reuses_record(services: AwardServices, seeded_case: str) -> None:
    first = services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE).escalation
    assert first is not None

    resolved = services.review.resolve_escalation(seeded_case, "senior-1", "Draft is sound")
    assert resolved.status == EscalationStatus.RESOLVED
    assert resolved.resolution == "Draft is sound"
    assert resolved.resolved_at is not None

    second = services.review.escalate(
        seeded_case,
        "arb-1",
        EscalationRequest(reason=EscalationReason.HIGH_VALUE_CLAIM),
    ).escalation

    assert second is not None
    assert second.id == first.id
    assert second.status == EscalationStatus.ASSIGNED
    assert second.reason == EscalationReason.HIGH_VALUE_CLAIM
    assert second.resolution is None


def test_only_assignee_can_resolve(services: AwardServices, seeded_case: str) -> None:
    services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)

    with pytest.raises(StateConflictError, match="Only the assigned arbitrator"):
        services.review.resolve_escalation(seeded_case, "arb-1", "Self-resolved")


def test_returned_escalation_notifies_escalator(
    services: AwardServices, seeded_case: str, notifications: RecordingNotifications
) -> None:
    services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)

    returned = services.review.resolve_escalation(
        seeded_case, "senior-1", "Needs rework", returned=True
    )

    assert returned.status == EscalationStatus.RETURNED
    assert notifications.templates_for("arb-1") == ["escalation_resolved"]


def test_assignee_notification_failure_keeps_escalation(
    services: AwardServices, seeded_case: str, notifications: RecordingNotifications
) -> None:
    notifications.failing_recipients.add("senior-1")

    outcome = services.review.escalate(seeded_case, "arb-1", LOW_CONFIDENCE)

    assert outcome.escalation is not None
    stored = services.review.get_escalation(seeded_case)
    assert stored is not None
    assert stored.status == EscalationStatus.ASSIGNED


def test_sweep_assigns_pending_escalations(
    services: AwardServices, draft_payload: dict[str, Any], notifications: RecordingNotifications
) -> None:
    case_id = _case_without_seniors(services, draft_payload)
    services.review.escalate(case_id, "arb-1", LOW_CONFIDENCE)
    assert services.assignor.assign_pending() == []

    seed_parties(services, senior_reviewers=1)
    assigned = services.assignor.assign_pending()

    assert [escalation.assigned_to_id for escalation in assigned] == ["senior-1"]
    assert services.assignor.assign_pending() == []
    assert notifications.templates_for("senior-1") == ["draft_award_escalated"]

    assignment = services.audit.entries_for_case(case_id)[-1]
    assert assignment.action == AuditAction.CASE_ASSIGNED
    assert assignment.actor_id == "system"
    assert assignment.metadata["assigned_to_id"] == "senior-1"
