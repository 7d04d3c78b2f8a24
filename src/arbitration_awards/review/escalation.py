from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from arbitration_awards.audit.chain import AuditChain
from arbitration_awards.domain import (
    AuditAction,
    AwardEscalation,
    CaseRecord,
    DraftAward,
    EscalationRequest,
    EscalationStatus,
    UserProfile,
    UserRole,
)
from arbitration_awards.integrations.base import Notification, NotificationService
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import SYSTEM_ACTOR, utc_now

logger = get_logger("arbitration_awards.escalation")

DEFAULT_MIN_YEARS_EXPERIENCE = 10


def escalation_notification(escalation: AwardEscalation, case: CaseRecord | None) -> Notification:
    case_label = case.reference_number if case is not None else escalation.draft_award_id
    return Notification(
        recipient_id=escalation.assigned_to_id or "",
        template="draft_award_escalated",
        subject="Case Escalated for Review",
        body=(
            f"Case {case_label} has been escalated and requires your review. "
            f"Reason: {escalation.reason.value.replace('_', ' ')}"
        ),
        case_id=None if case is None else case.id,
        data={"escalation_id": escalation.id, "urgency": escalation.urgency.value},
    )


class EscalationAssignor:
    """Picks the senior reviewer for an escalated draft award.

    A candidate is an active arbitrator with at least ``min_years_experience``
    years who is neither the case's arbitrator nor the person escalating.
    The most experienced by completed cases wins; ties go to the lowest id.
    """

    def __init__(
        self,
        repositories: Repositories,
        audit: AuditChain,
        notifications: NotificationService,
        *,
        min_years_experience: int = DEFAULT_MIN_YEARS_EXPERIENCE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._audit = audit
        self._notifications = notifications
        self._min_years = min_years_experience
        self._clock = clock

    def select_reviewer(
        self, case: CaseRecord | None, escalated_by_id: str
    ) -> UserProfile | None:
        excluded = {escalated_by_id}
        if case is not None and case.arbitrator_id:
            excluded.add(case.arbitrator_id)
        candidates = [
            user
            for user in self._repos.users.list_by_role(UserRole.ARBITRATOR)
            if user.is_active and user.years_experience >= self._min_years and user.id not in excluded
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda user: (-user.cases_completed, user.id))

    def open_escalation(
        self,
        draft: DraftAward,
        case: CaseRecord | None,
        escalated_by_id: str,
        request: EscalationRequest,
    ) -> AwardEscalation:
        """Create or re-open the draft's escalation record; caller owns the transaction."""
        now = self._clock()
        reviewer = self.select_reviewer(case, escalated_by_id)
        escalation = AwardEscalation(
            id=str(uuid.uuid4()),
            draft_award_id=draft.id,
            reason=request.reason,
            urgency=request.urgency,
            escalated_by_id=escalated_by_id,
            escalated_at=now,
            status=EscalationStatus.ASSIGNED if reviewer else EscalationStatus.PENDING,
            detail=request.detail,
            assigned_to_id=None if reviewer is None else reviewer.id,
            assigned_at=None if reviewer is None else now,
        )
        return self._repos.escalations.upsert(escalation)

    def assign_pending(self) -> list[AwardEscalation]:
        assigned: list[AwardEscalation] = []
        for pending in self._repos.escalations.list_by_status(EscalationStatus.PENDING):
            with self._repos.transaction():
                current = self._repos.escalations.get(pending.id)
                if current is None or current.status is not EscalationStatus.PENDING:
                    continue
                draft = self._repos.drafts.get(current.draft_award_id)
                case = None if draft is None else self._repos.cases.get(draft.case_id)
                reviewer = self.select_reviewer(case, current.escalated_by_id)
                if reviewer is None:
                    continue
                escalation = self._repos.escalations.upsert(
                    replace(
                        current,
                        status=EscalationStatus.ASSIGNED,
                        assigned_to_id=reviewer.id,
                        assigned_at=self._clock(),
                    )
                )
                self._audit.append(
                    AuditAction.CASE_ASSIGNED,
                    actor_id=SYSTEM_ACTOR,
                    case_id=None if case is None else case.id,
                    metadata={
                        "escalation_id": escalation.id,
                        "draft_award_id": escalation.draft_award_id,
                        "assigned_to_id": reviewer.id,
                        "assignment": "escalation_review",
                    },
                )
            assigned.append(escalation)
            logger.info(
                "escalation_assigned",
                escalation_id=escalation.id,
                draft_award_id=escalation.draft_award_id,
                assigned_to_id=reviewer.id,
            )
            self.notify_assignee(escalation, case)
        return assigned

    def notify_assignee(self, escalation: AwardEscalation, case: CaseRecord | None) -> bool:
        if escalation.assigned_to_id is None:
            return False
        try:
            self._notifications.send(escalation_notification(escalation, case))
        except Exception as exc:
            logger.warning(
                "escalation_notification_failed",
                escalation_id=escalation.id,
                assigned_to_id=escalation.assigned_to_id,
                error=str(exc),
            )
            return False
        return True
