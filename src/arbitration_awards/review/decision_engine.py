"""Review state machine over a case's draft award.

Each action runs its state change, revision and audit entry in one
transaction. Side effects on other systems (reviewer notifications,
re-analysis) happen after commit and never undo the review.
"""
from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from arbitration_awards.audit.chain import AuditChain
from arbitration_awards.domain import (
    AuditAction,
    AwardEscalation,
    AwardModification,
    CaseRecord,
    CaseStatus,
    ChangeType,
    DraftAward,
    DraftAwardRevision,
    EscalationRequest,
    EscalationStatus,
    GeneratedDraft,
    RejectionFeedback,
    ReviewStatus,
)
from arbitration_awards.domain.content import changed_content_fields
from arbitration_awards.domain.draft_award import format_rejection_notes
from arbitration_awards.errors import NotFoundError, StateConflictError, ValidationError
from arbitration_awards.integrations.base import AnalysisTrigger, Notification, NotificationService
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.orchestration.pipeline import FailurePolicy, Pipeline, Stage, prepared
from arbitration_awards.review.escalation import EscalationAssignor, escalation_notification
from arbitration_awards.review.revision_ledger import RevisionLedger
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import SYSTEM_ACTOR, RequestContext, utc_now

logger = get_logger("arbitration_awards.review")

APPROVAL_SUMMARY = "Award approved by arbitrator"
REGENERATION_SUMMARY = "Draft award regenerated after rejection"


@dataclass(slots=True, frozen=True)
class ReviewOutcome:
    draft: DraftAward
    case_status: CaseStatus | None = None
    revision: DraftAwardRevision | None = None
    escalation: AwardEscalation | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "case_id": self.draft.case_id,
            "draft_award_id": self.draft.id,
            "review_status": None if self.draft.review_status is None else self.draft.review_status.value,
            "reviewed_at": None if self.draft.reviewed_at is None else self.draft.reviewed_at.isoformat(),
        }
        if self.case_status is not None:
            payload["case_status"] = self.case_status.value
        if self.revision is not None:
            payload["version"] = self.revision.version
            payload["changed_fields"] = list(self.revision.changed_fields)
        if self.escalation is not None:
            payload["escalation"] = self.escalation.as_dict()
        return payload


@dataclass(slots=True)
class _EscalationRun:
    case_id: str
    reviewer_id: str
    request: EscalationRequest
    context: RequestContext
    case: CaseRecord | None = None
    draft: DraftAward | None = None
    escalation: AwardEscalation | None = None


@dataclass(slots=True)
class _RejectionRun:
    case_id: str
    reviewer_id: str
    feedback: RejectionFeedback
    context: RequestContext
    draft: DraftAward | None = None
    case_status: CaseStatus | None = None


@dataclass(slots=True)
class _ResolutionRun:
    case_id: str
    reviewer_id: str
    resolution: str
    returned: bool
    context: RequestContext
    case: CaseRecord | None = None
    draft: DraftAward | None = None
    escalation: AwardEscalation | None = None


class ReviewDecisionEngine:
    def __init__(
        self,
        repositories: Repositories,
        *,
        ledger: RevisionLedger,
        audit: AuditChain,
        assignor: EscalationAssignor,
        notifications: NotificationService,
        analysis: AnalysisTrigger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._ledger = ledger
        self._audit = audit
        self._assignor = assignor
        self._notifications = notifications
        self._analysis = analysis
        self._clock = clock

        self._escalation_pipeline: Pipeline[_EscalationRun] = Pipeline(
            "escalate_draft_award",
            [
                Stage("persist_escalation", self._persist_escalation),
                Stage("notify_assignee", self._notify_assignee, FailurePolicy.CONTINUE),
            ],
        )
        self._rejection_pipeline: Pipeline[_RejectionRun] = Pipeline(
            "reject_draft_award",
            [
                Stage("persist_rejection", self._persist_rejection),
                Stage("request_reanalysis", self._request_reanalysis, FailurePolicy.CONTINUE),
            ],
        )
        self._resolution_pipeline: Pipeline[_ResolutionRun] = Pipeline(
            "resolve_escalation",
            [
                Stage("persist_resolution", self._persist_resolution),
                Stage("notify_escalator", self._notify_escalator, FailurePolicy.CONTINUE),
            ],
        )

    # ------------------------------------------------------------------
    # Draft intake
    # ------------------------------------------------------------------

    def register_draft(
        self,
        case_id: str,
        generated: GeneratedDraft,
        *,
        actor_id: str = SYSTEM_ACTOR,
        context: RequestContext | None = None,
    ) -> ReviewOutcome:
        """Store generator output as the case's draft, or replace a rejected one."""
        with self._repos.transaction():
            self._require_case(case_id)
            self._ensure_not_issued(case_id)
            existing = self._repos.drafts.get_by_case(case_id)
            now = self._clock()
            if existing is None:
                draft = DraftAward(
                    id=str(uuid.uuid4()),
                    case_id=case_id,
                    content=generated.content,
                    confidence=generated.confidence,
                    model_used=generated.model_used,
                    generated_at=now,
                )
                self._repos.drafts.insert(draft)
                revision = self._ledger.create_initial_revision(draft, actor_id)
            elif existing.review_status is ReviewStatus.REJECT:
                self._ledger.create_initial_revision(existing, actor_id)
                draft = replace(
                    existing,
                    content=generated.content,
                    confidence=generated.confidence,
                    model_used=generated.model_used,
                    generated_at=now,
                    review_status=None,
                    review_notes=None,
                    reviewed_at=None,
                )
                self._repos.drafts.update(draft)
                revision = self._ledger.append_revision(
                    draft.id,
                    draft.content,
                    change_type=ChangeType.REGENERATION,
                    change_summary=REGENERATION_SUMMARY,
                    changed_fields=changed_content_fields(existing.content, draft.content),
                    author_id=actor_id,
                )
            else:
                raise StateConflictError(
                    "A draft award already exists for this case", case_id=case_id
                )

            case = self._repos.cases.set_status(case_id, CaseStatus.ARBITRATOR_REVIEW)
            self._audit.record(
                AuditAction.DRAFT_AWARD_GENERATED,
                actor_id=actor_id,
                case_id=case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "version": revision.version,
                    "model_used": draft.model_used,
                    "confidence": draft.confidence,
                    "regenerated": existing is not None,
                },
                context=context,
            )

        logger.info(
            "draft_award_registered",
            case_id=case_id,
            draft_award_id=draft.id,
            version=revision.version,
        )
        return ReviewOutcome(draft=draft, case_status=case.status, revision=revision)

    # ------------------------------------------------------------------
    # Review actions
    # ------------------------------------------------------------------

    def approve(
        self,
        case_id: str,
        reviewer_id: str,
        notes: str | None = None,
        *,
        context: RequestContext | None = None,
    ) -> ReviewOutcome:
        with self._repos.transaction():
            draft = self._reviewable_draft(case_id)
            approved = replace(
                draft,
                review_status=ReviewStatus.APPROVE,
                review_notes=notes,
                reviewed_at=self._clock(),
            )
            self._repos.drafts.update(approved)

            revision = None
            if self._ledger.latest_version(draft.id) > 0:
                revision = self._ledger.append_revision(
                    draft.id,
                    approved.content,
                    change_type=ChangeType.ARBITRATOR_EDIT,
                    change_summary=APPROVAL_SUMMARY,
                    changed_fields=("review_status",),
                    author_id=reviewer_id,
                )
            case = self._repos.cases.set_status(case_id, CaseStatus.DECIDED)
            self._audit.record(
                AuditAction.DRAFT_AWARD_APPROVED,
                actor_id=reviewer_id,
                case_id=case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "version": None if revision is None else revision.version,
                    "has_notes": bool(notes),
                },
                context=context,
            )

        logger.info("draft_award_approved", case_id=case_id, draft_award_id=draft.id)
        return ReviewOutcome(draft=approved, case_status=case.status, revision=revision)

    def modify(
        self,
        case_id: str,
        reviewer_id: str,
        changes: AwardModification,
        change_summary: str,
        *,
        context: RequestContext | None = None,
    ) -> ReviewOutcome:
        if not change_summary or not change_summary.strip():
            raise ValidationError("Change summary is required", case_id=case_id)

        with self._repos.transaction():
            draft = self._reviewable_draft(case_id)
            content, changed_fields = changes.apply(draft.content)
            if not changed_fields:
                raise ValidationError("No modifications provided", case_id=case_id)

            self._ledger.create_initial_revision(draft, SYSTEM_ACTOR)
            revision = self._ledger.append_revision(
                draft.id,
                content,
                change_type=ChangeType.ARBITRATOR_EDIT,
                change_summary=change_summary.strip(),
                changed_fields=changed_fields,
                author_id=reviewer_id,
            )
            modified = replace(
                draft,
                content=content,
                review_status=ReviewStatus.MODIFY,
                reviewed_at=self._clock(),
            )
            self._repos.drafts.update(modified)
            self._audit.record(
                AuditAction.DRAFT_AWARD_MODIFIED,
                actor_id=reviewer_id,
                case_id=case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "version": revision.version,
                    "changed_fields": list(changed_fields),
                    "change_summary": revision.change_summary,
                },
                context=context,
            )

        logger.info(
            "draft_award_modified",
            case_id=case_id,
            draft_award_id=draft.id,
            version=revision.version,
            changed_fields=list(changed_fields),
        )
        return ReviewOutcome(draft=modified, revision=revision)

    def reject(
        self,
        case_id: str,
        reviewer_id: str,
        feedback: RejectionFeedback,
        *,
        context: RequestContext | None = None,
    ) -> ReviewOutcome:
        if not feedback.description.strip() or not feedback.affected_sections:
            raise ValidationError(
                "Rejection feedback requires a description and affected sections",
                case_id=case_id,
            )
        run = _RejectionRun(case_id, reviewer_id, feedback, context or RequestContext())
        self._rejection_pipeline.run(run, case_id=case_id)
        return ReviewOutcome(draft=prepared(run.draft, "draft"), case_status=run.case_status)

    def escalate(
        self,
        case_id: str,
        reviewer_id: str,
        request: EscalationRequest,
        *,
        context: RequestContext | None = None,
    ) -> ReviewOutcome:
        run = _EscalationRun(case_id, reviewer_id, request, context or RequestContext())
        self._escalation_pipeline.run(run, case_id=case_id)
        return ReviewOutcome(
            draft=prepared(run.draft, "draft"),
            escalation=prepared(run.escalation, "escalation"),
        )

    def resolve_escalation(
        self,
        case_id: str,
        reviewer_id: str,
        resolution: str,
        *,
        returned: bool = False,
        context: RequestContext | None = None,
    ) -> AwardEscalation:
        if not resolution or not resolution.strip():
            raise ValidationError("Resolution is required", case_id=case_id)
        run = _ResolutionRun(case_id, reviewer_id, resolution.strip(), returned, context or RequestContext())
        self._resolution_pipeline.run(run, case_id=case_id)
        return prepared(run.escalation, "escalation")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_draft(self, case_id: str) -> DraftAward:
        draft = self._repos.drafts.get_by_case(case_id)
        if draft is None:
            raise NotFoundError("Draft award not found", case_id=case_id)
        return draft

    def get_escalation(self, case_id: str) -> AwardEscalation | None:
        return self._repos.escalations.get_by_draft(self.get_draft(case_id).id)

    def get_revision_history(self, case_id: str) -> list[DraftAwardRevision]:
        return self._ledger.get_history(self.get_draft(case_id).id)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _persist_rejection(self, run: _RejectionRun) -> None:
        notes = format_rejection_notes(run.feedback)
        with self._repos.transaction():
            draft = self._reviewable_draft(run.case_id)
            rejected = replace(
                draft,
                review_status=ReviewStatus.REJECT,
                review_notes=notes,
                reviewed_at=self._clock(),
            )
            self._repos.drafts.update(rejected)
            case = self._repos.cases.set_status(run.case_id, CaseStatus.ANALYSIS_IN_PROGRESS)
            self._audit.record(
                AuditAction.DRAFT_AWARD_REJECTED,
                actor_id=run.reviewer_id,
                case_id=run.case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "category": run.feedback.category.value,
                    "severity": run.feedback.severity.value,
                    "affected_sections": list(run.feedback.affected_sections),
                },
                context=run.context,
            )
        run.draft = rejected
        run.case_status = case.status
        logger.info(
            "draft_award_rejected",
            case_id=run.case_id,
            draft_award_id=draft.id,
            category=run.feedback.category.value,
        )

    def _request_reanalysis(self, run: _RejectionRun) -> None:
        draft = prepared(run.draft, "draft")
        self._analysis.request_reanalysis(run.case_id, prepared(draft.review_notes, "review notes"))

    def _persist_escalation(self, run: _EscalationRun) -> None:
        with self._repos.transaction():
            draft = self._reviewable_draft(run.case_id)
            existing = self._repos.escalations.get_by_draft(draft.id)
            if existing is not None and existing.is_active:
                raise StateConflictError(
                    "This award is already escalated and pending review",
                    case_id=run.case_id,
                    escalation_id=existing.id,
                )
            case = self._repos.cases.get(run.case_id)
            escalation = self._assignor.open_escalation(draft, case, run.reviewer_id, run.request)
            escalated = replace(draft, review_status=ReviewStatus.ESCALATE, reviewed_at=self._clock())
            self._repos.drafts.update(escalated)
            self._audit.record(
                AuditAction.DRAFT_AWARD_ESCALATED,
                actor_id=run.reviewer_id,
                case_id=run.case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "escalation_id": escalation.id,
                    "reason": escalation.reason.value,
                    "urgency": escalation.urgency.value,
                    "assigned_to_id": escalation.assigned_to_id,
                },
                context=run.context,
            )
        run.case = case
        run.draft = escalated
        run.escalation = escalation
        logger.info(
            "draft_award_escalated",
            case_id=run.case_id,
            escalation_id=escalation.id,
            status=escalation.status.value,
            assigned_to_id=escalation.assigned_to_id,
        )

    def _notify_assignee(self, run: _EscalationRun) -> None:
        escalation = prepared(run.escalation, "escalation")
        if escalation.assigned_to_id is None:
            return
        self._notifications.send(escalation_notification(escalation, run.case))

    def _persist_resolution(self, run: _ResolutionRun) -> None:
        with self._repos.transaction():
            draft = self._reviewable_draft(run.case_id)
            escalation = self._repos.escalations.get_by_draft(draft.id)
            if escalation is None:
                raise NotFoundError("Escalation not found", case_id=run.case_id)
            if not escalation.is_active:
                raise StateConflictError(
                    f"Escalation is {escalation.status.value}, nothing to resolve",
                    escalation_id=escalation.id,
                )
            if escalation.assigned_to_id != run.reviewer_id:
                raise StateConflictError(
                    "Only the assigned arbitrator can resolve this escalation",
                    escalation_id=escalation.id,
                )
            resolved = self._repos.escalations.upsert(
                replace(
                    escalation,
                    status=EscalationStatus.RETURNED if run.returned else EscalationStatus.RESOLVED,
                    resolved_at=self._clock(),
                    resolution=run.resolution,
                )
            )
            self._audit.record(
                AuditAction.ESCALATION_RESOLVED,
                actor_id=run.reviewer_id,
                case_id=run.case_id,
                metadata={
                    "draft_award_id": draft.id,
                    "escalation_id": resolved.id,
                    "status": resolved.status.value,
                },
                context=run.context,
            )
        run.case = self._repos.cases.get(run.case_id)
        run.draft = draft
        run.escalation = resolved
        logger.info(
            "escalation_resolved",
            case_id=run.case_id,
            escalation_id=resolved.id,
            status=resolved.status.value,
        )

    def _notify_escalator(self, run: _ResolutionRun) -> None:
        escalation = prepared(run.escalation, "escalation")
        case_label = run.case.reference_number if run.case is not None else run.case_id
        self._notifications.send(
            Notification(
                recipient_id=escalation.escalated_by_id,
                template="escalation_resolved",
                subject="Escalation Resolved",
                body=f"The escalation for case {case_label} has been {escalation.status.value.lower()}.",
                case_id=run.case_id,
                data={"escalation_id": escalation.id},
            )
        )

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_case(self, case_id: str) -> CaseRecord:
        case = self._repos.cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", case_id=case_id)
        return case

    def _ensure_not_issued(self, case_id: str) -> None:
        if self._repos.awards.get_by_case(case_id) is not None:
            raise StateConflictError("Award has already been issued for this case", case_id=case_id)

    def _reviewable_draft(self, case_id: str) -> DraftAward:
        draft = self.get_draft(case_id)
        self._ensure_not_issued(case_id)
        return draft
