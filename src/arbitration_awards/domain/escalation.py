from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any


class EscalationReason(StrEnum):
    COMPLEX_LEGAL_ISSUES = "COMPLEX_LEGAL_ISSUES"
    CONFLICTING_EVIDENCE = "CONFLICTING_EVIDENCE"
    HIGH_VALUE_CLAIM = "HIGH_VALUE_CLAIM"
    NOVEL_LEGAL_QUESTION = "NOVEL_LEGAL_QUESTION"
    CREDIBILITY_CONCERNS = "CREDIBILITY_CONCERNS"
    PROCEDURAL_ISSUES = "PROCEDURAL_ISSUES"
    AI_CONFIDENCE_LOW = "AI_CONFIDENCE_LOW"
    OTHER = "OTHER"


class EscalationUrgency(StrEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class EscalationStatus(StrEnum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    RESOLVED = "RESOLVED"
    RETURNED = "RETURNED"


ACTIVE_ESCALATION_STATUSES: frozenset[EscalationStatus] = frozenset(
    {
        EscalationStatus.PENDING,
        EscalationStatus.ASSIGNED,
    }
)


@dataclass(slots=True, frozen=True)
class EscalationRequest:
    reason: EscalationReason
    detail: str | None = None
    urgency: EscalationUrgency = EscalationUrgency.NORMAL


@dataclass(slots=True, frozen=True)
class AwardEscalation:
    id: str
    draft_award_id: str
    reason: EscalationReason
    urgency: EscalationUrgency
    escalated_by_id: str
    escalated_at: datetime
    status: EscalationStatus
    detail: str | None = None
    assigned_to_id: str | None = None
    assigned_at: datetime | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ESCALATION_STATUSES

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "draft_award_id": self.draft_award_id,
            "reason": self.reason.value,
            "detail": self.detail,
            "urgency": self.urgency.value,
            "status": self.status.value,
            "escalated_by_id": self.escalated_by_id,
            "escalated_at": self.escalated_at.isoformat(),
            "assigned_to_id": self.assigned_to_id,
            "assigned_at": None if self.assigned_at is None else self.assigned_at.isoformat(),
            "resolved_at": None if self.resolved_at is None else self.resolved_at.isoformat(),
            "resolution": self.resolution,
        }
