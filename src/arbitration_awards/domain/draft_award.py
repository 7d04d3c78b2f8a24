from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from arbitration_awards.domain.content import (
    CONTENT_FIELDS,
    AwardContent,
    ConclusionOfLaw,
    FindingOfFact,
    PrevailingParty,
)


class ReviewStatus(StrEnum):
    APPROVE = "APPROVE"
    MODIFY = "MODIFY"
    REJECT = "REJECT"
    ESCALATE = "ESCALATE"


class ChangeType(StrEnum):
    INITIAL = "INITIAL"
    ARBITRATOR_EDIT = "ARBITRATOR_EDIT"
    REGENERATION = "REGENERATION"


@dataclass(slots=True, frozen=True)
class DraftAward:
    id: str
    case_id: str
    content: AwardContent
    confidence: float
    model_used: str
    generated_at: datetime
    review_status: ReviewStatus | None = None
    review_notes: str | None = None
    reviewed_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "content": self.content.as_dict(),
            "confidence": self.confidence,
            "model_used": self.model_used,
            "generated_at": self.generated_at.isoformat(),
            "review_status": None if self.review_status is None else self.review_status.value,
            "review_notes": self.review_notes,
            "reviewed_at": None if self.reviewed_at is None else self.reviewed_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class DraftAwardRevision:
    id: str
    draft_award_id: str
    version: int
    content: AwardContent
    change_type: ChangeType
    change_summary: str
    changed_fields: tuple[str, ...]
    author_id: str
    created_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "draft_award_id": self.draft_award_id,
            "version": self.version,
            "content": self.content.as_dict(),
            "change_type": self.change_type.value,
            "change_summary": self.change_summary,
            "changed_fields": list(self.changed_fields),
            "author_id": self.author_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class AwardModification:
    """Partial update of a draft's content; ``None`` leaves a field untouched."""

    findings_of_fact: tuple[FindingOfFact, ...] | None = None
    conclusions_of_law: tuple[ConclusionOfLaw, ...] | None = None
    decision: str | None = None
    award_amount: Decimal | None = None
    prevailing_party: PrevailingParty | None = None
    reasoning: str | None = None

    def apply(self, content: AwardContent) -> tuple[AwardContent, tuple[str, ...]]:
        """Return the post-change content and the names of fields that actually differ."""
        updates: dict[str, Any] = {}
        for name in CONTENT_FIELDS:
            proposed = getattr(self, name)
            if proposed is None:
                continue
            if isinstance(proposed, list):
                proposed = tuple(proposed)
            if proposed != getattr(content, name):
                updates[name] = proposed
        changed = tuple(name for name in CONTENT_FIELDS if name in updates)
        return replace(content, **updates), changed

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AwardModification:
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unsupported modification fields: {', '.join(unknown)}")
        partial = AwardContent.from_dict(
            {
                "findings_of_fact": data.get("findings_of_fact") or (),
                "conclusions_of_law": data.get("conclusions_of_law") or (),
                "award_amount": data.get("award_amount"),
                "prevailing_party": data.get("prevailing_party"),
            }
        )
        return cls(
            findings_of_fact=partial.findings_of_fact if "findings_of_fact" in data else None,
            conclusions_of_law=partial.conclusions_of_law if "conclusions_of_law" in data else None,
            decision=data.get("decision"),
            award_amount=partial.award_amount,
            prevailing_party=partial.prevailing_party,
            reasoning=data.get("reasoning"),
        )


class RejectionCategory(StrEnum):
    LEGAL_ERROR = "legal_error"
    FACTUAL_ERROR = "factual_error"
    PROCEDURAL_ERROR = "procedural_error"
    CALCULATION_ERROR = "calculation_error"
    OTHER = "other"


class RejectionSeverity(StrEnum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


@dataclass(slots=True, frozen=True)
class RejectionFeedback:
    category: RejectionCategory
    severity: RejectionSeverity
    description: str
    affected_sections: tuple[str, ...]
    suggested_corrections: str | None = None


def format_rejection_notes(feedback: RejectionFeedback) -> str:
    lines = [
        f"**Rejection Category:** {feedback.category.value.replace('_', ' ')}",
        f"**Severity:** {feedback.severity.value}",
        "",
        "**Description:**",
        feedback.description,
        "",
        f"**Affected Sections:** {', '.join(feedback.affected_sections)}",
    ]
    if feedback.suggested_corrections:
        lines.extend(["", "**Suggested Corrections:**", feedback.suggested_corrections])
    return "\n".join(lines)
