from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

CONTENT_FIELDS: tuple[str, ...] = (
    "findings_of_fact",
    "conclusions_of_law",
    "decision",
    "award_amount",
    "prevailing_party",
    "reasoning",
)


class PrevailingParty(StrEnum):
    CLAIMANT = "CLAIMANT"
    RESPONDENT = "RESPONDENT"
    SPLIT = "SPLIT"


class FindingBasis(StrEnum):
    UNDISPUTED = "undisputed"
    PROVEN = "proven"
    CREDIBILITY = "credibility"


@dataclass(slots=True, frozen=True)
class FindingOfFact:
    id: str
    number: int
    finding: str
    basis: FindingBasis
    supporting_evidence: tuple[str, ...] = ()
    credibility_note: str | None = None
    date: str | None = None
    amount: Decimal | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "finding": self.finding,
            "basis": self.basis.value,
            "supporting_evidence": list(self.supporting_evidence),
            "credibility_note": self.credibility_note,
            "date": self.date,
            "amount": None if self.amount is None else str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FindingOfFact:
        return cls(
            id=str(data["id"]),
            number=int(data["number"]),
            finding=str(data["finding"]),
            basis=FindingBasis(data["basis"]),
            supporting_evidence=tuple(str(item) for item in data.get("supporting_evidence", ())),
            credibility_note=data.get("credibility_note"),
            date=data.get("date"),
            amount=parse_amount(data.get("amount")),
        )


@dataclass(slots=True, frozen=True)
class ConclusionOfLaw:
    id: str
    number: int
    issue: str
    conclusion: str
    legal_basis: tuple[str, ...] = ()
    supporting_findings: tuple[int, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "issue": self.issue,
            "conclusion": self.conclusion,
            "legal_basis": list(self.legal_basis),
            "supporting_findings": list(self.supporting_findings),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConclusionOfLaw:
        return cls(
            id=str(data["id"]),
            number=int(data["number"]),
            issue=str(data["issue"]),
            conclusion=str(data["conclusion"]),
            legal_basis=tuple(str(item) for item in data.get("legal_basis", ())),
            supporting_findings=tuple(int(item) for item in data.get("supporting_findings", ())),
        )


@dataclass(slots=True, frozen=True)
class AwardContent:
    """The substantive part of an award, shared by drafts, revisions and awards."""

    findings_of_fact: tuple[FindingOfFact, ...]
    conclusions_of_law: tuple[ConclusionOfLaw, ...]
    decision: str
    award_amount: Decimal | None
    prevailing_party: PrevailingParty | None
    reasoning: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "findings_of_fact": [finding.as_dict() for finding in self.findings_of_fact],
            "conclusions_of_law": [conclusion.as_dict() for conclusion in self.conclusions_of_law],
            "decision": self.decision,
            "award_amount": None if self.award_amount is None else str(self.award_amount),
            "prevailing_party": None if self.prevailing_party is None else self.prevailing_party.value,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AwardContent:
        raw_party = data.get("prevailing_party")
        return cls(
            findings_of_fact=tuple(
                FindingOfFact.from_dict(item) for item in data.get("findings_of_fact", ())
            ),
            conclusions_of_law=tuple(
                ConclusionOfLaw.from_dict(item) for item in data.get("conclusions_of_law", ())
            ),
            decision=str(data.get("decision", "")),
            award_amount=parse_amount(data.get("award_amount")),
            prevailing_party=None if raw_party is None else PrevailingParty(str(raw_party).upper()),
            reasoning=str(data.get("reasoning", "")),
        )


@dataclass(slots=True, frozen=True)
class GeneratedDraft:
    """Output contract of the draft generation collaborator."""

    content: AwardContent
    confidence: float
    model_used: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeneratedDraft:
        return cls(
            content=AwardContent.from_dict(data),
            confidence=float(data.get("confidence", 0.0)),
            model_used=str(data.get("model_used", "unknown")),
        )


def changed_content_fields(before: AwardContent, after: AwardContent) -> tuple[str, ...]:
    return tuple(name for name in CONTENT_FIELDS if getattr(before, name) != getattr(after, name))


def parse_amount(raw_value: object) -> Decimal | None:
    if raw_value is None or raw_value == "":
        return None
    if isinstance(raw_value, bool):
        raise ValueError("award amount must be numeric")
    try:
        amount = Decimal(str(raw_value))
    except InvalidOperation as exc:
        raise ValueError("award amount must be numeric") from exc
    if not amount.is_finite():
        raise ValueError("award amount must be finite")
    return amount
