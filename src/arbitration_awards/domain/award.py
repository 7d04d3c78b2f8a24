from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from arbitration_awards.domain.content import AwardContent, PrevailingParty

REFERENCE_PREFIX = "AWD"
REFERENCE_PATTERN = re.compile(r"^AWD-\d{8}-\d{5}$")


def format_reference_number(issued_on: date, sequence: int) -> str:
    if sequence < 1:
        raise ValueError("sequence must be positive")
    return f"{REFERENCE_PREFIX}-{issued_on.strftime('%Y%m%d')}-{sequence:05d}"


class NotifiedParty(StrEnum):
    CLAIMANT = "claimant"
    RESPONDENT = "respondent"


@dataclass(slots=True, frozen=True)
class Award:
    id: str
    case_id: str
    reference_number: str
    content: AwardContent
    arbitrator_id: str
    signed_at: datetime
    issued_at: datetime
    signature_value: str
    signature_algorithm: str
    signature_certificate: str
    certificate_fingerprint: str
    document_url: str
    document_hash: str
    timestamp_granted: bool = False
    timestamp_token: str | None = None
    timestamp_time: datetime | None = None
    timestamp_authority: str | None = None
    claimant_notified_at: datetime | None = None
    respondent_notified_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "reference_number": self.reference_number,
            "content": self.content.as_dict(),
            "arbitrator_id": self.arbitrator_id,
            "signed_at": self.signed_at.isoformat(),
            "issued_at": self.issued_at.isoformat(),
            "signature_algorithm": self.signature_algorithm,
            "certificate_fingerprint": self.certificate_fingerprint,
            "timestamp_granted": self.timestamp_granted,
            "timestamp_time": None if self.timestamp_time is None else self.timestamp_time.isoformat(),
            "timestamp_authority": self.timestamp_authority,
            "document_url": self.document_url,
            "document_hash": self.document_hash,
            "claimant_notified_at": (
                None if self.claimant_notified_at is None else self.claimant_notified_at.isoformat()
            ),
            "respondent_notified_at": (
                None
                if self.respondent_notified_at is None
                else self.respondent_notified_at.isoformat()
            ),
        }


@dataclass(slots=True, frozen=True)
class IssuanceCheck:
    can_issue: bool
    reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"can_issue": self.can_issue}
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


@dataclass(slots=True, frozen=True)
class AwardDocument:
    """Everything the renderer needs to lay out a signed award."""

    reference_number: str
    case_reference: str
    claimant_name: str
    respondent_name: str
    arbitrator_name: str
    jurisdiction: str
    content: AwardContent
    signed_at: datetime


@dataclass(slots=True, frozen=True)
class FinalizeResult:
    award_id: str
    reference_number: str
    document_url: str
    document_hash: str
    award_amount: Decimal | None
    prevailing_party: PrevailingParty | None
    issued_at: datetime
    claimant_notified: bool
    respondent_notified: bool
    signature_algorithm: str
    certificate_fingerprint: str
    timestamp_granted: bool
    timestamp_time: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "award_id": self.award_id,
            "reference_number": self.reference_number,
            "document_url": self.document_url,
            "document_hash": self.document_hash,
            "award_amount": None if self.award_amount is None else str(self.award_amount),
            "prevailing_party": None if self.prevailing_party is None else self.prevailing_party.value,
            "issued_at": self.issued_at.isoformat(),
            "claimant_notified": self.claimant_notified,
            "respondent_notified": self.respondent_notified,
            "signature_algorithm": self.signature_algorithm,
            "certificate_fingerprint": self.certificate_fingerprint,
            "timestamp_granted": self.timestamp_granted,
            "timestamp_time": None if self.timestamp_time is None else self.timestamp_time.isoformat(),
        }
