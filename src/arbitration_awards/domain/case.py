from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CaseStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING_RESPONDENT = "PENDING_RESPONDENT"
    PENDING_AGREEMENT = "PENDING_AGREEMENT"
    EVIDENCE_SUBMISSION = "EVIDENCE_SUBMISSION"
    ANALYSIS_PENDING = "ANALYSIS_PENDING"
    ANALYSIS_IN_PROGRESS = "ANALYSIS_IN_PROGRESS"
    ARBITRATOR_REVIEW = "ARBITRATOR_REVIEW"
    DECIDED = "DECIDED"
    CLOSED = "CLOSED"


# DECIDED stays issuable so an approved draft can be finalized after approval
# has already advanced the case.
ISSUABLE_CASE_STATUSES: frozenset[CaseStatus] = frozenset(
    {
        CaseStatus.ARBITRATOR_REVIEW,
        CaseStatus.DECIDED,
    }
)


class UserRole(StrEnum):
    CLAIMANT = "CLAIMANT"
    RESPONDENT = "RESPONDENT"
    ARBITRATOR = "ARBITRATOR"
    ADMIN = "ADMIN"


@dataclass(slots=True, frozen=True)
class CaseRecord:
    id: str
    reference_number: str
    status: CaseStatus
    claimant_id: str
    created_at: datetime
    respondent_id: str | None = None
    arbitrator_id: str | None = None
    jurisdiction: str = "US-CA"


@dataclass(slots=True, frozen=True)
class UserProfile:
    id: str
    name: str | None
    email: str
    role: UserRole
    is_active: bool = True
    years_experience: int = 0
    cases_completed: int = 0

    @property
    def display_name(self) -> str:
        return self.name or self.email
