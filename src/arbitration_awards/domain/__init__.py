"""Domain records for award review, issuance and the audit chain."""

from arbitration_awards.domain.audit import (
    GENESIS_HASH,
    AuditAction,
    AuditCategory,
    AuditLogEntry,
    categorize_action,
    describe_action,
)
from arbitration_awards.domain.award import (
    Award,
    AwardDocument,
    FinalizeResult,
    IssuanceCheck,
    NotifiedParty,
    format_reference_number,
)
from arbitration_awards.domain.case import CaseRecord, CaseStatus, UserProfile, UserRole
from arbitration_awards.domain.content import (
    AwardContent,
    ConclusionOfLaw,
    FindingBasis,
    FindingOfFact,
    GeneratedDraft,
    PrevailingParty,
)
from arbitration_awards.domain.draft_award import (
    AwardModification,
    ChangeType,
    DraftAward,
    DraftAwardRevision,
    RejectionCategory,
    RejectionFeedback,
    RejectionSeverity,
    ReviewStatus,
)
from arbitration_awards.domain.escalation import (
    AwardEscalation,
    EscalationReason,
    EscalationRequest,
    EscalationStatus,
    EscalationUrgency,
)

__all__ = [
    "GENESIS_HASH",
    "AuditAction",
    "AuditCategory",
    "AuditLogEntry",
    "categorize_action",
    "describe_action",
    "Award",
    "AwardDocument",
    "FinalizeResult",
    "IssuanceCheck",
    "NotifiedParty",
    "format_reference_number",
    "CaseRecord",
    "CaseStatus",
    "UserProfile",
    "UserRole",
    "AwardContent",
    "ConclusionOfLaw",
    "FindingBasis",
    "FindingOfFact",
    "GeneratedDraft",
    "PrevailingParty",
    "AwardModification",
    "ChangeType",
    "DraftAward",
    "DraftAwardRevision",
    "RejectionCategory",
    "RejectionFeedback",
    "RejectionSeverity",
    "ReviewStatus",
    "AwardEscalation",
    "EscalationReason",
    "EscalationRequest",
    "EscalationStatus",
    "EscalationUrgency",
]
