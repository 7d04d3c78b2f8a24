from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

GENESIS_HASH = "0" * 64


class AuditAction(StrEnum):
    USER_REGISTERED = "USER_REGISTERED"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_PROFILE_UPDATED = "USER_PROFILE_UPDATED"
    KYC_INITIATED = "KYC_INITIATED"
    KYC_COMPLETED = "KYC_COMPLETED"
    KYC_FAILED = "KYC_FAILED"

    CASE_CREATED = "CASE_CREATED"
    CASE_UPDATED = "CASE_UPDATED"
    CASE_STATUS_CHANGED = "CASE_STATUS_CHANGED"
    CASE_CLOSED = "CASE_CLOSED"
    INVITATION_SENT = "INVITATION_SENT"
    INVITATION_VIEWED = "INVITATION_VIEWED"
    INVITATION_ACCEPTED = "INVITATION_ACCEPTED"
    INVITATION_EXPIRED = "INVITATION_EXPIRED"

    AGREEMENT_VIEWED = "AGREEMENT_VIEWED"
    AGREEMENT_SIGNED = "AGREEMENT_SIGNED"

    EVIDENCE_UPLOADED = "EVIDENCE_UPLOADED"
    EVIDENCE_VIEWED = "EVIDENCE_VIEWED"
    EVIDENCE_DELETED = "EVIDENCE_DELETED"

    STATEMENT_SUBMITTED = "STATEMENT_SUBMITTED"
    STATEMENT_UPDATED = "STATEMENT_UPDATED"

    ANALYSIS_INITIATED = "ANALYSIS_INITIATED"
    ANALYSIS_COMPLETED = "ANALYSIS_COMPLETED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"

    CASE_ASSIGNED = "CASE_ASSIGNED"
    REVIEW_STARTED = "REVIEW_STARTED"
    REVIEW_COMPLETED = "REVIEW_COMPLETED"

    DRAFT_AWARD_GENERATED = "DRAFT_AWARD_GENERATED"
    DRAFT_AWARD_MODIFIED = "DRAFT_AWARD_MODIFIED"
    DRAFT_AWARD_APPROVED = "DRAFT_AWARD_APPROVED"
    DRAFT_AWARD_REJECTED = "DRAFT_AWARD_REJECTED"
    DRAFT_AWARD_ESCALATED = "DRAFT_AWARD_ESCALATED"
    ESCALATION_RESOLVED = "ESCALATION_RESOLVED"

    AWARD_SIGNED = "AWARD_SIGNED"
    AWARD_ISSUED = "AWARD_ISSUED"
    AWARD_DOWNLOADED = "AWARD_DOWNLOADED"
    ENFORCEMENT_PACKAGE_DOWNLOADED = "ENFORCEMENT_PACKAGE_DOWNLOADED"

    ARBITRATOR_ONBOARDED = "ARBITRATOR_ONBOARDED"
    ARBITRATOR_CREDENTIALS_SUBMITTED = "ARBITRATOR_CREDENTIALS_SUBMITTED"
    ARBITRATOR_CREDENTIALS_VERIFIED = "ARBITRATOR_CREDENTIALS_VERIFIED"
    ARBITRATOR_CREDENTIALS_REJECTED = "ARBITRATOR_CREDENTIALS_REJECTED"
    ARBITRATOR_ACTIVATED = "ARBITRATOR_ACTIVATED"
    ARBITRATOR_DEACTIVATED = "ARBITRATOR_DEACTIVATED"

    COMPENSATION_CALCULATED = "COMPENSATION_CALCULATED"
    COMPENSATION_APPROVED = "COMPENSATION_APPROVED"
    COMPENSATION_PAID = "COMPENSATION_PAID"
    COMPENSATION_DISPUTED = "COMPENSATION_DISPUTED"

    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    REFUND_ISSUED = "REFUND_ISSUED"

    AUDIT_LOG_EXPORTED = "AUDIT_LOG_EXPORTED"
    AUDIT_LOG_VERIFIED = "AUDIT_LOG_VERIFIED"
    COMPLIANCE_REPORT_GENERATED = "COMPLIANCE_REPORT_GENERATED"


class AuditCategory(StrEnum):
    CASE_LIFECYCLE = "case_lifecycle"
    EVIDENCE = "evidence"
    STATEMENTS = "statements"
    AGREEMENT = "agreement"
    ANALYSIS = "analysis"
    ARBITRATION = "arbitration"
    AWARD = "award"
    PAYMENT = "payment"
    USER = "user"


ACTION_DESCRIPTIONS: dict[AuditAction, str] = {
    AuditAction.USER_REGISTERED: "User account created",
    AuditAction.USER_LOGIN: "User logged in",
    AuditAction.USER_LOGOUT: "User logged out",
    AuditAction.USER_PROFILE_UPDATED: "User profile updated",
    AuditAction.KYC_INITIATED: "Identity verification initiated",
    AuditAction.KYC_COMPLETED: "Identity verification completed",
    AuditAction.KYC_FAILED: "Identity verification failed",
    AuditAction.CASE_CREATED: "Case filed",
    AuditAction.CASE_UPDATED: "Case details updated",
    AuditAction.CASE_STATUS_CHANGED: "Case status changed",
    AuditAction.CASE_CLOSED: "Case closed",
    AuditAction.INVITATION_SENT: "Respondent invitation sent",
    AuditAction.INVITATION_VIEWED: "Respondent viewed invitation",
    AuditAction.INVITATION_ACCEPTED: "Respondent accepted invitation",
    AuditAction.INVITATION_EXPIRED: "Invitation expired",
    AuditAction.AGREEMENT_VIEWED: "Arbitration agreement viewed",
    AuditAction.AGREEMENT_SIGNED: "Arbitration agreement signed",
    AuditAction.EVIDENCE_UPLOADED: "Evidence file uploaded",
    AuditAction.EVIDENCE_VIEWED: "Evidence file viewed",
    AuditAction.EVIDENCE_DELETED: "Evidence file deleted",
    AuditAction.STATEMENT_SUBMITTED: "Statement submitted",
    AuditAction.STATEMENT_UPDATED: "Statement updated",
    AuditAction.ANALYSIS_INITIATED: "AI analysis initiated",
    AuditAction.ANALYSIS_COMPLETED: "AI analysis completed",
    AuditAction.ANALYSIS_FAILED: "AI analysis failed",
    AuditAction.CASE_ASSIGNED: "Arbitrator assigned to case",
    AuditAction.REVIEW_STARTED: "Arbitrator review started",
    AuditAction.REVIEW_COMPLETED: "Arbitrator review completed",
    AuditAction.DRAFT_AWARD_GENERATED: "Draft award generated",
    AuditAction.DRAFT_AWARD_MODIFIED: "Draft award modified",
    AuditAction.DRAFT_AWARD_APPROVED: "Draft award approved",
    AuditAction.DRAFT_AWARD_REJECTED: "Draft award rejected",
    AuditAction.DRAFT_AWARD_ESCALATED: "Case escalated for senior review",
    AuditAction.ESCALATION_RESOLVED: "Escalation resolved",
    AuditAction.AWARD_SIGNED: "Award signed by arbitrator",
    AuditAction.AWARD_ISSUED: "Award issued to parties",
    AuditAction.AWARD_DOWNLOADED: "Award document downloaded",
    AuditAction.ENFORCEMENT_PACKAGE_DOWNLOADED: "Enforcement package downloaded",
    AuditAction.ARBITRATOR_ONBOARDED: "Arbitrator completed onboarding",
    AuditAction.ARBITRATOR_CREDENTIALS_SUBMITTED: "Arbitrator credentials submitted",
    AuditAction.ARBITRATOR_CREDENTIALS_VERIFIED: "Arbitrator credentials verified",
    AuditAction.ARBITRATOR_CREDENTIALS_REJECTED: "Arbitrator credentials rejected",
    AuditAction.ARBITRATOR_ACTIVATED: "Arbitrator activated",
    AuditAction.ARBITRATOR_DEACTIVATED: "Arbitrator deactivated",
    AuditAction.COMPENSATION_CALCULATED: "Arbitrator compensation calculated",
    AuditAction.COMPENSATION_APPROVED: "Compensation approved for payout",
    AuditAction.COMPENSATION_PAID: "Compensation paid to arbitrator",
    AuditAction.COMPENSATION_DISPUTED: "Compensation disputed",
    AuditAction.PAYMENT_INITIATED: "Payment initiated",
    AuditAction.PAYMENT_COMPLETED: "Payment completed",
    AuditAction.PAYMENT_FAILED: "Payment failed",
    AuditAction.REFUND_ISSUED: "Refund issued",
    AuditAction.AUDIT_LOG_EXPORTED: "Audit logs exported",
    AuditAction.AUDIT_LOG_VERIFIED: "Audit log integrity verified",
    AuditAction.COMPLIANCE_REPORT_GENERATED: "Compliance report generated",
}

_CATEGORY_PREFIXES: tuple[tuple[str, AuditCategory], ...] = (
    ("USER_", AuditCategory.USER),
    ("KYC_", AuditCategory.USER),
    ("ARBITRATOR_", AuditCategory.USER),
    ("CASE_ASSIGNED", AuditCategory.ARBITRATION),
    ("CASE_", AuditCategory.CASE_LIFECYCLE),
    ("INVITATION_", AuditCategory.CASE_LIFECYCLE),
    ("AUDIT_LOG_", AuditCategory.CASE_LIFECYCLE),
    ("COMPLIANCE_", AuditCategory.CASE_LIFECYCLE),
    ("AGREEMENT_", AuditCategory.AGREEMENT),
    ("EVIDENCE_", AuditCategory.EVIDENCE),
    ("STATEMENT_", AuditCategory.STATEMENTS),
    ("ANALYSIS_", AuditCategory.ANALYSIS),
    ("REVIEW_", AuditCategory.ARBITRATION),
    ("DRAFT_AWARD_", AuditCategory.ARBITRATION),
    ("ESCALATION_", AuditCategory.ARBITRATION),
    ("AWARD_", AuditCategory.AWARD),
    ("ENFORCEMENT_", AuditCategory.AWARD),
    ("COMPENSATION_", AuditCategory.PAYMENT),
    ("PAYMENT_", AuditCategory.PAYMENT),
    ("REFUND_", AuditCategory.PAYMENT),
)

MILESTONE_ACTIONS: frozenset[AuditAction] = frozenset(
    {
        AuditAction.CASE_CREATED,
        AuditAction.INVITATION_ACCEPTED,
        AuditAction.AGREEMENT_SIGNED,
        AuditAction.CASE_ASSIGNED,
        AuditAction.ANALYSIS_COMPLETED,
        AuditAction.DRAFT_AWARD_APPROVED,
        AuditAction.AWARD_ISSUED,
        AuditAction.CASE_CLOSED,
    }
)


def categorize_action(action: AuditAction) -> AuditCategory:
    for prefix, category in _CATEGORY_PREFIXES:
        if action.value.startswith(prefix):
            return category
    return AuditCategory.CASE_LIFECYCLE


def describe_action(action: AuditAction) -> str:
    return ACTION_DESCRIPTIONS.get(action, action.value)


def normalize_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Reduce metadata to plain JSON values so stored and hashed forms agree."""
    if not metadata:
        return {}
    return json.loads(json.dumps(metadata, sort_keys=True, default=str))


@dataclass(slots=True, frozen=True)
class AuditLogEntry:
    id: str
    sequence: int
    action: AuditAction
    timestamp: datetime
    previous_hash: str
    hash: str
    actor_id: str | None = None
    case_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None

    def hashable_fields(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "action": self.action.value,
            "actor_id": self.actor_id,
            "case_id": self.case_id,
            "metadata": self.metadata,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp.isoformat(),
        }

    def expected_hash(self) -> str:
        return compute_entry_hash(self.hashable_fields(), self.previous_hash)

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.hashable_fields(),
            "previous_hash": self.previous_hash,
            "hash": self.hash,
        }


def compute_entry_hash(hashable: dict[str, Any], previous_hash: str) -> str:
    serialized = json.dumps(hashable, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256((serialized + previous_hash).encode("utf-8")).hexdigest()
