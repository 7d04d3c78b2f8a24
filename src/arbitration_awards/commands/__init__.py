"""Command handlers for the arbitration awards CLI."""

from arbitration_awards.commands.audit import run_audit_trail, run_verify_audit_chain
from arbitration_awards.commands.cases import run_ingest_draft, run_open_case, run_register_user
from arbitration_awards.commands.issuance import (
    run_can_issue,
    run_finalize_award,
    run_verify_award_document,
)
from arbitration_awards.commands.review import (
    run_approve_draft,
    run_escalate_draft,
    run_modify_draft,
    run_reject_draft,
    run_resolve_escalation,
    run_revision_history,
    run_sweep_escalations,
)

__all__ = [
    "run_approve_draft",
    "run_audit_trail",
    "run_can_issue",
    "run_escalate_draft",
    "run_finalize_award",
    "run_ingest_draft",
    "run_modify_draft",
    "run_open_case",
    "run_register_user",
    "run_reject_draft",
    "run_resolve_escalation",
    "run_revision_history",
    "run_sweep_escalations",
    "run_verify_audit_chain",
    "run_verify_award_document",
]
