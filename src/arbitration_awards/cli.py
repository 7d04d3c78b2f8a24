from __future__ import annotations

import json
from argparse import ArgumentParser, Namespace
from collections.abc import Callable, Sequence

from arbitration_awards.audit.reporter import ExportFormat
from arbitration_awards.commands import (
    run_approve_draft,
    run_audit_trail,
    run_can_issue,
    run_escalate_draft,
    run_finalize_award,
    run_ingest_draft,
    run_modify_draft,
    run_open_case,
    run_register_user,
    run_reject_draft,
    run_resolve_escalation,
    run_revision_history,
    run_sweep_escalations,
    run_verify_audit_chain,
    run_verify_award_document,
)
from arbitration_awards.config import AppSettings, get_settings
from arbitration_awards.domain import (
    CaseStatus,
    EscalationReason,
    EscalationUrgency,
    RejectionCategory,
    RejectionSeverity,
    UserRole,
)
from arbitration_awards.observability.logging import configure_logging
from arbitration_awards.types import CommandResult, CommandStatus

CommandHandler = Callable[[Namespace, AppSettings], CommandResult]

COMMAND_HANDLERS: dict[str, CommandHandler] = {
    "open-case": run_open_case,
    "register-user": run_register_user,
    "ingest-draft": run_ingest_draft,
    "approve-draft": run_approve_draft,
    "modify-draft": run_modify_draft,
    "reject-draft": run_reject_draft,
    "escalate-draft": run_escalate_draft,
    "resolve-escalation": run_resolve_escalation,
    "sweep-escalations": run_sweep_escalations,
    "revision-history": run_revision_history,
    "can-issue": run_can_issue,
    "finalize-award": run_finalize_award,
    "verify-award-document": run_verify_award_document,
    "audit-trail": run_audit_trail,
    "verify-audit-chain": run_verify_audit_chain,
}


def _add_request_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--ip-address", default=None)
    parser.add_argument("--user-agent", default=None)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="arbitration-awards", description="Arbitration award review and issuance CLI")
    parser.add_argument("--json", action="store_true", help="emit machine-readable JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    open_case = subparsers.add_parser("open-case")
    open_case.add_argument("--case-id", required=True)
    open_case.add_argument("--reference", required=True)
    open_case.add_argument("--claimant-id", required=True)
    open_case.add_argument("--respondent-id", default=None)
    open_case.add_argument("--arbitrator-id", default=None)
    open_case.add_argument("--jurisdiction", default="US-CA")
    open_case.add_argument(
        "--status",
        default=CaseStatus.ARBITRATOR_REVIEW.value,
        choices=[status.value for status in CaseStatus],
    )
    _add_request_arguments(open_case)

    register = subparsers.add_parser("register-user")
    register.add_argument("--user-id", required=True)
    register.add_argument("--email", required=True)
    register.add_argument("--role", required=True, choices=[role.value for role in UserRole])
    register.add_argument("--name", default=None)
    register.add_argument("--years-experience", type=int, default=0)
    register.add_argument("--cases-completed", type=int, default=0)
    register.add_argument("--inactive", action="store_true")
    _add_request_arguments(register)

    ingest = subparsers.add_parser("ingest-draft")
    ingest.add_argument("--case-id", required=True)
    ingest.add_argument("--draft", type=json.loads, required=True)
    ingest.add_argument("--actor-id", default=None)
    _add_request_arguments(ingest)

    approve = subparsers.add_parser("approve-draft")
    approve.add_argument("--case-id", required=True)
    approve.add_argument("--reviewer-id", required=True)
    approve.add_argument("--notes", default=None)
    _add_request_arguments(approve)

    modify = subparsers.add_parser("modify-draft")
    modify.add_argument("--case-id", required=True)
    modify.add_argument("--reviewer-id", required=True)
    modify.add_argument("--changes", type=json.loads, required=True)
    modify.add_argument("--summary", required=True)
    _add_request_arguments(modify)

    reject = subparsers.add_parser("reject-draft")
    reject.add_argument("--case-id", required=True)
    reject.add_argument("--reviewer-id", required=True)
    reject.add_argument("--category", required=True, choices=[item.value for item in RejectionCategory])
    reject.add_argument("--severity", required=True, choices=[item.value for item in RejectionSeverity])
    reject.add_argument("--description", required=True)
    reject.add_argument("--section", action="append", default=[])
    reject.add_argument("--suggested-corrections", default=None)
    _add_request_arguments(reject)

    escalate = subparsers.add_parser("escalate-draft")
    escalate.add_argument("--case-id", required=True)
    escalate.add_argument("--reviewer-id", required=True)
    escalate.add_argument("--reason", required=True, choices=[item.value for item in EscalationReason])
    escalate.add_argument("--detail", default=None)
    escalate.add_argument(
        "--urgency",
        default=EscalationUrgency.NORMAL.value,
        choices=[item.value for item in EscalationUrgency],
    )
    _add_request_arguments(escalate)

    resolve = subparsers.add_parser("resolve-escalation")
    resolve.add_argument("--case-id", required=True)
    resolve.add_argument("--reviewer-id", required=True)
    resolve.add_argument("--resolution", required=True)
    resolve.add_argument("--returned", action="store_true", help="send the draft back instead of resolving")
    _add_request_arguments(resolve)

    subparsers.add_parser("sweep-escalations")

    history = subparsers.add_parser("revision-history")
    history.add_argument("--case-id", required=True)

    can_issue = subparsers.add_parser("can-issue")
    can_issue.add_argument("--case-id", required=True)

    finalize = subparsers.add_parser("finalize-award")
    finalize.add_argument("--case-id", required=True)
    finalize.add_argument("--arbitrator-id", required=True)
    _add_request_arguments(finalize)

    verify_document = subparsers.add_parser("verify-award-document")
    verify_document.add_argument("--case-id", required=True)
    verify_document.add_argument("--document", required=True)

    trail = subparsers.add_parser("audit-trail")
    trail.add_argument("--case-id", required=True)
    trail.add_argument(
        "--format",
        default=ExportFormat.PRINT.value,
        choices=[item.value for item in ExportFormat],
    )

    subparsers.add_parser("verify-audit-chain")

    return parser


def _emit_result(result: CommandResult, *, as_json: bool) -> None:
    if as_json:
        print(result.to_json())
        return

    print(f"{result.command}: {result.status.value}")
    if result.details:
        print(json.dumps(result.details, indent=2, sort_keys=True, default=str))


def entrypoint(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    settings = get_settings()
    configure_logging(settings.log_level)

    handler = COMMAND_HANDLERS[str(args.command)]
    result = handler(args, settings)
    _emit_result(result, as_json=bool(args.json))
    return 1 if result.status == CommandStatus.FAILED else 0


if __name__ == "__main__":
    raise SystemExit(entrypoint())
