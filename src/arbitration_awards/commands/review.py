from __future__ import annotations

from argparse import Namespace

from arbitration_awards.commands.support import (
    error_result,
    invalid_input,
    missing_arguments,
    normalized_string,
    request_context,
    services_for,
)
from arbitration_awards.config import AppSettings
from arbitration_awards.domain import (
    AwardModification,
    EscalationReason,
    EscalationRequest,
    EscalationUrgency,
    RejectionCategory,
    RejectionFeedback,
    RejectionSeverity,
)
from arbitration_awards.errors import AwardError
from arbitration_awards.types import CommandResult, CommandStatus


def run_approve_draft(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "approve-draft"
    failed = missing_arguments(command, args, "case_id", "reviewer_id")
    if failed is not None:
        return failed

    try:
        with services_for(settings) as services:
            outcome = services.review.approve(
                normalized_string(args.case_id),
                normalized_string(args.reviewer_id),
                normalized_string(getattr(args, "notes", None)) or None,
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=outcome.as_dict())


def run_modify_draft(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "modify-draft"
    failed = missing_arguments(command, args, "case_id", "reviewer_id")
    if failed is not None:
        return failed

    raw_changes = getattr(args, "changes", None)
    if not isinstance(raw_changes, dict):
        return invalid_input(command, "changes must be a JSON object")
    try:
        changes = AwardModification.from_dict(raw_changes)
    except (KeyError, TypeError, ValueError) as exc:
        return invalid_input(command, str(exc))

    try:
        with services_for(settings) as services:
            outcome = services.review.modify(
                normalized_string(args.case_id),
                normalized_string(args.reviewer_id),
                changes,
                normalized_string(getattr(args, "summary", None)),
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=outcome.as_dict())


def run_reject_draft(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "reject-draft"
    failed = missing_arguments(command, args, "case_id", "reviewer_id")
    if failed is not None:
        return failed

    try:
        feedback = RejectionFeedback(
            category=RejectionCategory(normalized_string(args.category).lower()),
            severity=RejectionSeverity(normalized_string(args.severity).lower()),
            description=normalized_string(getattr(args, "description", None)),
            affected_sections=tuple(
                section
                for section in (normalized_string(raw) for raw in getattr(args, "section", None) or ())
                if section
            ),
            suggested_corrections=normalized_string(getattr(args, "suggested_corrections", None)) or None,
        )
    except ValueError as exc:
        return invalid_input(command, str(exc))

    try:
        with services_for(settings) as services:
            outcome = services.review.reject(
                normalized_string(args.case_id),
                normalized_string(args.reviewer_id),
                feedback,
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=outcome.as_dict())


def run_escalate_draft(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "escalate-draft"
    failed = missing_arguments(command, args, "case_id", "reviewer_id", "reason")
    if failed is not None:
        return failed

    try:
        request = EscalationRequest(
            reason=EscalationReason(normalized_string(args.reason).upper()),
            detail=normalized_string(getattr(args, "detail", None)) or None,
            urgency=EscalationUrgency(
                normalized_string(getattr(args, "urgency", None)).upper() or EscalationUrgency.NORMAL
            ),
        )
    except ValueError as exc:
        return invalid_input(command, str(exc))

    try:
        with services_for(settings) as services:
            outcome = services.review.escalate(
                normalized_string(args.case_id),
                normalized_string(args.reviewer_id),
                request,
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=outcome.as_dict())


def run_resolve_escalation(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "resolve-escalation"
    failed = missing_arguments(command, args, "case_id", "reviewer_id", "resolution")
    if failed is not None:
        return failed

    try:
        with services_for(settings) as services:
            escalation = services.review.resolve_escalation(
                normalized_string(args.case_id),
                normalized_string(args.reviewer_id),
                normalized_string(args.resolution),
                returned=bool(getattr(args, "returned", False)),
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED,
        details={"escalation": escalation.as_dict()},
    )


def run_sweep_escalations(_: Namespace, settings: AppSettings) -> CommandResult:
    with services_for(settings) as services:
        assigned = services.assignor.assign_pending()
    return CommandResult(
        command="sweep-escalations",
        status=CommandStatus.EXECUTED,
        details={
            "assigned_count": len(assigned),
            "assigned": [escalation.as_dict() for escalation in assigned],
        },
    )


def run_revision_history(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "revision-history"
    failed = missing_arguments(command, args, "case_id")
    if failed is not None:
        return failed

    try:
        with services_for(settings) as services:
            revisions = services.review.get_revision_history(normalized_string(args.case_id))
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED,
        details={"revisions": [revision.as_dict() for revision in revisions]},
    )
