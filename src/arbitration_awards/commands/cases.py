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
    AuditAction,
    CaseRecord,
    CaseStatus,
    GeneratedDraft,
    UserProfile,
    UserRole,
)
from arbitration_awards.errors import AwardError
from arbitration_awards.types import SYSTEM_ACTOR, CommandResult, CommandStatus, utc_now


def run_open_case(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "open-case"
    failed = missing_arguments(command, args, "case_id", "reference", "claimant_id")
    if failed is not None:
        return failed

    try:
        status = CaseStatus(normalized_string(getattr(args, "status", "")) or CaseStatus.ARBITRATOR_REVIEW)
    except ValueError as exc:
        return invalid_input(command, str(exc))

    case = CaseRecord(
        id=normalized_string(args.case_id),
        reference_number=normalized_string(args.reference),
        status=status,
        claimant_id=normalized_string(args.claimant_id),
        created_at=utc_now(),
        respondent_id=normalized_string(getattr(args, "respondent_id", None)) or None,
        arbitrator_id=normalized_string(getattr(args, "arbitrator_id", None)) or None,
        jurisdiction=normalized_string(getattr(args, "jurisdiction", None)) or "US-CA",
    )
    with services_for(settings) as services, services.repositories.transaction():
        services.repositories.cases.save(case)
        services.audit.record(
            AuditAction.CASE_CREATED,
            actor_id=case.claimant_id,
            case_id=case.id,
            metadata={"reference_number": case.reference_number, "status": case.status.value},
            context=request_context(args),
        )

    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED,
        details={
            "case_id": case.id,
            "reference_number": case.reference_number,
            "status": case.status.value,
            "arbitrator_id": case.arbitrator_id,
        },
    )


def run_register_user(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "register-user"
    failed = missing_arguments(command, args, "user_id", "email", "role")
    if failed is not None:
        return failed

    try:
        role = UserRole(normalized_string(args.role).upper())
    except ValueError as exc:
        return invalid_input(command, str(exc))

    years = getattr(args, "years_experience", 0) or 0
    completed = getattr(args, "cases_completed", 0) or 0
    if years < 0 or completed < 0:
        return invalid_input(command, "years_experience and cases_completed must not be negative")

    user = UserProfile(
        id=normalized_string(args.user_id),
        name=normalized_string(getattr(args, "name", None)) or None,
        email=normalized_string(args.email),
        role=role,
        is_active=not bool(getattr(args, "inactive", False)),
        years_experience=int(years),
        cases_completed=int(completed),
    )
    with services_for(settings) as services, services.repositories.transaction():
        services.repositories.users.save(user)
        services.audit.record(
            AuditAction.USER_REGISTERED,
            actor_id=SYSTEM_ACTOR,
            case_id=None,
            metadata={"user_id": user.id, "role": user.role.value},
            context=request_context(args),
        )

    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED,
        details={"user_id": user.id, "role": user.role.value, "is_active": user.is_active},
    )


def run_ingest_draft(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "ingest-draft"
    failed = missing_arguments(command, args, "case_id")
    if failed is not None:
        return failed

    raw_draft = getattr(args, "draft", None)
    if not isinstance(raw_draft, dict):
        return invalid_input(command, "draft must be a JSON object")
    try:
        generated = GeneratedDraft.from_dict(raw_draft)
    except (KeyError, TypeError, ValueError) as exc:
        return invalid_input(command, f"draft is malformed: {exc}")

    try:
        with services_for(settings) as services:
            outcome = services.review.register_draft(
                normalized_string(args.case_id),
                generated,
                actor_id=normalized_string(getattr(args, "actor_id", None)) or SYSTEM_ACTOR,
                context=request_context(args),
            )
    except AwardError as exc:
        return error_result(command, exc)

    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=outcome.as_dict())
