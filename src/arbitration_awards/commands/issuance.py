from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from arbitration_awards.commands.support import (
    error_result,
    invalid_input,
    missing_arguments,
    normalized_string,
    request_context,
    services_for,
)
from arbitration_awards.config import AppSettings
from arbitration_awards.errors import AwardError, StateConflictError
from arbitration_awards.finalization.finalizer import ALREADY_ISSUED_REASON
from arbitration_awards.types import CommandResult, CommandStatus


def run_can_issue(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "can-issue"
    failed = missing_arguments(command, args, "case_id")
    if failed is not None:
        return failed

    with services_for(settings) as services:
        check = services.finalizer.can_issue(normalized_string(args.case_id))
    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED,
        details={"case_id": normalized_string(args.case_id), **check.as_dict()},
    )


def run_finalize_award(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "finalize-award"
    failed = missing_arguments(command, args, "case_id", "arbitrator_id")
    if failed is not None:
        return failed

    context = request_context(args)
    try:
        with services_for(settings) as services:
            result = services.finalizer.finalize(
                normalized_string(args.case_id),
                normalized_string(args.arbitrator_id),
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
    except StateConflictError as exc:
        if exc.reason == ALREADY_ISSUED_REASON:
            return CommandResult(command=command, status=CommandStatus.ALREADY_ISSUED, details=exc.as_dict())
        return error_result(command, exc)
    except AwardError as exc:
        return error_result(command, exc)
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=result.as_dict())


def run_verify_award_document(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "verify-award-document"
    failed = missing_arguments(command, args, "case_id", "document")
    if failed is not None:
        return failed

    path = Path(normalized_string(args.document))
    if not path.is_file():
        return invalid_input(command, "document must be an existing file", document=str(path))

    try:
        with services_for(settings) as services:
            verification = services.finalizer.verify_document(
                normalized_string(args.case_id), path.read_bytes()
            )
    except AwardError as exc:
        return error_result(command, exc)

    matches = (
        verification.matches
        and verification.signer_matches
        and verification.timestamp_valid is not False
    )
    return CommandResult(
        command=command,
        status=CommandStatus.EXECUTED if matches else CommandStatus.FAILED,
        details=verification.as_dict(),
    )
