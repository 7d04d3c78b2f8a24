from __future__ import annotations

from argparse import Namespace

from arbitration_awards.audit.reporter import ExportFormat
from arbitration_awards.commands.support import (
    error_result,
    invalid_input,
    missing_arguments,
    normalized_string,
    services_for,
)
from arbitration_awards.config import AppSettings
from arbitration_awards.errors import AwardError
from arbitration_awards.types import CommandResult, CommandStatus


def run_audit_trail(args: Namespace, settings: AppSettings) -> CommandResult:
    command = "audit-trail"
    failed = missing_arguments(command, args, "case_id")
    if failed is not None:
        return failed

    try:
        export_format = ExportFormat(normalized_string(getattr(args, "format", None)) or ExportFormat.PRINT)
    except ValueError as exc:
        return invalid_input(command, str(exc))

    try:
        with services_for(settings) as services:
            exported = services.reporter.export_timeline(
                normalized_string(args.case_id), export_format
            )
    except AwardError as exc:
        return error_result(command, exc)

    details = exported if isinstance(exported, dict) else {"format": export_format.value, "export": exported}
    return CommandResult(command=command, status=CommandStatus.EXECUTED, details=details)


def run_verify_audit_chain(_: Namespace, settings: AppSettings) -> CommandResult:
    with services_for(settings) as services:
        verification = services.audit.verify()
    return CommandResult(
        command="verify-audit-chain",
        status=CommandStatus.EXECUTED if verification.is_valid else CommandStatus.FAILED,
        details=verification.as_dict(),
    )
