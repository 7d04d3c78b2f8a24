from __future__ import annotations

from argparse import Namespace
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from arbitration_awards.config import AppSettings
from arbitration_awards.errors import AwardError
from arbitration_awards.services import AwardServices, build_services
from arbitration_awards.types import CommandResult, CommandStatus, RequestContext


@contextmanager
def services_for(settings: AppSettings) -> Iterator[AwardServices]:
    """Services for one command; the database connection is closed on exit."""
    services = build_services(settings)
    try:
        yield services
    finally:
        services.repositories.close()


def normalized_string(raw_value: object) -> str:
    if raw_value is None:
        return ""
    return str(raw_value).strip()


def request_context(args: Namespace) -> RequestContext:
    return RequestContext(
        ip_address=normalized_string(getattr(args, "ip_address", None)) or None,
        user_agent=normalized_string(getattr(args, "user_agent", None)) or "arbitration-awards-cli",
    )


def missing_arguments(command: str, args: Namespace, *names: str) -> CommandResult | None:
    missing = [name for name in names if not normalized_string(getattr(args, name, None))]
    if not missing:
        return None
    return CommandResult(
        command=command,
        status=CommandStatus.FAILED,
        details={
            "error": "validation",
            "reason": f"{', '.join(missing)} must be non-empty",
        },
    )


def invalid_input(command: str, reason: str, **details: Any) -> CommandResult:
    return CommandResult(
        command=command,
        status=CommandStatus.FAILED,
        details={"error": "validation", "reason": reason, **details},
    )


def error_result(command: str, exc: AwardError) -> CommandResult:
    return CommandResult(command=command, status=CommandStatus.FAILED, details=exc.as_dict())
