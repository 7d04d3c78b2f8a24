from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

JsonDict = dict[str, Any]

SYSTEM_ACTOR = "system"


class CommandStatus(StrEnum):
    PENDING = "pending"
    EXECUTED = "executed"
    ALREADY_ISSUED = "already_issued"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class CommandResult:
    command: str
    status: CommandStatus
    details: JsonDict = field(default_factory=dict)

    def to_dict(self) -> JsonDict:
        return {
            "command": self.command,
            "status": self.status.value,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)


@dataclass(slots=True, frozen=True)
class RequestContext:
    """Client metadata recorded alongside audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None


def utc_now() -> datetime:
    return datetime.now(UTC)
