from __future__ import annotations

import csv
import io
import json
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from arbitration_awards.audit.chain import AuditChain
from arbitration_awards.domain import (
    AuditAction,
    AuditCategory,
    AuditLogEntry,
    CaseRecord,
    UserProfile,
    categorize_action,
    describe_action,
)
from arbitration_awards.domain.audit import MILESTONE_ACTIONS
from arbitration_awards.errors import NotFoundError
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import utc_now

logger = get_logger("arbitration_awards.audit")

CSV_HEADERS = (
    "Timestamp",
    "Action",
    "Description",
    "Category",
    "User",
    "Role",
    "IP Address",
    "Hash",
)


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"
    PRINT = "print"


@dataclass(slots=True, frozen=True)
class TimelineEntry:
    id: str
    sequence: int
    timestamp: datetime
    action: AuditAction
    description: str
    category: AuditCategory
    user_id: str | None
    user_name: str | None
    user_role: str | None
    ip_address: str | None
    metadata: dict[str, Any]
    hash: str
    previous_hash: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "action_description": self.description,
            "category": self.category.value,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "ip_address": self.ip_address,
            "metadata": self.metadata,
            "hash": self.hash,
            "previous_hash": self.previous_hash,
        }


@dataclass(slots=True, frozen=True)
class IntegrityStatus:
    is_valid: bool
    chain_status: str
    invalid_entries: int
    verified_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "chain_status": self.chain_status,
            "invalid_entries": self.invalid_entries,
            "verified_at": self.verified_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class CaseAuditTrail:
    case_id: str
    case_reference: str
    status: str
    created_at: datetime
    parties: dict[str, dict[str, Any] | None]
    timeline: tuple[TimelineEntry, ...]
    summary: dict[str, Any]
    integrity: IntegrityStatus
    generated_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "case_reference": self.case_reference,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "parties": self.parties,
            "timeline": [entry.as_dict() for entry in self.timeline],
            "summary": self.summary,
            "integrity_status": self.integrity.as_dict(),
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class CaseAuditSummary:
    case_id: str
    case_reference: str | None
    event_count: int
    last_activity: datetime | None
    has_integrity_issues: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "case_reference": self.case_reference,
            "event_count": self.event_count,
            "last_activity": None if self.last_activity is None else self.last_activity.isoformat(),
            "has_integrity_issues": self.has_integrity_issues,
        }


def _party(user: UserProfile | None, fallback_id: str | None) -> dict[str, Any] | None:
    if user is None:
        return None if fallback_id is None else {"id": fallback_id, "name": None, "email": None}
    return {"id": user.id, "name": user.name, "email": user.email}


class AuditTrailReporter:
    """Read-only reconstruction of a case's history from the audit chain."""

    def __init__(
        self,
        repositories: Repositories,
        audit: AuditChain,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._audit = audit
        self._clock = clock

    def get_case_timeline(self, case_id: str) -> list[TimelineEntry]:
        return self._timeline(self._audit.entries_for_case(case_id))

    def get_case_audit_trail(self, case_id: str) -> CaseAuditTrail:
        case = self._require_case(case_id)
        entries = self._audit.entries_for_case(case_id)
        timeline = self._timeline(entries)
        now = self._clock()

        by_category = {category.value: 0 for category in AuditCategory}
        for entry in timeline:
            by_category[entry.category.value] += 1
        milestones = [
            {
                "event": entry.action.value,
                "timestamp": entry.timestamp.isoformat(),
                "description": entry.description,
            }
            for entry in timeline
            if entry.action in MILESTONE_ACTIONS
        ]
        duration_days = (
            math.ceil((now - timeline[0].timestamp).total_seconds() / 86400) if timeline else 0
        )

        return CaseAuditTrail(
            case_id=case.id,
            case_reference=case.reference_number,
            status=case.status.value,
            created_at=case.created_at,
            parties=self._parties(case),
            timeline=tuple(timeline),
            summary={
                "total_events": len(timeline),
                "events_by_category": by_category,
                "key_milestones": milestones,
                "duration_days": duration_days,
            },
            integrity=self._integrity(entries),
            generated_at=now,
        )

    def export_timeline(
        self, case_id: str, export_format: ExportFormat | str = ExportFormat.JSON
    ) -> str | dict[str, Any]:
        export_format = ExportFormat(export_format)
        trail = self.get_case_audit_trail(case_id)
        logger.info(
            "audit_trail_exported",
            case_id=case_id,
            export_format=export_format.value,
            total_events=len(trail.timeline),
        )
        if export_format is ExportFormat.JSON:
            return json.dumps(trail.as_dict(), indent=2, default=str)
        if export_format is ExportFormat.CSV:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_HEADERS)
            for entry in trail.timeline:
                writer.writerow(
                    [
                        entry.timestamp.isoformat(),
                        entry.action.value,
                        entry.description,
                        entry.category.value,
                        entry.user_name or "",
                        entry.user_role or "",
                        entry.ip_address or "",
                        entry.hash,
                    ]
                )
            return buffer.getvalue()
        return trail.as_dict()

    def summarize_cases(self, case_ids: Iterable[str]) -> list[CaseAuditSummary]:
        summaries = []
        for case_id in case_ids:
            case = self._repos.cases.get(case_id)
            entries = self._audit.entries_for_case(case_id)
            summaries.append(
                CaseAuditSummary(
                    case_id=case_id,
                    case_reference=None if case is None else case.reference_number,
                    event_count=len(entries),
                    last_activity=max((entry.timestamp for entry in entries), default=None),
                    has_integrity_issues=not self._integrity(entries).is_valid,
                )
            )
        return summaries

    def _timeline(self, entries: list[AuditLogEntry]) -> list[TimelineEntry]:
        users: dict[str, UserProfile | None] = {}
        timeline = []
        for entry in entries:
            user = None
            if entry.actor_id is not None:
                if entry.actor_id not in users:
                    users[entry.actor_id] = self._repos.users.get(entry.actor_id)
                user = users[entry.actor_id]
            timeline.append(
                TimelineEntry(
                    id=entry.id,
                    sequence=entry.sequence,
                    timestamp=entry.timestamp,
                    action=entry.action,
                    description=describe_action(entry.action),
                    category=categorize_action(entry.action),
                    user_id=entry.actor_id,
                    user_name=None if user is None else user.name,
                    user_role=None if user is None else user.role.value,
                    ip_address=entry.ip_address,
                    metadata=entry.metadata,
                    hash=entry.hash,
                    previous_hash=entry.previous_hash,
                )
            )
        return timeline

    def _integrity(self, case_entries: list[AuditLogEntry]) -> IntegrityStatus:
        case_check = self._audit.verify(case_entries)
        chain_check = self._audit.verify()
        case_sequences = {entry.sequence for entry in case_entries}
        broken_in_case = {entry.sequence for entry in chain_check.invalid_entries} & case_sequences
        invalid = len({entry.sequence for entry in case_check.invalid_entries} | broken_in_case)
        return IntegrityStatus(
            is_valid=invalid == 0,
            chain_status="intact" if invalid == 0 else "broken",
            invalid_entries=invalid,
            verified_at=self._clock(),
        )

    def _parties(self, case: CaseRecord) -> dict[str, dict[str, Any] | None]:
        def lookup(user_id: str | None) -> UserProfile | None:
            return None if user_id is None else self._repos.users.get(user_id)

        return {
            "claimant": _party(lookup(case.claimant_id), case.claimant_id),
            "respondent": _party(lookup(case.respondent_id), case.respondent_id),
            "arbitrator": _party(lookup(case.arbitrator_id), case.arbitrator_id),
        }

    def _require_case(self, case_id: str) -> CaseRecord:
        case = self._repos.cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", case_id=case_id)
        return case
