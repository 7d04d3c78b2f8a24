"""Repository protocols, one per entity, plus the bundle the services depend on.

Every invariant that must survive concurrent request handlers (version
allocation, single award per case, one escalation row per draft, a linear audit
chain) is enforced by the backend inside ``Database.transaction()``.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from arbitration_awards.domain import (
    AuditLogEntry,
    Award,
    AwardEscalation,
    CaseRecord,
    CaseStatus,
    DraftAward,
    DraftAwardRevision,
    EscalationStatus,
    NotifiedParty,
    UserProfile,
    UserRole,
)


class Database(Protocol):
    def transaction(self) -> AbstractContextManager[None]:
        """Serialized unit of work; nested calls join the outer transaction."""
        ...

    def close(self) -> None:
        ...


class DraftAwardStore(Protocol):
    def get(self, draft_award_id: str) -> DraftAward | None:
        ...

    def get_by_case(self, case_id: str) -> DraftAward | None:
        ...

    def insert(self, draft: DraftAward) -> None:
        ...

    def update(self, draft: DraftAward) -> None:
        ...


class RevisionStore(Protocol):
    def get(self, draft_award_id: str, version: int) -> DraftAwardRevision | None:
        ...

    def list_for_draft(self, draft_award_id: str) -> list[DraftAwardRevision]:
        ...

    def max_version(self, draft_award_id: str) -> int:
        ...

    def insert(self, revision: DraftAwardRevision) -> None:
        ...


class EscalationStore(Protocol):
    def get(self, escalation_id: str) -> AwardEscalation | None:
        ...

    def get_by_draft(self, draft_award_id: str) -> AwardEscalation | None:
        ...

    def upsert(self, escalation: AwardEscalation) -> AwardEscalation:
        ...

    def list_by_status(self, status: EscalationStatus) -> list[AwardEscalation]:
        ...


class AwardStore(Protocol):
    def get(self, award_id: str) -> Award | None:
        ...

    def get_by_case(self, case_id: str) -> Award | None:
        ...

    def insert(self, award: Award) -> None:
        ...

    def count_issued_between(self, start: datetime, end: datetime) -> int:
        ...

    def mark_notified(self, award_id: str, party: NotifiedParty, notified_at: datetime) -> Award:
        ...


class AuditLogStore(Protocol):
    def tail(self) -> AuditLogEntry | None:
        ...

    def insert(self, entry: AuditLogEntry) -> None:
        ...

    def list_all(self) -> list[AuditLogEntry]:
        ...

    def list_for_case(self, case_id: str) -> list[AuditLogEntry]:
        ...


class CaseStore(Protocol):
    def get(self, case_id: str) -> CaseRecord | None:
        ...

    def save(self, case: CaseRecord) -> None:
        ...

    def set_status(self, case_id: str, status: CaseStatus) -> CaseRecord:
        ...


class UserDirectory(Protocol):
    def get(self, user_id: str) -> UserProfile | None:
        ...

    def save(self, user: UserProfile) -> None:
        ...

    def list_by_role(self, role: UserRole) -> list[UserProfile]:
        ...


@dataclass(slots=True, frozen=True)
class Repositories:
    database: Database
    drafts: DraftAwardStore
    revisions: RevisionStore
    escalations: EscalationStore
    awards: AwardStore
    audit_log: AuditLogStore
    cases: CaseStore
    users: UserDirectory

    def transaction(self) -> AbstractContextManager[None]:
        return self.database.transaction()

    def close(self) -> None:
        self.database.close()
