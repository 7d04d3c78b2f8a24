from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

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
from arbitration_awards.errors import NotFoundError, StateConflictError
from arbitration_awards.storage.base import Repositories

TABLES: tuple[str, ...] = (
    "drafts",
    "revisions",
    "escalations",
    "awards",
    "audit_log",
    "cases",
    "users",
)


class InMemoryDatabase:
    """Process-local tables guarded by one re-entrant lock.

    A transaction snapshots every table and restores it if the block raises,
    so a failed unit of work leaves nothing behind.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.tables: dict[str, dict[Any, Any]] = {name: {} for name in TABLES}
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self.lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = {name: dict(rows) for name, rows in self.tables.items()}
            self._depth = 1
            try:
                yield
            except BaseException:
                for name, rows in snapshot.items():
                    self.tables[name].clear()
                    self.tables[name].update(rows)
                raise
            finally:
                self._depth = 0

    def close(self) -> None:
        """Nothing to release; tables live as long as the process."""


class _Table:
    name = ""

    def __init__(self, database: InMemoryDatabase) -> None:
        self._db = database

    @property
    def _rows(self) -> dict[Any, Any]:
        return self._db.tables[self.name]


class InMemoryDraftAwardStore(_Table):
    name = "drafts"

    def get(self, draft_award_id: str) -> DraftAward | None:
        with self._db.lock:
            return self._rows.get(draft_award_id)

    def get_by_case(self, case_id: str) -> DraftAward | None:
        with self._db.lock:
            return next((draft for draft in self._rows.values() if draft.case_id == case_id), None)

    def insert(self, draft: DraftAward) -> None:
        with self._db.lock:
            if draft.id in self._rows or self.get_by_case(draft.case_id) is not None:
                raise StateConflictError(
                    "A draft award already exists for this case", case_id=draft.case_id
                )
            self._rows[draft.id] = draft

    def update(self, draft: DraftAward) -> None:
        with self._db.lock:
            if draft.id not in self._rows:
                raise NotFoundError("Draft award not found", draft_award_id=draft.id)
            self._rows[draft.id] = draft


class InMemoryRevisionStore(_Table):
    name = "revisions"

    def get(self, draft_award_id: str, version: int) -> DraftAwardRevision | None:
        with self._db.lock:
            return self._rows.get((draft_award_id, version))

    def list_for_draft(self, draft_award_id: str) -> list[DraftAwardRevision]:
        with self._db.lock:
            revisions = [rev for rev in self._rows.values() if rev.draft_award_id == draft_award_id]
        return sorted(revisions, key=lambda rev: rev.version, reverse=True)

    def max_version(self, draft_award_id: str) -> int:
        with self._db.lock:
            versions = [
                version for (draft_id, version) in self._rows if draft_id == draft_award_id
            ]
        return max(versions, default=0)

    def insert(self, revision: DraftAwardRevision) -> None:
        key = (revision.draft_award_id, revision.version)
        with self._db.lock:
            if key in self._rows:
                raise StateConflictError(
                    f"Revision {revision.version} already exists for this draft award",
                    draft_award_id=revision.draft_award_id,
                )
            self._rows[key] = revision


class InMemoryEscalationStore(_Table):
    name = "escalations"

    def get(self, escalation_id: str) -> AwardEscalation | None:
        with self._db.lock:
            return next((esc for esc in self._rows.values() if esc.id == escalation_id), None)

    def get_by_draft(self, draft_award_id: str) -> AwardEscalation | None:
        with self._db.lock:
            return self._rows.get(draft_award_id)

    def upsert(self, escalation: AwardEscalation) -> AwardEscalation:
        with self._db.lock:
            existing = self._rows.get(escalation.draft_award_id)
            if existing is not None:
                escalation = replace(escalation, id=existing.id)
            self._rows[escalation.draft_award_id] = escalation
            return escalation

    def list_by_status(self, status: EscalationStatus) -> list[AwardEscalation]:
        with self._db.lock:
            matching = [esc for esc in self._rows.values() if esc.status == status]
        return sorted(matching, key=lambda esc: (esc.escalated_at, esc.id))


class InMemoryAwardStore(_Table):
    name = "awards"

    def get(self, award_id: str) -> Award | None:
        with self._db.lock:
            return self._rows.get(award_id)

    def get_by_case(self, case_id: str) -> Award | None:
        with self._db.lock:
            return next((award for award in self._rows.values() if award.case_id == case_id), None)

    def insert(self, award: Award) -> None:
        with self._db.lock:
            if self.get_by_case(award.case_id) is not None:
                raise StateConflictError(
                    "Award has already been issued for this case", case_id=award.case_id
                )
            self._rows[award.id] = award

    def count_issued_between(self, start: datetime, end: datetime) -> int:
        with self._db.lock:
            return sum(1 for award in self._rows.values() if start <= award.issued_at < end)

    def mark_notified(self, award_id: str, party: NotifiedParty, notified_at: datetime) -> Award:
        with self._db.lock:
            award = self._rows.get(award_id)
            if award is None:
                raise NotFoundError("Award not found", award_id=award_id)
            field_name = f"{party.value}_notified_at"
            updated = replace(award, **{field_name: notified_at})
            self._rows[award_id] = updated
            return updated


class InMemoryAuditLogStore(_Table):
    name = "audit_log"

    def tail(self) -> AuditLogEntry | None:
        with self._db.lock:
            if not self._rows:
                return None
            return self._rows[max(self._rows)]

    def insert(self, entry: AuditLogEntry) -> None:
        with self._db.lock:
            if entry.sequence in self._rows:
                raise StateConflictError(
                    f"Audit sequence {entry.sequence} is already taken", sequence=entry.sequence
                )
            self._rows[entry.sequence] = entry

    def list_all(self) -> list[AuditLogEntry]:
        with self._db.lock:
            return [self._rows[sequence] for sequence in sorted(self._rows)]

    def list_for_case(self, case_id: str) -> list[AuditLogEntry]:
        return [entry for entry in self.list_all() if entry.case_id == case_id]


class InMemoryCaseStore(_Table):
    name = "cases"

    def get(self, case_id: str) -> CaseRecord | None:
        with self._db.lock:
            return self._rows.get(case_id)

    def save(self, case: CaseRecord) -> None:
        with self._db.lock:
            self._rows[case.id] = case

    def set_status(self, case_id: str, status: CaseStatus) -> CaseRecord:
        with self._db.lock:
            case = self._rows.get(case_id)
            if case is None:
                raise NotFoundError("Case not found", case_id=case_id)
            updated = replace(case, status=status)
            self._rows[case_id] = updated
            return updated


class InMemoryUserDirectory(_Table):
    name = "users"

    def get(self, user_id: str) -> UserProfile | None:
        with self._db.lock:
            return self._rows.get(user_id)

    def save(self, user: UserProfile) -> None:
        with self._db.lock:
            self._rows[user.id] = user

    def list_by_role(self, role: UserRole) -> list[UserProfile]:
        with self._db.lock:
            return sorted(
                (user for user in self._rows.values() if user.role == role),
                key=lambda user: user.id,
            )


def build_memory_repositories() -> Repositories:
    database = InMemoryDatabase()
    return Repositories(
        database=database,
        drafts=InMemoryDraftAwardStore(database),
        revisions=InMemoryRevisionStore(database),
        escalations=InMemoryEscalationStore(database),
        awards=InMemoryAwardStore(database),
        audit_log=InMemoryAuditLogStore(database),
        cases=InMemoryCaseStore(database),
        users=InMemoryUserDirectory(database),
    )
