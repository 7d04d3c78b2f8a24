"""SQLite backend for the repository protocols.

Content snapshots, changed-field lists and audit metadata live in JSON
columns; indexed columns carry the identifiers the services query by.
Revisions and audit entries are append-only at the schema level: triggers
reject UPDATE and DELETE, and an issued award only ever has its notification
columns updated.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from arbitration_awards.domain import (
    AuditAction,
    AuditLogEntry,
    Award,
    AwardContent,
    AwardEscalation,
    CaseRecord,
    CaseStatus,
    ChangeType,
    DraftAward,
    DraftAwardRevision,
    EscalationReason,
    EscalationStatus,
    EscalationUrgency,
    NotifiedParty,
    ReviewStatus,
    UserProfile,
    UserRole,
)
from arbitration_awards.errors import NotFoundError, StateConflictError
from arbitration_awards.storage.base import Repositories

SCHEMA = """
CREATE TABLE IF NOT EXISTS cases (
    id TEXT PRIMARY KEY,
    reference_number TEXT NOT NULL,
    status TEXT NOT NULL,
    claimant_id TEXT NOT NULL,
    respondent_id TEXT,
    arbitrator_id TEXT,
    jurisdiction TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT,
    email TEXT NOT NULL,
    role TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    years_experience INTEGER NOT NULL DEFAULT 0,
    cases_completed INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

CREATE TABLE IF NOT EXISTS draft_awards (
    id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL UNIQUE,
    content TEXT NOT NULL,
    confidence REAL NOT NULL,
    model_used TEXT NOT NULL,
    generated_at TEXT NOT NULL,
    review_status TEXT,
    review_notes TEXT,
    reviewed_at TEXT
);

CREATE TABLE IF NOT EXISTS draft_award_revisions (
    id TEXT PRIMARY KEY,
    draft_award_id TEXT NOT NULL,
    version INTEGER NOT NULL,
    content TEXT NOT NULL,
    change_type TEXT NOT NULL,
    change_summary TEXT NOT NULL,
    changed_fields TEXT NOT NULL,
    author_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (draft_award_id, version)
);

CREATE TABLE IF NOT EXISTS award_escalations (
    id TEXT PRIMARY KEY,
    draft_award_id TEXT NOT NULL UNIQUE,
    reason TEXT NOT NULL,
    detail TEXT,
    urgency TEXT NOT NULL,
    status TEXT NOT NULL,
    escalated_by_id TEXT NOT NULL,
    escalated_at TEXT NOT NULL,
    assigned_to_id TEXT,
    assigned_at TEXT,
    resolved_at TEXT,
    resolution TEXT
);

CREATE INDEX IF NOT EXISTS idx_escalations_status ON award_escalations(status, escalated_at);

CREATE TABLE IF NOT EXISTS awards (
    id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL UNIQUE,
    reference_number TEXT NOT NULL,
    content TEXT NOT NULL,
    arbitrator_id TEXT NOT NULL,
    signed_at TEXT NOT NULL,
    issued_at TEXT NOT NULL,
    signature_value TEXT NOT NULL,
    signature_algorithm TEXT NOT NULL,
    signature_certificate TEXT NOT NULL,
    certificate_fingerprint TEXT NOT NULL,
    timestamp_granted INTEGER NOT NULL DEFAULT 0,
    timestamp_token TEXT,
    timestamp_time TEXT,
    timestamp_authority TEXT,
    document_url TEXT NOT NULL,
    document_hash TEXT NOT NULL,
    claimant_notified_at TEXT,
    respondent_notified_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_awards_issued_at ON awards(issued_at);
CREATE INDEX IF NOT EXISTS idx_awards_reference ON awards(reference_number);

CREATE TABLE IF NOT EXISTS audit_log (
    sequence INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    action TEXT NOT NULL,
    actor_id TEXT,
    case_id TEXT,
    metadata TEXT NOT NULL,
    ip_address TEXT,
    user_agent TEXT,
    timestamp TEXT NOT NULL,
    previous_hash TEXT NOT NULL,
    hash TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_log_case ON audit_log(case_id, sequence);

CREATE TRIGGER IF NOT EXISTS draft_award_revisions_no_update
BEFORE UPDATE ON draft_award_revisions
BEGIN
    SELECT RAISE(ABORT, 'draft award revisions are append-only');
END;

CREATE TRIGGER IF NOT EXISTS draft_award_revisions_no_delete
BEFORE DELETE ON draft_award_revisions
BEGIN
    SELECT RAISE(ABORT, 'draft award revisions are append-only');
END;

CREATE TRIGGER IF NOT EXISTS audit_log_no_update
BEFORE UPDATE ON audit_log
BEGIN
    SELECT RAISE(ABORT, 'audit log is append-only');
END;

CREATE TRIGGER IF NOT EXISTS audit_log_no_delete
BEFORE DELETE ON audit_log
BEGIN
    SELECT RAISE(ABORT, 'audit log is append-only');
END;

CREATE TRIGGER IF NOT EXISTS awards_no_delete
BEFORE DELETE ON awards
BEGIN
    SELECT RAISE(ABORT, 'issued awards cannot be deleted');
END;

CREATE TRIGGER IF NOT EXISTS awards_immutable
BEFORE UPDATE OF id, case_id, reference_number, content, arbitrator_id, signed_at, issued_at,
    signature_value, signature_algorithm, signature_certificate, certificate_fingerprint,
    timestamp_granted, timestamp_token, timestamp_time, timestamp_authority,
    document_url, document_hash
ON awards
BEGIN
    SELECT RAISE(ABORT, 'issued awards are immutable');
END;
"""


def _dt_to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def _dt_from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _content_to_text(content: AwardContent) -> str:
    return json.dumps(content.as_dict(), sort_keys=True)


def _content_from_text(value: str) -> AwardContent:
    return AwardContent.from_dict(json.loads(value))


class SqliteDatabase:
    """One shared connection, serialized by a re-entrant lock.

    The outermost ``transaction()`` issues ``BEGIN IMMEDIATE`` so concurrent
    writers queue on the database write lock; nested calls join it.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.lock = threading.RLock()
        self.connection = sqlite3.connect(
            path,
            isolation_level=None,
            check_same_thread=False,
            timeout=30,
        )
        self.connection.row_factory = sqlite3.Row
        self._depth = 0
        self.connection.executescript(SCHEMA)

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

            self.connection.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield
            except BaseException:
                self.connection.execute("ROLLBACK")
                raise
            else:
                self.connection.execute("COMMIT")
            finally:
                self._depth = 0

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self.lock:
            try:
                return self.connection.execute(sql, params)
            except sqlite3.IntegrityError as exc:
                raise StateConflictError("Write rejected by a storage constraint", detail=str(exc)) from exc

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        with self.lock:
            return self.connection.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self.lock:
            return self.connection.execute(sql, params).fetchall()

    def close(self) -> None:
        with self.lock:
            self.connection.close()


class _SqliteStore:
    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database


class SqliteDraftAwardStore(_SqliteStore):
    def get(self, draft_award_id: str) -> DraftAward | None:
        row = self._db.fetchone("SELECT * FROM draft_awards WHERE id = ?", (draft_award_id,))
        return None if row is None else self._from_row(row)

    def get_by_case(self, case_id: str) -> DraftAward | None:
        row = self._db.fetchone("SELECT * FROM draft_awards WHERE case_id = ?", (case_id,))
        return None if row is None else self._from_row(row)

    def insert(self, draft: DraftAward) -> None:
        try:
            self._db.execute(
                """INSERT INTO draft_awards
                   (id, case_id, content, confidence, model_used, generated_at,
                    review_status, review_notes, reviewed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                self._params(draft),
            )
        except StateConflictError as exc:
            raise StateConflictError(
                "A draft award already exists for this case", case_id=draft.case_id
            ) from exc

    def update(self, draft: DraftAward) -> None:
        cursor = self._db.execute(
            """UPDATE draft_awards
               SET case_id = ?, content = ?, confidence = ?, model_used = ?, generated_at = ?,
                   review_status = ?, review_notes = ?, reviewed_at = ?
               WHERE id = ?""",
            (*self._params(draft)[1:], draft.id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("Draft award not found", draft_award_id=draft.id)

    @staticmethod
    def _params(draft: DraftAward) -> tuple[Any, ...]:
        return (
            draft.id,
            draft.case_id,
            _content_to_text(draft.content),
            draft.confidence,
            draft.model_used,
            _dt_to_text(draft.generated_at),
            None if draft.review_status is None else draft.review_status.value,
            draft.review_notes,
            _dt_to_text(draft.reviewed_at),
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> DraftAward:
        return DraftAward(
            id=row["id"],
            case_id=row["case_id"],
            content=_content_from_text(row["content"]),
            confidence=row["confidence"],
            model_used=row["model_used"],
            generated_at=_dt_from_text(row["generated_at"]),
            review_status=None if row["review_status"] is None else ReviewStatus(row["review_status"]),
            review_notes=row["review_notes"],
            reviewed_at=_dt_from_text(row["reviewed_at"]),
        )


class SqliteRevisionStore(_SqliteStore):
    def get(self, draft_award_id: str, version: int) -> DraftAwardRevision | None:
        row = self._db.fetchone(
            "SELECT * FROM draft_award_revisions WHERE draft_award_id = ? AND version = ?",
            (draft_award_id, version),
        )
        return None if row is None else self._from_row(row)

    def list_for_draft(self, draft_award_id: str) -> list[DraftAwardRevision]:
        rows = self._db.fetchall(
            "SELECT * FROM draft_award_revisions WHERE draft_award_id = ? ORDER BY version DESC",
            (draft_award_id,),
        )
        return [self._from_row(row) for row in rows]

    def max_version(self, draft_award_id: str) -> int:
        row = self._db.fetchone(
            "SELECT COALESCE(MAX(version), 0) AS max_version FROM draft_award_revisions "
            "WHERE draft_award_id = ?",
            (draft_award_id,),
        )
        return int(row["max_version"])

    def insert(self, revision: DraftAwardRevision) -> None:
        try:
            self._db.execute(
                """INSERT INTO draft_award_revisions
                   (id, draft_award_id, version, content, change_type, change_summary,
                    changed_fields, author_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    revision.id,
                    revision.draft_award_id,
                    revision.version,
                    _content_to_text(revision.content),
                    revision.change_type.value,
                    revision.change_summary,
                    json.dumps(list(revision.changed_fields)),
                    revision.author_id,
                    _dt_to_text(revision.created_at),
                ),
            )
        except StateConflictError as exc:
            raise StateConflictError(
                f"Revision {revision.version} already exists for this draft award",
                draft_award_id=revision.draft_award_id,
            ) from exc

    @staticmethod
    def _from_row(row: sqlite3.Row) -> DraftAwardRevision:
        return DraftAwardRevision(
            id=row["id"],
            draft_award_id=row["draft_award_id"],
            version=row["version"],
            content=_content_from_text(row["content"]),
            change_type=ChangeType(row["change_type"]),
            change_summary=row["change_summary"],
            changed_fields=tuple(json.loads(row["changed_fields"])),
            author_id=row["author_id"],
            created_at=_dt_from_text(row["created_at"]),
        )


class SqliteEscalationStore(_SqliteStore):
    def get(self, escalation_id: str) -> AwardEscalation | None:
        row = self._db.fetchone("SELECT * FROM award_escalations WHERE id = ?", (escalation_id,))
        return None if row is None else self._from_row(row)

    def get_by_draft(self, draft_award_id: str) -> AwardEscalation | None:
        row = self._db.fetchone(
            "SELECT * FROM award_escalations WHERE draft_award_id = ?", (draft_award_id,)
        )
        return None if row is None else self._from_row(row)

    def upsert(self, escalation: AwardEscalation) -> AwardEscalation:
        with self._db.transaction():
            self._db.execute(
                """INSERT INTO award_escalations
                   (id, draft_award_id, reason, detail, urgency, status, escalated_by_id,
                    escalated_at, assigned_to_id, assigned_at, resolved_at, resolution)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (draft_award_id) DO UPDATE SET
                       reason = excluded.reason,
                       detail = excluded.detail,
                       urgency = excluded.urgency,
                       status = excluded.status,
                       escalated_by_id = excluded.escalated_by_id,
                       escalated_at = excluded.escalated_at,
                       assigned_to_id = excluded.assigned_to_id,
                       assigned_at = excluded.assigned_at,
                       resolved_at = excluded.resolved_at,
                       resolution = excluded.resolution""",
                (
                    escalation.id,
                    escalation.draft_award_id,
                    escalation.reason.value,
                    escalation.detail,
                    escalation.urgency.value,
                    escalation.status.value,
                    escalation.escalated_by_id,
                    _dt_to_text(escalation.escalated_at),
                    escalation.assigned_to_id,
                    _dt_to_text(escalation.assigned_at),
                    _dt_to_text(escalation.resolved_at),
                    escalation.resolution,
                ),
            )
            stored = self.get_by_draft(escalation.draft_award_id)
        if stored is None:
            raise NotFoundError("Escalation not found", draft_award_id=escalation.draft_award_id)
        return stored

    def list_by_status(self, status: EscalationStatus) -> list[AwardEscalation]:
        rows = self._db.fetchall(
            "SELECT * FROM award_escalations WHERE status = ? ORDER BY escalated_at, id",
            (status.value,),
        )
        return [self._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> AwardEscalation:
        return AwardEscalation(
            id=row["id"],
            draft_award_id=row["draft_award_id"],
            reason=EscalationReason(row["reason"]),
            urgency=EscalationUrgency(row["urgency"]),
            escalated_by_id=row["escalated_by_id"],
            escalated_at=_dt_from_text(row["escalated_at"]),
            status=EscalationStatus(row["status"]),
            detail=row["detail"],
            assigned_to_id=row["assigned_to_id"],
            assigned_at=_dt_from_text(row["assigned_at"]),
            resolved_at=_dt_from_text(row["resolved_at"]),
            resolution=row["resolution"],
        )


class SqliteAwardStore(_SqliteStore):
    def get(self, award_id: str) -> Award | None:
        row = self._db.fetchone("SELECT * FROM awards WHERE id = ?", (award_id,))
        return None if row is None else self._from_row(row)

    def get_by_case(self, case_id: str) -> Award | None:
        row = self._db.fetchone("SELECT * FROM awards WHERE case_id = ?", (case_id,))
        return None if row is None else self._from_row(row)

    def insert(self, award: Award) -> None:
        try:
            self._db.execute(
                """INSERT INTO awards
                   (id, case_id, reference_number, content, arbitrator_id, signed_at, issued_at,
                    signature_value, signature_algorithm, signature_certificate,
                    certificate_fingerprint, timestamp_granted, timestamp_token, timestamp_time,
                    timestamp_authority, document_url, document_hash, claimant_notified_at,
                    respondent_notified_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    award.id,
                    award.case_id,
                    award.reference_number,
                    _content_to_text(award.content),
                    award.arbitrator_id,
                    _dt_to_text(award.signed_at),
                    _dt_to_text(award.issued_at),
                    award.signature_value,
                    award.signature_algorithm,
                    award.signature_certificate,
                    award.certificate_fingerprint,
                    int(award.timestamp_granted),
                    award.timestamp_token,
                    _dt_to_text(award.timestamp_time),
                    award.timestamp_authority,
                    award.document_url,
                    award.document_hash,
                    _dt_to_text(award.claimant_notified_at),
                    _dt_to_text(award.respondent_notified_at),
                ),
            )
        except StateConflictError as exc:
            raise StateConflictError(
                "Award has already been issued for this case",
                case_id=award.case_id,
                reference_number=award.reference_number,
            ) from exc

    def count_issued_between(self, start: datetime, end: datetime) -> int:
        row = self._db.fetchone(
            "SELECT COUNT(*) AS issued FROM awards WHERE issued_at >= ? AND issued_at < ?",
            (_dt_to_text(start), _dt_to_text(end)),
        )
        return int(row["issued"])

    def mark_notified(self, award_id: str, party: NotifiedParty, notified_at: datetime) -> Award:
        column = {
            NotifiedParty.CLAIMANT: "claimant_notified_at",
            NotifiedParty.RESPONDENT: "respondent_notified_at",
        }[party]
        with self._db.transaction():
            cursor = self._db.execute(
                f"UPDATE awards SET {column} = ? WHERE id = ?",
                (_dt_to_text(notified_at), award_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Award not found", award_id=award_id)
            updated = self.get(award_id)
        if updated is None:
            raise NotFoundError("Award not found", award_id=award_id)
        return updated

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Award:
        return Award(
            id=row["id"],
            case_id=row["case_id"],
            reference_number=row["reference_number"],
            content=_content_from_text(row["content"]),
            arbitrator_id=row["arbitrator_id"],
            signed_at=_dt_from_text(row["signed_at"]),
            issued_at=_dt_from_text(row["issued_at"]),
            signature_value=row["signature_value"],
            signature_algorithm=row["signature_algorithm"],
            signature_certificate=row["signature_certificate"],
            certificate_fingerprint=row["certificate_fingerprint"],
            document_url=row["document_url"],
            document_hash=row["document_hash"],
            timestamp_granted=bool(row["timestamp_granted"]),
            timestamp_token=row["timestamp_token"],
            timestamp_time=_dt_from_text(row["timestamp_time"]),
            timestamp_authority=row["timestamp_authority"],
            claimant_notified_at=_dt_from_text(row["claimant_notified_at"]),
            respondent_notified_at=_dt_from_text(row["respondent_notified_at"]),
        )


class SqliteAuditLogStore(_SqliteStore):
    def tail(self) -> AuditLogEntry | None:
        row = self._db.fetchone("SELECT * FROM audit_log ORDER BY sequence DESC LIMIT 1")
        return None if row is None else self._from_row(row)

    def insert(self, entry: AuditLogEntry) -> None:
        try:
            self._db.execute(
                """INSERT INTO audit_log
                   (sequence, id, action, actor_id, case_id, metadata, ip_address, user_agent,
                    timestamp, previous_hash, hash)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.sequence,
                    entry.id,
                    entry.action.value,
                    entry.actor_id,
                    entry.case_id,
                    json.dumps(entry.metadata, sort_keys=True, default=str),
                    entry.ip_address,
                    entry.user_agent,
                    _dt_to_text(entry.timestamp),
                    entry.previous_hash,
                    entry.hash,
                ),
            )
        except StateConflictError as exc:
            raise StateConflictError(
                f"Audit sequence {entry.sequence} is already taken", sequence=entry.sequence
            ) from exc

    def list_all(self) -> list[AuditLogEntry]:
        rows = self._db.fetchall("SELECT * FROM audit_log ORDER BY sequence")
        return [self._from_row(row) for row in rows]

    def list_for_case(self, case_id: str) -> list[AuditLogEntry]:
        rows = self._db.fetchall(
            "SELECT * FROM audit_log WHERE case_id = ? ORDER BY sequence", (case_id,)
        )
        return [self._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> AuditLogEntry:
        return AuditLogEntry(
            id=row["id"],
            sequence=row["sequence"],
            action=AuditAction(row["action"]),
            timestamp=_dt_from_text(row["timestamp"]),
            previous_hash=row["previous_hash"],
            hash=row["hash"],
            actor_id=row["actor_id"],
            case_id=row["case_id"],
            metadata=json.loads(row["metadata"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
        )


class SqliteCaseStore(_SqliteStore):
    def get(self, case_id: str) -> CaseRecord | None:
        row = self._db.fetchone("SELECT * FROM cases WHERE id = ?", (case_id,))
        if row is None:
            return None
        return CaseRecord(
            id=row["id"],
            reference_number=row["reference_number"],
            status=CaseStatus(row["status"]),
            claimant_id=row["claimant_id"],
            created_at=_dt_from_text(row["created_at"]),
            respondent_id=row["respondent_id"],
            arbitrator_id=row["arbitrator_id"],
            jurisdiction=row["jurisdiction"],
        )

    def save(self, case: CaseRecord) -> None:
        self._db.execute(
            """INSERT INTO cases
               (id, reference_number, status, claimant_id, respondent_id, arbitrator_id,
                jurisdiction, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (id) DO UPDATE SET
                   reference_number = excluded.reference_number,
                   status = excluded.status,
                   claimant_id = excluded.claimant_id,
                   respondent_id = excluded.respondent_id,
                   arbitrator_id = excluded.arbitrator_id,
                   jurisdiction = excluded.jurisdiction""",
            (
                case.id,
                case.reference_number,
                case.status.value,
                case.claimant_id,
                case.respondent_id,
                case.arbitrator_id,
                case.jurisdiction,
                _dt_to_text(case.created_at),
            ),
        )

    def set_status(self, case_id: str, status: CaseStatus) -> CaseRecord:
        with self._db.transaction():
            cursor = self._db.execute(
                "UPDATE cases SET status = ? WHERE id = ?", (status.value, case_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Case not found", case_id=case_id)
            updated = self.get(case_id)
        if updated is None:
            raise NotFoundError("Case not found", case_id=case_id)
        return updated


class SqliteUserDirectory(_SqliteStore):
    def get(self, user_id: str) -> UserProfile | None:
        row = self._db.fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return None if row is None else self._from_row(row)

    def save(self, user: UserProfile) -> None:
        self._db.execute(
            """INSERT INTO users
               (id, name, email, role, is_active, years_experience, cases_completed)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (id) DO UPDATE SET
                   name = excluded.name,
                   email = excluded.email,
                   role = excluded.role,
                   is_active = excluded.is_active,
                   years_experience = excluded.years_experience,
                   cases_completed = excluded.cases_completed""",
            (
                user.id,
                user.name,
                user.email,
                user.role.value,
                int(user.is_active),
                user.years_experience,
                user.cases_completed,
            ),
        )

    def list_by_role(self, role: UserRole) -> list[UserProfile]:
        rows = self._db.fetchall("SELECT * FROM users WHERE role = ? ORDER BY id", (role.value,))
        return [self._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            role=UserRole(row["role"]),
            is_active=bool(row["is_active"]),
            years_experience=row["years_experience"],
            cases_completed=row["cases_completed"],
        )


def build_sqlite_repositories(path: str) -> Repositories:
    database = SqliteDatabase(path)
    return Repositories(
        database=database,
        drafts=SqliteDraftAwardStore(database),
        revisions=SqliteRevisionStore(database),
        escalations=SqliteEscalationStore(database),
        awards=SqliteAwardStore(database),
        audit_log=SqliteAuditLogStore(database),
        cases=SqliteCaseStore(database),
        users=SqliteUserDirectory(database),
    )
