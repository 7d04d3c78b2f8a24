"""Hash-linked, append-only audit log.

Each entry commits to its own fields and to the hash of the entry before it,
so altering, removing or reordering any stored entry is detectable by
recomputing the chain. Nothing here ever rewrites an entry.
"""
from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from arbitration_awards.domain import GENESIS_HASH, AuditAction, AuditLogEntry
from arbitration_awards.domain.audit import normalize_metadata
from arbitration_awards.errors import IntegrityError
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import RequestContext, utc_now

logger = get_logger("arbitration_awards.audit")


@dataclass(slots=True, frozen=True)
class InvalidEntry:
    entry_id: str
    sequence: int
    reasons: tuple[str, ...]

    def as_dict(self) -> dict[str, Any]:
        return {"entry_id": self.entry_id, "sequence": self.sequence, "reasons": list(self.reasons)}


@dataclass(slots=True, frozen=True)
class ChainVerification:
    is_valid: bool
    total_entries: int
    hash_mismatches: int
    contiguous: bool
    invalid_entries: tuple[InvalidEntry, ...]
    verified_at: datetime

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_entries)

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "total_entries": self.total_entries,
            "hash_mismatches": self.hash_mismatches,
            "contiguous": self.contiguous,
            "invalid_count": self.invalid_count,
            "invalid_entries": [entry.as_dict() for entry in self.invalid_entries],
            "verified_at": self.verified_at.isoformat(),
        }


class AuditChain:
    def __init__(
        self,
        repositories: Repositories,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._clock = clock

    def append(
        self,
        action: AuditAction,
        *,
        actor_id: str | None = None,
        case_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLogEntry:
        with self._repos.transaction():
            tail = self._repos.audit_log.tail()
            unsealed = AuditLogEntry(
                id=str(uuid.uuid4()),
                sequence=1 if tail is None else tail.sequence + 1,
                action=action,
                timestamp=self._clock(),
                previous_hash=GENESIS_HASH if tail is None else tail.hash,
                hash="",
                actor_id=actor_id,
                case_id=case_id,
                metadata=normalize_metadata(metadata),
                ip_address=ip_address,
                user_agent=user_agent,
            )
            entry = replace(unsealed, hash=unsealed.expected_hash())
            self._repos.audit_log.insert(entry)

        logger.info(
            "audit_entry_appended",
            action=action.value,
            sequence=entry.sequence,
            case_id=case_id,
            actor_id=actor_id,
        )
        return entry

    def record(
        self,
        action: AuditAction,
        *,
        actor_id: str | None,
        case_id: str | None,
        metadata: dict[str, Any] | None = None,
        context: RequestContext | None = None,
    ) -> AuditLogEntry:
        context = context or RequestContext()
        return self.append(
            action,
            actor_id=actor_id,
            case_id=case_id,
            metadata=metadata,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    def entries_for_case(self, case_id: str) -> list[AuditLogEntry]:
        return self._repos.audit_log.list_for_case(case_id)

    def verify(self, entries: Sequence[AuditLogEntry] | None = None) -> ChainVerification:
        """Recompute hashes and links.

        Without ``entries`` the whole chain is checked, including that it starts
        at sequence 1 on the genesis hash and has no gaps. A supplied subset
        (one case's entries, say) is checked entry by entry, and links are
        only compared between entries with adjacent sequence numbers.
        """
        whole_chain = entries is None
        ordered = sorted(
            self._repos.audit_log.list_all() if entries is None else entries,
            key=lambda entry: entry.sequence,
        )

        invalid: list[InvalidEntry] = []
        mismatches = 0
        contiguous = True
        previous: AuditLogEntry | None = None
        for entry in ordered:
            reasons: list[str] = []
            if entry.hash != entry.expected_hash():
                mismatches += 1
                reasons.append("hash does not match entry contents")

            if previous is None:
                if whole_chain and entry.sequence != 1:
                    contiguous = False
                    reasons.append(f"chain starts at sequence {entry.sequence}, expected 1")
            elif entry.sequence != previous.sequence + 1:
                contiguous = False
                if whole_chain:
                    reasons.append(f"sequence gap after {previous.sequence}")
            elif entry.previous_hash != previous.hash:
                reasons.append("previous hash does not match the preceding entry")

            if entry.sequence == 1 and entry.previous_hash != GENESIS_HASH:
                reasons.append("first entry does not link to the genesis hash")

            if reasons:
                invalid.append(InvalidEntry(entry.id, entry.sequence, tuple(reasons)))
            previous = entry

        verification = ChainVerification(
            is_valid=not invalid,
            total_entries=len(ordered),
            hash_mismatches=mismatches,
            contiguous=contiguous,
            invalid_entries=tuple(invalid),
            verified_at=self._clock(),
        )
        log = logger.info if verification.is_valid else logger.warning
        log(
            "audit_chain_verified",
            whole_chain=whole_chain,
            is_valid=verification.is_valid,
            total_entries=verification.total_entries,
            invalid_count=verification.invalid_count,
        )
        return verification

    def assert_intact(self) -> ChainVerification:
        verification = self.verify()
        if not verification.is_valid:
            raise IntegrityError(
                "Audit chain verification failed",
                invalid_count=verification.invalid_count,
                invalid_entries=[entry.as_dict() for entry in verification.invalid_entries],
            )
        return verification
