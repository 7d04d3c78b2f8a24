from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from arbitration_awards.domain import AwardContent, ChangeType, DraftAward, DraftAwardRevision
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import utc_now

logger = get_logger("arbitration_awards.revisions")

INITIAL_CHANGE_SUMMARY = "Initial AI-generated draft award"


class RevisionLedger:
    """Append-only, versioned snapshots of a draft award's content.

    Versions are allocated as ``max + 1`` inside the same transaction as the
    insert, and the store rejects a duplicate ``(draft, version)`` pair, so
    concurrent writers can never produce a gap or a repeat.
    """

    def __init__(
        self,
        repositories: Repositories,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._clock = clock

    def create_initial_revision(self, draft: DraftAward, author_id: str) -> DraftAwardRevision:
        with self._repos.transaction():
            existing = self._repos.revisions.get(draft.id, 1)
            if existing is not None:
                return existing
            revision = DraftAwardRevision(
                id=str(uuid.uuid4()),
                draft_award_id=draft.id,
                version=1,
                content=draft.content,
                change_type=ChangeType.INITIAL,
                change_summary=INITIAL_CHANGE_SUMMARY,
                changed_fields=(),
                author_id=author_id,
                created_at=self._clock(),
            )
            self._repos.revisions.insert(revision)
        logger.info("revision_created", draft_award_id=draft.id, version=1, change_type="INITIAL")
        return revision

    def append_revision(
        self,
        draft_award_id: str,
        content: AwardContent,
        *,
        change_type: ChangeType,
        change_summary: str,
        changed_fields: Sequence[str],
        author_id: str,
    ) -> DraftAwardRevision:
        with self._repos.transaction():
            version = self._repos.revisions.max_version(draft_award_id) + 1
            revision = DraftAwardRevision(
                id=str(uuid.uuid4()),
                draft_award_id=draft_award_id,
                version=version,
                content=content,
                change_type=change_type,
                change_summary=change_summary,
                changed_fields=tuple(changed_fields),
                author_id=author_id,
                created_at=self._clock(),
            )
            self._repos.revisions.insert(revision)
        logger.info(
            "revision_created",
            draft_award_id=draft_award_id,
            version=version,
            change_type=change_type.value,
            changed_fields=list(revision.changed_fields),
        )
        return revision

    def get_history(self, draft_award_id: str) -> list[DraftAwardRevision]:
        return self._repos.revisions.list_for_draft(draft_award_id)

    def get_revision(self, draft_award_id: str, version: int) -> DraftAwardRevision | None:
        return self._repos.revisions.get(draft_award_id, version)

    def latest_version(self, draft_award_id: str) -> int:
        return self._repos.revisions.max_version(draft_award_id)
