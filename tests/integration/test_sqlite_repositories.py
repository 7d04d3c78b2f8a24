from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from conftest import open_case, seed_parties
from arbitration_awards.domain import (
    AuditAction,
    AwardModification,
    CaseStatus,
    ChangeType,
    GeneratedDraft,
    ReviewStatus,
)
from arbitration_awards.errors import StateConflictError
from arbitration_awards.finalization.finalizer import ALREADY_ISSUED_REASON
from arbitration_awards.services import AwardServices
from arbitration_awards.storage.sqlite import build_sqlite_repositories


@pytest.fixture
def sqlite_services(
    tmp_path: Path, make_services: Callable[..., AwardServices]
) -> AwardServices:
    return make_services(repositories=build_sqlite_repositories(str(tmp_path / "integration.db")))


def _approved(services: AwardServices, draft_payload: dict[str, Any]) -> str:
    seed_parties(services)
    case = open_case(services)
    services.review.register_draft(case.id, GeneratedDraft.from_dict(draft_payload))
    services.review.modify(
        case.id, "arb-1", AwardModification.from_dict({"award_amount": "4800"}), "deduct restocking fee"
    )
    services.review.approve(case.id, "arb-1")
    return case.id


def test_review_and_issuance_persist_across_connections(
    tmp_path: Path,
    make_services: Callable[..., AwardServices],
    draft_payload: dict[str, Any],
) -> None:
    path = str(tmp_path / "shared.db")
    writer = make_services(repositories=build_sqlite_repositories(path))
    case_id = _approved(writer, draft_payload)
    issued = writer.finalizer.finalize(case_id, "arb-1")

    reader = make_services(repositories=build_sqlite_repositories(path))

    draft = reader.review.get_draft(case_id)
    assert draft.review_status is ReviewStatus.APPROVE
    history = reader.review.get_revision_history(case_id)
    assert [revision.version for revision in history] == [3, 2, 1]
    assert history[1].change_type is ChangeType.ARBITRATOR_EDIT
    assert history[1].changed_fields == ("award_amount",)
    assert history[2].change_type is ChangeType.INITIAL

    award = reader.finalizer.get_issued_award(case_id)
    assert award.reference_number == issued.reference_number
    assert award.claimant_notified_at is not None
    case = reader.repositories.cases.get(case_id)
    assert case is not None
    assert case.status is CaseStatus.DECIDED
    assert reader.audit.verify().is_valid is True


def test_second_issuance_is_rejected(
    sqlite_services: AwardServices, draft_payload: dict[str, Any]
) -> None:
    case_id = _approved(sqlite_services, draft_payload)
    sqlite_services.finalizer.finalize(case_id, "arb-1")

    with pytest.raises(StateConflictError) as excinfo:
        sqlite_services.finalizer.finalize(case_id, "arb-1")

    assert excinfo.value.reason == ALREADY_ISSUED_REASON


def test_award_row_is_unique_per_case(
    sqlite_services: AwardServices, draft_payload: dict[str, Any]
) -> None:
    case_id = _approved(sqlite_services, draft_payload)
    sqlite_services.finalizer.finalize(case_id, "arb-1")
    award = sqlite_services.finalizer.get_issued_award(case_id)

    with pytest.raises(StateConflictError, match="already been issued"):
        sqlite_services.repositories.awards.insert(award)


def test_reference_number_may_repeat_across_cases(
    sqlite_services: AwardServices, draft_payload: dict[str, Any]
) -> None:
    case_id = _approved(sqlite_services, draft_payload)
    sqlite_services.finalizer.finalize(case_id, "arb-1")
    award = sqlite_services.finalizer.get_issued_award(case_id)
    open_case(sqlite_services, "case-2")

    sqlite_services.repositories.awards.insert(replace(award, id="award-2", case_id="case-2"))

    stored = sqlite_services.repositories.awards.get_by_case("case-2")
    assert stored is not None
    assert stored.reference_number == award.reference_number


def test_duplicate_revision_version_is_rejected(
    sqlite_services: AwardServices, draft_payload: dict[str, Any]
) -> None:
    case_id = _approved(sqlite_services, draft_payload)
    revision = sqlite_services.review.get_revision_history(case_id)[0]

    with pytest.raises(StateConflictError, match="already exists"):
        sqlite_services.repositories.revisions.insert(revision)


def test_audit_log_rejects_updates(sqlite_services: AwardServices) -> None:
    sqlite_services.audit.append(AuditAction.CASE_CREATED, actor_id="claimant-1", case_id="case-1")
    database = sqlite_services.repositories.database

    with pytest.raises(StateConflictError):
        database.execute("UPDATE audit_log SET actor_id = ? WHERE sequence = 1", ("mallory",))
    with pytest.raises(StateConflictError):
        database.execute("DELETE FROM audit_log WHERE sequence = 1")

    assert sqlite_services.audit.verify().is_valid is True


def test_tampering_below_the_triggers_is_detected(sqlite_services: AwardServices) -> None:
    for index in range(3):
        sqlite_services.audit.append(
            AuditAction.EVIDENCE_UPLOADED,
            actor_id="claimant-1",
            case_id="case-1",
            metadata={"evidence_id": f"ev-{index}"},
        )
    connection = sqlite_services.repositories.database.connection
    connection.execute("DROP TRIGGER audit_log_no_update")
    connection.execute(
        "UPDATE audit_log SET metadata = ? WHERE sequence = 2",
        (json.dumps({"evidence_id": "forged"}),),
    )

    verification = sqlite_services.audit.verify()

    assert verification.is_valid is False
    assert [entry.sequence for entry in verification.invalid_entries] == [2]
