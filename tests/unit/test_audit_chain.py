from __future__ import annotations

from dataclasses import replace

import pytest

from arbitration_awards.domain import GENESIS_HASH, AuditAction
from arbitration_awards.errors import IntegrityError
from arbitration_awards.services import AwardServices
from arbitration_awards.types import RequestContext


def _append_many(services: AwardServices, count: int, case_id: str = "case-1") -> None:
    for index in range(count):
        services.audit.append(
            AuditAction.EVIDENCE_UPLOADED,
            actor_id="claimant-1",
            case_id=case_id,
            metadata={"evidence_id": f"ev-{index}", "size_bytes": 1024 * index},
        )


def test_first_entry_links_to_genesis(services: AwardServices) -> None:
    entry = services.audit.append(AuditAction.CASE_CREATED, actor_id="claimant-1", case_id="case-1")

    assert entry.sequence == 1
    assert entry.previous_hash == GENESIS_HASH
    assert entry.hash == entry.expected_hash()


def test_entries_are_hash_linked(services: AwardServices) -> None:
    _append_many(services, 5)

    entries = services.repositories.audit_log.list_all()

    assert [entry.sequence for entry in entries] == [1, 2, 3, 4, 5]
    for previous, current in zip(entries, entries[1:]):
        assert current.previous_hash == previous.hash


def test_untouched_chain_verifies(services: AwardServices) -> None:
    _append_many(services, 10)

    verification = services.audit.verify()

    assert verification.is_valid is True
    assert verification.total_entries == 10
    assert verification.contiguous is True
    assert services.audit.assert_intact().is_valid is True


def test_record_carries_request_context(services: AwardServices) -> None:
    entry = services.audit.record(
        AuditAction.AWARD_DOWNLOADED,
        actor_id="respondent-1",
        case_id="case-1",
        context=RequestContext(ip_address="198.51.100.4", user_agent="pytest"),
    )

    assert entry.ip_address == "198.51.100.4"
    assert entry.user_agent == "pytest"
    assert services.audit.verify().is_valid is True


def test_metadata_tampering_is_detected(services: AwardServices) -> None:
    _append_many(services, 6)
    table = services.repositories.database.tables["audit_log"]  # type: ignore[attr-defined]
    table[3] = replace(table[3], metadata={"evidence_id": "ev-forged", "size_bytes": 1})

    verification = services.audit.verify()

    assert verification.is_valid is False
    assert verification.hash_mismatches == 1
    assert [entry.sequence for entry in verification.invalid_entries] == [3]
    with pytest.raises(IntegrityError):
        services.audit.assert_intact()


def test_rehashed_entry_breaks_the_next_link(services: AwardServices) -> None:
    _append_many(services, 4)
    table = services.repositories.database.tables["audit_log"]  # type: ignore[attr-defined]
    forged = replace(table[2], metadata={"evidence_id": "ev-forged"})
    table[2] = replace(forged, hash=forged.expected_hash())

    verification = services.audit.verify()

    assert verification.is_valid is False
    assert verification.hash_mismatches == 0
    assert [entry.sequence for entry in verification.invalid_entries] == [3]


def test_deleted_entry_leaves_a_gap(services: AwardServices) -> None:
    _append_many(services, 4)
    del services.repositories.database.tables["audit_log"][2]  # type: ignore[attr-defined]

    verification = services.audit.verify()

    assert verification.is_valid is False
    assert verification.contiguous is False


def test_case_subset_verifies_across_interleaved_cases(services: AwardServices) -> None:
    _append_many(services, 2, case_id="case-1")
    _append_many(services, 2, case_id="case-2")
    _append_many(services, 2, case_id="case-1")

    verification = services.audit.verify(services.audit.entries_for_case("case-1"))

    assert verification.is_valid is True
    assert verification.total_entries == 4
    assert verification.contiguous is False
