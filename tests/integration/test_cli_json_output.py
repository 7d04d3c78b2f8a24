from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from arbitration_awards.cli import entrypoint
from arbitration_awards.commands import support
from arbitration_awards.config import AppSettings, get_settings
from arbitration_awards.services import AwardServices, build_services


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    document_root = tmp_path / "documents"
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("DOCUMENT_ROOT", str(document_root))
    get_settings.cache_clear()
    yield document_root
    get_settings.cache_clear()


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, dict[str, Any]]:
    exit_code = entrypoint(["--json", *argv])
    captured = capsys.readouterr()
    return exit_code, json.loads(captured.out)


def _prepare_case(capsys: pytest.CaptureFixture[str], draft_payload: dict[str, Any]) -> None:
    for user_id, role, years in (
        ("claimant-1", "CLAIMANT", "0"),
        ("respondent-1", "RESPONDENT", "0"),
        ("arb-1", "ARBITRATOR", "4"),
    ):
        exit_code, _ = _run(
            capsys,
            "register-user",
            "--user-id",
            user_id,
            "--email",
            f"{user_id}@example.com",
            "--role",
            role,
            "--years-experience",
            years,
        )
        assert exit_code == 0

    exit_code, payload = _run(
        capsys,
        "open-case",
        "--case-id",
        "case-1",
        "--reference",
        "ARB-2024-0001",
        "--claimant-id",
        "claimant-1",
        "--respondent-id",
        "respondent-1",
        "--arbitrator-id",
        "arb-1",
    )
    assert exit_code == 0
    assert payload["details"]["status"] == "ARBITRATOR_REVIEW"

    exit_code, payload = _run(capsys, "ingest-draft", "--case-id", "case-1", "--draft", json.dumps(draft_payload))
    assert exit_code == 0


def test_cli_issues_award_once(
    capsys: pytest.CaptureFixture[str],
    draft_payload: dict[str, Any],
    isolated_settings: Path,
) -> None:
    _prepare_case(capsys, draft_payload)

    exit_code, payload = _run(capsys, "can-issue", "--case-id", "case-1")
    assert exit_code == 0
    assert payload["details"]["can_issue"] is False

    exit_code, payload = _run(capsys, "approve-draft", "--case-id", "case-1", "--reviewer-id", "arb-1")
    assert exit_code == 0
    assert payload["details"]["review_status"] == "APPROVE"

    exit_code, payload = _run(capsys, "can-issue", "--case-id", "case-1")
    assert payload["details"] == {"case_id": "case-1", "can_issue": True}

    exit_code, payload = _run(
        capsys, "finalize-award", "--case-id", "case-1", "--arbitrator-id", "arb-1", "--ip-address", "192.0.2.10"
    )
    assert exit_code == 0
    assert payload["command"] == "finalize-award"
    assert payload["status"] == "executed"
    award_id = payload["details"]["award_id"]

    exit_code, payload = _run(capsys, "finalize-award", "--case-id", "case-1", "--arbitrator-id", "arb-1")
    assert exit_code == 0
    assert payload["status"] == "already_issued"

    document = isolated_settings / "awards" / "case-1" / f"{award_id}.txt"
    exit_code, payload = _run(capsys, "verify-award-document", "--case-id", "case-1", "--document", str(document))
    assert exit_code == 0
    assert payload["details"]["matches"] is True
    assert payload["details"]["signer_matches"] is True
    assert payload["details"]["timestamp_valid"] is True

    exit_code, payload = _run(capsys, "verify-audit-chain")
    assert exit_code == 0
    assert payload["details"]["is_valid"] is True


def test_cli_reports_tampered_document(
    capsys: pytest.CaptureFixture[str],
    draft_payload: dict[str, Any],
    tmp_path: Path,
) -> None:
    _prepare_case(capsys, draft_payload)
    _run(capsys, "approve-draft", "--case-id", "case-1", "--reviewer-id", "arb-1")
    _run(capsys, "finalize-award", "--case-id", "case-1", "--arbitrator-id", "arb-1")
    forged = tmp_path / "forged.txt"
    forged.write_text("Respondent shall pay Claimant $50,000.00")

    exit_code, payload = _run(capsys, "verify-award-document", "--case-id", "case-1", "--document", str(forged))

    assert exit_code == 1
    assert payload["status"] == "failed"
    assert payload["details"]["matches"] is False


def test_cli_modify_and_revision_history(capsys: pytest.CaptureFixture[str], draft_payload: dict[str, Any]) -> None:
    _prepare_case(capsys, draft_payload)

    exit_code, payload = _run(
        capsys,
        "modify-draft",
        "--case-id",
        "case-1",
        "--reviewer-id",
        "arb-1",
        "--changes",
        '{"award_amount": "4750"}',
        "--summary",
        "reduce for partial delivery",
    )
    assert exit_code == 0
    assert payload["details"]["version"] == 2

    exit_code, payload = _run(capsys, "revision-history", "--case-id", "case-1")
    assert exit_code == 0
    assert [revision["version"] for revision in payload["details"]["revisions"]] == [2, 1]


def test_cli_missing_draft_fails(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code, payload = _run(capsys, "approve-draft", "--case-id", "case-404", "--reviewer-id", "arb-1")

    assert exit_code == 1
    assert payload["status"] == "failed"
    assert payload["details"]["error"] == "not_found"


def test_cli_audit_trail_csv(capsys: pytest.CaptureFixture[str], draft_payload: dict[str, Any]) -> None:
    _prepare_case(capsys, draft_payload)

    exit_code, payload = _run(capsys, "audit-trail", "--case-id", "case-1", "--format", "csv")

    assert exit_code == 0
    assert payload["details"]["format"] == "csv"
    lines = payload["details"]["export"].splitlines()
    assert lines[0].startswith("Timestamp,Action")
    assert len(lines) == 3


def test_cli_commands_close_their_database(
    capsys: pytest.CaptureFixture[str],
    draft_payload: dict[str, Any],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    opened: list[AwardServices] = []

    def recording_build_services(settings: AppSettings) -> AwardServices:
        services = build_services(settings)
        opened.append(services)
        return services

    monkeypatch.setattr(support, "build_services", recording_build_services)
    _prepare_case(capsys, draft_payload)
    exit_code, _ = _run(capsys, "approve-draft", "--case-id", "case-404", "--reviewer-id", "arb-1")
    assert exit_code == 1

    assert len(opened) == 6
    for services in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            services.repositories.database.connection.execute("SELECT 1")
