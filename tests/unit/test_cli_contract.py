import pytest

from arbitration_awards.cli import COMMAND_HANDLERS, build_parser


def test_required_command_surface_is_present() -> None:
    required = {
        "open-case",
        "register-user",
        "ingest-draft",
        "approve-draft",
        "modify-draft",
        "reject-draft",
        "escalate-draft",
        "resolve-escalation",
        "sweep-escalations",
        "revision-history",
        "can-issue",
        "finalize-award",
        "verify-award-document",
        "audit-trail",
        "verify-audit-chain",
    }

    assert required.issubset(COMMAND_HANDLERS.keys())


def test_parser_decodes_json_arguments() -> None:
    args = build_parser().parse_args(
        [
            "modify-draft",
            "--case-id",
            "case-1",
            "--reviewer-id",
            "arb-1",
            "--changes",
            '{"award_amount": 6000}',
            "--summary",
            "corrected calculation",
        ]
    )

    assert args.changes == {"award_amount": 6000}


def test_parser_rejects_unknown_escalation_reason() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            ["escalate-draft", "--case-id", "case-1", "--reviewer-id", "arb-1", "--reason", "BORED"]
        )
