from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from arbitration_awards.config import AppSettings
from arbitration_awards.domain import CaseRecord, CaseStatus, GeneratedDraft, UserProfile, UserRole
from arbitration_awards.integrations.base import Notification
from arbitration_awards.integrations.blob_storage import InMemoryBlobStorage
from arbitration_awards.services import AwardServices, build_services
from arbitration_awards.storage.memory import build_memory_repositories
from arbitration_awards.types import utc_now

DRAFT_PAYLOAD: dict[str, Any] = {
    "findings_of_fact": [
        {
            "id": "fof-1",
            "number": 1,
            "finding": "Claimant paid Respondent a deposit of $5,000 on March 1, 2024.",
            "basis": "undisputed",
            "supporting_evidence": ["ev-receipt"],
            "date": "2024-03-01",
            "amount": 5000,
        },
        {
            "id": "fof-2",
            "number": 2,
            "finding": "Respondent never delivered the ordered furniture.",
            "basis": "proven",
            "supporting_evidence": ["ev-emails"],
        },
    ],
    "conclusions_of_law": [
        {
            "id": "col-1",
            "number": 1,
            "issue": "Breach of contract",
            "conclusion": "Respondent breached the purchase agreement by failing to deliver.",
            "legal_basis": ["Cal. Civ. Code 3300"],
            "supporting_findings": [1, 2],
        }
    ],
    "decision": "Respondent shall pay Claimant $5,000.00 within 30 days.",
    "award_amount": 5000,
    "prevailing_party": "CLAIMANT",
    "reasoning": "The deposit was paid and nothing was delivered.",
    "confidence": 0.82,
    "model_used": "draft-generator-v2",
}


@dataclass
class RecordingNotifications:
    sent: list[Notification] = field(default_factory=list)
    failing_recipients: set[str] = field(default_factory=set)

    def send(self, notification: Notification) -> None:
        if notification.recipient_id in self.failing_recipients:
            raise RuntimeError("notification transport unavailable")
        self.sent.append(notification)

    def templates_for(self, recipient_id: str) -> list[str]:
        return [item.template for item in self.sent if item.recipient_id == recipient_id]


@dataclass
class RecordingAnalysis:
    requests: list[tuple[str, str]] = field(default_factory=list)

    def request_reanalysis(self, case_id: str, notes: str) -> None:
        self.requests.append((case_id, notes))


@pytest.fixture
def draft_payload() -> dict[str, Any]:
    return copy.deepcopy(DRAFT_PAYLOAD)


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        database_path=str(tmp_path / "awards.db"),
        document_root=str(tmp_path / "documents"),
    )


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def analysis() -> RecordingAnalysis:
    return RecordingAnalysis()


@pytest.fixture
def blobs() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def make_services(
    settings: AppSettings,
    notifications: RecordingNotifications,
    analysis: RecordingAnalysis,
    blobs: InMemoryBlobStorage,
) -> Callable[..., AwardServices]:
    def factory(**overrides: Any) -> AwardServices:
        options: dict[str, Any] = {
            "repositories": build_memory_repositories(),
            "blobs": blobs,
            "notifications": notifications,
            "analysis": analysis,
        }
        options.update(overrides)
        return build_services(settings, **options)

    return factory


@pytest.fixture
def services(make_services: Callable[..., AwardServices]) -> AwardServices:
    return make_services()


def seed_parties(services: AwardServices, *, senior_reviewers: int = 1) -> None:
    users = services.repositories.users
    users.save(UserProfile("claimant-1", "Casey Claimant", "casey@example.com", UserRole.CLAIMANT))
    users.save(UserProfile("respondent-1", "Riley Respondent", "riley@example.com", UserRole.RESPONDENT))
    users.save(
        UserProfile(
            "arb-1",
            "Alex Arbitrator",
            "alex@example.com",
            UserRole.ARBITRATOR,
            years_experience=4,
            cases_completed=12,
        )
    )
    for index in range(senior_reviewers):
        users.save(
            UserProfile(
                f"senior-{index + 1}",
                f"Senior Reviewer {index + 1}",
                f"senior{index + 1}@example.com",
                UserRole.ARBITRATOR,
                years_experience=15,
                cases_completed=100 - index,
            )
        )


def open_case(
    services: AwardServices,
    case_id: str = "case-1",
    *,
    status: CaseStatus = CaseStatus.ARBITRATOR_REVIEW,
    arbitrator_id: str | None = "arb-1",
) -> CaseRecord:
    case = CaseRecord(
        id=case_id,
        reference_number=f"ARB-2024-{case_id.upper()}",
        status=status,
        claimant_id="claimant-1",
        created_at=utc_now(),
        respondent_id="respondent-1",
        arbitrator_id=arbitrator_id,
    )
    services.repositories.cases.save(case)
    return case


@pytest.fixture
def seeded_case(services: AwardServices, draft_payload: dict[str, Any]) -> str:
    """A case in arbitrator review holding a freshly generated draft (revision 1)."""
    seed_parties(services)
    case = open_case(services)
    services.review.register_draft(case.id, GeneratedDraft.from_dict(draft_payload))
    return case.id
