from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from arbitration_awards.audit.chain import AuditChain
from arbitration_awards.audit.reporter import AuditTrailReporter
from arbitration_awards.config import AppSettings
from arbitration_awards.finalization.finalizer import AwardFinalizer
from arbitration_awards.integrations.base import (
    AnalysisTrigger,
    BlobStorage,
    DocumentRenderer,
    NotificationService,
)
from arbitration_awards.integrations.blob_storage import LocalBlobStorage
from arbitration_awards.integrations.notifications import (
    LoggingAnalysisTrigger,
    LoggingNotificationService,
)
from arbitration_awards.integrations.renderer import PlainTextAwardRenderer
from arbitration_awards.review.decision_engine import ReviewDecisionEngine
from arbitration_awards.review.escalation import EscalationAssignor
from arbitration_awards.review.revision_ledger import RevisionLedger
from arbitration_awards.signing.credentials import LocalCredentialProvider, SigningCredentialsProvider
from arbitration_awards.signing.timestamping import (
    FallbackTimestampAuthority,
    LocalTimestampAuthority,
    Rfc3161TimestampAuthority,
    TimestampAuthority,
)
from arbitration_awards.storage.base import Repositories
from arbitration_awards.storage.sqlite import build_sqlite_repositories
from arbitration_awards.types import utc_now


@dataclass(slots=True, frozen=True)
class AwardServices:
    repositories: Repositories
    audit: AuditChain
    ledger: RevisionLedger
    assignor: EscalationAssignor
    review: ReviewDecisionEngine
    finalizer: AwardFinalizer
    reporter: AuditTrailReporter


def default_timestamp_authority(
    settings: AppSettings, *, clock: Callable[[], datetime] = utc_now
) -> TimestampAuthority:
    local = LocalTimestampAuthority(settings.timestamp_authority_name, clock=clock)
    if not settings.tsa_url:
        return local
    remote = Rfc3161TimestampAuthority(settings.tsa_url, timeout_seconds=settings.tsa_timeout_seconds)
    return FallbackTimestampAuthority(remote, local)


def build_services(
    settings: AppSettings,
    *,
    repositories: Repositories | None = None,
    credentials: SigningCredentialsProvider | None = None,
    timestamps: TimestampAuthority | None = None,
    renderer: DocumentRenderer | None = None,
    blobs: BlobStorage | None = None,
    notifications: NotificationService | None = None,
    analysis: AnalysisTrigger | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AwardServices:
    """Wire the services; any collaborator left as ``None`` gets its local default."""
    repos = repositories or build_sqlite_repositories(settings.database_path)
    notifications = notifications or LoggingNotificationService()

    audit = AuditChain(repos, clock=clock)
    ledger = RevisionLedger(repos, clock=clock)
    assignor = EscalationAssignor(
        repos,
        audit,
        notifications,
        min_years_experience=settings.escalation_min_years_experience,
        clock=clock,
    )
    review = ReviewDecisionEngine(
        repos,
        ledger=ledger,
        audit=audit,
        assignor=assignor,
        notifications=notifications,
        analysis=analysis or LoggingAnalysisTrigger(),
        clock=clock,
    )
    finalizer = AwardFinalizer(
        repos,
        audit=audit,
        credentials=credentials
        or LocalCredentialProvider(
            repos.users,
            key_size=settings.signing_key_size,
            validity_days=settings.certificate_validity_days,
            organization=settings.signing_organization,
            clock=clock,
        ),
        timestamps=timestamps or default_timestamp_authority(settings, clock=clock),
        renderer=renderer or PlainTextAwardRenderer(),
        blobs=blobs or LocalBlobStorage(settings.document_root),
        notifications=notifications,
        clock=clock,
    )
    return AwardServices(
        repositories=repos,
        audit=audit,
        ledger=ledger,
        assignor=assignor,
        review=review,
        finalizer=finalizer,
        reporter=AuditTrailReporter(repos, audit, clock=clock),
    )
