"""Turns an approved draft into the single, signed, binding award for a case.

``finalize`` is a named-stage pipeline. Everything up to ``persist_award`` may
abort and leaves no award behind; ``persist_award`` is the commit point, after
which party notifications and audit entries are best-effort and never undo
issuance.
"""
from __future__ import annotations

import hashlib
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta
from typing import Any

from arbitration_awards.audit.chain import AuditChain
from arbitration_awards.domain import (
    AuditAction,
    Award,
    AwardDocument,
    CaseRecord,
    CaseStatus,
    DraftAward,
    FinalizeResult,
    IssuanceCheck,
    NotifiedParty,
    PrevailingParty,
    ReviewStatus,
    UserProfile,
    format_reference_number,
)
from arbitration_awards.domain.case import ISSUABLE_CASE_STATUSES
from arbitration_awards.errors import (
    AwardError,
    ExternalServiceError,
    NotFoundError,
    StateConflictError,
)
from arbitration_awards.integrations.base import (
    BlobStorage,
    DocumentRenderer,
    Notification,
    NotificationService,
    StoredObject,
    UploadRequest,
)
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.orchestration.pipeline import FailurePolicy, Pipeline, Stage, prepared
from arbitration_awards.signing.credentials import SigningCredentialsProvider
from arbitration_awards.signing.signature import DocumentSignature, sign_document, signer_fingerprints
from arbitration_awards.signing.timestamping import TimestampAuthority, TimestampResponse, verify_timestamp
from arbitration_awards.storage.base import Repositories
from arbitration_awards.types import RequestContext, utc_now

logger = get_logger("arbitration_awards.finalization")

ALREADY_ISSUED_REASON = "Award has already been issued for this case"


@contextmanager
def external_call(service: str, **details: Any) -> Iterator[None]:
    """Translate collaborator failures into ``ExternalServiceError``."""
    try:
        yield
    except AwardError:
        raise
    except Exception as exc:
        raise ExternalServiceError(service, str(exc) or type(exc).__name__, **details) from exc


@dataclass(slots=True, frozen=True)
class DocumentVerification:
    case_id: str
    reference_number: str
    expected_hash: str
    actual_hash: str
    signer_matches: bool
    timestamp_valid: bool | None = None

    @property
    def matches(self) -> bool:
        return self.expected_hash == self.actual_hash

    def as_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "reference_number": self.reference_number,
            "matches": self.matches,
            "signer_matches": self.signer_matches,
            "timestamp_valid": self.timestamp_valid,
            "expected_hash": self.expected_hash,
            "actual_hash": self.actual_hash,
        }


@dataclass(slots=True)
class _FinalizeRun:
    case_id: str
    arbitrator_id: str
    context: RequestContext
    issued_at: datetime
    award_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    case: CaseRecord | None = None
    draft: DraftAward | None = None
    claimant: UserProfile | None = None
    respondent: UserProfile | None = None
    arbitrator: UserProfile | None = None
    reference_number: str | None = None
    document: bytes | None = None
    signature: DocumentSignature | None = None
    timestamp: TimestampResponse | None = None
    stored: StoredObject | None = None
    award: Award | None = None
    claimant_notified: bool = False
    respondent_notified: bool = False


class AwardFinalizer:
    def __init__(
        self,
        repositories: Repositories,
        *,
        audit: AuditChain,
        credentials: SigningCredentialsProvider,
        timestamps: TimestampAuthority,
        renderer: DocumentRenderer,
        blobs: BlobStorage,
        notifications: NotificationService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repos = repositories
        self._audit = audit
        self._credentials = credentials
        self._timestamps = timestamps
        self._renderer = renderer
        self._blobs = blobs
        self._notifications = notifications
        self._clock = clock
        self._pipeline: Pipeline[_FinalizeRun] = Pipeline(
            "finalize_award",
            [
                Stage("check_preconditions", self._check_preconditions),
                Stage("allocate_reference", self._allocate_reference),
                Stage("render_document", self._render_document),
                Stage("sign_document", self._sign_document),
                Stage("store_document", self._store_document),
                Stage("persist_award", self._persist_award),
                Stage("notify_claimant", self._notify_claimant, FailurePolicy.CONTINUE),
                Stage("notify_respondent", self._notify_respondent, FailurePolicy.CONTINUE),
                Stage("record_audit", self._record_audit, FailurePolicy.CONTINUE),
            ],
        )

    def can_issue(self, case_id: str) -> IssuanceCheck:
        check, _ = self._evaluate(case_id)
        return check

    def finalize(
        self,
        case_id: str,
        arbitrator_id: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> FinalizeResult:
        run = _FinalizeRun(
            case_id=case_id,
            arbitrator_id=arbitrator_id,
            context=RequestContext(ip_address=ip_address, user_agent=user_agent),
            issued_at=self._clock().astimezone(UTC),
        )
        self._pipeline.run(run, case_id=case_id)
        award = prepared(run.award, "award")
        return FinalizeResult(
            award_id=award.id,
            reference_number=award.reference_number,
            document_url=award.document_url,
            document_hash=award.document_hash,
            award_amount=award.content.award_amount,
            prevailing_party=award.content.prevailing_party,
            issued_at=award.issued_at,
            claimant_notified=run.claimant_notified,
            respondent_notified=run.respondent_notified,
            signature_algorithm=award.signature_algorithm,
            certificate_fingerprint=award.certificate_fingerprint,
            timestamp_granted=award.timestamp_granted,
            timestamp_time=award.timestamp_time,
        )

    def get_issued_award(self, case_id: str) -> Award:
        award = self._repos.awards.get_by_case(case_id)
        if award is None:
            raise NotFoundError("Award not found", case_id=case_id)
        return award

    def verify_document(self, case_id: str, document: bytes) -> DocumentVerification:
        award = self.get_issued_award(case_id)
        verification = DocumentVerification(
            case_id=case_id,
            reference_number=award.reference_number,
            expected_hash=award.document_hash,
            actual_hash=hashlib.sha256(document).hexdigest(),
            signer_matches=award.certificate_fingerprint in signer_fingerprints(award.signature_value),
            timestamp_valid=(
                None
                if award.timestamp_token is None
                else verify_timestamp(award.timestamp_token, document).valid
            ),
        )
        logger.info(
            "award_document_verified",
            case_id=case_id,
            award_id=award.id,
            matches=verification.matches,
            signer_matches=verification.signer_matches,
            timestamp_valid=verification.timestamp_valid,
        )
        return verification

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _evaluate(self, case_id: str) -> tuple[IssuanceCheck, type[AwardError] | None]:
        if self._repos.awards.get_by_case(case_id) is not None:
            return IssuanceCheck(False, ALREADY_ISSUED_REASON), StateConflictError

        draft = self._repos.drafts.get_by_case(case_id)
        if draft is None:
            return IssuanceCheck(False, "Draft award not found"), NotFoundError
        if draft.review_status is not ReviewStatus.APPROVE:
            status = "pending" if draft.review_status is None else draft.review_status.value
            return (
                IssuanceCheck(False, f"Draft award status is {status}, must be APPROVE"),
                StateConflictError,
            )

        case = self._repos.cases.get(case_id)
        if case is None:
            return IssuanceCheck(False, "Case not found"), NotFoundError
        if case.status not in ISSUABLE_CASE_STATUSES:
            return (
                IssuanceCheck(False, f"Case status is {case.status.value}, must be ARBITRATOR_REVIEW"),
                StateConflictError,
            )
        return IssuanceCheck(True), None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _check_preconditions(self, run: _FinalizeRun) -> None:
        check, error_class = self._evaluate(run.case_id)
        if error_class is not None:
            raise error_class(check.reason or "Award cannot be issued", case_id=run.case_id)

        case = self._repos.cases.get(run.case_id)
        if case is None:
            raise NotFoundError("Case not found", case_id=run.case_id)
        if case.arbitrator_id is not None and case.arbitrator_id != run.arbitrator_id:
            raise StateConflictError(
                "Only the assigned arbitrator can finalize the award",
                case_id=run.case_id,
                arbitrator_id=run.arbitrator_id,
            )
        run.case = case
        run.draft = self._repos.drafts.get_by_case(run.case_id)
        run.claimant = self._repos.users.get(case.claimant_id)
        run.respondent = None if case.respondent_id is None else self._repos.users.get(case.respondent_id)
        run.arbitrator = self._repos.users.get(run.arbitrator_id)

    def _allocate_reference(self, run: _FinalizeRun) -> None:
        day_start = datetime.combine(run.issued_at.date(), time.min, tzinfo=UTC)
        with self._repos.transaction():
            issued_today = self._repos.awards.count_issued_between(
                day_start, day_start + timedelta(days=1)
            )
        run.reference_number = format_reference_number(run.issued_at.date(), issued_today + 1)

    def _render_document(self, run: _FinalizeRun) -> None:
        case = prepared(run.case, "case")
        document = AwardDocument(
            reference_number=prepared(run.reference_number, "reference_number"),
            case_reference=case.reference_number,
            claimant_name=run.claimant.display_name if run.claimant else "Claimant",
            respondent_name=run.respondent.display_name if run.respondent else "Respondent",
            arbitrator_name=run.arbitrator.display_name if run.arbitrator else "Arbitrator",
            jurisdiction=case.jurisdiction,
            content=prepared(run.draft, "draft").content,
            signed_at=run.issued_at,
        )
        with external_call("document_renderer", case_id=run.case_id):
            run.document = self._renderer.render(document)

    def _sign_document(self, run: _FinalizeRun) -> None:
        document = prepared(run.document, "document")
        with external_call("signing_credentials", arbitrator_id=run.arbitrator_id):
            credentials = self._credentials.get_credentials(run.arbitrator_id)
            run.signature = sign_document(document, credentials, signed_at=run.issued_at)

        try:
            run.timestamp = self._timestamps.request_timestamp(document)
        except Exception as exc:
            logger.warning(
                "timestamp_unavailable",
                case_id=run.case_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            run.timestamp = None

    def _store_document(self, run: _FinalizeRun) -> None:
        signature = prepared(run.signature, "signature")
        # Keyed by award id: a retried finalize may reuse the reference number.
        request = UploadRequest(
            key=f"awards/{run.case_id}/{run.award_id}.{self._renderer.extension}",
            content_type=self._renderer.content_type,
            metadata={
                "case_id": run.case_id,
                "award_id": run.award_id,
                "reference_number": prepared(run.reference_number, "reference_number"),
                "document_hash": signature.document_hash,
            },
        )
        with external_call("blob_storage", case_id=run.case_id):
            stored = self._blobs.upload(prepared(run.document, "document"), request)
        if stored.sha256 != signature.document_hash:
            raise ExternalServiceError(
                "blob_storage",
                "Stored document hash does not match the signed document",
                case_id=run.case_id,
                expected_hash=signature.document_hash,
                stored_hash=stored.sha256,
            )
        run.stored = stored

    def _persist_award(self, run: _FinalizeRun) -> None:
        signature = prepared(run.signature, "signature")
        stored = prepared(run.stored, "stored document")
        timestamp = run.timestamp if run.timestamp is not None and run.timestamp.granted else None
        award = Award(
            id=run.award_id,
            case_id=run.case_id,
            reference_number=prepared(run.reference_number, "reference_number"),
            content=prepared(run.draft, "draft").content,
            arbitrator_id=run.arbitrator_id,
            signed_at=signature.signed_at,
            issued_at=run.issued_at,
            signature_value=signature.signature,
            signature_algorithm=signature.algorithm,
            signature_certificate=signature.certificate_pem,
            certificate_fingerprint=signature.certificate_fingerprint,
            document_url=stored.url,
            document_hash=signature.document_hash,
            timestamp_granted=timestamp is not None,
            timestamp_token=None if timestamp is None else timestamp.token,
            timestamp_time=None if timestamp is None else timestamp.timestamp,
            timestamp_authority=None if timestamp is None else timestamp.authority,
        )
        try:
            with self._repos.transaction():
                draft = self._repos.drafts.get_by_case(run.case_id)
                if draft is None or draft.review_status is not ReviewStatus.APPROVE:
                    raise StateConflictError(
                        "Draft award changed while the award was being prepared",
                        case_id=run.case_id,
                    )
                self._repos.awards.insert(award)
                self._repos.cases.set_status(run.case_id, CaseStatus.DECIDED)
        except StateConflictError:
            logger.warning(
                "award_document_orphaned",
                case_id=run.case_id,
                award_id=run.award_id,
                reference_number=run.reference_number,
                document_url=stored.url,
            )
            raise
        run.award = award
        logger.info(
            "award_issued",
            case_id=run.case_id,
            award_id=award.id,
            reference_number=award.reference_number,
            timestamp_granted=award.timestamp_granted,
        )

    def _notify_claimant(self, run: _FinalizeRun) -> None:
        case = prepared(run.case, "case")
        run.claimant_notified = self._notify_party(run, NotifiedParty.CLAIMANT, case.claimant_id)

    def _notify_respondent(self, run: _FinalizeRun) -> None:
        case = prepared(run.case, "case")
        run.respondent_notified = self._notify_party(run, NotifiedParty.RESPONDENT, case.respondent_id)

    def _notify_party(self, run: _FinalizeRun, party: NotifiedParty, recipient_id: str | None) -> bool:
        if recipient_id is None:
            return False
        award = prepared(run.award, "award")
        case = prepared(run.case, "case")
        self._notifications.send(
            Notification(
                recipient_id=recipient_id,
                template="award_issued",
                subject="Arbitration Award Issued",
                body=(
                    f"The arbitration award for case {case.reference_number} has been issued. "
                    f"Award amount: {self._amount_label(award)}. "
                    f"Prevailing party: {self._prevailing_label(run, award)}."
                ),
                case_id=run.case_id,
                data={
                    "award_id": award.id,
                    "reference_number": award.reference_number,
                    "award_amount": award.content.award_amount,
                    "prevailing_party": award.content.prevailing_party,
                },
            )
        )
        run.award = self._repos.awards.mark_notified(award.id, party, self._clock())
        return True

    def _record_audit(self, run: _FinalizeRun) -> None:
        award = prepared(run.award, "award")
        self._audit.record(
            AuditAction.AWARD_SIGNED,
            actor_id=run.arbitrator_id,
            case_id=run.case_id,
            metadata={
                "award_id": award.id,
                "reference_number": award.reference_number,
                "signed_at": award.signed_at.isoformat(),
                "signature_algorithm": award.signature_algorithm,
                "certificate_fingerprint": award.certificate_fingerprint,
                "timestamp_granted": award.timestamp_granted,
            },
            context=run.context,
        )
        self._audit.record(
            AuditAction.AWARD_ISSUED,
            actor_id=run.arbitrator_id,
            case_id=run.case_id,
            metadata={
                "award_id": award.id,
                "reference_number": award.reference_number,
                "document_hash": award.document_hash,
                "claimant_notified": run.claimant_notified,
                "respondent_notified": run.respondent_notified,
            },
            context=run.context,
        )

    @staticmethod
    def _amount_label(award: Award) -> str:
        amount = award.content.award_amount
        return "N/A" if amount is None else f"${amount:,.2f}"

    @staticmethod
    def _prevailing_label(run: _FinalizeRun, award: Award) -> str:
        party = award.content.prevailing_party
        if party is PrevailingParty.CLAIMANT:
            return run.claimant.display_name if run.claimant else "Claimant"
        if party is PrevailingParty.RESPONDENT:
            return run.respondent.display_name if run.respondent else "Respondent"
        return "Split Decision"
