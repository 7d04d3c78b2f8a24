from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, Field

from arbitration_awards.audit.reporter import ExportFormat
from arbitration_awards.config import AppSettings, get_settings
from arbitration_awards.domain import (
    AwardModification,
    EscalationReason,
    EscalationRequest,
    EscalationUrgency,
    GeneratedDraft,
    RejectionCategory,
    RejectionFeedback,
    RejectionSeverity,
)
from arbitration_awards.errors import (
    AwardError,
    ExternalServiceError,
    IntegrityError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from arbitration_awards.observability.logging import configure_logging, get_logger
from arbitration_awards.services import AwardServices, build_services
from arbitration_awards.types import SYSTEM_ACTOR, RequestContext

logger = get_logger("arbitration_awards.api")

ERROR_STATUS_CODES: dict[type[AwardError], int] = {
    NotFoundError: 404,
    StateConflictError: 409,
    ValidationError: 422,
    ExternalServiceError: 502,
    IntegrityError: 500,
}


class DraftIngestRequest(BaseModel):
    draft: dict[str, Any]


class ApproveRequest(BaseModel):
    notes: str | None = None


class ModifyRequest(BaseModel):
    changes: dict[str, Any]
    change_summary: str


class RejectRequest(BaseModel):
    category: RejectionCategory
    severity: RejectionSeverity
    description: str
    affected_sections: list[str] = Field(default_factory=list)
    suggested_corrections: str | None = None


class EscalateRequest(BaseModel):
    reason: EscalationReason
    detail: str | None = None
    urgency: EscalationUrgency = EscalationUrgency.NORMAL


class ResolveEscalationRequest(BaseModel):
    resolution: str
    returned: bool = False


def _status_code_for(exc: AwardError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client is not None else None,
        user_agent=request.headers.get("user-agent"),
    )


def build_app(settings: AppSettings, services: AwardServices) -> FastAPI:
    app = FastAPI(title=f"{settings.service_name}-api", version="0.1.0")

    @app.exception_handler(AwardError)
    async def award_error_handler(request: Request, exc: AwardError) -> JSONResponse:
        status_code = _status_code_for(exc)
        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=status_code,
            error=exc.error_type,
            reason=exc.reason,
        )
        return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.as_dict()))

    @app.get("/livez")
    async def livez() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    @app.get("/readyz")
    def readyz() -> dict[str, Any]:
        verification = services.audit.verify()
        return {
            "service": settings.service_name,
            "environment": settings.app_env,
            "audit_chain_intact": verification.is_valid,
            "audit_entries": verification.total_entries,
        }

    @app.post("/cases/{case_id}/draft-award", status_code=201)
    def ingest_draft(
        case_id: str,
        body: DraftIngestRequest,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> dict[str, Any]:
        try:
            generated = GeneratedDraft.from_dict(body.draft)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"draft is malformed: {exc}", case_id=case_id) from exc
        outcome = services.review.register_draft(
            case_id,
            generated,
            actor_id=x_user_id or SYSTEM_ACTOR,
            context=_request_context(request),
        )
        return outcome.as_dict()

    @app.get("/cases/{case_id}/draft-award")
    def get_draft(case_id: str) -> dict[str, Any]:
        draft = services.review.get_draft(case_id)
        escalation = services.review.get_escalation(case_id)
        return {
            "draft": draft.as_dict(),
            "escalation": None if escalation is None else escalation.as_dict(),
        }

    @app.get("/cases/{case_id}/draft-award/revisions")
    def get_revisions(case_id: str) -> dict[str, Any]:
        revisions = services.review.get_revision_history(case_id)
        return {"revisions": [revision.as_dict() for revision in revisions]}

    @app.post("/cases/{case_id}/draft-award/approve")
    def approve(
        case_id: str,
        body: ApproveRequest,
        request: Request,
        x_user_id: str = Header(),
    ) -> dict[str, Any]:
        outcome = services.review.approve(case_id, x_user_id, body.notes, context=_request_context(request))
        return outcome.as_dict()

    @app.post("/cases/{case_id}/draft-award/modify")
    def modify(
        case_id: str,
        body: ModifyRequest,
        request: Request,
        x_user_id: str = Header(),
    ) -> dict[str, Any]:
        try:
            changes = AwardModification.from_dict(body.changes)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(str(exc), case_id=case_id) from exc
        outcome = services.review.modify(
            case_id,
            x_user_id,
            changes,
            body.change_summary,
            context=_request_context(request),
        )
        return outcome.as_dict()

    @app.post("/cases/{case_id}/draft-award/reject")
    def reject(
        case_id: str,
        body: RejectRequest,
        request: Request,
        x_user_id: str = Header(),
    ) -> dict[str, Any]:
        feedback = RejectionFeedback(
            category=body.category,
            severity=body.severity,
            description=body.description,
            affected_sections=tuple(body.affected_sections),
            suggested_corrections=body.suggested_corrections,
        )
        outcome = services.review.reject(case_id, x_user_id, feedback, context=_request_context(request))
        return outcome.as_dict()

    @app.post("/cases/{case_id}/draft-award/escalate")
    def escalate(
        case_id: str,
        body: EscalateRequest,
        request: Request,
        x_user_id: str = Header(),
    ) -> dict[str, Any]:
        outcome = services.review.escalate(
            case_id,
            x_user_id,
            EscalationRequest(reason=body.reason, detail=body.detail, urgency=body.urgency),
            context=_request_context(request),
        )
        return outcome.as_dict()

    @app.post("/cases/{case_id}/draft-award/escalation/resolve")
    def resolve_escalation(
        case_id: str,
        body: ResolveEscalationRequest,
        request: Request,
        x_user_id: str = Header(),
    ) -> dict[str, Any]:
        escalation = services.review.resolve_escalation(
            case_id,
            x_user_id,
            body.resolution,
            returned=body.returned,
            context=_request_context(request),
        )
        return {"escalation": escalation.as_dict()}

    @app.get("/cases/{case_id}/award/can-issue")
    def can_issue(case_id: str) -> dict[str, Any]:
        return {"case_id": case_id, **services.finalizer.can_issue(case_id).as_dict()}

    @app.post("/cases/{case_id}/award", status_code=201)
    def finalize(case_id: str, request: Request, x_user_id: str = Header()) -> dict[str, Any]:
        context = _request_context(request)
        result = services.finalizer.finalize(
            case_id,
            x_user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        return result.as_dict()

    @app.get("/cases/{case_id}/award")
    def get_award(case_id: str) -> dict[str, Any]:
        return services.finalizer.get_issued_award(case_id).as_dict()

    @app.get("/cases/{case_id}/audit-trail")
    def audit_trail(case_id: str) -> dict[str, Any]:
        return services.reporter.get_case_audit_trail(case_id).as_dict()

    @app.get("/cases/{case_id}/audit-trail/export", response_model=None)
    def export_audit_trail(
        case_id: str,
        export_format: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
    ) -> Response | dict[str, Any]:
        exported = services.reporter.export_timeline(case_id, export_format)
        if export_format == ExportFormat.CSV:
            return PlainTextResponse(
                str(exported),
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="audit-trail-{case_id}.csv"'},
            )
        if export_format == ExportFormat.JSON:
            return Response(content=str(exported), media_type="application/json")
        return exported if isinstance(exported, dict) else {"export": exported}

    @app.get("/audit-log/verify")
    def verify_audit_log() -> dict[str, Any]:
        return services.audit.verify().as_dict()

    return app


def default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    return build_app(settings, build_services(settings))
