"""Exception taxonomy shared by the review, finalization and audit services."""
from __future__ import annotations

from typing import Any


class AwardError(Exception):
    error_type = "award_error"

    def __init__(self, reason: str, **details: Any) -> None:
        self.reason = reason
        self.details = details
        super().__init__(reason)

    def as_dict(self) -> dict[str, Any]:
        return {"error": self.error_type, "reason": self.reason, **self.details}


class NotFoundError(AwardError):
    error_type = "not_found"


class StateConflictError(AwardError):
    error_type = "state_conflict"


ConflictError = StateConflictError


class ValidationError(AwardError):
    error_type = "validation"


class ExternalServiceError(AwardError):
    error_type = "external_service"

    def __init__(self, service: str, reason: str, **details: Any) -> None:
        super().__init__(reason, service=service, **details)
        self.service = service


class IntegrityError(AwardError):
    error_type = "integrity"
