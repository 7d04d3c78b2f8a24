from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from arbitration_awards.domain import AwardDocument


@dataclass(slots=True, frozen=True)
class UploadRequest:
    key: str
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class StoredObject:
    key: str
    url: str
    sha256: str
    size: int


@dataclass(slots=True, frozen=True)
class Notification:
    recipient_id: str
    template: str
    subject: str
    body: str
    case_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "template": self.template,
            "subject": self.subject,
            "case_id": self.case_id,
            "data": self.data,
        }


class DocumentRenderer(Protocol):
    content_type: str
    extension: str

    def render(self, document: AwardDocument) -> bytes:
        ...


class BlobStorage(Protocol):
    def upload(self, data: bytes, request: UploadRequest) -> StoredObject:
        ...


class NotificationService(Protocol):
    def send(self, notification: Notification) -> None:
        ...


class AnalysisTrigger(Protocol):
    def request_reanalysis(self, case_id: str, notes: str) -> None:
        ...
