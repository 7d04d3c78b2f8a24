from __future__ import annotations

import hashlib
import threading
from pathlib import Path

from arbitration_awards.errors import ExternalServiceError
from arbitration_awards.integrations.base import StoredObject, UploadRequest


class InMemoryBlobStorage:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def upload(self, data: bytes, request: UploadRequest) -> StoredObject:
        with self._lock:
            if request.key in self.objects:
                raise ExternalServiceError(
                    "blob_storage", "Object already exists", key=request.key
                )
            self.objects[request.key] = bytes(data)
        return StoredObject(
            key=request.key,
            url=f"memory://{request.key}",
            sha256=hashlib.sha256(data).hexdigest(),
            size=len(data),
        )


class LocalBlobStorage:
    """Write-once file storage under ``root``; stored documents are never overwritten."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def upload(self, data: bytes, request: UploadRequest) -> StoredObject:
        target = (self.root / request.key).resolve()
        if self.root.resolve() not in target.parents:
            raise ExternalServiceError("blob_storage", "Object key escapes the storage root", key=request.key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("xb") as handle:
                handle.write(data)
        except FileExistsError as exc:
            raise ExternalServiceError("blob_storage", "Object already exists", key=request.key) from exc
        except OSError as exc:
            raise ExternalServiceError("blob_storage", str(exc), key=request.key) from exc

        stored = target.read_bytes()
        return StoredObject(
            key=request.key,
            url=target.as_uri(),
            sha256=hashlib.sha256(stored).hexdigest(),
            size=len(stored),
        )
