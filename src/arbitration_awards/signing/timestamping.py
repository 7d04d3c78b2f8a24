"""Trusted timestamps for signed award documents.

``Rfc3161TimestampAuthority`` speaks RFC 3161 over HTTP: it posts a DER
``TimeStampReq`` carrying the SHA-256 imprint and a nonce, then checks that the
``TSTInfo`` in the reply echoes both. ``LocalTimestampAuthority`` grants a
base64 JSON token for development, and ``FallbackTimestampAuthority`` uses it
when the remote authority cannot be reached. ``verify_timestamp`` accepts
tokens from either.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import json
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx
from asn1crypto import algos, cms, core, tsp

from arbitration_awards.errors import ExternalServiceError
from arbitration_awards.observability.logging import get_logger
from arbitration_awards.types import utc_now

logger = get_logger("arbitration_awards.timestamping")

TIMESTAMP_QUERY_CONTENT_TYPE = "application/timestamp-query"
TIMESTAMP_REPLY_CONTENT_TYPE = "application/timestamp-reply"
GRANTED_STATUSES = frozenset({"granted", "granted_with_mods"})


@dataclass(slots=True, frozen=True)
class TimestampResponse:
    granted: bool
    token: str | None
    timestamp: datetime | None
    authority: str | None
    message_imprint: str
    nonce: str
    serial_number: str | None = None
    status_string: str | None = None


@dataclass(slots=True, frozen=True)
class TimestampVerification:
    valid: bool
    timestamp: datetime | None
    authority: str | None
    message_imprint_matches: bool
    nonce_matches: bool
    errors: tuple[str, ...] = field(default_factory=tuple)


class TimestampAuthority(Protocol):
    def request_timestamp(self, data: bytes) -> TimestampResponse:
        """Timestamp the SHA-256 imprint of ``data``; may raise on transport failure."""
        ...


class LocalTimestampAuthority:
    """Development authority that grants a base64 JSON token instead of an RFC 3161 reply."""

    def __init__(
        self,
        name: str = "Local Timestamp Authority (Development)",
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = name
        self._clock = clock

    def request_timestamp(self, data: bytes) -> TimestampResponse:
        return self.grant(hashlib.sha256(data).hexdigest(), secrets.token_hex(8))

    def grant(
        self, imprint: str, nonce: str, *, status_string: str = "Granted (local timestamp)"
    ) -> TimestampResponse:
        serial_number = secrets.token_hex(8)
        issued_at = self._clock()
        token_data = {
            "version": 1,
            "message_imprint": imprint,
            "nonce": nonce,
            "timestamp": issued_at.isoformat(),
            "tsa_name": self.name,
            "serial_number": serial_number,
        }
        token = base64.b64encode(json.dumps(token_data, sort_keys=True).encode("utf-8"))
        return TimestampResponse(
            granted=True,
            token=token.decode("ascii"),
            timestamp=issued_at,
            authority=self.name,
            message_imprint=imprint,
            nonce=nonce,
            serial_number=serial_number,
            status_string=status_string,
        )


class Rfc3161TimestampAuthority:
    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self._timeout = timeout_seconds
        self._client = client

    def request_timestamp(self, data: bytes) -> TimestampResponse:
        digest = hashlib.sha256(data).digest()
        nonce = secrets.token_hex(8)
        request = build_timestamp_request(digest, nonce)

        try:
            reply = self._post(request.dump())
        except httpx.HTTPError as exc:
            reason = str(exc) or type(exc).__name__
            raise ExternalServiceError("timestamp_authority", reason, url=self.url) from exc
        if reply.status_code != 200:
            return TimestampResponse(
                granted=False,
                token=None,
                timestamp=None,
                authority=None,
                message_imprint=digest.hex(),
                nonce=nonce,
                status_string=f"TSA returned HTTP {reply.status_code}",
            )

        try:
            return parse_timestamp_reply(reply.content, digest, nonce, authority=self.url)
        except ValueError as exc:
            raise ExternalServiceError(
                "timestamp_authority", f"Malformed timestamp reply: {exc}", url=self.url
            ) from exc

    def _post(self, body: bytes) -> httpx.Response:
        headers = {"Content-Type": TIMESTAMP_QUERY_CONTENT_TYPE, "Accept": TIMESTAMP_REPLY_CONTENT_TYPE}
        if self._client is not None:
            return self._client.post(self.url, content=body, headers=headers, timeout=self._timeout)
        with httpx.Client(timeout=self._timeout) as client:
            return client.post(self.url, content=body, headers=headers)


class FallbackTimestampAuthority:
    """Ask ``primary``; if it cannot be reached, grant a local token for the same imprint."""

    def __init__(self, primary: Rfc3161TimestampAuthority, fallback: LocalTimestampAuthority) -> None:
        self.primary = primary
        self.fallback = fallback

    def request_timestamp(self, data: bytes) -> TimestampResponse:
        try:
            return self.primary.request_timestamp(data)
        except ExternalServiceError as exc:
            logger.warning("timestamp_authority_fallback", url=self.primary.url, reason=exc.reason)
            return self.fallback.grant(
                hashlib.sha256(data).hexdigest(),
                secrets.token_hex(8),
                status_string="Local timestamp (TSA unavailable)",
            )


def build_timestamp_request(digest: bytes, nonce: str) -> tsp.TimeStampReq:
    return tsp.TimeStampReq(
        {
            "version": "v1",
            "message_imprint": tsp.MessageImprint(
                {
                    "hash_algorithm": algos.DigestAlgorithm({"algorithm": "sha256"}),
                    "hashed_message": digest,
                }
            ),
            "nonce": int(nonce, 16),
            "cert_req": True,
        }
    )


def _tst_info(token: cms.ContentInfo) -> tsp.TSTInfo:
    if token["content_type"].native != "signed_data":
        raise ValueError("timestamp token is not CMS SignedData")
    encapsulated = token["content"]["encap_content_info"]
    if encapsulated["content_type"].native != "tst_info":
        raise ValueError("timestamp token does not carry TSTInfo")
    return encapsulated["content"].parse(tsp.TSTInfo)


def _tsa_name(tst_info: tsp.TSTInfo) -> str | None:
    tsa = tst_info["tsa"]
    if isinstance(tsa, core.Void) or tsa.native is None:
        return None
    return str(tsa.chosen.human_friendly if tsa.name == "directory_name" else tsa.native)


def parse_timestamp_reply(
    der: bytes, digest: bytes, nonce: str, *, authority: str | None = None
) -> TimestampResponse:
    """Decode a ``TimeStampResp`` and check it answers the request for ``digest``/``nonce``."""
    reply = tsp.TimeStampResp.load(der)
    status_info = reply["status"]
    status = status_info["status"].native
    status_text = status_info["status_string"].native
    status_string = "; ".join(status_text) if status_text else str(status)
    if status not in GRANTED_STATUSES:
        return TimestampResponse(
            granted=False,
            token=None,
            timestamp=None,
            authority=authority,
            message_imprint=digest.hex(),
            nonce=nonce,
            status_string=status_string,
        )

    token = reply["time_stamp_token"]
    if isinstance(token, core.Void) or token.native is None:
        raise ValueError("granted reply carries no timestamp token")
    tst_info = _tst_info(token)
    if tst_info["message_imprint"]["hashed_message"].native != digest:
        raise ValueError("timestamp token does not cover the requested imprint")
    if tst_info["nonce"].native != int(nonce, 16):
        raise ValueError("timestamp token nonce does not match the request")

    return TimestampResponse(
        granted=True,
        token=base64.b64encode(token.dump()).decode("ascii"),
        timestamp=tst_info["gen_time"].native,
        authority=_tsa_name(tst_info) or authority,
        message_imprint=digest.hex(),
        nonce=nonce,
        serial_number=format(tst_info["serial_number"].native, "x"),
        status_string=status_string,
    )


def decode_local_token(token: str) -> dict[str, Any]:
    return json.loads(base64.b64decode(token))


def verify_timestamp(token: str, data: bytes, expected_nonce: str | None = None) -> TimestampVerification:
    """Check that a stored token (RFC 3161 or local) timestamps exactly ``data``."""
    digest = hashlib.sha256(data).digest()
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError):
        return TimestampVerification(False, None, None, False, False, ("token is not valid base64",))

    if raw.lstrip().startswith(b"{"):
        try:
            local = json.loads(raw)
            imprint = local["message_imprint"]
            timestamp = datetime.fromisoformat(local["timestamp"])
        except (KeyError, TypeError, ValueError):
            return TimestampVerification(False, None, None, False, False, ("local token is malformed",))
        imprint_matches = imprint == digest.hex()
        nonce_matches = expected_nonce is None or local.get("nonce") == expected_nonce
        authority = local.get("tsa_name")
    else:
        try:
            tst_info = _tst_info(cms.ContentInfo.load(raw))
            imprint_matches = tst_info["message_imprint"]["hashed_message"].native == digest
            token_nonce = tst_info["nonce"].native
            timestamp = tst_info["gen_time"].native
            authority = _tsa_name(tst_info)
        except ValueError as exc:
            return TimestampVerification(False, None, None, False, False, (f"token is malformed: {exc}",))
        nonce_matches = expected_nonce is None or token_nonce == int(expected_nonce, 16)

    errors = []
    if not imprint_matches:
        errors.append("Document hash does not match timestamp")
    if not nonce_matches:
        errors.append("Nonce does not match")
    return TimestampVerification(
        valid=imprint_matches and nonce_matches,
        timestamp=timestamp,
        authority=authority,
        message_imprint_matches=imprint_matches,
        nonce_matches=nonce_matches,
        errors=tuple(errors),
    )
