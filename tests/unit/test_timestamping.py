from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
from asn1crypto import cms, tsp

from conftest import open_case, seed_parties
from arbitration_awards.config import AppSettings
from arbitration_awards.domain import GeneratedDraft
from arbitration_awards.errors import ExternalServiceError
from arbitration_awards.integrations.blob_storage import InMemoryBlobStorage
from arbitration_awards.services import default_timestamp_authority
from arbitration_awards.signing.timestamping import (
    TIMESTAMP_QUERY_CONTENT_TYPE,
    FallbackTimestampAuthority,
    LocalTimestampAuthority,
    Rfc3161TimestampAuthority,
    verify_timestamp,
)

TSA_URL = "https://tsa.example.test/tsr"
GEN_TIME = datetime(2024, 6, 1, 12, 30, tzinfo=UTC)
SERIAL_NUMBER = 4242


def _granted_reply(request_der: bytes, *, nonce_offset: int = 0) -> bytes:
    ts_request = tsp.TimeStampReq.load(request_der)
    tst_info = tsp.TSTInfo(
        {
            "version": "v1",
            "policy": "1.3.6.1.4.1.4146.2.3",
            "message_imprint": {
                "hash_algorithm": {"algorithm": "sha256"},
                "hashed_message": ts_request["message_imprint"]["hashed_message"].native,
            },
            "serial_number": SERIAL_NUMBER,
            "gen_time": GEN_TIME,
            "nonce": ts_request["nonce"].native + nonce_offset,
        }
    )
    signed_data = cms.SignedData(
        {
            "version": "v3",
            "digest_algorithms": [],
            "encap_content_info": {"content_type": "tst_info", "content": tst_info},
            "signer_infos": [],
        }
    )
    token = cms.ContentInfo({"content_type": "signed_data", "content": signed_data})
    return tsp.TimeStampResp({"status": {"status": "granted"}, "time_stamp_token": token}).dump()


def _authority(handler: Any) -> Rfc3161TimestampAuthority:
    return Rfc3161TimestampAuthority(TSA_URL, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_rfc3161_token_covers_document_imprint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=_granted_reply(request.content))

    document = b"award document bytes"
    response = _authority(handler).request_timestamp(document)

    assert seen[0].headers["content-type"] == TIMESTAMP_QUERY_CONTENT_TYPE
    sent = tsp.TimeStampReq.load(seen[0].content)
    assert sent["message_imprint"]["hashed_message"].native == hashlib.sha256(document).digest()
    assert sent["cert_req"].native is True

    assert response.granted is True
    assert response.timestamp == GEN_TIME
    assert response.authority == TSA_URL
    assert response.serial_number == format(SERIAL_NUMBER, "x")
    assert response.message_imprint == hashlib.sha256(document).hexdigest()
    assert response.token is not None

    verification = verify_timestamp(response.token, document, response.nonce)
    assert verification.valid is True
    assert verification.timestamp == GEN_TIME

    altered = verify_timestamp(response.token, document + b"!", response.nonce)
    assert altered.valid is False
    assert altered.message_imprint_matches is False
    assert altered.errors == ("Document hash does not match timestamp",)


def test_rfc3161_rejection_is_not_granted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        reply = tsp.TimeStampResp(
            {"status": {"status": "rejection", "status_string": ["bad message imprint"]}}
        )
        return httpx.Response(200, content=reply.dump())

    response = _authority(handler).request_timestamp(b"award")

    assert response.granted is False
    assert response.token is None
    assert response.status_string == "bad message imprint"


def test_rfc3161_http_error_status_is_not_granted() -> None:
    response = _authority(lambda request: httpx.Response(503)).request_timestamp(b"award")

    assert response.granted is False
    assert response.status_string == "TSA returned HTTP 503"


def test_rfc3161_reply_for_another_nonce_is_refused() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_granted_reply(request.content, nonce_offset=1))

    with pytest.raises(ExternalServiceError, match="nonce") as excinfo:
        _authority(handler).request_timestamp(b"award")

    assert excinfo.value.service == "timestamp_authority"


def test_unreachable_authority_falls_back_to_local_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    authority = FallbackTimestampAuthority(_authority(handler), LocalTimestampAuthority("Fallback TSA"))

    response = authority.request_timestamp(b"award")

    assert response.granted is True
    assert response.authority == "Fallback TSA"
    assert response.status_string == "Local timestamp (TSA unavailable)"
    assert response.token is not None
    assert verify_timestamp(response.token, b"award", response.nonce).valid is True


def test_local_token_with_foreign_nonce_fails_verification() -> None:
    response = LocalTimestampAuthority().request_timestamp(b"award")
    assert response.token is not None

    verification = verify_timestamp(response.token, b"award", expected_nonce="00" * 8)

    assert verification.valid is False
    assert verification.message_imprint_matches is True
    assert verification.nonce_matches is False
    assert verification.errors == ("Nonce does not match",)


def test_unreadable_token_fails_verification() -> None:
    verification = verify_timestamp("not a token!", b"award")

    assert verification.valid is False
    assert verification.errors == ("token is not valid base64",)


def test_settings_select_timestamp_authority() -> None:
    assert isinstance(default_timestamp_authority(AppSettings()), LocalTimestampAuthority)

    remote = default_timestamp_authority(AppSettings(tsa_url=TSA_URL, tsa_timeout_seconds=5))

    assert isinstance(remote, FallbackTimestampAuthority)
    assert remote.primary.url == TSA_URL


def test_issued_award_carries_verifiable_rfc3161_token(
    make_services: Any, draft_payload: dict[str, Any], blobs: InMemoryBlobStorage
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_granted_reply(request.content))

    services = make_services(timestamps=_authority(handler))
    seed_parties(services)
    case = open_case(services)
    services.review.register_draft(case.id, GeneratedDraft.from_dict(draft_payload))
    services.review.approve(case.id, "arb-1")

    result = services.finalizer.finalize(case.id, "arb-1")

    assert result.timestamp_granted is True
    assert result.timestamp_time == GEN_TIME
    award = services.finalizer.get_issued_award(case.id)
    assert award.timestamp_authority == TSA_URL

    document = blobs.objects[f"awards/{case.id}/{result.award_id}.txt"]
    assert services.finalizer.verify_document(case.id, document).timestamp_valid is True
    assert services.finalizer.verify_document(case.id, document + b"\n").timestamp_valid is False
