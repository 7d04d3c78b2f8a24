from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from datetime import datetime

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from arbitration_awards.signing.credentials import SigningCredentials, certificate_fingerprint

SIGNATURE_ALGORITHM = "RSA-SHA256"


@dataclass(slots=True, frozen=True)
class DocumentSignature:
    signature: str
    algorithm: str
    certificate_pem: str
    certificate_fingerprint: str
    document_hash: str
    signed_at: datetime


def document_digest(document: bytes) -> str:
    return hashlib.sha256(document).hexdigest()


def sign_document(
    document: bytes, credentials: SigningCredentials, *, signed_at: datetime
) -> DocumentSignature:
    """Produce a detached PKCS#7 signature over the rendered document, base64 encoded."""
    der = (
        pkcs7.PKCS7SignatureBuilder()
        .set_data(document)
        .add_signer(credentials.certificate, credentials.private_key, hashes.SHA256())
        .sign(
            serialization.Encoding.DER,
            [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
        )
    )
    return DocumentSignature(
        signature=base64.b64encode(der).decode("ascii"),
        algorithm=SIGNATURE_ALGORITHM,
        certificate_pem=credentials.certificate_pem,
        certificate_fingerprint=credentials.fingerprint,
        document_hash=document_digest(document),
        signed_at=signed_at,
    )


def signer_fingerprints(signature: str) -> list[str]:
    """Fingerprints of the certificates embedded in a base64 PKCS#7 signature."""
    certificates = pkcs7.load_der_pkcs7_certificates(base64.b64decode(signature))
    return [certificate_fingerprint(certificate) for certificate in certificates]
