from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from arbitration_awards.observability.logging import get_logger
from arbitration_awards.storage.base import UserDirectory
from arbitration_awards.types import utc_now

logger = get_logger("arbitration_awards.signing")


@dataclass(slots=True, frozen=True)
class SigningCredentials:
    arbitrator_id: str
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate

    @property
    def certificate_pem(self) -> str:
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")

    @property
    def fingerprint(self) -> str:
        return certificate_fingerprint(self.certificate)

    @property
    def common_name(self) -> str:
        attributes = self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return str(attributes[0].value) if attributes else ""


class SigningCredentialsProvider(Protocol):
    def get_credentials(self, arbitrator_id: str) -> SigningCredentials:
        ...


def certificate_fingerprint(certificate: x509.Certificate) -> str:
    return certificate.fingerprint(hashes.SHA256()).hex()


class LocalCredentialProvider:
    """Self-signed RSA credentials, generated on first use and cached per arbitrator.

    Stands in for an HSM or managed key service; the certificate subject is
    taken from the arbitrator's profile when one exists.
    """

    def __init__(
        self,
        users: UserDirectory,
        *,
        key_size: int = 2048,
        validity_days: int = 365,
        organization: str = "Arbitration Awards",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._key_size = key_size
        self._validity_days = validity_days
        self._organization = organization
        self._clock = clock
        self._cache: dict[str, SigningCredentials] = {}
        self._lock = threading.Lock()

    def get_credentials(self, arbitrator_id: str) -> SigningCredentials:
        with self._lock:
            cached = self._cache.get(arbitrator_id)
            if cached is not None and cached.certificate.not_valid_after_utc > self._clock():
                return cached
            credentials = self._generate(arbitrator_id)
            self._cache[arbitrator_id] = credentials
        logger.info(
            "signing_credentials_generated",
            arbitrator_id=arbitrator_id,
            certificate_fingerprint=credentials.fingerprint,
        )
        return credentials

    def _generate(self, arbitrator_id: str) -> SigningCredentials:
        profile = self._users.get(arbitrator_id)
        attributes = [
            x509.NameAttribute(
                NameOID.COMMON_NAME, profile.display_name if profile else arbitrator_id
            ),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, self._organization),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Arbitrators"),
        ]
        if profile is not None and profile.email:
            attributes.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, profile.email))
        subject = x509.Name(attributes)

        private_key = rsa.generate_private_key(public_exponent=65537, key_size=self._key_size)
        now = self._clock()
        certificate = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + timedelta(days=self._validity_days))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=True,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
                critical=False,
            )
            .sign(private_key, hashes.SHA256())
        )
        return SigningCredentials(
            arbitrator_id=arbitrator_id,
            private_key=private_key,
            certificate=certificate,
        )
