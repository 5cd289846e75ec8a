"""Platform signatures binding a certificate to its subject."""
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import date
from typing import Final, Optional

from django.conf import settings

from .exceptions import SigningConfigurationError

logger = logging.getLogger(__name__)

#: Field order and separator are frozen for version 1. Changing either
#: invalidates every signature already issued.
SIGNATURE_VERSION: Final = 1
_SEPARATOR: Final = "|"


@dataclass(frozen=True)
class SignatureFields:
    certificate_number: str
    recipient_name: str
    course_title: str
    completion_date: date
    recipient_account_id: str

    @classmethod
    def from_certificate(cls, certificate) -> "SignatureFields":
        return cls(
            certificate_number=certificate.certificate_number,
            recipient_name=certificate.recipient_name,
            course_title=certificate.course_title,
            completion_date=certificate.completion_date,
            recipient_account_id=certificate.recipient_account_id,
        )

    def canonical(self) -> str:
        return _SEPARATOR.join(
            [
                self.certificate_number,
                self.recipient_name,
                self.course_title,
                self.completion_date.isoformat(),
                self.recipient_account_id,
            ]
        )


def get_signing_secret() -> str:
    """Return the configured platform secret or raise when it is missing."""

    secret = getattr(settings, "CERTIFICATE_HMAC_SECRET", "")
    if not secret:
        raise SigningConfigurationError("CERTIFICATE_HMAC_SECRET is not configured.")
    return secret


def sign_certificate(fields: SignatureFields, secret: Optional[str] = None) -> str:
    """Return the hex HMAC-SHA256 digest of the canonical field string."""

    key = secret if secret is not None else get_signing_secret()
    if not key:
        raise SigningConfigurationError("A signing secret is required.")
    return hmac.new(
        key.encode("utf-8"),
        fields.canonical().encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def validate_certificate_signature(
    fields: SignatureFields, signature: str, secret: Optional[str] = None
) -> bool:
    """Return ``True`` when ``signature`` matches the recomputed value."""

    if not signature:
        return False
    expected = sign_certificate(fields, secret)
    valid = hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
    if not valid:
        logger.info(
            "Certificate signature mismatch",
            extra={"context": {"certificate_number": fields.certificate_number}},
        )
    return valid


__all__ = [
    "SIGNATURE_VERSION",
    "SignatureFields",
    "get_signing_secret",
    "sign_certificate",
    "validate_certificate_signature",
]
