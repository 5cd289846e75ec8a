"""Re-check an issued certificate against public ledger and storage data."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from django.conf import settings

from apps.certificates.exceptions import IndexerError, IndexerNotFound, SigningConfigurationError
from apps.certificates.mirror import MirrorNodeClient
from apps.certificates.models import Certificate
from apps.certificates.pinning import PinningService, build_pinning_service
from apps.certificates.signing import SignatureFields, validate_certificate_signature
from apps.security.models import AuditLog
from apps.security.utils import log_audit_event

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Certificate not found"


@dataclass
class VerificationReport:
    certificate_number: Optional[str] = None
    record_found: bool = False
    on_chain_verified: bool = False
    signature_valid: bool = False
    holder_account_id: Optional[str] = None
    expected_holder_account_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    metadata_source: Optional[str] = None
    explorer_url: Optional[str] = None
    certificate: Optional[dict[str, Any]] = None
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.record_found and self.on_chain_verified

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["valid"] = self.valid
        return payload


def _certificate_summary(certificate: Certificate) -> dict[str, Any]:
    return {
        "certificate_number": certificate.certificate_number,
        "recipient_name": certificate.recipient_name,
        "course_title": certificate.course_title,
        "completion_date": certificate.completion_date.isoformat(),
        "recipient_account_id": certificate.recipient_account_id,
        "collection_id": certificate.collection_id,
        "serial_number": certificate.serial_number,
        "status": certificate.status,
        "image_file_id": certificate.image_file_id,
        "metadata_file_id": certificate.metadata_file_id,
        "ipfs_image_url": certificate.ipfs_image_url or None,
        "ipfs_metadata_url": certificate.ipfs_metadata_url or None,
        "minted_at": certificate.minted_at.isoformat(),
        "transferred_at": certificate.transferred_at.isoformat() if certificate.transferred_at else None,
    }


class CertificateVerifier:
    def __init__(
        self,
        mirror: MirrorNodeClient,
        pinning: PinningService,
        *,
        secret: Optional[str] = None,
        treasury_account_id: Optional[str] = None,
    ):
        self.mirror = mirror
        self.pinning = pinning
        self.secret = secret
        self.treasury_account_id = treasury_account_id

    def verify(
        self,
        certificate_number: Optional[str] = None,
        *,
        collection_id: Optional[str] = None,
        serial_number: Optional[int] = None,
        request=None,
    ) -> VerificationReport:
        """Return a report on the certificate identified by number or token.

        Exactly one lookup form must be given. Mismatches and unreachable
        services are recorded in ``errors``; only bad input raises.
        """

        by_token = collection_id is not None or serial_number is not None
        if bool(certificate_number) == by_token:
            raise ValueError(
                "Provide either a certificate number or a collection id and serial number."
            )
        if by_token and (not collection_id or serial_number is None):
            raise ValueError("Both collection id and serial number are required.")

        if certificate_number:
            certificate = Certificate.objects.filter(certificate_number=certificate_number).first()
            target = certificate_number
        else:
            certificate = Certificate.objects.by_token(collection_id, int(serial_number))
            target = f"{collection_id}/{serial_number}"

        if certificate is None:
            report = VerificationReport(certificate_number=certificate_number, errors=[NOT_FOUND_MESSAGE])
        else:
            report = self._verify_certificate(certificate)

        log_audit_event(
            action_code=AuditLog.ActionCode.CERTIFICATE_VERIFIED,
            request=request,
            target=report.certificate_number or target,
            context={
                "record_found": report.record_found,
                "on_chain_verified": report.on_chain_verified,
                "signature_valid": report.signature_valid,
                "valid": report.valid,
                "metadata_source": report.metadata_source,
                "errors": report.errors,
            },
        )
        return report

    def _verify_certificate(self, certificate: Certificate) -> VerificationReport:
        expected_holder = (
            certificate.recipient_account_id
            if certificate.is_transferred
            else self.treasury_account_id
        )
        report = VerificationReport(
            certificate_number=certificate.certificate_number,
            record_found=True,
            expected_holder_account_id=expected_holder,
            explorer_url=certificate.explorer_url,
            certificate=_certificate_summary(certificate),
        )

        self._check_ledger(certificate, report)
        self._load_metadata(certificate, report)
        self._check_signature(certificate, report)

        logger.info(
            "Verified %s: valid=%s",
            certificate.certificate_number,
            report.valid,
            extra={"context": {"errors": report.errors}},
        )
        return report

    def _check_ledger(self, certificate: Certificate, report: VerificationReport) -> None:
        try:
            nft = self.mirror.get_nft(certificate.collection_id, certificate.serial_number)
        except IndexerNotFound:
            report.errors.append("Credential unit not found on the ledger")
            return
        except IndexerError as exc:
            report.errors.append(f"Ledger lookup failed: {exc}")
            return

        report.holder_account_id = nft.account_id
        problems = []
        if nft.deleted:
            problems.append("Credential unit has been deleted on the ledger")
        if report.expected_holder_account_id and nft.account_id != report.expected_holder_account_id:
            problems.append(
                f"Credential unit is held by {nft.account_id}, "
                f"expected {report.expected_holder_account_id}"
            )
        if nft.metadata_text != certificate.onchain_metadata:
            problems.append("On-chain metadata does not match the issued record")

        report.errors.extend(problems)
        report.on_chain_verified = not problems

    def _load_metadata(self, certificate: Certificate, report: VerificationReport) -> None:
        raw: Optional[bytes] = None
        try:
            raw = self.mirror.get_file(certificate.metadata_file_id)
            report.metadata_source = "primary"
        except IndexerError as exc:
            logger.info(
                "Primary metadata read for %s failed: %s", certificate.certificate_number, exc
            )

        if raw is None and certificate.ipfs_metadata_hash:
            raw = self.pinning.fetch(certificate.ipfs_metadata_hash)
            if raw is not None:
                report.metadata_source = "secondary"

        if raw is None:
            report.errors.append("Certificate metadata could not be retrieved")
            return

        try:
            report.metadata = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            report.errors.append("Certificate metadata is not valid JSON")
            report.metadata_source = None
            return

        published = report.metadata.get("platform_signature") if isinstance(report.metadata, dict) else None
        if published and published != certificate.platform_signature:
            report.errors.append("Published metadata carries a different signature")

    def _check_signature(self, certificate: Certificate, report: VerificationReport) -> None:
        try:
            report.signature_valid = validate_certificate_signature(
                SignatureFields.from_certificate(certificate),
                certificate.platform_signature,
                self.secret,
            )
        except SigningConfigurationError as exc:
            report.errors.append(f"Signature could not be checked: {exc}")
            return
        if not report.signature_valid:
            report.errors.append("Platform signature does not match certificate data")


def build_certificate_verifier() -> CertificateVerifier:
    return CertificateVerifier(
        MirrorNodeClient(),
        build_pinning_service(),
        secret=getattr(settings, "CERTIFICATE_HMAC_SECRET", "") or None,
        treasury_account_id=getattr(settings, "LEDGER_OPERATOR_ID", "") or None,
    )


__all__ = ["CertificateVerifier", "VerificationReport", "build_certificate_verifier"]
