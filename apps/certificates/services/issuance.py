"""Issue a course certificate: render, publish, sign, mint and transfer.

Each step is checkpointed on :class:`CertificateIssuance` so a failure can be
inspected and, where safe, retried:

* failures before minting leave the checkpoint ``failed`` and the request can
  simply be repeated; the certificate number is reused. A pre-mint checkpoint
  left untouched for ``stale_after`` is resumed the same way;
* a mint failure leaves the checkpoint at ``minting`` because the outcome on
  the ledger is unknown, and it is never retried automatically;
* a recipient that has not associated the collection leaves the unit in the
  treasury with the checkpoint ``stuck`` until the reconciliation sweep
  delivers it.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Optional, Union

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.certificates.exceptions import (
    CertificateConfigurationError,
    CertificateMintError,
    CertificateTransferError,
    CertificateUploadError,
    FileUploadError,
    LedgerError,
    OnChainMetadataTooLarge,
    SigningConfigurationError,
    TokenNotAssociatedError,
)
from apps.certificates.file_storage import DEFAULT_MAX_CHUNK, LedgerFileStore
from apps.certificates.ledger import LedgerGateway, build_ledger_gateway
from apps.certificates.mirror import MirrorNodeClient
from apps.certificates.models import Certificate, CertificateIssuance
from apps.certificates.pinning import PinnedContent, PinningService, build_pinning_service
from apps.certificates.rendering import (
    CertificateArtwork,
    build_verification_url,
    render_certificate_svg,
)
from apps.certificates.signing import SignatureFields, get_signing_secret, sign_certificate
from apps.courses.eligibility import Eligibility, check_certificate_eligibility
from apps.courses.models import Course, LearnerProfile
from apps.security.models import AuditLog
from apps.security.utils import log_audit_event

from .numbering import allocate_certificate_number

logger = logging.getLogger(__name__)

DEFAULT_ONCHAIN_METADATA_LIMIT = 100
DEFAULT_STALE_ISSUANCE = timedelta(minutes=10)
IN_PROGRESS_REASON = "Certificate issuance already in progress for this course"
MISSING_ACCOUNT_REASON = "No ledger account linked to the learner profile"
ASSOCIATION_MESSAGE = (
    "Associate token {token_id} with account {account_id} in your wallet. "
    "The certificate will be delivered automatically once the association is visible."
)


@dataclass(frozen=True)
class AssociationInstructions:
    token_id: str
    account_id: str
    message: str


@dataclass(frozen=True)
class IssuanceResult:
    certificate: Certificate
    association: Optional[AssociationInstructions] = None

    @property
    def transferred(self) -> bool:
        return self.certificate.is_transferred


@dataclass(frozen=True)
class IssuanceDenial:
    reason: str
    completion_percentage: int = 0
    already_claimed: bool = False

    @classmethod
    def from_eligibility(cls, eligibility: Eligibility) -> "IssuanceDenial":
        return cls(
            reason=eligibility.reason or "Not eligible for a certificate",
            completion_percentage=eligibility.completion_percentage,
            already_claimed=eligibility.already_claimed,
        )


@dataclass(frozen=True)
class _Publication:
    image_file_id: str
    metadata_file_id: str
    image_pin: Optional[PinnedContent]
    metadata_pin: Optional[PinnedContent]
    pointer: str


def build_certificate_metadata(
    *,
    fields: SignatureFields,
    image_file_id: str,
    image_pin: Optional[PinnedContent],
    signature: str,
    verification_url: str,
) -> dict[str, Any]:
    """Return the metadata document describing a certificate."""

    platform = getattr(settings, "CERTIFICATE_ISSUER_NAME", "Web3Versity")
    network = getattr(settings, "LEDGER_NETWORK", "testnet")
    completed = fields.completion_date.isoformat()
    metadata: dict[str, Any] = {
        "name": f"{platform} Certificate - {fields.course_title}",
        "description": (
            f"Certificate of Completion for {fields.course_title}, "
            f"awarded to {fields.recipient_name} on {completed}"
        ),
        "image_hfs_file_id": image_file_id,
        "image": image_pin.ipfs_url if image_pin else f"hfs://{image_file_id}",
        "attributes": [
            {"trait_type": "Student", "value": fields.recipient_name},
            {"trait_type": "Course", "value": fields.course_title},
            {"trait_type": "Certificate Number", "value": fields.certificate_number},
            {"trait_type": "Completion Date", "value": completed},
            {"trait_type": "Platform", "value": platform},
            {"trait_type": "Network", "value": f"Hedera {network.title()}"},
            {"trait_type": "Hedera Account", "value": fields.recipient_account_id},
        ],
        "platform_signature": signature,
        "external_url": verification_url,
    }
    return metadata


def transfer_memo(certificate_number: str) -> str:
    platform = getattr(settings, "CERTIFICATE_ISSUER_NAME", "Web3Versity")
    return f"{platform} Certificate: {certificate_number}"


def build_onchain_pointer(metadata_file_id: str, metadata_pin: Optional[PinnedContent]) -> str:
    if metadata_pin:
        return metadata_pin.ipfs_url
    return f"hfs://{metadata_file_id}"


class CertificateIssuer:
    """Run the issuance saga for one learner and course."""

    def __init__(
        self,
        *,
        ledger: LedgerGateway,
        file_store: LedgerFileStore,
        pinning: PinningService,
        collection_id: str,
        secret: str,
        eligibility: Callable[[Any, Course], Eligibility] = check_certificate_eligibility,
        max_chunk: int = DEFAULT_MAX_CHUNK,
        metadata_limit: int = DEFAULT_ONCHAIN_METADATA_LIMIT,
        today: Callable[[], date] = timezone.localdate,
        stale_after: timedelta = DEFAULT_STALE_ISSUANCE,
    ):
        if not collection_id:
            raise CertificateConfigurationError("CERTIFICATE_COLLECTION_ID is not configured.")
        if not secret:
            raise CertificateConfigurationError("CERTIFICATE_HMAC_SECRET is not configured.")
        self.ledger = ledger
        self.file_store = file_store
        self.pinning = pinning
        self.collection_id = collection_id
        self.secret = secret
        self.eligibility = eligibility
        self.max_chunk = max_chunk
        self.metadata_limit = metadata_limit
        self.today = today
        self.stale_after = stale_after

    def issue(self, user, course: Course, *, request=None) -> Union[IssuanceResult, IssuanceDenial]:
        eligibility = self.eligibility(user, course)
        if not eligibility.eligible:
            logger.info(
                "Certificate denied for user %s on course %s: %s",
                user.pk,
                course.pk,
                eligibility.reason,
            )
            return IssuanceDenial.from_eligibility(eligibility)

        profile = LearnerProfile.objects.get(user=user)
        if not profile.ledger_account_id:
            return IssuanceDenial(
                reason=MISSING_ACCOUNT_REASON,
                completion_percentage=eligibility.completion_percentage,
            )

        issuance = self._claim(user, course)
        if issuance is None:
            return IssuanceDenial(
                reason=IN_PROGRESS_REASON,
                completion_percentage=eligibility.completion_percentage,
                already_claimed=True,
            )

        number = issuance.certificate_number
        try:
            fields = SignatureFields(
                certificate_number=number,
                recipient_name=profile.display_name,
                course_title=course.title,
                completion_date=self.today(),
                recipient_account_id=profile.ledger_account_id,
            )
            signature = sign_certificate(fields, self.secret)
            verification_url = build_verification_url(number)
            svg = render_certificate_svg(
                CertificateArtwork(
                    recipient_name=fields.recipient_name,
                    course_title=fields.course_title,
                    completion_date=fields.completion_date,
                    certificate_number=number,
                    verification_url=verification_url,
                    signature=signature,
                )
            )
            issuance.advance(CertificateIssuance.Stage.RENDERED)

            publication = self._publish(issuance, fields, svg, signature, verification_url, request)
            issuance.advance(CertificateIssuance.Stage.PUBLISHED)
        except (CertificateUploadError, OnChainMetadataTooLarge):
            raise
        except Exception as exc:
            logger.exception("Preparing %s failed before mint", number)
            self._fail(issuance, CertificateIssuance.Stage.FAILED, exc, request, error_stage="prepare")
            raise

        certificate = self._mint(issuance, user, course, fields, svg, signature, publication, request)
        return self._transfer(issuance, certificate, request)

    def _claim(self, user, course: Course) -> Optional[CertificateIssuance]:
        with transaction.atomic():
            issuance = (
                CertificateIssuance.objects.select_for_update()
                .filter(user=user, course=course)
                .first()
            )
            if issuance is not None:
                if not issuance.can_retry(stale_before=timezone.now() - self.stale_after):
                    return None
                issuance.stage = CertificateIssuance.Stage.ELIGIBLE
                issuance.attempts += 1
                issuance.save(update_fields=["stage", "attempts", "updated_at"])
                logger.info("Retrying issuance of %s", issuance.certificate_number)
                return issuance

            number = allocate_certificate_number()
            try:
                with transaction.atomic():
                    return CertificateIssuance.objects.create(
                        user=user, course=course, certificate_number=number
                    )
            except IntegrityError:
                logger.info(
                    "Concurrent issuance for user %s on course %s lost the claim",
                    user.pk,
                    course.pk,
                )
                return None

    def _fail(self, issuance, stage: str, exc: Exception, request, *, error_stage: str) -> None:
        issuance.advance(stage, error=str(exc))
        log_audit_event(
            action_code=AuditLog.ActionCode.CERTIFICATE_ISSUE_FAILED,
            request=request,
            user=issuance.user,
            target=issuance.certificate_number,
            context={"stage": error_stage, "error": str(exc)},
        )

    def _publish(self, issuance, fields, svg, signature, verification_url, request) -> _Publication:
        number = issuance.certificate_number
        try:
            image_file_id = self.file_store.upload(
                svg.encode("utf-8"), name=f"{number}.svg", max_chunk=self.max_chunk
            )
            image_pin = self.pinning.upload(svg, f"{number}.svg")
            metadata = build_certificate_metadata(
                fields=fields,
                image_file_id=image_file_id,
                image_pin=image_pin,
                signature=signature,
                verification_url=verification_url,
            )
            metadata_file_id = self.file_store.upload(
                json.dumps(metadata, separators=(",", ":")).encode("utf-8"),
                name=f"{number}-metadata.json",
                max_chunk=self.max_chunk,
            )
        except FileUploadError as exc:
            logger.warning(
                "Publishing %s failed", number, extra={"context": {"error": str(exc)}}
            )
            self._fail(issuance, CertificateIssuance.Stage.FAILED, exc, request, error_stage="upload")
            raise CertificateUploadError(str(exc), certificate_number=number) from exc

        metadata_pin = self.pinning.upload_json(metadata, f"{number}-metadata.json")
        pointer = build_onchain_pointer(metadata_file_id, metadata_pin)
        if len(pointer.encode("utf-8")) > self.metadata_limit:
            exc = OnChainMetadataTooLarge(
                f"On-chain pointer is {len(pointer.encode('utf-8'))} bytes; limit is {self.metadata_limit}",
                certificate_number=number,
            )
            self._fail(issuance, CertificateIssuance.Stage.FAILED, exc, request, error_stage="upload")
            raise exc

        return _Publication(
            image_file_id=image_file_id,
            metadata_file_id=metadata_file_id,
            image_pin=image_pin,
            metadata_pin=metadata_pin,
            pointer=pointer,
        )

    def _mint(self, issuance, user, course, fields, svg, signature, publication, request) -> Certificate:
        number = issuance.certificate_number
        issuance.advance(CertificateIssuance.Stage.MINTING)
        try:
            receipt = self.ledger.mint_nft(self.collection_id, publication.pointer.encode("utf-8"))
        except LedgerError as exc:
            logger.error(
                "Minting %s failed; outcome must be checked on the ledger",
                number,
                extra={"context": {"error": str(exc), "collection_id": self.collection_id}},
            )
            self._fail(issuance, CertificateIssuance.Stage.MINTING, exc, request, error_stage="mint")
            raise CertificateMintError(str(exc), certificate_number=number) from exc

        logger.info(
            "Minted %s as serial %s",
            number,
            receipt.serial_number,
            extra={
                "context": {
                    "collection_id": self.collection_id,
                    "transaction_id": receipt.transaction_id,
                }
            },
        )
        image_pin, metadata_pin = publication.image_pin, publication.metadata_pin
        with transaction.atomic():
            certificate = Certificate.objects.create(
                certificate_number=number,
                user=user,
                course=course,
                completion_date=fields.completion_date,
                recipient_name=fields.recipient_name,
                course_title=fields.course_title,
                recipient_account_id=fields.recipient_account_id,
                collection_id=self.collection_id,
                serial_number=receipt.serial_number,
                image_file_id=publication.image_file_id,
                metadata_file_id=publication.metadata_file_id,
                ipfs_image_hash=image_pin.hash if image_pin else "",
                ipfs_image_url=image_pin.ipfs_url if image_pin else "",
                ipfs_metadata_hash=metadata_pin.hash if metadata_pin else "",
                ipfs_metadata_url=metadata_pin.ipfs_url if metadata_pin else "",
                svg_content=svg,
                onchain_metadata=publication.pointer,
                platform_signature=signature,
                mint_transaction_id=receipt.transaction_id,
            )
            issuance.advance(CertificateIssuance.Stage.MINTED, error="", certificate=certificate)

        log_audit_event(
            action_code=AuditLog.ActionCode.CERTIFICATE_ISSUED,
            request=request,
            user=user,
            target=number,
            context={
                "collection_id": self.collection_id,
                "serial_number": receipt.serial_number,
                "mint_transaction_id": receipt.transaction_id,
            },
        )
        return certificate

    def _transfer(self, issuance, certificate: Certificate, request) -> IssuanceResult:
        number = certificate.certificate_number
        account_id = certificate.recipient_account_id
        try:
            transaction_id = self.ledger.transfer_nft(
                certificate.collection_id,
                certificate.serial_number,
                account_id,
                memo=transfer_memo(number),
            )
        except TokenNotAssociatedError as exc:
            logger.info(
                "Recipient %s has not associated %s; %s held in treasury",
                account_id,
                certificate.collection_id,
                number,
            )
            issuance.advance(CertificateIssuance.Stage.STUCK, error=str(exc))
            log_audit_event(
                action_code=AuditLog.ActionCode.CERTIFICATE_TRANSFER_PENDING,
                request=request,
                user=certificate.user,
                target=number,
                context={"account_id": account_id, "collection_id": certificate.collection_id},
            )
            return IssuanceResult(
                certificate=certificate,
                association=AssociationInstructions(
                    token_id=certificate.collection_id,
                    account_id=account_id,
                    message=ASSOCIATION_MESSAGE.format(
                        token_id=certificate.collection_id, account_id=account_id
                    ),
                ),
            )
        except LedgerError as exc:
            logger.error(
                "Transfer of %s failed", number, extra={"context": {"error": str(exc)}}
            )
            self._fail(issuance, CertificateIssuance.Stage.MINTED, exc, request, error_stage="transfer")
            raise CertificateTransferError(str(exc), certificate_number=number) from exc

        with transaction.atomic():
            certificate.mark_transferred(transaction_id)
            issuance.advance(CertificateIssuance.Stage.TRANSFERRED, error="")
        log_audit_event(
            action_code=AuditLog.ActionCode.CERTIFICATE_TRANSFERRED,
            request=request,
            user=certificate.user,
            target=number,
            context={"transfer_transaction_id": transaction_id, "account_id": account_id},
        )
        return IssuanceResult(certificate=certificate)


def build_certificate_issuer() -> CertificateIssuer:
    """Wire a :class:`CertificateIssuer` from Django settings."""

    try:
        secret = get_signing_secret()
    except SigningConfigurationError as exc:
        raise CertificateConfigurationError(str(exc)) from exc

    ledger = build_ledger_gateway()
    return CertificateIssuer(
        ledger=ledger,
        file_store=LedgerFileStore(ledger, MirrorNodeClient()),
        pinning=build_pinning_service(),
        collection_id=getattr(settings, "CERTIFICATE_COLLECTION_ID", ""),
        secret=secret,
        max_chunk=int(getattr(settings, "CERTIFICATE_MAX_CHUNK_SIZE", DEFAULT_MAX_CHUNK)),
        metadata_limit=int(
            getattr(settings, "CERTIFICATE_ONCHAIN_METADATA_LIMIT", DEFAULT_ONCHAIN_METADATA_LIMIT)
        ),
        stale_after=timedelta(
            seconds=int(
                getattr(
                    settings,
                    "CERTIFICATE_STALE_ISSUANCE_SECONDS",
                    DEFAULT_STALE_ISSUANCE.total_seconds(),
                )
            )
        ),
    )


__all__ = [
    "AssociationInstructions",
    "CertificateIssuer",
    "IssuanceDenial",
    "IssuanceResult",
    "build_certificate_issuer",
    "build_certificate_metadata",
    "build_onchain_pointer",
    "transfer_memo",
]
