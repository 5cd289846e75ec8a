"""Deliver minted certificates whose transfer did not complete."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.certificates.exceptions import IndexerError, LedgerError, TokenNotAssociatedError
from apps.certificates.ledger import LedgerGateway, build_ledger_gateway
from apps.certificates.mirror import MirrorNodeClient
from apps.certificates.models import Certificate, CertificateIssuance
from apps.security.models import AuditLog
from apps.security.utils import log_audit_event

from .issuance import transfer_memo

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationSummary:
    checked: int = 0
    transferred: int = 0
    already_delivered: int = 0
    awaiting_association: int = 0
    failed: int = 0
    stuck_minting: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "checked": self.checked,
            "transferred": self.transferred,
            "already_delivered": self.already_delivered,
            "awaiting_association": self.awaiting_association,
            "failed": self.failed,
            "stuck_minting": list(self.stuck_minting),
        }


def _record_delivery(certificate: Certificate, transaction_id: str, source: str) -> None:
    with transaction.atomic():
        certificate.mark_transferred(transaction_id)
        CertificateIssuance.objects.filter(certificate=certificate).update(
            stage=CertificateIssuance.Stage.TRANSFERRED, last_error=""
        )
    log_audit_event(
        action_code=AuditLog.ActionCode.CERTIFICATE_RECONCILED,
        user=certificate.user,
        target=certificate.certificate_number,
        context={"transfer_transaction_id": transaction_id, "source": source},
    )


def reconcile_minted_certificates(
    limit: Optional[int] = None,
    *,
    ledger: Optional[LedgerGateway] = None,
    mirror: Optional[MirrorNodeClient] = None,
    grace: Optional[timedelta] = None,
) -> ReconciliationSummary:
    """Check every minted but undelivered certificate against the ledger.

    The current holder is read from the indexer before anything is sent, so a
    transfer is only retried while the unit is confirmed to sit in the
    treasury. Certificates minted within ``grace`` are left to the request that
    is still transferring them unless it already recorded a failure.
    Issuances stuck at ``minting`` are reported for manual review.
    """

    ledger = ledger or build_ledger_gateway()
    mirror = mirror or MirrorNodeClient()
    if grace is None:
        grace = timedelta(seconds=getattr(settings, "CERTIFICATE_RECONCILE_GRACE_SECONDS", 300))
    summary = ReconciliationSummary()

    queryset = (
        Certificate.objects.awaiting_transfer(settled_before=timezone.now() - grace)
        .select_related("user")
        .order_by("minted_at", "pk")
    )
    if limit:
        queryset = queryset[:limit]

    for certificate in queryset:
        summary.checked += 1
        number = certificate.certificate_number
        try:
            nft = mirror.get_nft(certificate.collection_id, certificate.serial_number)
        except IndexerError as exc:
            logger.warning("Indexer lookup for %s failed: %s", number, exc)
            summary.failed += 1
            continue

        if nft.account_id == certificate.recipient_account_id:
            try:
                transaction_id = mirror.find_transfer_to(
                    certificate.collection_id,
                    certificate.serial_number,
                    certificate.recipient_account_id,
                )
            except IndexerError as exc:
                logger.warning("Transfer history for %s unavailable: %s", number, exc)
                transaction_id = None
            if not transaction_id:
                summary.failed += 1
                continue
            _record_delivery(certificate, transaction_id, "indexer")
            summary.already_delivered += 1
            continue

        if nft.account_id != ledger.treasury_account_id:
            logger.error(
                "%s is held by unexpected account %s",
                number,
                nft.account_id,
                extra={"context": {"recipient": certificate.recipient_account_id}},
            )
            summary.failed += 1
            continue

        try:
            transaction_id = ledger.transfer_nft(
                certificate.collection_id,
                certificate.serial_number,
                certificate.recipient_account_id,
                memo=transfer_memo(number),
            )
        except TokenNotAssociatedError:
            summary.awaiting_association += 1
            continue
        except LedgerError as exc:
            logger.warning("Retrying transfer of %s failed: %s", number, exc)
            summary.failed += 1
            continue

        _record_delivery(certificate, transaction_id, "transfer")
        summary.transferred += 1

    summary.stuck_minting = list(
        CertificateIssuance.objects.filter(stage=CertificateIssuance.Stage.MINTING)
        .order_by("updated_at")
        .values_list("certificate_number", flat=True)
    )
    if summary.stuck_minting:
        logger.warning(
            "%s issuance(s) have an unresolved mint",
            len(summary.stuck_minting),
            extra={"context": {"certificate_numbers": summary.stuck_minting}},
        )

    logger.info("Reconciliation finished", extra={"context": summary.as_dict()})
    return summary


__all__ = ["ReconciliationSummary", "reconcile_minted_certificates"]
