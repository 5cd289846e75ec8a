"""Background jobs for delivering certificates."""
from __future__ import annotations

from typing import Optional

from celery import shared_task
from celery.utils.log import get_task_logger

from apps.certificates.services import reconcile_minted_certificates

logger = get_task_logger(__name__)


@shared_task(
    bind=True,
    name="credential_app.reconcile_minted_certificates",
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=5,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def reconcile_minted_certificates_task(self, limit: Optional[int] = None) -> dict:
    """Deliver minted certificates that are still held by the treasury."""

    logger.info("Starting certificate reconciliation (limit=%s)", limit)
    try:
        summary = reconcile_minted_certificates(limit=limit)
    except Exception:
        logger.exception("Certificate reconciliation failed")
        raise
    logger.info(
        "Certificate reconciliation checked %s, transferred %s, already delivered %s",
        summary.checked,
        summary.transferred,
        summary.already_delivered,
    )
    return summary.as_dict()
