"""Health check views for uptime monitoring."""
from __future__ import annotations

import logging

from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse

from apps.certificates.exceptions import CertificateConfigurationError, LedgerError
from apps.certificates.ledger import build_ledger_gateway

logger = logging.getLogger(__name__)


def health_view(request):
    """Return a lightweight service health response."""
    payload = {"status": "ok"}

    connection = connections["default"]
    db_status = "unknown"

    try:
        if connection.connection is not None and connection.is_usable():
            db_status = "ok"
        elif connection.connection is None:
            # Avoid opening new connections to keep the check fast.
            db_status = "unverified"
        else:
            db_status = "unavailable"
    except OperationalError:
        db_status = "unavailable"

    payload["database"] = db_status
    return JsonResponse(payload)


def database_health_view(request):
    """Run a trivial query against the default database."""
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except OperationalError:
        logger.exception("Database health check failed")
        return JsonResponse({"status": "error", "database": "unavailable"}, status=503)
    return JsonResponse({"status": "ok", "database": "ok"})


def ledger_health_view(request):
    """Report the treasury balance so operators can spot an unfunded operator."""
    try:
        gateway = build_ledger_gateway()
        balance = gateway.account_balance()
    except CertificateConfigurationError as exc:
        return JsonResponse({"status": "unconfigured", "error": str(exc)}, status=503)
    except LedgerError as exc:
        logger.warning("Ledger health check failed: %s", exc)
        return JsonResponse({"status": "error", "error": str(exc)}, status=503)

    return JsonResponse(
        {
            "status": "ok",
            "network": gateway.network,
            "treasury_account_id": gateway.treasury_account_id,
            "balance": balance,
        }
    )
