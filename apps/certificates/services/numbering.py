"""Allocation of human readable certificate numbers."""
from __future__ import annotations

from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.certificates.models import CertificateSequence

DEFAULT_PREFIX = "W3V"


def format_certificate_number(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:05d}"


def allocate_certificate_number(*, year: Optional[int] = None, prefix: Optional[str] = None) -> str:
    """Return the next number for ``year``, e.g. ``W3V-2026-00042``.

    The counter row is locked and incremented in the database, so concurrent
    workers never receive the same value.
    """

    year = year or timezone.localdate().year
    prefix = prefix or getattr(settings, "CERTIFICATE_NUMBER_PREFIX", DEFAULT_PREFIX)

    with transaction.atomic():
        sequence, _ = CertificateSequence.objects.select_for_update().get_or_create(year=year)
        CertificateSequence.objects.filter(pk=sequence.pk).update(last_value=F("last_value") + 1)
        sequence.refresh_from_db(fields=["last_value"])

    return format_certificate_number(prefix, year, sequence.last_value)


__all__ = ["allocate_certificate_number", "format_certificate_number"]
