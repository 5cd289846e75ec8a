"""Deliver minted certificates still held by the treasury account."""

from __future__ import annotations

import json

from django.core.management.base import BaseCommand, CommandError

from apps.certificates.exceptions import CertificateConfigurationError
from apps.certificates.services import reconcile_minted_certificates


class Command(BaseCommand):
    help = "Reconcile minted certificates against the ledger and retry pending transfers."

    def add_arguments(self, parser):  # type: ignore[override]
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of certificates to check.",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the summary as JSON.",
        )

    def handle(self, *args, **options):  # type: ignore[override]
        limit = options["limit"]
        if limit is not None and limit <= 0:
            raise CommandError("--limit must be a positive integer")

        try:
            summary = reconcile_minted_certificates(limit=limit)
        except CertificateConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        if options["json"]:
            self.stdout.write(json.dumps(summary.as_dict(), indent=2))
            return

        self.stdout.write(
            f"Checked {summary.checked}: transferred {summary.transferred}, "
            f"already delivered {summary.already_delivered}, "
            f"awaiting association {summary.awaiting_association}, failed {summary.failed}"
        )
        if summary.stuck_minting:
            self.stdout.write(
                self.style.WARNING(
                    "Unresolved mints: " + ", ".join(summary.stuck_minting)
                )
            )
