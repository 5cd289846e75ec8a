"""Database models for issued credentials and their issuance checkpoints."""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.utils import timezone

DEFAULT_EXPLORER_URL = "https://hashscan.io/testnet"


class CertificateQuerySet(models.QuerySet):
    """Custom queryset helpers for the :class:`Certificate` model."""

    def awaiting_transfer(self, *, settled_before: datetime | None = None) -> "CertificateQuerySet":
        """Minted certificates not yet delivered.

        With ``settled_before`` only rows the issuing request has given up on
        are returned: a recorded association or transfer failure, or a mint
        older than the cut-off.
        """

        queryset = self.filter(status=Certificate.Status.MINTED)
        if settled_before is None:
            return queryset
        stage = CertificateIssuance.Stage
        return queryset.filter(
            models.Q(issuance__stage=stage.STUCK)
            | (models.Q(issuance__stage=stage.MINTED) & ~models.Q(issuance__last_error=""))
            | models.Q(minted_at__lt=settled_before)
        )

    def for_user(self, user) -> "CertificateQuerySet":
        return self.filter(user=user)

    def delivered(self) -> "CertificateQuerySet":
        return self.filter(status=Certificate.Status.TRANSFERRED)


class CertificateManager(models.Manager["Certificate"]):
    def get_queryset(self) -> CertificateQuerySet:  # type: ignore[override]
        return CertificateQuerySet(self.model, using=self._db)

    def awaiting_transfer(self, *, settled_before: datetime | None = None) -> CertificateQuerySet:
        return self.get_queryset().awaiting_transfer(settled_before=settled_before)

    def for_user(self, user) -> CertificateQuerySet:
        return self.get_queryset().for_user(user)

    def by_token(self, collection_id: str, serial_number: int) -> "Certificate | None":
        return (
            self.get_queryset()
            .filter(collection_id=collection_id, serial_number=serial_number)
            .first()
        )


class Certificate(models.Model):
    """A minted course completion credential.

    The recipient name, course title and account id are snapshots taken at
    issue time; the platform signature is always recomputed from these stored
    values rather than from live profile data.
    """

    class Status(models.TextChoices):
        MINTED = "minted", "Minted"
        TRANSFERRED = "transferred", "Transferred"

    certificate_number = models.CharField(max_length=32, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="certificates",
    )
    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.PROTECT,
        related_name="certificates",
    )
    completion_date = models.DateField()
    recipient_name = models.CharField(max_length=255)
    course_title = models.CharField(max_length=255)
    recipient_account_id = models.CharField(max_length=64)

    collection_id = models.CharField(max_length=64)
    serial_number = models.PositiveBigIntegerField()

    image_file_id = models.CharField(max_length=64)
    metadata_file_id = models.CharField(max_length=64)
    ipfs_image_hash = models.CharField(max_length=128, blank=True)
    ipfs_image_url = models.CharField(max_length=255, blank=True)
    ipfs_metadata_hash = models.CharField(max_length=128, blank=True)
    ipfs_metadata_url = models.CharField(max_length=255, blank=True)
    svg_content = models.TextField()
    onchain_metadata = models.CharField(max_length=100)
    platform_signature = models.CharField(max_length=64)

    mint_transaction_id = models.CharField(max_length=128)
    transfer_transaction_id = models.CharField(max_length=128, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.MINTED,
        db_index=True,
    )
    minted_at = models.DateTimeField(default=timezone.now)
    transferred_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CertificateManager()

    class Meta:
        ordering = ("-minted_at", "-pk")
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"], name="unique_certificate_per_course"
            ),
            models.UniqueConstraint(
                fields=["collection_id", "serial_number"],
                name="unique_certificate_token",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(
                        status="transferred",
                        transferred_at__isnull=False,
                    )
                    & ~models.Q(transfer_transaction_id="")
                    & ~models.Q(mint_transaction_id="")
                )
                | models.Q(status="minted", transfer_transaction_id=""),
                name="certificate_status_matches_transfer",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return f"Certificate<{self.certificate_number}:{self.get_status_display()}>"

    @property
    def is_transferred(self) -> bool:
        return self.status == self.Status.TRANSFERRED

    @property
    def explorer_url(self) -> str:
        base = getattr(settings, "LEDGER_EXPLORER_URL", DEFAULT_EXPLORER_URL).rstrip("/")
        return f"{base}/token/{self.collection_id}/{self.serial_number}"

    def mark_transferred(
        self, transaction_id: str, *, timestamp: datetime | None = None
    ) -> None:
        """Record delivery of the unit to the recipient account."""

        if not transaction_id:
            raise ValueError("A transfer transaction id is required.")
        self.status = self.Status.TRANSFERRED
        self.transfer_transaction_id = transaction_id
        self.transferred_at = timestamp or timezone.now()
        self.save(
            update_fields=[
                "status",
                "transfer_transaction_id",
                "transferred_at",
                "updated_at",
            ]
        )


class CertificateIssuance(models.Model):
    """Checkpoint of an in-flight issuance for one learner and course."""

    class Stage(models.TextChoices):
        ELIGIBLE = "eligible", "Eligible"
        RENDERED = "rendered", "Rendered"
        PUBLISHED = "published", "Published"
        MINTING = "minting", "Mint submitted"
        MINTED = "minted", "Minted"
        TRANSFERRED = "transferred", "Transferred"
        STUCK = "stuck", "Awaiting association"
        FAILED = "failed", "Failed before mint"

    RETRYABLE_STAGES = {Stage.FAILED}
    PRE_MINT_STAGES = {Stage.ELIGIBLE, Stage.RENDERED, Stage.PUBLISHED}

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="certificate_issuances",
    )
    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.PROTECT,
        related_name="certificate_issuances",
    )
    certificate_number = models.CharField(max_length=32, unique=True)
    stage = models.CharField(
        max_length=16,
        choices=Stage.choices,
        default=Stage.ELIGIBLE,
        db_index=True,
    )
    certificate = models.OneToOneField(
        Certificate,
        on_delete=models.PROTECT,
        related_name="issuance",
        null=True,
        blank=True,
    )
    last_error = models.TextField(blank=True)
    attempts = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-updated_at", "-pk")
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"], name="unique_issuance_per_course"
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return f"Issuance<{self.certificate_number}:{self.stage}>"

    def advance(self, stage: str, *, error: str | None = None, certificate: Certificate | None = None) -> None:
        self.stage = stage
        update_fields = ["stage", "updated_at"]
        if error is not None:
            self.last_error = error
            update_fields.append("last_error")
        if certificate is not None:
            self.certificate = certificate
            update_fields.append("certificate")
        self.save(update_fields=update_fields)

    def can_retry(self, *, stale_before: datetime | None = None) -> bool:
        """Whether a new request may resume this issuance.

        Pre-mint checkpoints not touched since ``stale_before`` belong to a
        request that died without recording a failure.
        """

        if self.stage in self.RETRYABLE_STAGES:
            return True
        return (
            stale_before is not None
            and self.stage in self.PRE_MINT_STAGES
            and self.updated_at < stale_before
        )


class CertificateSequence(models.Model):
    """Per-year counter backing certificate number allocation."""

    year = models.PositiveIntegerField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return f"{self.year}: {self.last_value}"
