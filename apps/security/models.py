"""Models recording certificate audit trails and persisted log records."""

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
    """Record of credential events triggered by users, workers or the public."""

    class ActionCode(models.TextChoices):
        CERTIFICATE_ISSUED = "certificate_issued", "Issued certificate"
        CERTIFICATE_TRANSFERRED = "certificate_transferred", "Transferred certificate"
        CERTIFICATE_TRANSFER_PENDING = (
            "certificate_transfer_pending",
            "Certificate awaiting recipient association",
        )
        CERTIFICATE_ISSUE_FAILED = "certificate_issue_failed", "Certificate issuance failed"
        CERTIFICATE_VERIFIED = "certificate_verified", "Verified certificate"
        CERTIFICATE_RECONCILED = "certificate_reconciled", "Reconciled certificate"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="security_audit_logs",
        null=True,
        blank=True,
    )
    resolved_role = models.CharField(max_length=32, blank=True)
    action_code = models.CharField(max_length=64, choices=ActionCode.choices)
    target = models.CharField(max_length=255, blank=True)
    endpoint = models.CharField(max_length=255, blank=True)
    client_ip = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=512, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    context = models.JSONField(blank=True, default=dict)

    class Meta:
        ordering = ("-timestamp", "-id")

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        identifier = self.user or "anonymous"
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} - {identifier} - {self.action_code}"


class LogEntry(models.Model):
    """Persisted application log record for operator observability."""

    LEVEL_CHOICES = [
        ("DEBUG", "Debug"),
        ("INFO", "Info"),
        ("WARNING", "Warning"),
        ("ERROR", "Error"),
        ("CRITICAL", "Critical"),
    ]

    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    logger_name = models.CharField(max_length=255, db_index=True)
    level = models.CharField(max_length=16, choices=LEVEL_CHOICES)
    message = models.TextField()
    certificate_number = models.CharField(max_length=32, blank=True, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="log_entries",
    )
    context = models.JSONField(blank=True, null=True)

    class Meta:
        ordering = ("-timestamp", "-id")
        verbose_name_plural = "Log entries"

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return f"[{self.level}] {self.logger_name}: {self.message[:75]}"
