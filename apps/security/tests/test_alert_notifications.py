"""Tests for alerting on critical audit events."""

from __future__ import annotations

from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.db.models.signals import post_save
from django.test import TestCase, override_settings

from apps.security import signals as security_signals
from apps.security.models import AuditLog
from apps.security.tasks import send_audit_log_alert
from utils.alert_notifier import AlertMessage, send_security_alert


class AlertSignalTests(TestCase):
    """Ensure critical audit log entries trigger alerts."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="alice",
            email="alice@example.com",
            password="password123",
        )

    @patch("apps.security.signals.send_audit_log_alert.delay")
    def test_issue_failure_triggers_alert_by_default(self, mock_delay):
        log = AuditLog.objects.create(
            user=self.user,
            action_code=AuditLog.ActionCode.CERTIFICATE_ISSUE_FAILED,
            target="W3V-2026-00001",
            context={"stage": "minting"},
        )

        mock_delay.assert_called_once_with(log.pk)

    @patch("apps.security.signals.send_audit_log_alert.delay")
    def test_critical_severity_context_triggers_alert(self, mock_delay):
        log = AuditLog.objects.create(
            action_code=AuditLog.ActionCode.CERTIFICATE_VERIFIED,
            context={"severity": "critical"},
        )

        mock_delay.assert_called_once_with(log.pk)

    @override_settings(SECURITY_ALERT_CRITICAL_ACTIONS={"certificate_transfer_pending"})
    @patch("apps.security.signals.send_audit_log_alert.delay")
    def test_critical_actions_are_configurable(self, mock_delay):
        AuditLog.objects.create(
            action_code=AuditLog.ActionCode.CERTIFICATE_ISSUE_FAILED,
            context={},
        )
        log = AuditLog.objects.create(
            action_code=AuditLog.ActionCode.CERTIFICATE_TRANSFER_PENDING,
            context={},
        )

        mock_delay.assert_called_once_with(log.pk)

    @patch("apps.security.signals.send_audit_log_alert.delay")
    def test_routine_events_do_not_trigger_alert(self, mock_delay):
        AuditLog.objects.create(
            user=self.user,
            action_code=AuditLog.ActionCode.CERTIFICATE_TRANSFERRED,
            context={"severity": "info"},
        )

        mock_delay.assert_not_called()


class AlertNotifierTests(TestCase):
    """Validate alert notification delivery helpers."""

    @override_settings(
        EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
        SECURITY_ALERT_EMAIL_RECIPIENTS=("ops@example.com",),
        SECURITY_ALERT_EMAIL_SENDER="alerts@example.com",
        SECURITY_ALERT_EMAIL_SUBJECT_PREFIX="Monitoring",
        SECURITY_ALERT_SLACK_WEBHOOK="https://hooks.slack.com/services/test",
    )
    @patch("utils.alert_notifier.requests.post")
    def test_send_security_alert_dispatches_to_channels(self, mock_post):
        alert = AlertMessage(
            title="Certificate mint failed",
            body="Minting W3V-2026-00004 failed at the ledger.",
            severity="critical",
            metadata={"target": "W3V-2026-00004", "stage": "minting"},
        )

        send_security_alert(alert)

        mock_post.assert_called_once()
        self.assertEqual(
            mock_post.call_args.args[0], "https://hooks.slack.com/services/test"
        )
        self.assertEqual(
            mock_post.call_args.kwargs["json"]["text"],
            "[CRITICAL] Certificate mint failed",
        )
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertIn("[Monitoring][CRITICAL]", message.subject)
        self.assertIn("Details:", message.body)
        self.assertIn("stage: minting", message.body)
        self.assertIn("target: W3V-2026-00004", message.body)


class AuditLogTaskTests(TestCase):
    """Ensure Celery tasks build detailed alert messages."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="bob",
            email="bob@example.com",
            password="password123",
        )

    @patch("apps.security.tasks.send_security_alert")
    def test_send_audit_log_alert_includes_metadata(self, mock_send_alert):
        post_save.disconnect(security_signals.trigger_critical_alert, sender=AuditLog)
        self.addCleanup(
            post_save.connect,
            security_signals.trigger_critical_alert,
            sender=AuditLog,
        )

        log = AuditLog.objects.create(
            user=self.user,
            action_code=AuditLog.ActionCode.CERTIFICATE_ISSUE_FAILED,
            target="W3V-2026-00009",
            endpoint="/api/certificates/mint/",
            client_ip="127.0.0.1",
            context={"stage": "minting", "error": "BUSY"},
        )

        send_audit_log_alert.run(log.pk)

        mock_send_alert.assert_called_once()
        alert = mock_send_alert.call_args[0][0]
        self.assertIsInstance(alert, AlertMessage)
        self.assertIn("Critical certificate event", alert.title)
        self.assertEqual(alert.metadata["action"], "Certificate issuance failed")
        self.assertEqual(alert.metadata["client_ip"], "127.0.0.1")
        self.assertEqual(alert.metadata["target"], "W3V-2026-00009")
        self.assertEqual(alert.metadata["stage"], "minting")
        self.assertEqual(alert.severity, "critical")
