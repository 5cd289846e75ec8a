import json
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from apps.certificates.exceptions import CertificateMintError, CertificateTransferError, LedgerError
from apps.certificates.models import Certificate, CertificateIssuance
from apps.certificates.services.reconciliation import reconcile_minted_certificates
from apps.certificates.tasks import reconcile_minted_certificates_task
from apps.courses.models import CourseProgress
from apps.security.models import AuditLog

pytestmark = pytest.mark.django_db


@pytest.fixture
def stuck_certificate(issuer, ledger, completed_enrollment):
    ledger.associated.clear()
    user, course = completed_enrollment
    certificate = issuer.issue(user, course).certificate
    assert certificate.status == Certificate.Status.MINTED
    return certificate


def test_sweep_delivers_once_recipient_associates(ledger, mirror, stuck_certificate):
    ledger.associated.add("0.0.7007")

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.checked == 1
    assert summary.transferred == 1
    stuck_certificate.refresh_from_db()
    assert stuck_certificate.status == Certificate.Status.TRANSFERRED
    assert stuck_certificate.transfer_transaction_id == ledger.transfers[-1]["transaction_id"]
    issuance = CertificateIssuance.objects.get(certificate=stuck_certificate)
    assert issuance.stage == CertificateIssuance.Stage.TRANSFERRED
    log = AuditLog.objects.get(action_code=AuditLog.ActionCode.CERTIFICATE_RECONCILED)
    assert log.context["source"] == "transfer"


def test_sweep_leaves_unassociated_recipient_pending(ledger, mirror, stuck_certificate):
    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.awaiting_association == 1
    assert summary.transferred == 0
    stuck_certificate.refresh_from_db()
    assert stuck_certificate.status == Certificate.Status.MINTED


def test_sweep_records_delivery_seen_on_indexer(ledger, mirror, stuck_certificate):
    # The transfer succeeded on the ledger but was never recorded locally.
    ledger.associated.add("0.0.7007")
    transaction_id = ledger.transfer_nft(
        stuck_certificate.collection_id,
        stuck_certificate.serial_number,
        "0.0.7007",
    )
    transfers_before = len(ledger.transfers)

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.already_delivered == 1
    assert len(ledger.transfers) == transfers_before
    stuck_certificate.refresh_from_db()
    assert stuck_certificate.transfer_transaction_id == transaction_id
    log = AuditLog.objects.get(action_code=AuditLog.ActionCode.CERTIFICATE_RECONCILED)
    assert log.context["source"] == "indexer"


def test_sweep_does_not_move_unit_held_elsewhere(ledger, mirror, stuck_certificate):
    ledger.associated.add("0.0.7007")
    ledger.nfts[(stuck_certificate.collection_id, stuck_certificate.serial_number)][
        "account_id"
    ] = "0.0.666"

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.failed == 1
    assert ledger.transfers == []


def test_sweep_counts_transfer_errors(ledger, mirror, stuck_certificate):
    ledger.transfer_error = LedgerError("BUSY")

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.failed == 1
    stuck_certificate.refresh_from_db()
    assert stuck_certificate.status == Certificate.Status.MINTED


def test_sweep_skips_certificate_still_being_transferred(ledger, mirror, stuck_certificate):
    # A fresh mint whose issuing request has not reached the transfer outcome yet.
    CertificateIssuance.objects.filter(certificate=stuck_certificate).update(
        stage=CertificateIssuance.Stage.MINTED, last_error=""
    )
    ledger.associated.add("0.0.7007")

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.checked == 0
    assert ledger.transfers == []
    stuck_certificate.refresh_from_db()
    assert stuck_certificate.status == Certificate.Status.MINTED


def test_sweep_picks_up_mint_older_than_grace(ledger, mirror, stuck_certificate):
    CertificateIssuance.objects.filter(certificate=stuck_certificate).update(
        stage=CertificateIssuance.Stage.MINTED, last_error=""
    )
    Certificate.objects.update(minted_at=timezone.now() - timedelta(hours=1))
    ledger.associated.add("0.0.7007")

    summary = reconcile_minted_certificates(
        ledger=ledger, mirror=mirror, grace=timedelta(minutes=5)
    )

    assert summary.transferred == 1


def test_sweep_retries_recorded_transfer_failure(ledger, mirror, issuer, completed_enrollment):
    ledger.transfer_error = LedgerError("BUSY", status="BUSY")
    user, course = completed_enrollment
    with pytest.raises(CertificateTransferError):
        issuer.issue(user, course)
    ledger.transfer_error = None

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    assert summary.transferred == 1
    assert Certificate.objects.get().status == Certificate.Status.TRANSFERRED


def test_sweep_reports_unresolved_mints(ledger, mirror, issuer, completed_enrollment):
    ledger.mint_error = LedgerError("receipt timeout")
    user, course = completed_enrollment
    with pytest.raises(CertificateMintError):
        issuer.issue(user, course)

    summary = reconcile_minted_certificates(ledger=ledger, mirror=mirror)

    number = CertificateIssuance.objects.get().certificate_number
    assert summary.checked == 0
    assert summary.stuck_minting == [number]
    assert ledger.nfts == {}


def test_sweep_respects_limit(ledger, mirror, issuer, user_factory, course_factory):
    ledger.associated.clear()
    course = course_factory()
    for name in ("ada", "grace"):
        user = user_factory(username=name)
        CourseProgress.objects.create(user=user, course=course, progress_percentage=100)
        issuer.issue(user, course)

    summary = reconcile_minted_certificates(limit=1, ledger=ledger, mirror=mirror)

    assert summary.checked == 1


def test_task_returns_summary(mocker, ledger, mirror, stuck_certificate):
    mocker.patch(
        "apps.certificates.services.reconciliation.build_ledger_gateway", return_value=ledger
    )
    mocker.patch(
        "apps.certificates.services.reconciliation.MirrorNodeClient", return_value=mirror
    )
    ledger.associated.add("0.0.7007")

    result = reconcile_minted_certificates_task.delay(limit=10).get()

    assert result["checked"] == 1
    assert result["transferred"] == 1


def test_command_prints_json_summary(mocker, ledger, mirror, stuck_certificate):
    mocker.patch(
        "apps.certificates.services.reconciliation.build_ledger_gateway", return_value=ledger
    )
    mocker.patch(
        "apps.certificates.services.reconciliation.MirrorNodeClient", return_value=mirror
    )
    out = StringIO()

    call_command("reconcile_certificates", "--json", stdout=out)

    assert json.loads(out.getvalue())["awaiting_association"] == 1


def test_command_rejects_non_positive_limit():
    with pytest.raises(CommandError):
        call_command("reconcile_certificates", "--limit", "0")
