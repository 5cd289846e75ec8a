import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from apps.certificates.exceptions import CertificateConfigurationError, LedgerError
from apps.certificates.models import Certificate
from apps.certificates.services.verification import CertificateVerifier
from apps.courses.models import CourseProgress

pytestmark = pytest.mark.django_db


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture(autouse=True)
def wired_services(mocker, issuer, mirror, pinning):
    mocker.patch("apps.certificates.views.build_certificate_issuer", return_value=issuer)
    mocker.patch(
        "apps.certificates.views.build_certificate_verifier",
        return_value=CertificateVerifier(
            mirror, pinning, secret="test-hmac-secret", treasury_account_id="0.0.1001"
        ),
    )


def _mint(client, **data):
    return client.post(reverse("certificates:mint"), data, format="json")


def test_mint_requires_authentication(api_client, course_factory):
    course = course_factory()

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code in {401, 403}
    assert not Certificate.objects.exists()


def test_mint_returns_created_certificate(api_client, completed_enrollment):
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 201
    body = response.json()["certificate"]
    assert body["status"] == "transferred"
    assert body["course_id"] == course.pk
    assert body["explorer_url"].startswith("https://hashscan.io/testnet/token/0.0.5005/")


def test_mint_reports_association_required(api_client, ledger, completed_enrollment):
    ledger.associated.clear()
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 202
    payload = response.json()
    assert payload["certificate"]["status"] == "minted"
    assert payload["association_required"]["token_id"] == "0.0.5005"


def test_mint_denial_returns_details(api_client, user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    CourseProgress.objects.create(user=user, course=course, progress_percentage=40)
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 400
    assert response.json() == {
        "error": "Course not completed (must reach 100%)",
        "details": {"completion_percentage": 40, "already_claimed": False},
    }


def test_second_mint_is_denied_as_claimed(api_client, completed_enrollment):
    user, course = completed_enrollment
    api_client.force_authenticate(user)
    _mint(api_client, course_id=course.pk)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 400
    assert response.json()["details"]["already_claimed"] is True


def test_unknown_course_returns_not_found(api_client, user_factory):
    api_client.force_authenticate(user_factory())

    response = _mint(api_client, course_id=999)

    assert response.status_code == 404


def test_learner_cannot_mint_for_someone_else(api_client, user_factory, completed_enrollment):
    other, course = completed_enrollment
    api_client.force_authenticate(user_factory(username="mallory"))

    response = _mint(api_client, course_id=course.pk, user_id=other.pk)

    assert response.status_code == 403


def test_staff_can_mint_for_learner(api_client, user_factory, completed_enrollment):
    learner, course = completed_enrollment
    api_client.force_authenticate(user_factory(username="registrar", staff=True))

    response = _mint(api_client, course_id=course.pk, user_id=learner.pk)

    assert response.status_code == 201
    assert Certificate.objects.get().user == learner


def test_upload_failure_maps_to_bad_gateway(api_client, ledger, completed_enrollment):
    ledger.create_status = "FAIL_INVALID"
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 502
    assert response.json()["stage"] == "upload"
    assert response.json()["certificate_number"].startswith("W3V-")


def test_mint_failure_maps_to_server_error(api_client, ledger, completed_enrollment):
    ledger.mint_error = LedgerError("receipt timeout")
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 500
    assert response.json()["stage"] == "mint"


def test_missing_configuration_maps_to_unavailable(api_client, mocker, completed_enrollment):
    mocker.patch(
        "apps.certificates.views.build_certificate_issuer",
        side_effect=CertificateConfigurationError("CERTIFICATE_COLLECTION_ID is not configured."),
    )
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = _mint(api_client, course_id=course.pk)

    assert response.status_code == 503


def test_public_verification_by_number(api_client, issuer, completed_enrollment):
    user, course = completed_enrollment
    certificate = issuer.issue(user, course).certificate

    response = api_client.get(
        reverse("certificates:verify-number", args=[certificate.certificate_number])
    )

    assert response.status_code == 200
    assert response.json()["valid"] is True


def test_public_verification_by_token(api_client, issuer, completed_enrollment):
    user, course = completed_enrollment
    certificate = issuer.issue(user, course).certificate

    response = api_client.post(
        reverse("certificates:verify"),
        {"collection_id": certificate.collection_id, "serial_number": certificate.serial_number},
        format="json",
    )

    assert response.status_code == 200
    assert response.json()["certificate_number"] == certificate.certificate_number


def test_verification_of_unknown_number_is_not_found(api_client):
    response = api_client.post(
        reverse("certificates:verify"), {"certificate_number": "W3V-2026-00404"}, format="json"
    )

    assert response.status_code == 404
    assert response.json()["errors"] == ["Certificate not found"]


def test_verification_requires_one_lookup_form(api_client):
    response = api_client.post(
        reverse("certificates:verify"), {"collection_id": "0.0.5005"}, format="json"
    )

    assert response.status_code == 400


def test_image_endpoint_serves_svg(api_client, issuer, completed_enrollment):
    user, course = completed_enrollment
    certificate = issuer.issue(user, course).certificate

    response = api_client.get(reverse("certificates:image", args=[certificate.certificate_number]))

    assert response.status_code == 200
    assert response["Content-Type"] == "image/svg+xml"
    assert response.content.decode() == certificate.svg_content


def test_verification_link_query_parameter(api_client, issuer, completed_enrollment):
    user, course = completed_enrollment
    certificate = issuer.issue(user, course).certificate

    response = api_client.get(
        reverse("certificates:verify"), {"cert": certificate.certificate_number}
    )

    assert response.status_code == 200
    assert response.json()["certificate_number"] == certificate.certificate_number


def test_verification_link_without_number_is_rejected(api_client):
    response = api_client.get(reverse("certificates:verify"))

    assert response.status_code == 400


def test_list_returns_only_own_delivered_certificates(
    api_client, issuer, ledger, completed_enrollment, user_factory, course_factory
):
    user, course = completed_enrollment
    issuer.issue(user, course)
    other_course = course_factory(slug="smart-contracts", title="Smart Contracts")
    CourseProgress.objects.create(user=user, course=other_course, progress_percentage=100)
    ledger.associated.clear()
    issuer.issue(user, other_course)
    someone_else = user_factory(username="grace", account_id="0.0.8008")
    CourseProgress.objects.create(user=someone_else, course=course, progress_percentage=100)
    ledger.associated.add("0.0.8008")
    issuer.issue(someone_else, course)
    api_client.force_authenticate(user)

    response = api_client.get(reverse("certificates:list"))

    assert response.status_code == 200
    results = response.json()["results"]
    assert [item["course_id"] for item in results] == [course.pk]
    assert results[0]["status"] == "transferred"


def test_list_requires_authentication(api_client):
    response = api_client.get(reverse("certificates:list"))

    assert response.status_code in {401, 403}


def test_eligibility_for_completed_course(api_client, completed_enrollment):
    user, course = completed_enrollment
    api_client.force_authenticate(user)

    response = api_client.get(reverse("certificates:eligibility", args=[course.pk]))

    assert response.status_code == 200
    assert response.json() == {
        "course_id": course.pk,
        "eligible": True,
        "reason": None,
        "completion_percentage": 100,
        "already_claimed": False,
    }


def test_eligibility_after_claim(api_client, issuer, completed_enrollment):
    user, course = completed_enrollment
    issuer.issue(user, course)
    api_client.force_authenticate(user)

    response = api_client.get(reverse("certificates:eligibility", args=[course.pk]))

    body = response.json()
    assert body["eligible"] is False
    assert body["already_claimed"] is True


def test_eligibility_for_unfinished_course(api_client, user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    CourseProgress.objects.create(user=user, course=course, progress_percentage=40)
    api_client.force_authenticate(user)

    response = api_client.get(reverse("certificates:eligibility", args=[course.pk]))

    body = response.json()
    assert body["eligible"] is False
    assert body["completion_percentage"] == 40
    assert body["reason"] == "Course not completed (must reach 100%)"


def test_eligibility_for_unknown_course(api_client, user_factory):
    api_client.force_authenticate(user_factory())

    response = api_client.get(reverse("certificates:eligibility", args=[9999]))

    assert response.status_code == 404
