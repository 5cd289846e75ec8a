"""DRF views for minting, verifying and displaying certificates."""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.certificates.exceptions import (
    CertificateConfigurationError,
    CertificateIssuanceError,
    CertificateMintError,
    CertificateTransferError,
    CertificateUploadError,
)
from apps.certificates.models import Certificate
from apps.certificates.serializers import (
    CertificateSerializer,
    MintRequestSerializer,
    VerifyRequestSerializer,
)
from apps.certificates.services import (
    IssuanceDenial,
    build_certificate_issuer,
    build_certificate_verifier,
)
from apps.courses.eligibility import check_certificate_eligibility
from apps.courses.models import Course, LearnerProfile

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (CertificateConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CertificateUploadError, status.HTTP_502_BAD_GATEWAY),
    (CertificateMintError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (CertificateTransferError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _status_for(exc: CertificateIssuanceError) -> int:
    for exc_type, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class CertificateMintView(APIView):
    """Issue the certificate for a completed course."""

    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "certificate_mint"

    def post(self, request, *args, **kwargs):  # type: ignore[override]
        serializer = MintRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = request.user
        if data.get("user_id") and data["user_id"] != request.user.pk:
            if not request.user.is_staff:
                return Response(
                    {"error": "Only staff may issue certificates for other learners."},
                    status=status.HTTP_403_FORBIDDEN,
                )
            user = get_object_or_404(get_user_model(), pk=data["user_id"])
        course = get_object_or_404(Course, pk=data["course_id"])

        try:
            issuer = build_certificate_issuer()
            outcome = issuer.issue(user, course, request=request)
        except LearnerProfile.DoesNotExist:
            return Response(
                {"error": "Learner profile not found."}, status=status.HTTP_404_NOT_FOUND
            )
        except CertificateIssuanceError as exc:
            code = _status_for(exc)
            if code >= 500 and code != status.HTTP_503_SERVICE_UNAVAILABLE:
                logger.exception("Certificate issuance failed for course %s", course.pk)
            else:
                logger.warning("Certificate issuance failed for course %s: %s", course.pk, exc)
            return Response(
                {
                    "error": str(exc),
                    "stage": exc.stage or None,
                    "certificate_number": exc.certificate_number,
                },
                status=code,
            )

        if isinstance(outcome, IssuanceDenial):
            return Response(
                {
                    "error": outcome.reason,
                    "details": {
                        "completion_percentage": outcome.completion_percentage,
                        "already_claimed": outcome.already_claimed,
                    },
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        payload = {"certificate": CertificateSerializer(outcome.certificate).data}
        if outcome.association is not None:
            payload["association_required"] = {
                "token_id": outcome.association.token_id,
                "account_id": outcome.association.account_id,
                "message": outcome.association.message,
            }
            return Response(payload, status=status.HTTP_202_ACCEPTED)
        return Response(payload, status=status.HTTP_201_CREATED)


class CertificateListView(APIView):
    """Certificates delivered to the requesting learner, newest first."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):  # type: ignore[override]
        certificates = Certificate.objects.for_user(request.user).delivered()
        return Response({"results": CertificateSerializer(certificates, many=True).data})


class CertificateEligibilityView(APIView):
    """Tell the learner whether a certificate can be claimed for a course."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, course_id: int, *args, **kwargs):  # type: ignore[override]
        course = get_object_or_404(Course, pk=course_id)
        eligibility = check_certificate_eligibility(request.user, course)
        return Response(
            {
                "course_id": course.pk,
                "eligible": eligibility.eligible,
                "reason": eligibility.reason,
                "completion_percentage": eligibility.completion_percentage,
                "already_claimed": eligibility.already_claimed,
            }
        )


class CertificateVerifyView(APIView):
    """Public verification by certificate number or collection and serial."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []
    throttle_scope = "certificate_verify"

    def get(self, request, certificate_number: str | None = None, *args, **kwargs):  # type: ignore[override]
        # Verification links printed on certificates use ``?cert=<number>``.
        certificate_number = certificate_number or request.query_params.get("cert")
        if not certificate_number:
            return Response(
                {"errors": ["A certificate number is required."]},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return self._verify(request, {"certificate_number": certificate_number})

    def post(self, request, *args, **kwargs):  # type: ignore[override]
        serializer = VerifyRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        return self._verify(request, serializer.validated_data)

    def _verify(self, request, lookup):
        verifier = build_certificate_verifier()
        try:
            report = verifier.verify(
                lookup.get("certificate_number"),
                collection_id=lookup.get("collection_id"),
                serial_number=lookup.get("serial_number"),
                request=request,
            )
        except ValueError as exc:
            return Response({"errors": [str(exc)]}, status=status.HTTP_400_BAD_REQUEST)

        code = status.HTTP_200_OK if report.record_found else status.HTTP_404_NOT_FOUND
        return Response(report.as_dict(), status=code)


class CertificateImageView(APIView):
    """Serve the cached SVG artwork of an issued certificate."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def get(self, request, certificate_number: str, *args, **kwargs):  # type: ignore[override]
        certificate = get_object_or_404(Certificate, certificate_number=certificate_number)
        response = HttpResponse(certificate.svg_content, content_type="image/svg+xml")
        response["Cache-Control"] = "public, max-age=86400"
        return response
