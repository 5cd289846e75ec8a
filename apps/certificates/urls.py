from django.urls import path

from . import views


app_name = "certificates"


urlpatterns = [
    path("", views.CertificateListView.as_view(), name="list"),
    path(
        "eligibility/<int:course_id>/",
        views.CertificateEligibilityView.as_view(),
        name="eligibility",
    ),
    path("mint/", views.CertificateMintView.as_view(), name="mint"),
    path("verify/", views.CertificateVerifyView.as_view(), name="verify"),
    path(
        "verify/<str:certificate_number>/",
        views.CertificateVerifyView.as_view(),
        name="verify-number",
    ),
    path(
        "<str:certificate_number>/image.svg",
        views.CertificateImageView.as_view(),
        name="image",
    ),
]
