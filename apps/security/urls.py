"""URL configuration for the audit log API."""

from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from apps.security.views import AuditLogViewSet

router = DefaultRouter()
router.register("audit-logs", AuditLogViewSet, basename="audit-logs")

app_name = "security"

urlpatterns = [
    path("", include(router.urls)),
]
