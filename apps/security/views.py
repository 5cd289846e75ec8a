"""DRF viewsets providing access to the certificate audit trail."""

from __future__ import annotations

from rest_framework import mixins, permissions, viewsets
from rest_framework.pagination import PageNumberPagination

from apps.security.models import AuditLog
from apps.security.serializers import AuditLogSerializer


class AuditLogPagination(PageNumberPagination):
    """Default pagination settings for audit log listings."""

    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 200


class AuditLogViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """Provide a paginated, read-only view of audit log entries.

    ``?action_code=`` and ``?target=`` narrow the listing, which lets operators
    follow a single certificate number through issuance and verification.
    """

    serializer_class = AuditLogSerializer
    permission_classes = [permissions.IsAuthenticated, permissions.IsAdminUser]
    pagination_class = AuditLogPagination

    def get_queryset(self):
        queryset = AuditLog.objects.select_related("user").all()
        action_code = self.request.query_params.get("action_code")
        if action_code:
            queryset = queryset.filter(action_code=action_code)
        target = self.request.query_params.get("target")
        if target:
            queryset = queryset.filter(target=target)
        return queryset
