"""Helper functions for recording audit trail events."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional

from django.contrib.auth.models import AbstractBaseUser
from django.http import HttpRequest
from django.utils.encoding import force_str
from django.utils.functional import Promise

from .models import AuditLog

_USER_AGENT_MAX_LENGTH = 512


def _serialise_value(value: Any) -> Any:
    if isinstance(value, Promise):
        return force_str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _serialise_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialise_value(item) for item in value]
    return value


def _serialise_context(context: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not context:
        return {}
    return {key: _serialise_value(value) for key, value in context.items()}


def _derive_client_ip(request: Optional[HttpRequest]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def _resolve_user(user: Optional[AbstractBaseUser], request: Optional[HttpRequest]):
    if user is not None:
        return user
    if request is not None:
        candidate = getattr(request, "user", None)
        if getattr(candidate, "is_authenticated", False):
            return candidate
    return None


def _resolve_role(
    *, user: Optional[AbstractBaseUser], request: Optional[HttpRequest], resolved_role: Optional[str]
) -> str:
    if resolved_role:
        return resolved_role
    if user is not None and getattr(user, "is_authenticated", False):
        if getattr(user, "is_staff", False):
            return "staff"
        return "learner"
    if request is None:
        return "system"
    return "anonymous"


def log_audit_event(
    *,
    action_code: str,
    request: Optional[HttpRequest] = None,
    user: Optional[AbstractBaseUser] = None,
    target: str = "",
    context: Optional[Mapping[str, Any]] = None,
    endpoint: Optional[str] = None,
    client_ip: Optional[str] = None,
    resolved_role: Optional[str] = None,
) -> AuditLog:
    """Persist an audit log entry with normalised metadata."""

    resolved_user = _resolve_user(user, request)
    role = _resolve_role(user=resolved_user, request=request, resolved_role=resolved_role)
    ip_address = client_ip or _derive_client_ip(request)
    endpoint_value = endpoint or (request.get_full_path() if request else "")
    user_agent = request.META.get("HTTP_USER_AGENT", "") if request else ""

    return AuditLog.objects.create(
        user=resolved_user if getattr(resolved_user, "is_authenticated", False) else None,
        resolved_role=role,
        action_code=action_code,
        target=target[:255],
        endpoint=endpoint_value[:255],
        client_ip=ip_address,
        user_agent=user_agent[:_USER_AGENT_MAX_LENGTH],
        context=_serialise_context(context),
    )


__all__ = ["log_audit_event"]
