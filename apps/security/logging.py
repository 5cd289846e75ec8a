"""Logging handler that stores pipeline records as ``LogEntry`` rows.

Each row is tagged with the certificate number it concerns, taken from the
structured ``context`` or, failing that, from the rendered message, so that
operators can pull the whole history of one certificate from the admin.
Credentials passed in ``context`` by mistake are masked before storage.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from django.conf import settings
from django.contrib.auth import get_user_model

REDACTED = "[redacted]"
SENSITIVE_KEY_PARTS = ("secret", "password", "private_key", "operator_key", "api_key", "authorization")

# Record attributes set by the logging module itself; everything else was
# passed through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "context", "taskName"}


def certificate_number_pattern() -> re.Pattern[str]:
    prefix = getattr(settings, "CERTIFICATE_NUMBER_PREFIX", "W3V")
    return re.compile(rf"\b{re.escape(prefix)}-\d{{4}}-\d{{5,}}\b")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def _to_json(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return _clean_mapping(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json(item) for item in value]
    if hasattr(value, "certificate_number"):
        return value.certificate_number
    if hasattr(value, "pk"):
        return value.pk
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _clean_mapping(mapping: Dict[Any, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in mapping.items():
        key = str(key)
        cleaned[key] = REDACTED if _is_sensitive(key) else _to_json(value)
    return cleaned


class DatabaseLogHandler(logging.Handler):
    """Persist log records to the ``LogEntry`` table."""

    def emit(self, record: logging.LogRecord) -> None:
        from .models import LogEntry

        try:
            message = record.getMessage()
            context = self.build_context(record)
            LogEntry.objects.create(
                logger_name=record.name,
                level=record.levelname.upper(),
                message=message,
                certificate_number=self.certificate_number(message, context),
                user_id=self._user_id(record),
                context=context or None,
            )
        except Exception:  # pragma: no cover - logging must never raise
            self.handleError(record)

    def build_context(self, record: logging.LogRecord) -> Dict[str, Any]:
        context: Dict[str, Any] = {}
        provided = getattr(record, "context", None)
        if isinstance(provided, dict):
            context.update(_clean_mapping(provided))

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in {"user", "user_id"} and not key.startswith("_")
        }
        context.update(_clean_mapping(extras))

        if record.exc_info and record.exc_info[1] is not None:
            context["exception"] = repr(record.exc_info[1])
        return context

    def certificate_number(self, message: str, context: Dict[str, Any]) -> str:
        explicit = context.get("certificate_number")
        if isinstance(explicit, str) and explicit:
            return explicit
        match = certificate_number_pattern().search(message)
        return match.group(0) if match else ""

    def _user_id(self, record: logging.LogRecord) -> Optional[int]:
        user = getattr(record, "user", None)
        if user is not None and getattr(user, "pk", None):
            return user.pk
        user_id = getattr(record, "user_id", None)
        if not user_id:
            return None
        UserModel = get_user_model()
        return user_id if UserModel._default_manager.filter(pk=user_id).exists() else None


__all__ = ["DatabaseLogHandler", "certificate_number_pattern"]
