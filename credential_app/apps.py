from __future__ import annotations

from django.apps import AppConfig


class CredentialAppConfig(AppConfig):
    name = "credential_app"
    verbose_name = "Credential workers"

    def ready(self) -> None:  # pragma: no cover - import side effects only
        # Bind shared tasks to the project Celery app when Django starts.
        from . import tasks  # noqa: F401

        return None
