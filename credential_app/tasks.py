"""Celery application shared by the web process and the workers."""
from __future__ import annotations

from celery import Celery
from django.conf import settings

from credential_app import settings as credential_settings

celery_app = Celery("credential_app")
celery_app.config_from_object("django.conf:settings", namespace="CELERY")
celery_app.autodiscover_tasks(lambda: settings.INSTALLED_APPS)
celery_app.conf.update(
    task_default_queue=credential_settings.CELERY_TASK_DEFAULT_QUEUE,
)
celery_app.set_default()
