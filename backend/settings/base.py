"""Shared Django settings for the credential service."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Sequence

from django.core.exceptions import ImproperlyConfigured

import dj_database_url
import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration

from credential_app import settings as credential_celery_settings


BASE_DIR = Path(__file__).resolve().parent.parent.parent


def get_env_bool(name: str, default: bool = False) -> bool:
    """Return a boolean for an environment variable."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"true", "1", "yes"}


def get_env_int(name: str, default: int) -> int:
    """Return an integer for ``name`` or ``default`` if unset."""

    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ImproperlyConfigured(
            f"Environment variable {name} must be an integer."
        ) from exc


def get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ImproperlyConfigured(
            f"Environment variable {name} must be a number."
        ) from exc


def get_secret_key(debug: bool) -> str:
    """Fetch the Django secret key from the environment."""

    secret_key = os.getenv("DJANGO_SECRET_KEY") or os.getenv("SECRET_KEY")
    if secret_key:
        return secret_key
    if debug:
        # Predictable key for local development only.
        return "django-insecure-development-key"
    raise ImproperlyConfigured(
        "DJANGO_SECRET_KEY must be set in production environments."
    )


DEFAULT_ALLOWED_HOSTS = (
    "localhost",
    "127.0.0.1",
)

_SETTINGS_MODULE = os.getenv("DJANGO_SETTINGS_MODULE", "")
_DEFAULT_DEBUG_STATE = get_env_bool(
    "DJANGO_DEBUG", default=_SETTINGS_MODULE.endswith(".dev")
)


def _normalise_list(values: Iterable[str]) -> list[str]:
    """Return a list of unique, stripped values preserving order."""

    normalised: list[str] = []
    for value in values:
        candidate = value.strip()
        if not candidate or candidate in normalised:
            continue
        normalised.append(candidate)
    return normalised


def _split_env_set(name: str) -> set[str]:
    raw_value = os.getenv(name, "")
    return {item.strip() for item in raw_value.split(",") if item.strip()}


def build_allowed_hosts(*env_vars: str, default: Iterable[str] | None = None) -> list[str]:
    """Aggregate allowed hosts from the first populated environment variables."""

    hosts: list[str] = []
    for env_var in env_vars:
        hosts.extend(os.getenv(env_var, "").split(","))
    hosts = _normalise_list(hosts)
    if hosts:
        return hosts
    return list(default if default is not None else DEFAULT_ALLOWED_HOSTS)


def get_csrf_trusted_origins(env_var: str, default: Iterable[str] | None = None) -> list[str]:
    raw_value = os.getenv(env_var)
    if raw_value:
        return _normalise_list(raw_value.split(","))
    return list(default or ())


def build_database_config(
    primary_env_var: str,
    *,
    fallback_env_vars: Sequence[str] = (),
    default_url: str | None = None,
    test_env_vars: Sequence[str] = (),
    conn_max_age: int = 600,
) -> dict[str, object]:
    """Build a Django database configuration from connection URLs."""

    database_url = os.getenv(primary_env_var)
    for candidate in fallback_env_vars:
        if database_url:
            break
        database_url = os.getenv(candidate)
    database_url = database_url or default_url
    if not database_url:
        raise ImproperlyConfigured(
            f"{primary_env_var} must be set to a database connection string."
        )

    parsed = dj_database_url.parse(database_url, conn_max_age=conn_max_age)
    for candidate in test_env_vars:
        test_url = os.getenv(candidate)
        if test_url:
            test_config = dj_database_url.parse(test_url, conn_max_age=0)
            parsed["TEST"] = {
                key: test_config[key]
                for key in ("NAME", "USER", "PASSWORD", "HOST", "PORT")
                if key in test_config
            }
            break
    return parsed


def init_sentry() -> None:
    """Configure Sentry monitoring when a DSN is available."""

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return None

    environment = (
        os.getenv("SENTRY_ENVIRONMENT")
        or os.getenv("DJANGO_ENV")
        or ("development" if _DEFAULT_DEBUG_STATE else "production")
    )

    sentry_sdk.init(
        dsn=dsn,
        integrations=[DjangoIntegration(), CeleryIntegration()],
        environment=environment,
        send_default_pii=False,
        traces_sample_rate=get_env_float("SENTRY_TRACES_SAMPLE_RATE", 0.2),
    )
    sentry_sdk.set_tag("environment", environment)
    return None


ALLOWED_HOSTS = build_allowed_hosts("ALLOWED_HOSTS")
CSRF_TRUSTED_ORIGINS = get_csrf_trusted_origins("CSRF_TRUSTED_ORIGINS")
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = get_env_bool(
    "DJANGO_SECURE_SSL_REDIRECT", default=not _DEFAULT_DEBUG_STATE
)
SESSION_COOKIE_SECURE = get_env_bool(
    "DJANGO_SESSION_COOKIE_SECURE", default=not _DEFAULT_DEBUG_STATE
)
CSRF_COOKIE_SECURE = get_env_bool(
    "DJANGO_CSRF_COOKIE_SECURE", default=not _DEFAULT_DEBUG_STATE
)
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = get_env_int("DJANGO_SECURE_HSTS_SECONDS", default=0)
X_FRAME_OPTIONS = "DENY"


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'credential_app.apps.CredentialAppConfig',
    'apps.security.apps.SecurityConfig',
    'apps.courses.apps.CoursesConfig',
    'apps.certificates.apps.CertificatesConfig',
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_THROTTLE_CLASSES': [
        'rest_framework.throttling.ScopedRateThrottle',
    ],
    'DEFAULT_THROTTLE_RATES': {
        'certificate_mint': os.getenv('CERTIFICATE_MINT_RATE', '10/min'),
        'certificate_verify': os.getenv('CERTIFICATE_VERIFY_RATE', '60/min'),
    },
}

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'backend.urls'
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION = 'backend.asgi.application'
WSGI_APPLICATION = 'backend.wsgi.application'

DATABASES = {
    'default': build_database_config(
        'DATABASE_URL',
        default_url='sqlite:///db.sqlite3',
        test_env_vars=('TEST_DATABASE_URL',),
    )
}

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Ledger, storage and signing configuration for certificate issuance.
LEDGER_NETWORK = os.getenv("LEDGER_NETWORK", "testnet")
LEDGER_OPERATOR_ID = os.getenv("LEDGER_OPERATOR_ID", "")
LEDGER_OPERATOR_KEY = os.getenv("LEDGER_OPERATOR_KEY", "")
LEDGER_MIRROR_NODE_URL = os.getenv(
    "LEDGER_MIRROR_NODE_URL", f"https://{LEDGER_NETWORK}.mirrornode.hedera.com"
)
LEDGER_EXPLORER_URL = os.getenv(
    "LEDGER_EXPLORER_URL", f"https://hashscan.io/{LEDGER_NETWORK}"
)
LEDGER_HTTP_TIMEOUT = get_env_float("LEDGER_HTTP_TIMEOUT", 10.0)
LEDGER_INDEXER_RETRY_ATTEMPTS = get_env_int("LEDGER_INDEXER_RETRY_ATTEMPTS", 5)
LEDGER_INDEXER_RETRY_INITIAL_DELAY = get_env_float("LEDGER_INDEXER_RETRY_INITIAL_DELAY", 2.0)

CERTIFICATE_COLLECTION_ID = os.getenv("CERTIFICATE_COLLECTION_ID", "")
CERTIFICATE_HMAC_SECRET = os.getenv("CERTIFICATE_HMAC_SECRET", "")
CERTIFICATE_VERIFY_BASE_URL = os.getenv("CERTIFICATE_VERIFY_BASE_URL", "http://localhost:8000")
CERTIFICATE_ISSUER_NAME = os.getenv("CERTIFICATE_ISSUER_NAME", "Web3Versity")
CERTIFICATE_NUMBER_PREFIX = os.getenv("CERTIFICATE_NUMBER_PREFIX", "W3V")
CERTIFICATE_MAX_CHUNK_SIZE = get_env_int("CERTIFICATE_MAX_CHUNK_SIZE", 4096)
CERTIFICATE_ONCHAIN_METADATA_LIMIT = get_env_int("CERTIFICATE_ONCHAIN_METADATA_LIMIT", 100)
CERTIFICATE_COMPLETION_THRESHOLD = get_env_int("CERTIFICATE_COMPLETION_THRESHOLD", 100)
# An issuance left before minting for this long is treated as abandoned.
CERTIFICATE_STALE_ISSUANCE_SECONDS = get_env_int("CERTIFICATE_STALE_ISSUANCE_SECONDS", 600)
# Freshly minted certificates are left to the issuing request for this long.
CERTIFICATE_RECONCILE_GRACE_SECONDS = get_env_int("CERTIFICATE_RECONCILE_GRACE_SECONDS", 300)

PINATA_API_KEY = os.getenv("PINATA_API_KEY", "")
PINATA_API_SECRET = os.getenv("PINATA_API_SECRET", "")
PINATA_API_URL = os.getenv("PINATA_API_URL", "https://api.pinata.cloud")
PINATA_GATEWAY_URL = os.getenv("PINATA_GATEWAY_URL", "https://gateway.pinata.cloud/ipfs")


# Structured logging configuration persisting pipeline events.
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'database': {
            'level': 'INFO',
            'class': 'apps.security.logging.DatabaseLogHandler',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
        },
        'apps.certificates': {
            'handlers': ['console', 'database'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps.security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'credential_app': {
            'handlers': ['console', 'database'],
            'level': 'INFO',
            'propagate': False,
        },
        'utils': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
}


# Email configuration sourced from environment variables.
EMAIL_BACKEND = os.getenv(
    "EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend"
)
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = get_env_int("EMAIL_PORT", 587)
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = get_env_bool("EMAIL_USE_TLS", True)
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "no-reply@credentials.local")

SECURITY_ALERT_EMAIL_RECIPIENTS = tuple(
    sorted(_split_env_set("SECURITY_ALERT_EMAIL_RECIPIENTS"))
)
SECURITY_ALERT_EMAIL_SENDER = os.getenv(
    "SECURITY_ALERT_EMAIL_SENDER",
    DEFAULT_FROM_EMAIL,
)
SECURITY_ALERT_EMAIL_SUBJECT_PREFIX = os.getenv(
    "SECURITY_ALERT_EMAIL_SUBJECT_PREFIX",
    "Credentials",
)
SECURITY_ALERT_SLACK_WEBHOOK = os.getenv("SECURITY_ALERT_SLACK_WEBHOOK", "")
SECURITY_ALERT_CRITICAL_ACTIONS = _split_env_set("SECURITY_ALERT_CRITICAL_ACTIONS") or {
    "certificate_issue_failed",
}


# Celery configuration shared with the worker process.
CELERY_BROKER_URL = credential_celery_settings.CELERY_BROKER_URL
CELERY_RESULT_BACKEND = credential_celery_settings.CELERY_RESULT_BACKEND
CELERY_TASK_DEFAULT_QUEUE = credential_celery_settings.CELERY_TASK_DEFAULT_QUEUE
CELERY_TASK_ALWAYS_EAGER = credential_celery_settings.CELERY_TASK_ALWAYS_EAGER
CELERY_TASK_EAGER_PROPAGATES = credential_celery_settings.CELERY_TASK_EAGER_PROPAGATES
CELERY_TASK_ACKS_LATE = credential_celery_settings.CELERY_TASK_ACKS_LATE
CELERY_TASK_SOFT_TIME_LIMIT = credential_celery_settings.CELERY_TASK_SOFT_TIME_LIMIT
CELERY_TASK_TIME_LIMIT = credential_celery_settings.CELERY_TASK_TIME_LIMIT
CELERY_BEAT_SCHEDULE = credential_celery_settings.CELERY_BEAT_SCHEDULE


# Configure monitoring once settings are imported.
init_sentry()
