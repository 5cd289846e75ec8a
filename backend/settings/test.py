"""Settings used by the automated test suite."""

from __future__ import annotations

from .base import *  # noqa: F401,F403
from .base import REST_FRAMEWORK

DEBUG = False
SECRET_KEY = "test-secret-key"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {
        "certificate_mint": "1000/min",
        "certificate_verify": "1000/min",
    },
}

LEDGER_OPERATOR_ID = "0.0.1001"
LEDGER_OPERATOR_KEY = "302e020100300506032b657004220420" + "11" * 32
LEDGER_MIRROR_NODE_URL = "https://mirror.test"
LEDGER_EXPLORER_URL = "https://hashscan.io/testnet"
LEDGER_INDEXER_RETRY_ATTEMPTS = 3
LEDGER_INDEXER_RETRY_INITIAL_DELAY = 0

CERTIFICATE_COLLECTION_ID = "0.0.5005"
CERTIFICATE_HMAC_SECRET = "test-hmac-secret"
CERTIFICATE_VERIFY_BASE_URL = "https://learn.test"
CERTIFICATE_ISSUER_NAME = "Web3Versity"
CERTIFICATE_COMPLETION_THRESHOLD = 100

PINATA_API_KEY = "test-pinata-key"
PINATA_API_SECRET = "test-pinata-secret"
PINATA_API_URL = "https://pinata.test"
PINATA_GATEWAY_URL = "https://gateway.pinata.test/ipfs"

SECURITY_ALERT_EMAIL_RECIPIENTS = ()
SECURITY_ALERT_SLACK_WEBHOOK = ""

# Records propagate to the root logger so tests can capture them; the
# database handler is exercised directly where it is under test.
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {"class": "logging.StreamHandler"},
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}
