"""
Django settings for the invoiceme project.

Every value can be overridden from the environment; defaults suit local
development and the test suite (SQLite when POSTGRES_DB is unset).
"""

import os
from datetime import timedelta
from pathlib import Path

from .logging import setup_logging

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "invoicing_core",
]

MIDDLEWARE = [
    "invoicing_core.middleware.CorrelationIdMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ---------------------------------------
# Database
# ---------------------------------------
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.environ.get("TIME_ZONE", "UTC")

# ---------------------------------------
# Invoicing
# ---------------------------------------
# How long a stored result answers retries of the same idempotency key
INVOICING_IDEMPOTENCY_TTL_HOURS = int(os.environ.get("INVOICING_IDEMPOTENCY_TTL_HOURS", "24"))
# lock_timeout / statement_timeout for record_payment (PostgreSQL only)
INVOICING_PAYMENT_TIMEOUT_MS = int(os.environ.get("INVOICING_PAYMENT_TIMEOUT_MS", "5000"))

# ---------------------------------------
# Celery (read by invoiceme/celery.py, CELERY_ prefix)
# ---------------------------------------
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "purge-expired-idempotency-records": {
        "task": "invoicing_core.tasks.purge_expired_idempotency_records",
        "schedule": timedelta(hours=1),
    },
}

# ---------------------------------------
# Logging (structlog on top of stdlib handlers)
# ---------------------------------------
LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        # structlog has already rendered the line
        "plain": {"format": "%(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
}

setup_logging(LOG_FORMAT)
