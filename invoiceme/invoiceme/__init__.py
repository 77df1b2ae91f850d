# Celery instance is defined in invoiceme/celery.py
# It creates celery_app object and points it to Django settings
# celery_app becomes the singleton task queue app for the whole project
from .celery import celery_app

# 'from invoiceme import *', only exports celery_app
__all__ = ("celery_app",)

""" When you run Celery workers, "celery -A invoiceme worker -B -l info"
    The -A invoiceme means:
    Import invoiceme/__init__.py →
    which exposes celery_app →  now Celery knows what to run.
    -B also runs beat, which schedules the idempotency purge. """
