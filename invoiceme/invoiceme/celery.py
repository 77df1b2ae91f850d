import os

from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "invoiceme.settings")

# name should match your project package
celery_app = Celery("invoiceme")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps (invoicing_core.tasks)
celery_app.autodiscover_tasks()
