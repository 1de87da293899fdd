""" Workers are started with "celery -A gas_project worker -l info".
    -A gas_project imports gas_project/__init__.py, which exposes celery_app. """
from __future__ import annotations
import os
from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gas_project.settings")

celery_app = Celery("gas_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps (billing_core.tasks)
celery_app.autodiscover_tasks()
