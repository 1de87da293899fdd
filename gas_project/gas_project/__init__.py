# Celery instance is defined in gas_project/celery.py
# celery_app is the task queue app for the whole project
from .celery import celery_app

__all__ = ("celery_app",)
