"""Celery application for background dispatch work (offer expiry sweep, matching)."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "foodshare_backend.settings.settings")

app = Celery("foodshare_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
