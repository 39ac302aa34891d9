"""
Celery application for background inbox processing.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.local")

app = Celery("loyalty_ledger")

# All CELERY_* settings are read from the Django settings module.
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
