"""Celery configuration for the co-parenting backend."""

import os

from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "django_project.settings")

app = Celery("coparent")

# Load configuration from Django settings, all celery configuration should
# have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all registered Django app configs
# (notifications.tasks holds the reminder dispatcher run by Beat).
app.autodiscover_tasks()
