"""Celery application bootstrap for this Django project.

Background work:
- pipelines: ingest queued webhook deliveries (PIPELINES_ASYNC_INGESTION)
- alerts: evaluate rules for completed builds (ALERTS_ASYNC_EVALUATION)

Run workers with something like:
- celery -A config worker -l info

Broker/result backend are configured via Django settings (see config/settings.py).
"""

from __future__ import annotations

import os

from celery import Celery

from config.env import load_env

load_env()

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("pipeline-health")

# CELERY_* settings from Django
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
