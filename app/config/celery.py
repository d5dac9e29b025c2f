"""
Celery configuration for the Django application.

Workers run the periodic upload housekeeping:
- sweep_idle_upload_sessions: reclaims abandoned chunked upload sessions
- sweep_orphaned_upload_chunks: removes chunk artifacts with no session

Schedules live in the database (django_celery_beat.DatabaseScheduler) and
are created by a data migration in the videos app.

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
