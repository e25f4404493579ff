"""
Celery application configuration.

This is the main Celery app for the PropLedger backend.
It runs the as-of-date accounting batches (payment generation, late fees,
trust interest, recurring expenses) when triggered by beat or by ops tooling.

Usage:
    # Start worker
    celery -A propledger_backend worker -l INFO

    # Start beat scheduler (daily accounting batch)
    celery -A propledger_backend beat -l INFO
"""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "propledger_backend.settings")

app = Celery("propledger_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
