# accounting/apps.py
"""Accounting app: shared API plumbing, exports and the cross-cutting module."""

from django.apps import AppConfig


class AccountingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting"
