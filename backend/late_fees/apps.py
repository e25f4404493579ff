# late_fees/apps.py
from django.apps import AppConfig


class LateFeesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "late_fees"
    verbose_name = "Late Fees"
