# rent/apps.py
from django.apps import AppConfig


class RentConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "rent"
    verbose_name = "Rent Tracking"
