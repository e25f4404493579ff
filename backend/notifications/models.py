# notifications/models.py
from django.db import models

from accounts.models import Company


class Notification(models.Model):
    """Delivery log for every message sent to a renter."""

    class Channel(models.TextChoices):
        EMAIL = "email", "Email"

    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        SKIPPED = "skipped", "Skipped"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="notifications")
    tenant = models.ForeignKey(
        "properties.Tenant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    kind = models.CharField(max_length=50)
    channel = models.CharField(max_length=20, choices=Channel.choices, default=Channel.EMAIL)
    recipient = models.CharField(max_length=254, blank=True, default="")
    subject = models.CharField(max_length=255)
    body = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices)
    error = models.TextField(blank=True, default="")
    related_object_type = models.CharField(max_length=50, blank=True, default="")
    related_object_id = models.PositiveBigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "kind"], name="notification_company_kind_idx"),
        ]

    def __str__(self):
        return f"{self.kind} -> {self.recipient or '-'} ({self.status})"
