# late_fees/models.py
"""
Late fee rules and the fees they produce.

LateFee status flow:
    pending -> paid
    pending -> waived
paid and waived are terminal.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q

from properties.models import Property
from rent.models import Payment


class LateFeeConfiguration(models.Model):
    """Per-property fee rule. At most one active configuration per property."""

    class FeeType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage of amount due"
        FIXED = "fixed", "Fixed amount"

    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name="late_fee_configurations")
    fee_type = models.CharField(max_length=20, choices=FeeType.choices)
    fee_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Percentage (5 = 5%) or fixed amount, depending on fee_type.",
    )
    grace_period_days = models.PositiveIntegerField(default=5)
    maximum_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_compounding = models.BooleanField(
        default=False,
        help_text="Allow a new fee on every evaluation pass instead of one per payment.",
    )
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["property", "-created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(fee_amount__gt=0), name="late_fee_config_amount_positive"),
            models.CheckConstraint(
                condition=Q(maximum_fee__isnull=True) | Q(maximum_fee__gt=0),
                name="late_fee_config_max_positive",
            ),
            models.UniqueConstraint(
                fields=["property"],
                condition=Q(is_active=True),
                name="uniq_active_late_fee_config",
            ),
        ]

    def __str__(self):
        return f"{self.property}: {self.fee_type} {self.fee_amount}"


class LateFee(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        WAIVED = "waived", "Waived"

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="late_fees")
    configuration = models.ForeignKey(
        LateFeeConfiguration,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="late_fees",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    days_late = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    applied_date = models.DateField()
    paid_date = models.DateField(null=True, blank=True)
    waived_reason = models.TextField(blank=True, default="")
    waived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    waived_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-applied_date", "-id"]
        indexes = [
            models.Index(fields=["payment", "status"], name="late_fee_payment_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="late_fee_amount_positive"),
        ]

    def __str__(self):
        return f"Late fee {self.amount} on payment {self.payment_id} ({self.status})"
