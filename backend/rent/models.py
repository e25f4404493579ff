# rent/models.py
"""
Rent tracking models.

RecurringPayment is the schedule (rent, fees, utilities) attached to a lease.
Payment is one billing period of that schedule. PaymentReceipt is every
amount actually received against a Payment; Payment.amount_paid is their sum.

Payment status flow:
    pending -> partial -> paid
    pending -> paid
    pending -> waived
paid and waived are terminal.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from properties.models import Lease


class RecurringPayment(models.Model):
    class PaymentType(models.TextChoices):
        RENT = "rent", "Rent"
        FEE = "fee", "Fee"
        UTILITY = "utility", "Utility"
        OTHER = "other", "Other"

    class Frequency(models.TextChoices):
        MONTHLY = "monthly", "Monthly"
        QUARTERLY = "quarterly", "Quarterly"
        ANNUAL = "annual", "Annual"

    lease = models.ForeignKey(Lease, on_delete=models.CASCADE, related_name="recurring_payments")
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices, default=PaymentType.RENT)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    frequency = models.CharField(max_length=20, choices=Frequency.choices, default=Frequency.MONTHLY)
    due_day = models.PositiveSmallIntegerField(default=1)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    description = models.CharField(max_length=255, blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["lease", "start_date"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="recurring_payment_amount_positive"),
            models.CheckConstraint(condition=Q(due_day__gte=1) & Q(due_day__lte=31), name="recurring_payment_due_day_range"),
        ]

    def __str__(self):
        return f"{self.get_payment_type_display()} {self.amount} {self.frequency} ({self.lease})"


class Payment(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PARTIAL = "partial", "Partially paid"
        PAID = "paid", "Paid"
        WAIVED = "waived", "Waived"

    OPEN_STATUSES = (Status.PENDING, Status.PARTIAL)

    recurring_payment = models.ForeignKey(
        RecurringPayment,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    due_date = models.DateField()
    payment_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_method = models.CharField(max_length=50, blank=True, default="")
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_date", "id"]
        indexes = [
            models.Index(fields=["status", "due_date"], name="payment_status_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["recurring_payment", "due_date"], name="uniq_payment_per_period"),
            models.CheckConstraint(condition=Q(amount__gt=0), name="payment_amount_positive"),
            models.CheckConstraint(
                condition=Q(amount_paid__gte=0) & Q(amount_paid__lte=F("amount")),
                name="payment_amount_paid_range",
            ),
        ]

    def __str__(self):
        return f"Payment {self.pk} due {self.due_date} ({self.status})"

    @property
    def outstanding(self) -> Decimal:
        if self.status == self.Status.WAIVED:
            return Decimal("0.00")
        return self.amount - self.amount_paid

    @property
    def lease(self):
        return self.recurring_payment.lease

    def days_overdue(self, as_of) -> int:
        if self.status not in self.OPEN_STATUSES or as_of <= self.due_date:
            return 0
        return (as_of - self.due_date).days


class PaymentReceipt(models.Model):
    """A single amount received against a Payment."""

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="receipts")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=50)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    idempotency_key = models.CharField(max_length=100, null=True, blank=True, unique=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["payment_date", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payment_receipt_amount_positive"),
        ]

    def __str__(self):
        return f"{self.amount} on {self.payment_date}"
