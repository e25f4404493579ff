# expenses/models.py
"""
Expense tracking.

ExpenseCategory is an adjacency list (parent FK) scoped to a company.
Expense status flow:
    pending -> paid
    pending -> cancelled
    pending -> disputed -> paid
"""

import builtins
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from accounts.models import Company
from properties.models import Property, Unit, Vendor


class ExpenseCategory(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="expense_categories")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )
    is_tax_deductible = models.BooleanField(default=True)
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
        verbose_name_plural = "expense categories"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "parent", "name"], name="uniq_expense_category_name"),
        ]

    def __str__(self):
        return self.name


class ReceiptImage(models.Model):
    class OcrStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSED = "processed", "Processed"
        FAILED = "failed", "Failed"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="receipt_images")
    file = models.FileField(upload_to="receipts/%Y/%m/")
    original_filename = models.CharField(max_length=255)
    content_type = models.CharField(max_length=100, blank=True, default="")
    file_size = models.PositiveIntegerField(default=0)
    ocr_status = models.CharField(max_length=20, choices=OcrStatus.choices, default=OcrStatus.PENDING)
    ocr_text = models.TextField(blank=True, default="")
    extracted_data = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True, default="")
    processed_at = models.DateTimeField(null=True, blank=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.original_filename


class Expense(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        CANCELLED = "cancelled", "Cancelled"
        DISPUTED = "disputed", "Disputed"

    class RecurringFrequency(models.TextChoices):
        MONTHLY = "monthly", "Monthly"
        QUARTERLY = "quarterly", "Quarterly"
        ANNUAL = "annual", "Annual"

    property = models.ForeignKey(Property, on_delete=models.PROTECT, related_name="expenses")
    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, null=True, blank=True, related_name="expenses")
    category = models.ForeignKey(ExpenseCategory, on_delete=models.PROTECT, related_name="expenses")
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, null=True, blank=True, related_name="expenses")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    transaction_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    description = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=50, blank=True, default="")
    reference_number = models.CharField(max_length=100, blank=True, default="")
    receipt = models.ForeignKey(ReceiptImage, on_delete=models.SET_NULL, null=True, blank=True, related_name="expenses")
    is_recurring = models.BooleanField(default=False)
    recurring_frequency = models.CharField(max_length=20, choices=RecurringFrequency.choices, blank=True, default="")
    recurring_source = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="occurrences",
        help_text="The recurring expense this row was generated from.",
    )
    notes = models.TextField(blank=True, default="")
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
        ordering = ["-transaction_date", "-id"]
        indexes = [
            models.Index(fields=["property", "transaction_date"], name="expense_property_date_idx"),
            models.Index(fields=["status"], name="expense_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="expense_amount_positive"),
            models.CheckConstraint(condition=Q(tax_amount__gte=0), name="expense_tax_non_negative"),
            models.CheckConstraint(
                condition=~Q(status="paid") | (Q(payment_date__isnull=False) & ~Q(payment_method="")),
                name="expense_paid_has_payment_data",
            ),
            models.CheckConstraint(
                condition=Q(is_recurring=False) | ~Q(recurring_frequency=""),
                name="expense_recurring_has_frequency",
            ),
            models.UniqueConstraint(
                fields=["recurring_source", "transaction_date"],
                name="uniq_expense_occurrence",
            ),
        ]

    def __str__(self):
        return f"{self.description or self.category} {self.amount} ({self.status})"

    @builtins.property  # `property` is shadowed by the FK above
    def total_amount(self) -> Decimal:
        return self.amount + self.tax_amount
