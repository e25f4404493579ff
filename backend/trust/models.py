# trust/models.py
"""
Trust accounts: segregated ledgers (security deposits, escrow, reserves)
that must reconcile to the bank.

TrustAccount.balance is a cached aggregate. It always equals the signed sum
of the account's transactions; only trust.ledger.post_entry changes it.

Transactions are append-only. A reconciled transaction cannot be edited or
deleted; mistakes are corrected with a compensating reversal entry.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from accounting.exceptions import BusinessRuleViolation
from properties.models import Lease, Property, Tenant


class TrustAccount(models.Model):
    class AccountType(models.TextChoices):
        SECURITY_DEPOSIT = "security_deposit", "Security deposit"
        ESCROW = "escrow", "Escrow"
        RESERVE = "reserve", "Reserve"

    property = models.ForeignKey(Property, on_delete=models.PROTECT, related_name="trust_accounts")
    account_name = models.CharField(max_length=200)
    account_number = models.CharField(max_length=50, blank=True, default="")
    bank_name = models.CharField(max_length=200, blank=True, default="")
    routing_number = models.CharField(max_length=20, blank=True, default="")
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    is_interest_bearing = models.BooleanField(default=False)
    interest_rate = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        null=True,
        blank=True,
        help_text="Annual rate in percent (1.5 = 1.5% per year).",
    )
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
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
        ordering = ["property", "account_name"]
        indexes = [
            models.Index(fields=["property", "is_active"], name="trust_acct_property_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(balance__gte=0), name="trust_account_balance_non_negative"),
            models.CheckConstraint(
                condition=(
                    Q(is_interest_bearing=True, interest_rate__gt=0)
                    | Q(is_interest_bearing=False, interest_rate__isnull=True)
                ),
                name="trust_account_interest_rate",
            ),
        ]

    def __str__(self):
        return f"{self.account_name} ({self.get_account_type_display()})"


class TrustAccountTransaction(models.Model):
    class TransactionType(models.TextChoices):
        DEPOSIT = "deposit", "Deposit"
        WITHDRAWAL = "withdrawal", "Withdrawal"
        INTEREST = "interest", "Interest"
        FEE = "fee", "Fee"

    CREDIT_TYPES = (TransactionType.DEPOSIT, TransactionType.INTEREST)
    DEBIT_TYPES = (TransactionType.WITHDRAWAL, TransactionType.FEE)

    REVERSAL_TYPES = {
        TransactionType.DEPOSIT: TransactionType.WITHDRAWAL,
        TransactionType.WITHDRAWAL: TransactionType.DEPOSIT,
        TransactionType.INTEREST: TransactionType.FEE,
        TransactionType.FEE: TransactionType.INTEREST,
    }

    trust_account = models.ForeignKey(TrustAccount, on_delete=models.PROTECT, related_name="transactions")
    transaction_type = models.CharField(max_length=20, choices=TransactionType.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    balance_after = models.DecimalField(max_digits=14, decimal_places=2)
    transaction_date = models.DateField()
    description = models.CharField(max_length=255, blank=True, default="")
    reference_number = models.CharField(max_length=100, blank=True, default="")
    payment_method = models.CharField(max_length=50, blank=True, default="")
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, null=True, blank=True, related_name="trust_transactions")
    lease = models.ForeignKey(Lease, on_delete=models.PROTECT, null=True, blank=True, related_name="trust_transactions")
    is_reconciled = models.BooleanField(default=False)
    reconciled_date = models.DateField(null=True, blank=True)
    reconciled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
    )
    idempotency_key = models.CharField(max_length=100, null=True, blank=True, unique=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["transaction_date", "id"]
        indexes = [
            models.Index(fields=["trust_account", "transaction_date"], name="trust_txn_account_date_idx"),
            models.Index(fields=["trust_account", "is_reconciled"], name="trust_txn_reconciled_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="trust_txn_amount_positive"),
        ]

    def __str__(self):
        return f"{self.transaction_type} {self.amount} on {self.transaction_date}"

    @property
    def signed_amount(self) -> Decimal:
        if self.transaction_type in self.DEBIT_TYPES:
            return -self.amount
        return self.amount

    def save(self, *args, **kwargs):
        if self.pk is not None:
            stored = type(self).objects.filter(pk=self.pk).values_list("is_reconciled", flat=True).first()
            if stored:
                raise BusinessRuleViolation(
                    "Reconciled transactions are immutable; post a reversal instead.",
                    {"transaction_id": self.pk},
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_reconciled:
            raise BusinessRuleViolation(
                "Reconciled transactions cannot be deleted.",
                {"transaction_id": self.pk},
            )
        return super().delete(*args, **kwargs)
