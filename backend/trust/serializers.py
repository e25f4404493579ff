# trust/serializers.py
from rest_framework import serializers

from accounting.exports import ExportFormat
from .models import TrustAccount, TrustAccountTransaction


class TrustAccountSerializer(serializers.ModelSerializer):
    property_name = serializers.CharField(source="property.name", read_only=True)

    class Meta:
        model = TrustAccount
        fields = (
            "id", "property", "property_name", "account_name", "account_number",
            "bank_name", "routing_number", "account_type", "is_interest_bearing",
            "interest_rate", "balance", "is_active", "created_at",
        )


class TrustAccountCreateSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    account_name = serializers.CharField(max_length=200)
    account_type = serializers.ChoiceField(choices=TrustAccount.AccountType.choices)
    is_interest_bearing = serializers.BooleanField(default=False)
    interest_rate = serializers.DecimalField(max_digits=7, decimal_places=4, required=False, allow_null=True)
    account_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    bank_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    routing_number = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")


class TrustAccountUpdateSerializer(serializers.Serializer):
    account_name = serializers.CharField(max_length=200, required=False)
    account_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    bank_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    routing_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    is_interest_bearing = serializers.BooleanField(required=False)
    interest_rate = serializers.DecimalField(max_digits=7, decimal_places=4, required=False, allow_null=True)


class TrustTransactionSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source="tenant.full_name", read_only=True, default=None)
    signed_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = TrustAccountTransaction
        fields = (
            "id", "trust_account", "transaction_type", "amount", "signed_amount",
            "balance_after", "transaction_date", "description", "reference_number",
            "payment_method", "tenant", "tenant_name", "lease", "is_reconciled",
            "reconciled_date", "reverses", "created_at",
        )


class LedgerEntrySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    transaction_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    tenant_id = serializers.IntegerField(required=False, allow_null=True)
    lease_id = serializers.IntegerField(required=False, allow_null=True)
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_null=True)


class FeeEntrySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    transaction_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_null=True)


class TransferSerializer(serializers.Serializer):
    source_account_id = serializers.IntegerField()
    target_account_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    transaction_date = serializers.DateField(required=False, allow_null=True)
    tenant_id = serializers.IntegerField(required=False, allow_null=True)
    lease_id = serializers.IntegerField(required=False, allow_null=True)


class ReconcileAccountSerializer(serializers.Serializer):
    bank_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    as_of = serializers.DateField(required=False, allow_null=True)


class ReconcileTransactionsSerializer(serializers.Serializer):
    transaction_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    reconciled_date = serializers.DateField(required=False, allow_null=True)


class ReverseTransactionSerializer(serializers.Serializer):
    reason = serializers.CharField()
    transaction_date = serializers.DateField(required=False, allow_null=True)


class PeriodQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    format = serializers.ChoiceField(choices=ExportFormat.CHOICES, default=ExportFormat.JSON)


class TrustAuditQuerySerializer(PeriodQuerySerializer):
    property_id = serializers.IntegerField()
