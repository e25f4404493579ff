# late_fees/serializers.py
from rest_framework import serializers

from accounting.exports import ExportFormat
from .models import LateFee, LateFeeConfiguration


class LateFeeConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = LateFeeConfiguration
        fields = (
            "id", "property", "fee_type", "fee_amount", "grace_period_days",
            "maximum_fee", "is_compounding", "is_active", "created_at",
        )


class LateFeeConfigurationWriteSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    fee_type = serializers.ChoiceField(choices=LateFeeConfiguration.FeeType.choices)
    fee_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    grace_period_days = serializers.IntegerField(min_value=0, default=5)
    maximum_fee = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    is_compounding = serializers.BooleanField(default=False)


class LateFeeSerializer(serializers.ModelSerializer):
    lease_id = serializers.IntegerField(source="payment.recurring_payment.lease_id", read_only=True)
    tenant_name = serializers.CharField(source="payment.recurring_payment.lease.tenant.full_name", read_only=True)
    unit_number = serializers.CharField(source="payment.recurring_payment.lease.unit.unit_number", read_only=True)
    due_date = serializers.DateField(source="payment.due_date", read_only=True)

    class Meta:
        model = LateFee
        fields = (
            "id", "payment", "lease_id", "tenant_name", "unit_number", "due_date",
            "configuration", "amount", "days_late", "status", "applied_date",
            "paid_date", "waived_reason", "waived_at", "notes",
        )


class ApplyLateFeeSerializer(serializers.Serializer):
    payment_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class WaiveLateFeeSerializer(serializers.Serializer):
    late_fee_id = serializers.IntegerField()
    reason = serializers.CharField()


class MarkLateFeePaidSerializer(serializers.Serializer):
    paid_date = serializers.DateField(required=False, allow_null=True)


class ProcessLateFeesSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    as_of = serializers.DateField(required=False, allow_null=True)


class LateFeeReportQuerySerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    format = serializers.ChoiceField(choices=ExportFormat.CHOICES, default=ExportFormat.JSON)
