# rent/serializers.py
from django.utils import timezone
from rest_framework import serializers

from accounting.exports import ExportFormat
from .models import Payment, RecurringPayment


class RecurringPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = RecurringPayment
        fields = (
            "id", "lease", "payment_type", "amount", "frequency", "due_day",
            "start_date", "end_date", "is_active", "description", "created_at",
        )


class RecurringPaymentCreateSerializer(serializers.Serializer):
    lease_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    frequency = serializers.ChoiceField(choices=RecurringPayment.Frequency.choices, default="monthly")
    due_day = serializers.IntegerField(min_value=1, max_value=31, default=1)
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True)
    payment_type = serializers.ChoiceField(choices=RecurringPayment.PaymentType.choices, default="rent")
    description = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentSerializer(serializers.ModelSerializer):
    """Payment with its lease, tenant and unit flattened in."""

    lease_id = serializers.IntegerField(source="recurring_payment.lease_id", read_only=True)
    payment_type = serializers.CharField(source="recurring_payment.payment_type", read_only=True)
    tenant_name = serializers.CharField(source="recurring_payment.lease.tenant.full_name", read_only=True)
    unit_number = serializers.CharField(source="recurring_payment.lease.unit.unit_number", read_only=True)
    outstanding = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    days_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = (
            "id", "lease_id", "payment_type", "tenant_name", "unit_number",
            "amount", "amount_paid", "outstanding", "due_date", "payment_date",
            "status", "payment_method", "reference_number", "notes", "days_overdue",
        )

    def get_days_overdue(self, obj):
        as_of = self.context.get("as_of") or timezone.localdate()
        return obj.days_overdue(as_of)


class RecordPaymentSerializer(serializers.Serializer):
    payment_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.CharField(max_length=50)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_null=True)

    def validate(self, attrs):
        attrs.setdefault("payment_date", timezone.localdate())
        return attrs


class WaiveSerializer(serializers.Serializer):
    reason = serializers.CharField()


class PaymentReminderSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    days_in_advance = serializers.IntegerField(min_value=0, default=3)


class RentRollQuerySerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    format = serializers.ChoiceField(choices=ExportFormat.CHOICES, default=ExportFormat.JSON)
