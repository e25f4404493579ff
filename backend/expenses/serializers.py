# expenses/serializers.py
from rest_framework import serializers

from accounting.exports import ExportFormat
from .models import Expense, ExpenseCategory, ReceiptImage
from .reports import GROUP_BY_CHOICES


class ExpenseCategorySerializer(serializers.ModelSerializer):
    parent_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ExpenseCategory
        fields = ("id", "name", "description", "parent_id", "is_tax_deductible", "is_active", "created_at")


class ExpenseCategoryCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    is_tax_deductible = serializers.BooleanField(default=True)


class ExpenseCategoryUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    is_tax_deductible = serializers.BooleanField(required=False)


class ExpenseSerializer(serializers.ModelSerializer):
    property_name = serializers.CharField(source="property.name", read_only=True)
    category_name = serializers.CharField(source="category.name", read_only=True)
    vendor_name = serializers.CharField(source="vendor.name", read_only=True, default=None)
    unit_number = serializers.CharField(source="unit.unit_number", read_only=True, default=None)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Expense
        fields = (
            "id", "property", "property_name", "unit", "unit_number", "category", "category_name",
            "vendor", "vendor_name", "amount", "tax_amount", "total_amount", "transaction_date",
            "due_date", "description", "status", "payment_date", "payment_method",
            "reference_number", "receipt", "is_recurring", "recurring_frequency",
            "recurring_source", "notes", "created_at", "updated_at",
        )


class ExpenseCreateSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    category_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    transaction_date = serializers.DateField(required=False, allow_null=True)
    unit_id = serializers.IntegerField(required=False, allow_null=True)
    vendor_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    due_date = serializers.DateField(required=False, allow_null=True)
    payment_date = serializers.DateField(required=False, allow_null=True)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    receipt_id = serializers.IntegerField(required=False, allow_null=True)
    is_recurring = serializers.BooleanField(default=False)
    recurring_frequency = serializers.ChoiceField(
        choices=Expense.RecurringFrequency.choices, required=False, allow_blank=True, default="",
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ExpenseUpdateSerializer(serializers.Serializer):
    category_id = serializers.IntegerField(required=False)
    unit_id = serializers.IntegerField(required=False, allow_null=True)
    vendor_id = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    tax_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    transaction_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    is_recurring = serializers.BooleanField(required=False)
    recurring_frequency = serializers.ChoiceField(
        choices=Expense.RecurringFrequency.choices, required=False, allow_blank=True,
    )
    receipt_id = serializers.IntegerField(required=False, allow_null=True)


class MarkExpensePaidSerializer(serializers.Serializer):
    payment_date = serializers.DateField()
    payment_method = serializers.CharField(max_length=50)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")


class ExpenseReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ReceiptImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReceiptImage
        fields = (
            "id", "original_filename", "content_type", "file_size", "ocr_status",
            "extracted_data", "error", "processed_at", "created_at",
        )


class ScanReceiptSerializer(serializers.Serializer):
    file = serializers.FileField()
    property_id = serializers.IntegerField(required=False, allow_null=True)


class ExpenseReportQuerySerializer(serializers.Serializer):
    property_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    group_by = serializers.ChoiceField(choices=GROUP_BY_CHOICES, default="category")
    format = serializers.ChoiceField(choices=ExportFormat.CHOICES, default=ExportFormat.JSON)


class ExpenseStatisticsQuerySerializer(serializers.Serializer):
    property_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
