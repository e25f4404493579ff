from django.contrib import admin

from .models import Payment, PaymentReceipt, RecurringPayment


@admin.register(RecurringPayment)
class RecurringPaymentAdmin(admin.ModelAdmin):
    list_display = ("lease", "payment_type", "amount", "frequency", "due_day", "is_active")
    list_filter = ("payment_type", "frequency", "is_active")


class PaymentReceiptInline(admin.TabularInline):
    model = PaymentReceipt
    extra = 0
    readonly_fields = ("amount", "payment_date", "payment_method", "reference_number", "idempotency_key", "recorded_by")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "recurring_payment", "due_date", "amount", "amount_paid", "status")
    list_filter = ("status",)
    date_hierarchy = "due_date"
    inlines = [PaymentReceiptInline]
