from django.contrib import admin

from .models import LateFee, LateFeeConfiguration


@admin.register(LateFeeConfiguration)
class LateFeeConfigurationAdmin(admin.ModelAdmin):
    list_display = ("property", "fee_type", "fee_amount", "grace_period_days", "maximum_fee", "is_compounding", "is_active")
    list_filter = ("fee_type", "is_active", "is_compounding")


@admin.register(LateFee)
class LateFeeAdmin(admin.ModelAdmin):
    list_display = ("id", "payment", "amount", "days_late", "status", "applied_date")
    list_filter = ("status",)
    readonly_fields = ("waived_by", "waived_at", "created_by")
