from django.contrib import admin

from .models import TrustAccount, TrustAccountTransaction


@admin.register(TrustAccount)
class TrustAccountAdmin(admin.ModelAdmin):
    list_display = ("account_name", "property", "account_type", "balance", "is_interest_bearing", "is_active")
    list_filter = ("account_type", "is_active", "is_interest_bearing")
    readonly_fields = ("balance",)


@admin.register(TrustAccountTransaction)
class TrustAccountTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "trust_account", "transaction_type", "amount", "balance_after", "transaction_date", "is_reconciled")
    list_filter = ("transaction_type", "is_reconciled")
    date_hierarchy = "transaction_date"

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
