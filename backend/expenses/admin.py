from django.contrib import admin

from .models import Expense, ExpenseCategory, ReceiptImage


@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "parent", "is_tax_deductible", "is_active")
    list_filter = ("is_active", "is_tax_deductible")
    search_fields = ("name",)


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("id", "property", "category", "vendor", "amount", "tax_amount", "status", "transaction_date")
    list_filter = ("status", "is_recurring")
    date_hierarchy = "transaction_date"
    raw_id_fields = ("recurring_source", "receipt")


@admin.register(ReceiptImage)
class ReceiptImageAdmin(admin.ModelAdmin):
    list_display = ("id", "original_filename", "company", "ocr_status", "created_at")
    list_filter = ("ocr_status",)
    readonly_fields = ("ocr_text", "extracted_data", "processed_at")
