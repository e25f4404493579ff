from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("kind", "recipient", "status", "company", "created_at")
    list_filter = ("kind", "status")
    search_fields = ("recipient", "subject")
    readonly_fields = ("created_at",)
