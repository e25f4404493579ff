from django.contrib import admin

from .models import Lease, Property, Tenant, Unit, Vendor


class UnitInline(admin.TabularInline):
    model = Unit
    extra = 0


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "city", "is_active")
    list_filter = ("is_active", "company")
    search_fields = ("name", "address")
    inlines = [UnitInline]


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "email", "company")
    search_fields = ("first_name", "last_name", "email")


@admin.register(Lease)
class LeaseAdmin(admin.ModelAdmin):
    list_display = ("unit", "tenant", "start_date", "end_date", "monthly_rent", "status")
    list_filter = ("status",)


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "email", "is_active")
    search_fields = ("name",)
