# properties/serializers.py
from rest_framework import serializers

from .models import Lease, Property, Unit


class UnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = Unit
        fields = ("id", "unit_number", "bedrooms", "bathrooms", "square_feet", "market_rent", "is_active")


class PropertySerializer(serializers.ModelSerializer):
    unit_count = serializers.SerializerMethodField()

    class Meta:
        model = Property
        fields = ("id", "name", "address", "city", "state", "zip_code", "is_active", "unit_count")

    def get_unit_count(self, obj):
        return obj.units.count()


class PropertyDetailSerializer(PropertySerializer):
    units = UnitSerializer(many=True, read_only=True)

    class Meta(PropertySerializer.Meta):
        fields = PropertySerializer.Meta.fields + ("units",)


class LeaseSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source="tenant.full_name", read_only=True)
    unit_number = serializers.CharField(source="unit.unit_number", read_only=True)
    property_id = serializers.IntegerField(source="unit.property_id", read_only=True)

    class Meta:
        model = Lease
        fields = (
            "id", "property_id", "unit", "unit_number", "tenant", "tenant_name",
            "start_date", "end_date", "monthly_rent", "security_deposit", "status",
        )
