# properties/views.py
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import paginated, success
from .models import Lease, Property
from .policies import get_property_for_actor
from .serializers import LeaseSerializer, PropertyDetailSerializer, PropertySerializer


class PropertyListView(APIView):
    """GET /properties/ -> properties of the active company"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "properties.view")

        properties = Property.objects.filter(company=actor.company).prefetch_related("units")
        return paginated(request, properties, lambda page: PropertySerializer(page, many=True).data)


class PropertyDetailView(APIView):
    """GET /properties/<id>/ -> property with its units"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "properties.view")

        prop = get_property_for_actor(actor, pk)
        return success(PropertyDetailSerializer(prop).data)


class PropertyLeaseListView(APIView):
    """GET /properties/<id>/leases -> leases on the property's units"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "properties.view")

        prop = get_property_for_actor(actor, pk)
        leases = Lease.objects.filter(unit__property=prop).select_related("unit", "tenant")
        status_filter = request.query_params.get("status")
        if status_filter:
            leases = leases.filter(status=status_filter)
        return paginated(request, leases, lambda page: LeaseSerializer(page, many=True).data)
