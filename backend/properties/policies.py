# properties/policies.py
"""
Tenant boundary lookups.

Every accounting operation starts from a property, lease or unit id supplied
by the caller. These helpers resolve the id inside the actor's company only;
anything outside it is reported as missing rather than forbidden, so ids
from other companies cannot be probed.
"""

from accounting.exceptions import NotFoundError
from properties.models import Lease, Property, Tenant, Unit, Vendor


def check_tenant_boundary(actor, entity) -> bool:
    """Verify entity belongs to actor's company."""
    company_id = getattr(entity, "company_id", None)
    return company_id is not None and company_id == actor.company.id


def get_property_for_actor(actor, property_id) -> Property:
    try:
        return Property.objects.get(pk=property_id, company=actor.company)
    except (Property.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Property {property_id} not found.")


def get_unit_for_actor(actor, unit_id) -> Unit:
    try:
        return Unit.objects.select_related("property").get(
            pk=unit_id, property__company=actor.company,
        )
    except (Unit.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Unit {unit_id} not found.")


def get_lease_for_actor(actor, lease_id) -> Lease:
    try:
        return Lease.objects.select_related("unit__property", "tenant").get(
            pk=lease_id, unit__property__company=actor.company,
        )
    except (Lease.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Lease {lease_id} not found.")


def get_tenant_for_actor(actor, tenant_id) -> Tenant:
    try:
        return Tenant.objects.get(pk=tenant_id, company=actor.company)
    except (Tenant.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Tenant {tenant_id} not found.")


def get_vendor_for_actor(actor, vendor_id) -> Vendor:
    try:
        return Vendor.objects.get(pk=vendor_id, company=actor.company)
    except (Vendor.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Vendor {vendor_id} not found.")
