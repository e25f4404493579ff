# rent/reports.py
"""
Rent roll: per-unit expected vs. collected rent for a period.

The report is computed once as plain data; CSV/XLSX/PDF are only
serializations of the same rows (see accounting.exports).
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Q

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from properties.models import Lease, Unit
from rent.models import Payment

RENT_ROLL_COLUMNS = [
    {"key": "unit_number", "header": "Unit", "width": 10},
    {"key": "tenant_name", "header": "Tenant", "width": 28},
    {"key": "lease_status", "header": "Lease", "width": 10},
    {"key": "monthly_rent", "header": "Monthly Rent", "width": 14, "numeric": True},
    {"key": "amount_due", "header": "Amount Due", "width": 14, "numeric": True},
    {"key": "amount_paid", "header": "Amount Paid", "width": 14, "numeric": True},
    {"key": "outstanding", "header": "Outstanding", "width": 14, "numeric": True},
    {"key": "status", "header": "Status", "width": 10},
]


def _unit_status(occupied: bool, due: Decimal, paid: Decimal) -> str:
    if not occupied and due == 0:
        return "vacant"
    if due == 0:
        return "no_charges"
    if paid >= due:
        return "paid"
    if paid > 0:
        return "partial"
    return "unpaid"


def generate_rent_roll_report(actor: ActorContext, property, start_date: date, end_date: date) -> dict:
    require(actor, "reports.view")

    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.", {"field": "start_date"})

    units = list(Unit.objects.filter(property=property, is_active=True).order_by("unit_number"))

    # Leases overlapping the period, newest first so the current renter wins.
    leases = (
        Lease.objects.filter(unit__property=property, start_date__lte=end_date)
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=start_date))
        .exclude(status=Lease.Status.DRAFT)
        .select_related("tenant")
        .order_by("-start_date")
    )
    lease_by_unit = {}
    for lease in leases:
        lease_by_unit.setdefault(lease.unit_id, lease)

    due_by_unit = defaultdict(lambda: Decimal("0.00"))
    paid_by_unit = defaultdict(lambda: Decimal("0.00"))
    payments = Payment.objects.filter(
        recurring_payment__lease__unit__property=property,
        due_date__gte=start_date,
        due_date__lte=end_date,
    ).exclude(status=Payment.Status.WAIVED).values("recurring_payment__lease__unit_id", "amount", "amount_paid")
    for row in payments:
        unit_id = row["recurring_payment__lease__unit_id"]
        due_by_unit[unit_id] += row["amount"]
        paid_by_unit[unit_id] += row["amount_paid"]

    rows = []
    for unit in units:
        lease = lease_by_unit.get(unit.id)
        occupied = lease is not None and lease.status == Lease.Status.ACTIVE
        due = due_by_unit[unit.id]
        paid = paid_by_unit[unit.id]
        rows.append({
            "unit_id": unit.id,
            "unit_number": unit.unit_number,
            "tenant_name": lease.tenant.full_name if lease else "",
            "lease_id": lease.id if lease else None,
            "lease_status": lease.status if lease else "",
            "monthly_rent": lease.monthly_rent if lease else Decimal("0.00"),
            "amount_due": due,
            "amount_paid": paid,
            "outstanding": due - paid,
            "status": _unit_status(occupied, due, paid),
            "occupied": occupied,
        })

    total_units = len(rows)
    occupied_units = sum(1 for row in rows if row["occupied"])
    total_amount = sum((row["amount_due"] for row in rows), Decimal("0.00"))
    total_paid = sum((row["amount_paid"] for row in rows), Decimal("0.00"))
    occupancy_rate = (
        (Decimal(occupied_units) * 100 / Decimal(total_units)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if total_units else Decimal("0.00")
    )

    return {
        "property": {"id": property.id, "name": property.name},
        "period": {"start_date": start_date, "end_date": end_date},
        "rows": rows,
        "summary": {
            "total_units": total_units,
            "occupied_units": occupied_units,
            "total_amount": total_amount,
            "total_paid": total_paid,
            "total_pending": total_amount - total_paid,
            "occupancy_rate": occupancy_rate,
        },
    }
