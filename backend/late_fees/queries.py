# late_fees/queries.py
"""Read side of late fees: listings and the late fee report."""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from late_fees.models import LateFee, LateFeeConfiguration

LATE_FEE_REPORT_COLUMNS = [
    {"key": "applied_date", "header": "Applied", "width": 12},
    {"key": "unit_number", "header": "Unit", "width": 10},
    {"key": "tenant_name", "header": "Tenant", "width": 28},
    {"key": "due_date", "header": "Payment Due", "width": 12},
    {"key": "days_late", "header": "Days Late", "width": 10, "numeric": True},
    {"key": "amount", "header": "Fee", "width": 12, "numeric": True},
    {"key": "status", "header": "Status", "width": 10},
    {"key": "waived_reason", "header": "Waived Reason", "width": 30},
]


def get_configuration(actor: ActorContext, property) -> LateFeeConfiguration | None:
    require(actor, "late_fees.view")
    return LateFeeConfiguration.objects.filter(property=property, is_active=True).first()


def get_late_fees(actor: ActorContext, property, status: str | None = None):
    require(actor, "late_fees.view")

    qs = (
        LateFee.objects.filter(payment__recurring_payment__lease__unit__property=property)
        .select_related(
            "payment__recurring_payment__lease__tenant",
            "payment__recurring_payment__lease__unit",
        )
        .order_by("-applied_date", "-id")
    )
    if status:
        if status not in LateFee.Status.values:
            raise ValidationError(f"Unknown status: {status}", {"field": "status"})
        qs = qs.filter(status=status)
    return qs


def generate_late_fee_report(actor: ActorContext, property, start_date: date, end_date: date) -> dict:
    require(actor, "reports.view")

    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.", {"field": "start_date"})

    fees = (
        LateFee.objects.filter(
            payment__recurring_payment__lease__unit__property=property,
            applied_date__gte=start_date,
            applied_date__lte=end_date,
        )
        .select_related(
            "payment__recurring_payment__lease__tenant",
            "payment__recurring_payment__lease__unit",
        )
        .order_by("applied_date", "id")
    )

    rows = []
    totals = defaultdict(lambda: Decimal("0.00"))
    counts = defaultdict(int)
    for fee in fees:
        lease = fee.payment.recurring_payment.lease
        rows.append({
            "late_fee_id": fee.id,
            "payment_id": fee.payment_id,
            "applied_date": fee.applied_date,
            "unit_number": lease.unit.unit_number,
            "tenant_name": lease.tenant.full_name,
            "due_date": fee.payment.due_date,
            "days_late": fee.days_late,
            "amount": fee.amount,
            "status": fee.status,
            "waived_reason": fee.waived_reason,
        })
        totals[fee.status] += fee.amount
        counts[fee.status] += 1

    total_assessed = sum(totals.values(), Decimal("0.00"))
    return {
        "property": {"id": property.id, "name": property.name},
        "period": {"start_date": start_date, "end_date": end_date},
        "rows": rows,
        "summary": {
            "total_fees": len(rows),
            "total_assessed": total_assessed,
            "total_pending": totals[LateFee.Status.PENDING],
            "total_paid": totals[LateFee.Status.PAID],
            "total_waived": totals[LateFee.Status.WAIVED],
            "pending_count": counts[LateFee.Status.PENDING],
            "paid_count": counts[LateFee.Status.PAID],
            "waived_count": counts[LateFee.Status.WAIVED],
        },
    }
