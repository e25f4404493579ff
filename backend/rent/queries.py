# rent/queries.py
"""Read-side rent queries. No writes happen here."""

from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from properties.policies import get_lease_for_actor
from rent.models import Payment

OVERDUE = "overdue"


def get_due_payments(
    actor: ActorContext,
    property,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    as_of: date | None = None,
) -> QuerySet:
    """
    Payments of a property joined with lease, tenant and unit.

    Without a status filter waived payments are left out, and without an
    end_date so are payments due more than RENT_DUE_LOOKAHEAD_DAYS after
    as_of. status may also be "overdue": open payments already past due.
    """
    require(actor, "rent.view")

    as_of = as_of or timezone.localdate()
    payments = Payment.objects.filter(
        recurring_payment__lease__unit__property=property,
    ).select_related(
        "recurring_payment__lease__tenant",
        "recurring_payment__lease__unit",
    )

    if status == OVERDUE:
        payments = payments.filter(status__in=Payment.OPEN_STATUSES, due_date__lt=as_of)
    elif status:
        if status not in Payment.Status.values:
            raise ValidationError(f"Unknown payment status: {status}", {"field": "status"})
        payments = payments.filter(status=status)
    else:
        payments = payments.exclude(status=Payment.Status.WAIVED)

    if start_date:
        payments = payments.filter(due_date__gte=start_date)
    if end_date:
        payments = payments.filter(due_date__lte=end_date)
    else:
        payments = payments.filter(
            due_date__lte=as_of + timedelta(days=settings.RENT_DUE_LOOKAHEAD_DAYS),
        )

    return payments.order_by("due_date", "id")


def get_lease_payment_status(actor: ActorContext, lease_id, as_of: date | None = None) -> dict:
    """Totals and per-payment detail for one lease."""
    require(actor, "rent.view")

    as_of = as_of or timezone.localdate()
    lease = get_lease_for_actor(actor, lease_id)
    payments = list(
        Payment.objects.filter(recurring_payment__lease=lease, due_date__lte=as_of)
        .select_related("recurring_payment")
        .order_by("due_date", "id")
    )

    total_due = sum((p.amount for p in payments if p.status != Payment.Status.WAIVED), Decimal("0.00"))
    total_paid = sum((p.amount_paid for p in payments), Decimal("0.00"))
    overdue = [p for p in payments if p.days_overdue(as_of) > 0]

    return {
        "lease_id": lease.id,
        "tenant": lease.tenant.full_name,
        "unit": lease.unit.unit_number,
        "property_id": lease.unit.property_id,
        "as_of": as_of,
        "total_due": total_due,
        "total_paid": total_paid,
        "outstanding": sum((p.outstanding for p in payments), Decimal("0.00")),
        "overdue_count": len(overdue),
        "overdue_amount": sum((p.outstanding for p in overdue), Decimal("0.00")),
        "payments": [
            {
                "id": p.id,
                "payment_type": p.recurring_payment.payment_type,
                "due_date": p.due_date,
                "amount": p.amount,
                "amount_paid": p.amount_paid,
                "outstanding": p.outstanding,
                "status": p.status,
                "payment_date": p.payment_date,
                "days_overdue": p.days_overdue(as_of),
            }
            for p in payments
        ],
    }
