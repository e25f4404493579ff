# rent/commands.py
"""
Command layer for rent tracking.

Pattern:
1. Validate permissions (require)
2. Resolve entities inside the actor's company
3. Apply business rules, raising accounting.exceptions on violation
4. Perform the change inside one database transaction
"""

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from accounting.money import require_positive
from notifications.services import NotificationService
from ops.metrics import PAYMENTS_RECORDED
from properties.policies import get_lease_for_actor
from rent.models import Payment, PaymentReceipt, RecurringPayment
from rent.schedule import iter_due_dates

logger = logging.getLogger(__name__)


def _get_payment_for_update(actor: ActorContext, payment_id) -> Payment:
    try:
        return (
            Payment.objects.select_for_update()
            .select_related("recurring_payment__lease__unit__property")
            .get(pk=payment_id, recurring_payment__lease__unit__property__company=actor.company)
        )
    except (Payment.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Payment {payment_id} not found.")


# =============================================================================
# Recurring payments
# =============================================================================

@transaction.atomic
def create_recurring_payment(
    actor: ActorContext,
    lease_id,
    amount,
    start_date: date,
    frequency: str = RecurringPayment.Frequency.MONTHLY,
    due_day: int = 1,
    end_date: date | None = None,
    payment_type: str = RecurringPayment.PaymentType.RENT,
    description: str = "",
) -> RecurringPayment:
    require(actor, "rent.manage")

    lease = get_lease_for_actor(actor, lease_id)
    amount = require_positive(amount)

    if frequency not in RecurringPayment.Frequency.values:
        raise ValidationError(f"Unknown frequency: {frequency}", {"field": "frequency"})
    if not 1 <= int(due_day) <= 31:
        raise ValidationError("due_day must be between 1 and 31.", {"field": "due_day"})
    if end_date and end_date < start_date:
        raise ValidationError("end_date must not be before start_date.", {"field": "end_date"})

    recurring = RecurringPayment.objects.create(
        lease=lease,
        payment_type=payment_type,
        amount=amount,
        frequency=frequency,
        due_day=due_day,
        start_date=start_date,
        end_date=end_date,
        description=description,
        created_by=actor.user,
    )
    logger.info(
        "Recurring payment created",
        extra={"recurring_payment_id": recurring.id, "lease_id": lease.id, "amount": str(amount)},
    )
    return recurring


@transaction.atomic
def deactivate_recurring_payment(actor: ActorContext, recurring_payment_id) -> RecurringPayment:
    require(actor, "rent.manage")

    try:
        recurring = RecurringPayment.objects.select_for_update().get(
            pk=recurring_payment_id,
            lease__unit__property__company=actor.company,
        )
    except (RecurringPayment.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Recurring payment {recurring_payment_id} not found.")

    if recurring.is_active:
        recurring.is_active = False
        recurring.save(update_fields=["is_active"])
    return recurring


def generate_payments(through_date: date, property=None) -> int:
    """
    Materialise Payment rows for every active schedule up to through_date.

    Safe to re-run: existing (recurring_payment, due_date) pairs are skipped.
    Returns the number of payments created.
    """
    schedules = RecurringPayment.objects.filter(
        is_active=True,
        start_date__lte=through_date,
        lease__status="active",
    ).select_related("lease")
    if property is not None:
        schedules = schedules.filter(lease__unit__property=property)

    created = 0
    for recurring in schedules:
        with transaction.atomic():
            existing = set(recurring.payments.values_list("due_date", flat=True))
            new_payments = [
                Payment(recurring_payment=recurring, amount=recurring.amount, due_date=due)
                for due in iter_due_dates(
                    recurring.frequency,
                    recurring.due_day,
                    recurring.start_date,
                    recurring.end_date,
                    through_date,
                )
                if due not in existing
            ]
            if new_payments:
                Payment.objects.bulk_create(new_payments, ignore_conflicts=True)
                # rows inserted concurrently by another run are skipped, not counted
                created += recurring.payments.count() - len(existing)

    logger.info(
        "Payments generated",
        extra={"through_date": through_date.isoformat(), "payments_created": created},
    )
    return created


# =============================================================================
# Payments
# =============================================================================

@transaction.atomic
def record_payment(
    actor: ActorContext,
    payment_id,
    amount,
    payment_date: date,
    payment_method: str,
    reference_number: str = "",
    notes: str = "",
    idempotency_key: str | None = None,
) -> Payment:
    """
    Record money received against a payment.

    Amounts accumulate: the payment becomes `partial` until amount_paid
    reaches amount, then `paid`. Overpayment is rejected. A repeated call
    carrying an already used idempotency_key returns the payment unchanged.
    """
    require(actor, "rent.manage")

    amount = require_positive(amount)
    payment = _get_payment_for_update(actor, payment_id)

    if idempotency_key:
        previous = PaymentReceipt.objects.filter(idempotency_key=idempotency_key).first()
        if previous is not None:
            if previous.payment_id != payment.id:
                raise ValidationError(
                    "Idempotency key was already used for a different payment.",
                    {"field": "idempotency_key"},
                )
            logger.info(
                "Duplicate payment submission ignored",
                extra={"payment_id": previous.payment_id, "idempotency_key": idempotency_key},
            )
            return payment

    if payment.status not in Payment.OPEN_STATUSES:
        raise BusinessRuleViolation(
            f"Payment is already {payment.status}.",
            {"payment_id": payment.id, "status": payment.status},
        )

    outstanding = payment.amount - payment.amount_paid
    if amount > outstanding:
        raise ValidationError(
            f"Amount {amount} exceeds the outstanding balance {outstanding}.",
            {"field": "amount", "outstanding": str(outstanding)},
        )

    PaymentReceipt.objects.create(
        payment=payment,
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method,
        reference_number=reference_number or "",
        idempotency_key=idempotency_key or None,
        recorded_by=actor.user,
    )

    payment.amount_paid += amount
    payment.status = Payment.Status.PAID if payment.amount_paid == payment.amount else Payment.Status.PARTIAL
    payment.payment_date = payment_date
    payment.payment_method = payment_method
    payment.reference_number = reference_number or payment.reference_number
    if notes:
        payment.notes = f"{payment.notes}\n{notes}".strip()
    payment.recorded_by = actor.user
    payment.save()

    PAYMENTS_RECORDED.labels(status=payment.status).inc()
    logger.info(
        "Payment recorded",
        extra={
            "payment_id": payment.id,
            "amount": str(amount),
            "status": payment.status,
            "user_id": actor.user.id,
        },
    )
    return payment


@transaction.atomic
def waive_payment(actor: ActorContext, payment_id, reason: str) -> Payment:
    require(actor, "rent.manage")

    if not reason:
        raise ValidationError("A reason is required to waive a payment.", {"field": "reason"})

    payment = _get_payment_for_update(actor, payment_id)
    if payment.status != Payment.Status.PENDING:
        raise BusinessRuleViolation(
            f"Only pending payments can be waived (payment is {payment.status}).",
            {"payment_id": payment.id, "status": payment.status},
        )

    payment.status = Payment.Status.WAIVED
    payment.notes = f"{payment.notes}\nWaived: {reason}".strip()
    payment.recorded_by = actor.user
    payment.save()

    logger.info("Payment waived", extra={"payment_id": payment.id, "user_id": actor.user.id})
    return payment


# =============================================================================
# Reminders
# =============================================================================

def send_payment_reminders(
    actor: ActorContext,
    property,
    days_in_advance: int = 3,
    as_of: date | None = None,
    notifier: NotificationService | None = None,
) -> int:
    """Email renters whose open payments fall due within the window. Returns emails sent."""
    require(actor, "rent.manage")

    if days_in_advance < 0:
        raise ValidationError("days_in_advance must not be negative.", {"field": "days_in_advance"})

    as_of = as_of or timezone.localdate()
    notifier = notifier or NotificationService()
    window_end = date.fromordinal(as_of.toordinal() + days_in_advance)

    payments = Payment.objects.filter(
        recurring_payment__lease__unit__property=property,
        status__in=Payment.OPEN_STATUSES,
        due_date__gte=as_of,
        due_date__lte=window_end,
    ).select_related("recurring_payment__lease__tenant", "recurring_payment__lease__unit__property__company")

    sent = 0
    for payment in payments:
        notification = notifier.send_payment_reminder(payment)
        if notification.status == notification.Status.SENT:
            sent += 1

    logger.info(
        "Payment reminders sent",
        extra={"property_id": property.id, "sent": sent, "candidates": len(payments)},
    )
    return sent
