# late_fees/commands.py
"""
Command layer for late fees.

Manual operations (apply, waive, mark paid) take an ActorContext. The
rule-driven batch (`process_late_fees`) runs without one: it is invoked by
the scheduler or ops tooling for every property with an active rule.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation

from django.db import DatabaseError, transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import AccountingError, BusinessRuleViolation, NotFoundError, ValidationError
from accounting.money import require_positive, to_money
from late_fees.models import LateFee, LateFeeConfiguration
from late_fees.policies import (
    calculate_fee_amount,
    can_apply_fee,
    can_mark_fee_paid,
    can_waive_fee,
    days_late,
    percentage_fee,
)
from notifications.services import NotificationService
from ops.metrics import LATE_FEES
from properties.models import Property
from rent.models import Payment

logger = logging.getLogger(__name__)


def get_active_configuration(property) -> LateFeeConfiguration | None:
    return LateFeeConfiguration.objects.filter(property=property, is_active=True).first()


def _notify_on_commit(callback, late_fee):
    transaction.on_commit(lambda: callback(late_fee))


# =============================================================================
# Configuration
# =============================================================================

@transaction.atomic
def create_or_update_configuration(
    actor: ActorContext,
    property,
    fee_type: str,
    fee_amount,
    grace_period_days: int,
    maximum_fee=None,
    is_compounding: bool = False,
) -> LateFeeConfiguration:
    """Replace the property's active rule; the previous one is kept inactive for history."""
    require(actor, "late_fees.manage")

    if fee_type not in LateFeeConfiguration.FeeType.values:
        raise ValidationError(f"Unknown fee_type: {fee_type}", {"field": "fee_type"})
    fee_amount = require_positive(fee_amount, "fee_amount")
    if fee_type == LateFeeConfiguration.FeeType.PERCENTAGE and fee_amount > 100:
        raise ValidationError("A percentage fee cannot exceed 100.", {"field": "fee_amount"})
    if grace_period_days is None or int(grace_period_days) < 0:
        raise ValidationError("grace_period_days must be zero or more.", {"field": "grace_period_days"})
    if maximum_fee is not None:
        maximum_fee = require_positive(maximum_fee, "maximum_fee")

    LateFeeConfiguration.objects.select_for_update().filter(
        property=property, is_active=True,
    ).update(is_active=False)

    configuration = LateFeeConfiguration.objects.create(
        property=property,
        fee_type=fee_type,
        fee_amount=fee_amount,
        grace_period_days=int(grace_period_days),
        maximum_fee=maximum_fee,
        is_compounding=is_compounding,
        created_by=actor.user,
    )
    logger.info(
        "Late fee configuration saved",
        extra={"property_id": property.id, "configuration_id": configuration.id, "fee_type": fee_type},
    )
    return configuration


@transaction.atomic
def deactivate_configuration(actor: ActorContext, property) -> int:
    require(actor, "late_fees.manage")
    return LateFeeConfiguration.objects.filter(property=property, is_active=True).update(is_active=False)


# =============================================================================
# Manual fees
# =============================================================================

@transaction.atomic
def apply_late_fee(
    actor: ActorContext,
    payment_id,
    amount=None,
    percentage=None,
    notes: str = "",
    as_of: date | None = None,
    notifier: NotificationService | None = None,
) -> LateFee:
    """
    Charge a late fee on one payment.

    Give either `amount` or `percentage` (of payment.amount, capped at the
    property rule's maximum_fee). With neither, the property's active rule
    prices the fee on the outstanding balance.
    """
    require(actor, "late_fees.manage")

    if amount is not None and percentage is not None:
        raise ValidationError("Provide either amount or percentage, not both.", {"field": "amount"})

    as_of = as_of or timezone.localdate()
    notifier = notifier or NotificationService()

    try:
        payment = (
            Payment.objects.select_for_update()
            .select_related("recurring_payment__lease__unit__property")
            .get(pk=payment_id, recurring_payment__lease__unit__property__company=actor.company)
        )
    except (Payment.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Payment {payment_id} not found.")

    if payment.status not in Payment.OPEN_STATUSES:
        raise BusinessRuleViolation(
            f"Cannot apply a late fee to a {payment.status} payment.",
            {"payment_id": payment.id, "status": payment.status},
        )

    configuration = get_active_configuration(payment.recurring_payment.lease.unit.property)

    if amount is not None:
        fee = require_positive(amount)
    elif percentage is not None:
        try:
            pct = Decimal(str(percentage))
        except InvalidOperation:
            raise ValidationError("percentage must be a number.", {"field": "percentage"})
        if pct <= 0 or pct > 100:
            raise ValidationError("percentage must be greater than 0 and at most 100.", {"field": "percentage"})
        fee = percentage_fee(payment.amount, pct, configuration.maximum_fee if configuration else None)
    elif configuration is not None:
        fee = calculate_fee_amount(configuration, payment.outstanding)
    else:
        raise ValidationError(
            "Provide amount or percentage; the property has no active late fee configuration.",
            {"field": "amount"},
        )

    if fee <= 0:
        raise ValidationError("Computed late fee is zero.", {"field": "amount"})

    active_fees = list(payment.late_fees.exclude(status=LateFee.Status.WAIVED))
    allowed, reason = can_apply_fee(bool(configuration and configuration.is_compounding), active_fees, as_of)
    if not allowed:
        raise BusinessRuleViolation(reason, {"payment_id": payment.id})

    late_fee = LateFee.objects.create(
        payment=payment,
        configuration=configuration,
        amount=fee,
        days_late=days_late(payment.due_date, as_of),
        applied_date=as_of,
        notes=notes or "",
        created_by=actor.user,
    )
    _notify_on_commit(notifier.send_late_fee_notice, late_fee)

    LATE_FEES.labels(action="applied").inc()
    logger.info(
        "Late fee applied",
        extra={"late_fee_id": late_fee.id, "payment_id": payment.id, "amount": str(fee), "user_id": actor.user.id},
    )
    return late_fee


def _get_late_fee_for_update(actor: ActorContext, late_fee_id) -> LateFee:
    try:
        return (
            LateFee.objects.select_for_update()
            .select_related("payment__recurring_payment__lease__unit__property")
            .get(pk=late_fee_id, payment__recurring_payment__lease__unit__property__company=actor.company)
        )
    except (LateFee.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Late fee {late_fee_id} not found.")


@transaction.atomic
def waive_late_fee(
    actor: ActorContext,
    late_fee_id,
    reason: str,
    notifier: NotificationService | None = None,
) -> LateFee:
    """Waive a pending fee. Waiving twice is rejected, never silently repeated."""
    require(actor, "late_fees.manage")

    if not reason:
        raise ValidationError("A reason is required to waive a late fee.", {"field": "reason"})

    notifier = notifier or NotificationService()
    late_fee = _get_late_fee_for_update(actor, late_fee_id)

    allowed, message = can_waive_fee(late_fee)
    if not allowed:
        raise BusinessRuleViolation(message, {"late_fee_id": late_fee.id, "status": late_fee.status})

    late_fee.status = LateFee.Status.WAIVED
    late_fee.waived_reason = reason
    late_fee.waived_by = actor.user
    late_fee.waived_at = timezone.now()
    late_fee.save(update_fields=["status", "waived_reason", "waived_by", "waived_at"])
    _notify_on_commit(notifier.send_late_fee_waived, late_fee)

    LATE_FEES.labels(action="waived").inc()
    logger.info("Late fee waived", extra={"late_fee_id": late_fee.id, "user_id": actor.user.id})
    return late_fee


@transaction.atomic
def mark_late_fee_paid(actor: ActorContext, late_fee_id, paid_date: date | None = None) -> LateFee:
    require(actor, "late_fees.manage")

    late_fee = _get_late_fee_for_update(actor, late_fee_id)
    allowed, message = can_mark_fee_paid(late_fee)
    if not allowed:
        raise BusinessRuleViolation(message, {"late_fee_id": late_fee.id, "status": late_fee.status})

    late_fee.status = LateFee.Status.PAID
    late_fee.paid_date = paid_date or timezone.localdate()
    late_fee.save(update_fields=["status", "paid_date"])

    LATE_FEES.labels(action="paid").inc()
    logger.info("Late fee paid", extra={"late_fee_id": late_fee.id, "user_id": actor.user.id})
    return late_fee


# =============================================================================
# Rule-driven evaluation
# =============================================================================

def evaluate_late_fees(property, as_of: date) -> list[dict]:
    """
    Fees the property's active rule would charge on `as_of`.

    Pure read: nothing is written. Percentage rules are applied to each
    payment's outstanding balance.
    """
    configuration = get_active_configuration(property)
    if configuration is None:
        return []

    cutoff = as_of - timedelta(days=configuration.grace_period_days)
    payments = (
        Payment.objects.filter(
            recurring_payment__lease__unit__property=property,
            status__in=Payment.OPEN_STATUSES,
            due_date__lt=cutoff,
        )
        .select_related("recurring_payment__lease__tenant", "recurring_payment__lease__unit")
        .prefetch_related("late_fees")
        .order_by("due_date", "id")
    )

    candidates = []
    for payment in payments:
        active_fees = [fee for fee in payment.late_fees.all() if fee.status != LateFee.Status.WAIVED]
        allowed, _ = can_apply_fee(configuration.is_compounding, active_fees, as_of)
        if not allowed:
            continue
        fee = calculate_fee_amount(configuration, payment.outstanding)
        if fee <= 0:
            continue
        lease = payment.recurring_payment.lease
        candidates.append({
            "payment_id": payment.id,
            "lease_id": lease.id,
            "tenant_name": lease.tenant.full_name,
            "unit_number": lease.unit.unit_number,
            "due_date": payment.due_date,
            "outstanding": payment.outstanding,
            "days_late": days_late(payment.due_date, as_of),
            "fee_amount": fee,
            "configuration_id": configuration.id,
        })
    return candidates


def calculate_late_fees(actor: ActorContext, property, as_of: date) -> dict:
    """Dry run of apply_late_fees."""
    require(actor, "late_fees.view")

    candidates = evaluate_late_fees(property, as_of)
    return {
        "property_id": property.id,
        "as_of": as_of,
        "candidates": candidates,
        "count": len(candidates),
        "total": sum((c["fee_amount"] for c in candidates), Decimal("0.00")),
    }


def _apply_candidate(candidate: dict, as_of: date, user, notifier: NotificationService) -> LateFee | None:
    """Persist one evaluated fee in its own transaction, re-checking under the row lock."""
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=candidate["payment_id"])
        if payment.status not in Payment.OPEN_STATUSES:
            return None

        configuration = LateFeeConfiguration.objects.get(pk=candidate["configuration_id"])
        active_fees = list(payment.late_fees.exclude(status=LateFee.Status.WAIVED))
        allowed, _ = can_apply_fee(configuration.is_compounding, active_fees, as_of)
        if not allowed:
            return None

        late_fee = LateFee.objects.create(
            payment=payment,
            configuration=configuration,
            amount=to_money(candidate["fee_amount"]),
            days_late=candidate["days_late"],
            applied_date=as_of,
            notes="Applied automatically by late fee rule",
            created_by=user,
        )
        _notify_on_commit(notifier.send_late_fee_notice, late_fee)
    LATE_FEES.labels(action="applied").inc()
    return late_fee


def _apply_for_property(property, as_of: date, user, notifier: NotificationService) -> dict:
    applied, errors = [], []
    for candidate in evaluate_late_fees(property, as_of):
        try:
            late_fee = _apply_candidate(candidate, as_of, user, notifier)
        except (AccountingError, DatabaseError) as e:
            logger.error(
                f"Failed to apply late fee: {e}",
                extra={"payment_id": candidate["payment_id"], "property_id": property.id},
            )
            errors.append({"payment_id": candidate["payment_id"], "error": str(e)})
            continue
        if late_fee is not None:
            applied.append({
                "late_fee_id": late_fee.id,
                "payment_id": candidate["payment_id"],
                "amount": late_fee.amount,
                "days_late": late_fee.days_late,
            })
    return {"property_id": property.id, "applied": applied, "errors": errors}


def apply_late_fees(
    actor: ActorContext,
    property,
    as_of: date,
    notifier: NotificationService | None = None,
) -> dict:
    """Apply the property's rule to every overdue payment; each fee commits on its own."""
    require(actor, "late_fees.manage")

    result = _apply_for_property(property, as_of, actor.user, notifier or NotificationService())
    result["as_of"] = as_of
    logger.info(
        "Late fees applied",
        extra={"property_id": property.id, "applied": len(result["applied"]), "errors": len(result["errors"])},
    )
    return result


def process_late_fees(as_of: date, user=None, notifier: NotificationService | None = None) -> dict:
    """Batch entry point: apply late fee rules for every property that has one."""
    notifier = notifier or NotificationService()
    properties = Property.objects.filter(
        is_active=True,
        late_fee_configurations__is_active=True,
    ).distinct()

    results = [_apply_for_property(prop, as_of, user, notifier) for prop in properties]
    summary = {
        "as_of": as_of,
        "properties": len(results),
        "applied": sum(len(r["applied"]) for r in results),
        "total_amount": sum((a["amount"] for r in results for a in r["applied"]), Decimal("0.00")),
        "errors": [e for r in results for e in r["errors"]],
    }
    logger.info(
        "Late fee batch finished",
        extra={"as_of": as_of.isoformat(), "applied": summary["applied"], "errors": len(summary["errors"])},
    )
    return summary
