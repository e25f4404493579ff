# late_fees/policies.py
"""
Business policy functions for late fees.

Policies answer: "Is this fee due, how much, and may it be applied?"
They do NOT create or change anything; that's the command's job.

Design Principles:
1. Policies are pure functions (no side effects, no queries)
2. can_* policies return (bool, str) tuples for clear error messages
"""

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from accounting.money import MONEY_Q

ZERO = Decimal("0.00")


def days_late(due_date: date, as_of: date) -> int:
    return max(0, (as_of - due_date).days)


def is_fee_eligible(due_date: date, as_of: date, grace_period_days: int) -> bool:
    """
    A payment becomes fee-eligible strictly after its grace period.

    Due on D with a 5 day grace: D+5 is still within grace, D+6 is eligible.
    """
    return as_of > due_date + timedelta(days=grace_period_days)


def percentage_fee(base: Decimal, percentage: Decimal, maximum_fee: Decimal | None = None) -> Decimal:
    fee = (base * percentage / Decimal("100")).quantize(MONEY_Q, rounding=ROUND_HALF_UP)
    if maximum_fee is not None:
        fee = min(fee, maximum_fee)
    return fee


def calculate_fee_amount(configuration, base_amount: Decimal) -> Decimal:
    """
    Fee a configuration charges on `base_amount`.

    Percentage fees are base_amount * fee_amount / 100; fixed fees are
    fee_amount. Both are capped at maximum_fee when one is set.
    """
    if configuration.fee_type == configuration.FeeType.PERCENTAGE:
        return percentage_fee(base_amount, configuration.fee_amount, configuration.maximum_fee)

    fee = configuration.fee_amount
    if configuration.maximum_fee is not None:
        fee = min(fee, configuration.maximum_fee)
    return fee


def can_apply_fee(is_compounding: bool, active_fees, as_of: date) -> tuple[bool, str]:
    """
    active_fees: the payment's existing non-waived fees.

    Non-compounding rules allow one active fee per payment. Compounding
    rules allow one per evaluation date.
    """
    if not is_compounding:
        if active_fees:
            return False, "Payment already has an active late fee."
        return True, ""

    if any(fee.applied_date == as_of for fee in active_fees):
        return False, f"A late fee was already applied on {as_of.isoformat()}."
    return True, ""


def can_waive_fee(late_fee) -> tuple[bool, str]:
    if late_fee.status == late_fee.Status.WAIVED:
        return False, "Late fee is already waived."
    if late_fee.status == late_fee.Status.PAID:
        return False, "A paid late fee cannot be waived."
    return True, ""


def can_mark_fee_paid(late_fee) -> tuple[bool, str]:
    if late_fee.status != late_fee.Status.PENDING:
        return False, f"Late fee is {late_fee.status}, only pending fees can be paid."
    return True, ""
