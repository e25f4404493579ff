# tests/test_late_fees.py
"""
Tests for late fees.

Tests cover:
- Grace period boundary (exclusive: due D + 5 grace is eligible from D+6)
- Fee pricing (percentage with cap, fixed) and the 5% / 1000.00 example
- Manual application rules (paid payments, amount vs percentage)
- Waiving (reason required, second waive rejected) and marking paid
- Compounding vs non-compounding evaluation
- Batch processing and the late fee report
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from accounting.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from late_fees.commands import (
    apply_late_fee,
    apply_late_fees,
    calculate_late_fees,
    create_or_update_configuration,
    deactivate_configuration,
    evaluate_late_fees,
    mark_late_fee_paid,
    process_late_fees,
    waive_late_fee,
)
from late_fees.models import LateFee, LateFeeConfiguration
from late_fees.policies import is_fee_eligible, percentage_fee
from late_fees.queries import generate_late_fee_report, get_late_fees
from notifications.models import Notification
from rent.commands import record_payment
from rent.models import Payment

DUE = date(2025, 4, 1)


@pytest.fixture
def percentage_config(actor, property):
    return create_or_update_configuration(
        actor, property,
        fee_type=LateFeeConfiguration.FeeType.PERCENTAGE,
        fee_amount="5",
        grace_period_days=3,
        maximum_fee="100.00",
    )


@pytest.fixture
def fixed_config(actor, property):
    return create_or_update_configuration(
        actor, property,
        fee_type=LateFeeConfiguration.FeeType.FIXED,
        fee_amount="75.00",
        grace_period_days=5,
    )


# =============================================================================
# Policies
# =============================================================================

class TestGracePeriod:
    def test_within_grace(self):
        assert is_fee_eligible(DUE, DUE + timedelta(days=4), 5) is False

    def test_last_day_of_grace_is_not_eligible(self):
        assert is_fee_eligible(DUE, DUE + timedelta(days=5), 5) is False

    def test_day_after_grace_is_eligible(self):
        assert is_fee_eligible(DUE, DUE + timedelta(days=6), 5) is True

    def test_percentage_fee_capped(self):
        assert percentage_fee(Decimal("5000.00"), Decimal("5"), Decimal("100.00")) == Decimal("100.00")
        assert percentage_fee(Decimal("1000.00"), Decimal("5"), Decimal("100.00")) == Decimal("50.00")

    def test_percentage_fee_rounds_half_up(self):
        assert percentage_fee(Decimal("10.10"), Decimal("5")) == Decimal("0.51")


# =============================================================================
# Configuration
# =============================================================================

@pytest.mark.django_db
class TestConfiguration:
    def test_update_replaces_active_configuration(self, actor, property, percentage_config):
        replacement = create_or_update_configuration(
            actor, property, fee_type="fixed", fee_amount="25.00", grace_period_days=2,
        )

        percentage_config.refresh_from_db()
        assert percentage_config.is_active is False
        assert replacement.is_active is True
        assert LateFeeConfiguration.objects.filter(property=property, is_active=True).count() == 1

    def test_percentage_over_100_rejected(self, actor, property):
        with pytest.raises(ValidationError):
            create_or_update_configuration(actor, property, fee_type="percentage", fee_amount="150", grace_period_days=5)

    def test_negative_grace_rejected(self, actor, property):
        with pytest.raises(ValidationError):
            create_or_update_configuration(actor, property, fee_type="fixed", fee_amount="10", grace_period_days=-1)

    def test_deactivate(self, actor, property, fixed_config):
        assert deactivate_configuration(actor, property) == 1
        assert evaluate_late_fees(property, DUE + timedelta(days=30)) == []


# =============================================================================
# Evaluation
# =============================================================================

@pytest.mark.django_db
class TestEvaluation:
    def test_percentage_example(self, property, payment, percentage_config):
        """5% of 1000.00, capped at 100.00, three days of grace, evaluated 2025-04-05."""
        candidates = evaluate_late_fees(property, date(2025, 4, 5))

        assert len(candidates) == 1
        assert candidates[0]["payment_id"] == payment.id
        assert candidates[0]["fee_amount"] == Decimal("50.00")
        assert candidates[0]["days_late"] == 4

    def test_grace_boundary(self, property, payment, fixed_config):
        assert evaluate_late_fees(property, DUE + timedelta(days=4)) == []
        assert evaluate_late_fees(property, DUE + timedelta(days=5)) == []
        assert len(evaluate_late_fees(property, DUE + timedelta(days=6))) == 1

    def test_percentage_uses_outstanding_balance(self, actor, property, payment, percentage_config):
        record_payment(actor, payment.id, "600.00", date(2025, 4, 2), "cash")

        candidates = evaluate_late_fees(property, date(2025, 4, 10))
        assert candidates[0]["fee_amount"] == Decimal("20.00")

    def test_paid_payment_not_evaluated(self, actor, property, payment, fixed_config):
        record_payment(actor, payment.id, "1000.00", date(2025, 4, 20), "cash")
        assert evaluate_late_fees(property, date(2025, 4, 30)) == []

    def test_calculate_is_dry_run(self, actor, property, payment, fixed_config):
        result = calculate_late_fees(actor, property, date(2025, 4, 10))

        assert result["count"] == 1
        assert result["total"] == Decimal("75.00")
        assert LateFee.objects.count() == 0


@pytest.mark.django_db
class TestApplyLateFees:
    def test_non_compounding_applies_once(self, actor, property, payment, fixed_config):
        first = apply_late_fees(actor, property, date(2025, 4, 10))
        second = apply_late_fees(actor, property, date(2025, 4, 20))

        assert len(first["applied"]) == 1
        assert second["applied"] == []
        assert LateFee.objects.filter(payment=payment).count() == 1

    def test_compounding_applies_once_per_date(self, actor, property, payment):
        create_or_update_configuration(
            actor, property, fee_type="fixed", fee_amount="10.00", grace_period_days=0, is_compounding=True,
        )

        apply_late_fees(actor, property, date(2025, 4, 10))
        apply_late_fees(actor, property, date(2025, 4, 10))
        apply_late_fees(actor, property, date(2025, 4, 11))

        assert LateFee.objects.filter(payment=payment).count() == 2

    def test_waived_fee_allows_new_fee(self, actor, property, payment, fixed_config):
        applied = apply_late_fees(actor, property, date(2025, 4, 10))["applied"][0]
        waive_late_fee(actor, applied["late_fee_id"], "Bank error")

        again = apply_late_fees(actor, property, date(2025, 4, 12))
        assert len(again["applied"]) == 1

    def test_process_late_fees_covers_configured_properties(self, property, payment, fixed_config):
        summary = process_late_fees(date(2025, 4, 10))

        assert summary["properties"] == 1
        assert summary["applied"] == 1
        assert summary["total_amount"] == Decimal("75.00")
        assert summary["errors"] == []

    def test_notice_sent_after_commit(self, actor, property, payment, fixed_config,
                                      django_capture_on_commit_callbacks, mailoutbox):
        with django_capture_on_commit_callbacks(execute=True):
            apply_late_fees(actor, property, date(2025, 4, 10))

        assert len(mailoutbox) == 1
        assert Notification.objects.filter(kind="late_fee_applied").count() == 1


# =============================================================================
# Manual fees
# =============================================================================

@pytest.mark.django_db
class TestApplyLateFee:
    def test_fixed_amount(self, actor, payment):
        fee = apply_late_fee(actor, payment.id, amount="35.00", as_of=date(2025, 4, 10))

        assert fee.amount == Decimal("35.00")
        assert fee.status == LateFee.Status.PENDING
        assert fee.days_late == 9

    def test_percentage_of_payment_amount_capped(self, actor, payment, percentage_config):
        fee = apply_late_fee(actor, payment.id, percentage="20", as_of=date(2025, 4, 10))
        assert fee.amount == Decimal("100.00")

    def test_uses_configuration_when_no_amount(self, actor, payment, percentage_config):
        fee = apply_late_fee(actor, payment.id, as_of=date(2025, 4, 10))
        assert fee.amount == Decimal("50.00")
        assert fee.configuration == percentage_config

    def test_amount_and_percentage_rejected(self, actor, payment):
        with pytest.raises(ValidationError):
            apply_late_fee(actor, payment.id, amount="10", percentage="5")

    def test_nothing_to_price_with(self, actor, payment):
        with pytest.raises(ValidationError):
            apply_late_fee(actor, payment.id)

    def test_paid_payment_rejected(self, actor, payment):
        record_payment(actor, payment.id, "1000.00", date(2025, 4, 1), "check")

        with pytest.raises(BusinessRuleViolation):
            apply_late_fee(actor, payment.id, amount="25.00")

    def test_second_fee_rejected_without_compounding(self, actor, payment):
        apply_late_fee(actor, payment.id, amount="25.00", as_of=date(2025, 4, 10))

        with pytest.raises(BusinessRuleViolation):
            apply_late_fee(actor, payment.id, amount="25.00", as_of=date(2025, 4, 11))

    def test_unknown_payment(self, actor, db):
        with pytest.raises(NotFoundError):
            apply_late_fee(actor, 424242, amount="25.00")


@pytest.mark.django_db
class TestWaiveLateFee:
    @pytest.fixture
    def late_fee(self, actor, payment):
        return apply_late_fee(actor, payment.id, amount="50.00", as_of=date(2025, 4, 10))

    def test_waive(self, actor, late_fee, user):
        waived = waive_late_fee(actor, late_fee.id, "First offence")

        assert waived.status == LateFee.Status.WAIVED
        assert waived.waived_reason == "First offence"
        assert waived.waived_by == user
        assert waived.waived_at is not None

    def test_second_waive_rejected(self, actor, late_fee):
        waive_late_fee(actor, late_fee.id, "First offence")

        with pytest.raises(BusinessRuleViolation):
            waive_late_fee(actor, late_fee.id, "Again")

    def test_reason_required(self, actor, late_fee):
        with pytest.raises(ValidationError):
            waive_late_fee(actor, late_fee.id, "")

    def test_paid_fee_cannot_be_waived(self, actor, late_fee):
        mark_late_fee_paid(actor, late_fee.id, date(2025, 4, 15))

        with pytest.raises(BusinessRuleViolation):
            waive_late_fee(actor, late_fee.id, "Too late")

    def test_mark_paid_twice_rejected(self, actor, late_fee):
        paid = mark_late_fee_paid(actor, late_fee.id, date(2025, 4, 15))
        assert paid.status == LateFee.Status.PAID
        assert paid.paid_date == date(2025, 4, 15)

        with pytest.raises(BusinessRuleViolation):
            mark_late_fee_paid(actor, late_fee.id)


@pytest.mark.django_db
class TestLateFeeQueries:
    def test_list_and_report(self, actor, property, payment, recurring_payment):
        other = Payment.objects.create(recurring_payment=recurring_payment, amount=Decimal("1000.00"), due_date=date(2025, 3, 1))
        first = apply_late_fee(actor, payment.id, amount="50.00", as_of=date(2025, 4, 10))
        second = apply_late_fee(actor, other.id, amount="30.00", as_of=date(2025, 4, 10))
        waive_late_fee(actor, second.id, "Goodwill")

        assert [f.id for f in get_late_fees(actor, property, status="pending")] == [first.id]
        with pytest.raises(ValidationError):
            list(get_late_fees(actor, property, status="bogus"))

        report = generate_late_fee_report(actor, property, date(2025, 4, 1), date(2025, 4, 30))
        summary = report["summary"]
        assert summary["total_fees"] == 2
        assert summary["total_assessed"] == Decimal("80.00")
        assert summary["total_pending"] == Decimal("50.00")
        assert summary["total_waived"] == Decimal("30.00")
        assert summary["waived_count"] == 1
