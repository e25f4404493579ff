# tests/test_rent_tracking.py
"""
Tests for rent tracking.

Tests cover:
- Payment generation from recurring schedules (idempotent)
- Partial / full payment recording and overpayment rejection
- Idempotency keys on payment recording
- Waiving payments
- Due list filters, lease status, rent roll, reminders
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied

from accounting.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from notifications.models import Notification
from properties.models import Lease
from rent.commands import (
    create_recurring_payment,
    deactivate_recurring_payment,
    generate_payments,
    record_payment,
    send_payment_reminders,
    waive_payment,
)
from rent.models import Payment, PaymentReceipt, RecurringPayment
from rent.queries import get_due_payments, get_lease_payment_status
from rent.reports import generate_rent_roll_report
from rent.schedule import iter_due_dates


# =============================================================================
# Schedules
# =============================================================================

class TestDueDates:
    def test_monthly_due_dates_through_date(self):
        dates = list(iter_due_dates("monthly", 1, date(2025, 1, 1), None, date(2025, 3, 15)))
        assert dates == [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1)]

    def test_due_day_clamped_to_short_month(self):
        dates = list(iter_due_dates("monthly", 31, date(2025, 1, 1), None, date(2025, 3, 31)))
        assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]

    def test_due_before_start_is_skipped(self):
        dates = list(iter_due_dates("monthly", 1, date(2025, 1, 15), None, date(2025, 3, 1)))
        assert dates == [date(2025, 2, 1), date(2025, 3, 1)]

    def test_quarterly_stops_at_end_date(self):
        dates = list(iter_due_dates("quarterly", 1, date(2025, 1, 1), date(2025, 6, 30), date(2026, 1, 1)))
        assert dates == [date(2025, 1, 1), date(2025, 4, 1)]


@pytest.mark.django_db
class TestGeneratePayments:
    def test_generates_one_payment_per_period(self, recurring_payment):
        created = generate_payments(through_date=date(2025, 3, 15))

        assert created == 3
        due_dates = list(recurring_payment.payments.values_list("due_date", flat=True))
        assert due_dates == [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1)]

    def test_rerun_creates_nothing(self, recurring_payment):
        generate_payments(through_date=date(2025, 3, 15))
        assert generate_payments(through_date=date(2025, 3, 15)) == 0
        assert recurring_payment.payments.count() == 3

    def test_counts_only_rows_actually_inserted(self, recurring_payment):
        Payment.objects.create(recurring_payment=recurring_payment, amount=Decimal("1000.00"), due_date=date(2025, 2, 1))

        assert generate_payments(through_date=date(2025, 3, 15)) == 2
        assert recurring_payment.payments.count() == 3

    def test_inactive_lease_is_skipped(self, recurring_payment, lease):
        lease.status = Lease.Status.ENDED
        lease.save()

        assert generate_payments(through_date=date(2025, 3, 15)) == 0

    def test_create_and_deactivate_recurring_payment(self, actor, lease):
        recurring = create_recurring_payment(actor, lease.id, "750.00", date(2025, 2, 1), due_day=5)
        assert recurring.amount == Decimal("750.00")
        assert recurring.is_active is True

        deactivate_recurring_payment(actor, recurring.id)
        recurring.refresh_from_db()
        assert recurring.is_active is False


# =============================================================================
# Recording payments
# =============================================================================

@pytest.mark.django_db
class TestRecordPayment:
    def test_full_payment_marks_paid(self, actor, payment):
        result = record_payment(actor, payment.id, "1000.00", date(2025, 4, 1), "check")

        assert result.status == Payment.Status.PAID
        assert result.amount_paid == Decimal("1000.00")
        assert result.payment_method == "check"

    def test_partial_payments_accumulate(self, actor, payment):
        first = record_payment(actor, payment.id, "400.00", date(2025, 4, 2), "cash")
        assert first.status == Payment.Status.PARTIAL
        assert first.amount_paid == Decimal("400.00")

        second = record_payment(actor, payment.id, "600.00", date(2025, 4, 9), "cash")
        assert second.status == Payment.Status.PAID
        assert second.amount_paid == Decimal("1000.00")
        assert PaymentReceipt.objects.filter(payment=payment).count() == 2

    def test_overpayment_rejected(self, actor, payment):
        record_payment(actor, payment.id, "400.00", date(2025, 4, 2), "cash")

        with pytest.raises(ValidationError):
            record_payment(actor, payment.id, "600.01", date(2025, 4, 3), "cash")

        payment.refresh_from_db()
        assert payment.amount_paid == Decimal("400.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00", "abc"])
    def test_invalid_amount_rejected(self, actor, payment, amount):
        with pytest.raises(ValidationError):
            record_payment(actor, payment.id, amount, date(2025, 4, 1), "cash")

    def test_paid_payment_rejected(self, actor, payment):
        record_payment(actor, payment.id, "1000.00", date(2025, 4, 1), "check")

        with pytest.raises(BusinessRuleViolation):
            record_payment(actor, payment.id, "1.00", date(2025, 4, 2), "check")

    def test_unknown_payment(self, actor, db):
        with pytest.raises(NotFoundError):
            record_payment(actor, 999999, "10.00", date(2025, 4, 1), "cash")

    def test_other_company_payment_not_found(self, outsider_actor, payment):
        with pytest.raises(NotFoundError):
            record_payment(outsider_actor, payment.id, "10.00", date(2025, 4, 1), "cash")

    def test_viewer_cannot_record(self, viewer_actor, payment):
        with pytest.raises(PermissionDenied):
            record_payment(viewer_actor, payment.id, "10.00", date(2025, 4, 1), "cash")

    def test_duplicate_idempotency_key_applies_once(self, actor, payment):
        record_payment(actor, payment.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-1")
        again = record_payment(actor, payment.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-1")

        assert again.amount_paid == Decimal("300.00")
        assert PaymentReceipt.objects.filter(payment=payment).count() == 1

    def test_idempotency_key_reused_for_other_payment(self, actor, payment, recurring_payment):
        other = Payment.objects.create(recurring_payment=recurring_payment, amount=Decimal("1000.00"), due_date=date(2025, 5, 1))
        record_payment(actor, payment.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-2")

        with pytest.raises(ValidationError):
            record_payment(actor, other.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-2")

    def test_replayed_key_from_other_company_is_not_found(self, actor, outsider_actor, payment):
        record_payment(actor, payment.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-3")

        with pytest.raises(NotFoundError):
            record_payment(outsider_actor, payment.id, "300.00", date(2025, 4, 2), "ach", idempotency_key="rcpt-3")

        payment.refresh_from_db()
        assert payment.amount_paid == Decimal("300.00")


@pytest.mark.django_db
class TestWaivePayment:
    def test_waive_pending(self, actor, payment):
        result = waive_payment(actor, payment.id, "Hardship")

        assert result.status == Payment.Status.WAIVED
        assert "Hardship" in result.notes

    def test_waive_requires_reason(self, actor, payment):
        with pytest.raises(ValidationError):
            waive_payment(actor, payment.id, "")

    def test_waive_partial_rejected(self, actor, payment):
        record_payment(actor, payment.id, "100.00", date(2025, 4, 2), "cash")

        with pytest.raises(BusinessRuleViolation):
            waive_payment(actor, payment.id, "Too late")


# =============================================================================
# Queries
# =============================================================================

@pytest.mark.django_db
class TestDuePayments:
    @pytest.fixture
    def schedule(self, recurring_payment):
        generate_payments(through_date=date(2025, 6, 1))
        return recurring_payment

    def test_default_excludes_waived_and_far_future(self, actor, property, schedule):
        waived = schedule.payments.get(due_date=date(2025, 2, 1))
        waive_payment(actor, waived.id, "Concession")

        due = list(get_due_payments(actor, property, as_of=date(2025, 4, 15)))

        due_dates = [p.due_date for p in due]
        assert date(2025, 2, 1) not in due_dates
        # 2025-06-01 is more than 30 days after as_of
        assert due_dates == [date(2025, 1, 1), date(2025, 3, 1), date(2025, 4, 1), date(2025, 5, 1)]

    def test_explicit_end_date_lifts_lookahead(self, actor, property, schedule):
        due = get_due_payments(actor, property, end_date=date(2025, 12, 31), as_of=date(2025, 1, 1))
        assert due.count() == 6

    def test_overdue_filter(self, actor, property, schedule):
        record_payment(actor, schedule.payments.get(due_date=date(2025, 1, 1)).id, "1000.00", date(2025, 1, 1), "ach")

        overdue = get_due_payments(actor, property, status="overdue", as_of=date(2025, 3, 10))
        assert [p.due_date for p in overdue] == [date(2025, 2, 1), date(2025, 3, 1)]

    def test_unknown_status(self, actor, property, schedule):
        with pytest.raises(ValidationError):
            get_due_payments(actor, property, status="bogus")

    def test_lease_payment_status(self, actor, lease, schedule):
        first = schedule.payments.get(due_date=date(2025, 1, 1))
        record_payment(actor, first.id, "1000.00", date(2025, 1, 1), "ach")
        second = schedule.payments.get(due_date=date(2025, 2, 1))
        record_payment(actor, second.id, "250.00", date(2025, 2, 3), "ach")

        status = get_lease_payment_status(actor, lease.id, as_of=date(2025, 3, 1))

        assert status["total_due"] == Decimal("3000.00")
        assert status["total_paid"] == Decimal("1250.00")
        assert status["outstanding"] == Decimal("1750.00")
        # 2025-03-01 is due today, not overdue yet
        assert status["overdue_count"] == 1
        assert status["overdue_amount"] == Decimal("750.00")


@pytest.mark.django_db
class TestRentRoll:
    def test_summary(self, actor, property, unit, second_unit, payment):
        record_payment(actor, payment.id, "400.00", date(2025, 4, 3), "cash")

        report = generate_rent_roll_report(actor, property, date(2025, 4, 1), date(2025, 4, 30))

        summary = report["summary"]
        assert summary["total_units"] == 2
        assert summary["occupied_units"] == 1
        assert summary["occupancy_rate"] == Decimal("50.00")
        assert summary["total_amount"] == Decimal("1000.00")
        assert summary["total_paid"] == Decimal("400.00")
        assert summary["total_pending"] == Decimal("600.00")

        by_unit = {row["unit_number"]: row for row in report["rows"]}
        assert by_unit["101"]["status"] == "partial"
        assert by_unit["101"]["tenant_name"] == "Jane Doe"
        assert by_unit["102"]["occupied"] is False

    def test_inverted_period(self, actor, property):
        with pytest.raises(ValidationError):
            generate_rent_roll_report(actor, property, date(2025, 5, 1), date(2025, 4, 1))


@pytest.mark.django_db
class TestReminders:
    def test_reminder_sent_for_payment_in_window(self, actor, property, payment, mailoutbox):
        sent = send_payment_reminders(actor, property, days_in_advance=3, as_of=date(2025, 3, 29))

        assert sent == 1
        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["jane@example.com"]
        assert Notification.objects.filter(kind="payment_reminder", status=Notification.Status.SENT).count() == 1

    def test_no_reminder_outside_window(self, actor, property, payment, mailoutbox):
        assert send_payment_reminders(actor, property, days_in_advance=3, as_of=date(2025, 3, 20)) == 0
        assert mailoutbox == []

    def test_tenant_without_email_is_skipped(self, actor, property, payment, tenant, mailoutbox):
        tenant.email = ""
        tenant.save()

        assert send_payment_reminders(actor, property, days_in_advance=3, as_of=date(2025, 3, 29)) == 0
        assert Notification.objects.get().status == Notification.Status.SKIPPED
