# tests/test_accounting_module.py
"""
Tests for the cross-cutting accounting operations.

Tests cover:
- The as-of batch: payments, late fees, interest, recurring expenses
- Batch idempotency and isolation of a failing job
- Dashboard numbers and consolidated financial reports
- The run_accounting_batch management command and the Celery task
"""

import json
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from accounting import module as accounting_module
from accounting.exceptions import BusinessRuleViolation
from accounting.module import AccountingModule, summarize_batch
from accounting.tasks import process_recurring_transactions_task
from expenses.commands import create_category, record_expense
from late_fees.commands import apply_late_fee, create_or_update_configuration
from properties.models import Property
from rent.commands import generate_payments, record_payment
from rent.models import Payment
from trust.commands import create_trust_account, record_deposit

AS_OF = date(2025, 4, 10)


@pytest.fixture
def batch_setup(actor, property, recurring_payment):
    """Monthly rent since January, a fixed late fee rule, an interest account and a recurring bill."""
    create_or_update_configuration(actor, property, fee_type="fixed", fee_amount="75.00", grace_period_days=5)

    savings = create_trust_account(
        actor, property, "Interest Deposits", "escrow", is_interest_bearing=True, interest_rate="12",
    )
    record_deposit(actor, savings.id, "1000.00", date(2025, 4, 1))

    utilities = create_category(actor, "Utilities")
    template = record_expense(
        actor, property, utilities.id, "120.00", date(2025, 3, 10),
        is_recurring=True, recurring_frequency="monthly",
    )
    return {"savings": savings, "template": template}


# =============================================================================
# Batch
# =============================================================================

@pytest.mark.django_db
class TestRecurringBatch:
    def test_runs_every_job(self, batch_setup):
        result = AccountingModule().process_recurring_transactions(AS_OF)

        assert result["success"] is True
        assert result["errors"] == []
        assert result["payments_generated"] == 4
        # January through April are all past the 5 day grace period
        assert result["late_fees"]["applied"] == 4
        assert result["late_fees"]["total_amount"] == Decimal("300.00")
        assert result["interest"]["total_interest"] == Decimal("10.00")
        assert len(result["expenses"]["created"]) == 1

    def test_second_run_changes_nothing(self, batch_setup):
        AccountingModule().process_recurring_transactions(AS_OF)
        again = AccountingModule().process_recurring_transactions(AS_OF)

        assert again["payments_generated"] == 0
        assert again["late_fees"]["applied"] == 0
        assert again["interest"]["posted"] == []
        assert again["expenses"]["created"] == []

    def test_failing_job_does_not_stop_the_others(self, batch_setup, monkeypatch):
        def broken(*args, **kwargs):
            raise BusinessRuleViolation("late fee engine offline")

        monkeypatch.setattr(accounting_module, "process_late_fees", broken)

        result = AccountingModule().process_recurring_transactions(AS_OF)

        assert result["success"] is False
        assert result["late_fees"] is None
        assert result["errors"] == [{"job": "late_fees", "error": "late fee engine offline"}]
        assert result["payments_generated"] == 4
        assert result["interest"]["total_interest"] == Decimal("10.00")

    def test_unexpected_error_is_contained(self, batch_setup, monkeypatch):
        def broken(*args, **kwargs):
            raise KeyError("expense template missing")

        monkeypatch.setattr(accounting_module, "process_recurring_expenses", broken)

        result = AccountingModule().process_recurring_transactions(AS_OF)

        assert result["success"] is False
        assert result["expenses"] is None
        assert [e["job"] for e in result["errors"]] == ["expenses"]
        assert result["payments_generated"] == 4
        assert result["late_fees"]["applied"] == 4

    def test_summarize_batch(self, batch_setup):
        summary = summarize_batch(AccountingModule().process_recurring_transactions(AS_OF))

        assert summary == {
            "as_of": "2025-04-10",
            "success": True,
            "payments_generated": 4,
            "late_fees_applied": 4,
            "late_fee_total": "300.00",
            "interest_posted": 1,
            "interest_total": "10.00",
            "expenses_created": 1,
            "errors": [],
        }


# =============================================================================
# Dashboard & reports
# =============================================================================

@pytest.mark.django_db
class TestDashboard:
    @pytest.fixture
    def activity(self, actor, property, recurring_payment, escrow_account, trust_account):
        generate_payments(through_date=date(2025, 4, 30))
        payments = {p.due_date: p for p in recurring_payment.payments.all()}
        record_payment(actor, payments[date(2025, 1, 1)].id, "1000.00", date(2025, 1, 1), "ach")
        record_payment(actor, payments[date(2025, 4, 1)].id, "400.00", date(2025, 4, 3), "ach")
        Payment.objects.create(recurring_payment=recurring_payment, amount=Decimal("250.00"), due_date=date(2025, 4, 20))
        apply_late_fee(actor, payments[date(2025, 2, 1)].id, amount="50.00", as_of=date(2025, 2, 10))

        record_deposit(actor, escrow_account.id, "1000.00", date(2025, 3, 1))

        repairs = create_category(actor, "Repairs")
        record_expense(actor, property, repairs.id, "200.00", date(2025, 4, 5))

    def test_company_dashboard(self, actor, activity):
        dashboard = AccountingModule().get_dashboard(actor, as_of=AS_OF)

        assert dashboard["rent"]["due"] == {"count": 1, "amount": Decimal("250.00")}
        # February, March and the unpaid part of April
        assert dashboard["rent"]["overdue"] == {"count": 3, "amount": Decimal("2600.00")}
        assert dashboard["rent"]["collected_mtd"] == Decimal("400.00")
        assert dashboard["late_fees"] == {"pending_count": 1, "pending_amount": Decimal("50.00")}
        assert dashboard["trust"] == {"total_balance": Decimal("1000.00"), "accounts": 2}
        assert dashboard["expenses"] == {"mtd_total": Decimal("200.00"), "pending_count": 1}

    def test_property_dashboard_is_scoped(self, actor, company, activity):
        other = Property.objects.create(company=company, name="Birch House", address="2 Birch Rd", city="Springfield")

        dashboard = AccountingModule().get_dashboard(actor, property=other, as_of=AS_OF)
        assert dashboard["property_id"] == other.id
        assert dashboard["rent"]["overdue"]["count"] == 0
        assert dashboard["trust"]["accounts"] == 0

    def test_other_company_sees_nothing(self, outsider_actor, activity):
        dashboard = AccountingModule().get_dashboard(outsider_actor, as_of=AS_OF)

        assert dashboard["rent"]["overdue"]["count"] == 0
        assert dashboard["trust"]["total_balance"] == Decimal("0.00")


@pytest.mark.django_db
class TestFinancialReports:
    def test_bundles_every_report(self, actor, property, payment, escrow_account, trust_account):
        record_deposit(actor, escrow_account.id, "500.00", date(2025, 4, 2))

        report = AccountingModule().generate_financial_reports(actor, property, date(2025, 4, 1), date(2025, 4, 30))

        assert report["property"] == {"id": property.id, "name": "Maple Court"}
        assert report["rent_roll"]["summary"]["total_amount"] == Decimal("1000.00")
        assert report["expenses"]["summary"]["total_expenses"] == 0
        assert len(report["trust_accounts"]) == 2
        assert report["trust_audit"]["summary"]["total_deposits"] == Decimal("500.00")


# =============================================================================
# Entry points
# =============================================================================

@pytest.mark.django_db
class TestBatchEntryPoints:
    def test_management_command(self, batch_setup):
        out = StringIO()
        call_command("run_accounting_batch", "--as-of", "2025-04-10", stdout=out)

        output = out.getvalue()
        assert "Payments generated: 4" in output
        assert "Done!" in output

    def test_management_command_json(self, batch_setup):
        out = StringIO()
        call_command("run_accounting_batch", "--as-of", "2025-04-10", "--json", stdout=out)

        result = json.loads(out.getvalue())
        assert result["as_of"] == "2025-04-10"
        assert result["payments_generated"] == 4

    @pytest.mark.parametrize("value", ["tomorrow", "2025-13-45"])
    def test_management_command_rejects_bad_date(self, db, value):
        with pytest.raises(CommandError):
            call_command("run_accounting_batch", "--as-of", value, stdout=StringIO())

    def test_task(self, batch_setup):
        summary = process_recurring_transactions_task(as_of="2025-04-10")

        assert summary["success"] is True
        assert summary["payments_generated"] == 4
        assert summary["interest_total"] == "10.00"

    def test_task_bad_date(self, db):
        assert "error" in process_recurring_transactions_task(as_of="not-a-date")
