# accounting/module.py
"""
AccountingModule: the cross-cutting operations over rent, late fees, trust
accounts and expenses.

- process_recurring_transactions(): the daily as-of batch
- generate_financial_reports(): every report for one property and period
- get_dashboard(): headline numbers for a company or one property

The batch is a pure function of (database state, as_of). Nothing here
schedules itself; Celery beat, the run_accounting_batch management command
and POST /batch/recurring all call the same method.
"""

import logging
from datetime import date
from decimal import Decimal

from django.db.models import Count, DecimalField, F, Sum
from django.utils import timezone

from accounts.authz import ActorContext, require
from expenses.commands import process_recurring_expenses
from expenses.models import Expense
from expenses.reports import generate_expense_report
from late_fees.commands import process_late_fees
from late_fees.models import LateFee
from notifications.services import NotificationService
from ops.metrics import BATCH_DURATION
from rent.commands import generate_payments
from rent.models import Payment, PaymentReceipt
from rent.reports import generate_rent_roll_report
from rent.schedule import month_bounds
from trust.commands import calculate_and_apply_interest
from trust.models import TrustAccount
from trust.reports import generate_audit_report, generate_statement

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

OUTSTANDING = Sum(F("amount") - F("amount_paid"), output_field=DecimalField(max_digits=14, decimal_places=2))


class AccountingModule:
    def __init__(self, notifier: NotificationService | None = None):
        self.notifier = notifier or NotificationService()

    # =========================================================================
    # Batch
    # =========================================================================

    def process_recurring_transactions(self, as_of: date, user=None) -> dict:
        """
        Run every as-of job in order: generate due payments, apply late
        fees, post trust interest, create recurring expenses.

        A failing job is logged and reported in `errors`; the remaining jobs
        still run. `success` is False when any job failed outright.
        """
        jobs = (
            ("payments_generated", lambda: generate_payments(through_date=as_of)),
            ("late_fees", lambda: process_late_fees(as_of, user=user, notifier=self.notifier)),
            ("interest", lambda: calculate_and_apply_interest(as_of, user=user)),
            ("expenses", lambda: process_recurring_expenses(as_of, user=user)),
        )

        result = {"as_of": as_of, "errors": []}
        with BATCH_DURATION.labels(job="recurring_transactions").time():
            for name, job in jobs:
                try:
                    result[name] = job()
                except Exception as e:
                    logger.exception(
                        f"Accounting batch job failed: {name}",
                        extra={"job": name, "as_of": as_of.isoformat()},
                    )
                    result[name] = None
                    result["errors"].append({"job": name, "error": str(e)})

        result["success"] = not result["errors"]
        logger.info(
            "Accounting batch finished",
            extra={"as_of": as_of.isoformat(), "success": result["success"], "failed_jobs": len(result["errors"])},
        )
        return result

    # =========================================================================
    # Reports
    # =========================================================================

    def generate_financial_reports(self, actor: ActorContext, property, start_date: date, end_date: date) -> dict:
        require(actor, "reports.view")

        accounts = TrustAccount.objects.filter(property=property).order_by("account_name", "id")
        return {
            "property": {"id": property.id, "name": property.name},
            "period": {"start_date": start_date, "end_date": end_date},
            "rent_roll": generate_rent_roll_report(actor, property, start_date, end_date),
            "expenses": generate_expense_report(actor, property, start_date, end_date),
            "trust_accounts": [
                generate_statement(actor, account.id, start_date, end_date) for account in accounts
            ],
            "trust_audit": generate_audit_report(actor, property, start_date, end_date),
        }

    def get_dashboard(self, actor: ActorContext, property=None, as_of: date | None = None) -> dict:
        require(actor, "reports.view")

        today = as_of or timezone.localdate()
        month_start, month_end = month_bounds(today)

        payments = Payment.objects.filter(recurring_payment__lease__unit__property__company=actor.company)
        receipts = PaymentReceipt.objects.filter(payment__recurring_payment__lease__unit__property__company=actor.company)
        late_fees = LateFee.objects.filter(payment__recurring_payment__lease__unit__property__company=actor.company)
        accounts = TrustAccount.objects.filter(property__company=actor.company, is_active=True)
        expenses = Expense.objects.filter(property__company=actor.company)
        if property is not None:
            payments = payments.filter(recurring_payment__lease__unit__property=property)
            receipts = receipts.filter(payment__recurring_payment__lease__unit__property=property)
            late_fees = late_fees.filter(payment__recurring_payment__lease__unit__property=property)
            accounts = accounts.filter(property=property)
            expenses = expenses.filter(property=property)

        open_payments = payments.filter(status__in=Payment.OPEN_STATUSES)
        due = open_payments.filter(due_date__gte=today, due_date__lte=month_end).aggregate(
            count=Count("id"), amount=OUTSTANDING,
        )
        overdue = open_payments.filter(due_date__lt=today).aggregate(count=Count("id"), amount=OUTSTANDING)
        collected = receipts.filter(payment_date__gte=month_start, payment_date__lte=today).aggregate(
            amount=Sum("amount"),
        )
        pending_fees = late_fees.filter(status=LateFee.Status.PENDING).aggregate(count=Count("id"), amount=Sum("amount"))
        trust = accounts.aggregate(count=Count("id"), balance=Sum("balance"))
        expenses_mtd = (
            expenses.filter(transaction_date__gte=month_start, transaction_date__lte=today)
            .exclude(status=Expense.Status.CANCELLED)
            .aggregate(amount=Sum("amount"))
        )

        return {
            "as_of": today,
            "property_id": property.id if property is not None else None,
            "rent": {
                "due": {"count": due["count"], "amount": due["amount"] or ZERO},
                "overdue": {"count": overdue["count"], "amount": overdue["amount"] or ZERO},
                "collected_mtd": collected["amount"] or ZERO,
            },
            "late_fees": {
                "pending_count": pending_fees["count"],
                "pending_amount": pending_fees["amount"] or ZERO,
            },
            "trust": {
                "total_balance": trust["balance"] or ZERO,
                "accounts": trust["count"],
            },
            "expenses": {
                "mtd_total": expenses_mtd["amount"] or ZERO,
                "pending_count": expenses.filter(status=Expense.Status.PENDING).count(),
            },
        }


def summarize_batch(result: dict) -> dict:
    """Counts-only view of a batch result, safe for task results and logs."""
    late_fees = result.get("late_fees") or {}
    interest = result.get("interest") or {}
    expenses = result.get("expenses") or {}
    return {
        "as_of": result["as_of"].isoformat(),
        "success": result["success"],
        "payments_generated": result.get("payments_generated") or 0,
        "late_fees_applied": late_fees.get("applied", 0),
        "late_fee_total": str(late_fees.get("total_amount", ZERO)),
        "interest_posted": len(interest.get("posted", [])),
        "interest_total": str(interest.get("total_interest", ZERO)),
        "expenses_created": len(expenses.get("created", [])),
        "errors": [e["job"] for e in result["errors"]],
    }
