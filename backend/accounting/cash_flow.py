# accounting/cash_flow.py
"""
Cash flow history, forecast and anomaly checks for one property.

History is what actually moved: rent receipts by payment date and
non-cancelled expenses by transaction date, bucketed per calendar month.

The forecast projects the active rent schedules and recurring expense
templates forward and adds seasonal expenses: a (calendar month, category)
pair that occurred at least twice in the last two years is expected again
at its average amount.

Anomalies flag months more than two standard deviations from the mean and
same-day duplicates in the last three months.
"""

import logging
import statistics
from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Count
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from accounting.money import MONEY_Q, ZERO
from expenses.models import Expense
from properties.models import Lease
from rent.models import PaymentReceipt, RecurringPayment
from rent.schedule import add_months, clamp_day, iter_due_dates, month_bounds

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

MAX_HISTORY_MONTHS = 60
MAX_PREDICTION_MONTHS = 24
ANOMALY_HISTORY_MONTHS = 24
DUPLICATE_WINDOW_MONTHS = 3


def _month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _months_back(as_of: date, months: int) -> date:
    year, month = add_months(as_of.year, as_of.month, -months)
    return clamp_day(year, month, as_of.day)


def _check_months(months: int, maximum: int) -> int:
    if months < 1 or months > maximum:
        raise ValidationError(f"months must be between 1 and {maximum}.", {"field": "months"})
    return months


def _receipts(property):
    return PaymentReceipt.objects.filter(payment__recurring_payment__lease__unit__property=property)


def _expenses(property):
    return Expense.objects.filter(property=property).exclude(status=Expense.Status.CANCELLED)


# =============================================================================
# History
# =============================================================================

def _history(property, months: int, as_of: date) -> list[dict]:
    year, month = add_months(as_of.year, as_of.month, -(months - 1))
    start_date = date(year, month, 1)

    buckets = {}

    def bucket(day):
        key = _month_key(day)
        return buckets.setdefault(key, {"month": key, "income": ZERO, "expenses": ZERO})

    receipts = _receipts(property).filter(payment_date__gte=start_date, payment_date__lte=as_of)
    for payment_date, amount in receipts.values_list("payment_date", "amount"):
        bucket(payment_date)["income"] += amount

    expenses = _expenses(property).filter(transaction_date__gte=start_date, transaction_date__lte=as_of)
    for transaction_date, amount in expenses.values_list("transaction_date", "amount"):
        bucket(transaction_date)["expenses"] += amount

    rows = sorted(buckets.values(), key=lambda row: row["month"])
    for row in rows:
        row["net"] = row["income"] - row["expenses"]
    return rows


def get_historical_cash_flow(actor: ActorContext, property, months: int = 12, as_of: date | None = None) -> dict:
    """Monthly income, expenses and net for the trailing `months` calendar months (only months with activity)."""
    require(actor, "reports.view")
    _check_months(months, MAX_HISTORY_MONTHS)
    as_of = as_of or timezone.localdate()

    return {
        "property_id": property.id,
        "as_of": as_of,
        "months": months,
        "monthly_data": _history(property, months, as_of),
    }


# =============================================================================
# Prediction
# =============================================================================

def _seasonal_patterns(property, as_of: date) -> list[dict]:
    """Non-recurring expenses of the last two years grouped by (calendar month, category), seen at least twice."""
    expenses = (
        _expenses(property)
        .filter(
            transaction_date__gte=_months_back(as_of, 24),
            transaction_date__lte=as_of,
            is_recurring=False,
            recurring_source__isnull=True,
        )
        .values_list("transaction_date", "category_id", "category__name", "amount")
    )

    groups = defaultdict(list)
    names = {}
    for transaction_date, category_id, category_name, amount in expenses:
        groups[(transaction_date.month, category_id)].append(amount)
        names[category_id] = category_name

    patterns = []
    for (month, category_id), amounts in sorted(groups.items()):
        if len(amounts) < 2:
            continue
        patterns.append({
            "month": month,
            "category_id": category_id,
            "category": names[category_id],
            "average_amount": (sum(amounts) / len(amounts)).quantize(MONEY_Q, rounding=ROUND_HALF_UP),
            "occurrence_count": len(amounts),
        })
    return patterns


def _due_in(frequency: str, due_day: int, start_date: date, end_date: date | None,
            first: date, last: date) -> int:
    return sum(1 for due in iter_due_dates(frequency, due_day, start_date, end_date, last) if due >= first)


def confidence_score(patterns: list[dict]) -> float:
    """
    0.70 base, plus 0.05 per seasonal pattern (up to 3) and 0.02 per
    average occurrence (up to 5); never above 0.95.
    """
    confidence = 0.7
    if patterns:
        confidence += 0.05 * min(len(patterns), 3)
        average_occurrences = sum(p["occurrence_count"] for p in patterns) / len(patterns)
        confidence += 0.02 * min(average_occurrences, 5)
    return round(min(confidence, 0.95), 2)


def generate_prediction(actor: ActorContext, property, months: int = 6, as_of: date | None = None,
                        include_historical: bool = True) -> dict:
    """
    Expected income, expenses and net per month, starting with the month of
    as_of, for `months` months.
    """
    require(actor, "reports.view")
    _check_months(months, MAX_PREDICTION_MONTHS)
    as_of = as_of or timezone.localdate()

    schedules = list(
        RecurringPayment.objects.filter(
            lease__unit__property=property,
            lease__status=Lease.Status.ACTIVE,
            is_active=True,
        )
    )
    templates = list(
        Expense.objects.filter(
            property=property,
            is_recurring=True,
            status__in=(Expense.Status.PENDING, Expense.Status.PAID),
        ).exclude(recurring_frequency="")
    )
    patterns = _seasonal_patterns(property, as_of)

    prediction = []
    for offset in range(months):
        year, month = add_months(as_of.year, as_of.month, offset)
        first, last = month_bounds(date(year, month, 1))

        income = ZERO
        for schedule in schedules:
            periods = _due_in(schedule.frequency, schedule.due_day, schedule.start_date, schedule.end_date, first, last)
            income += schedule.amount * periods

        expenses = ZERO
        for template in templates:
            start = template.transaction_date
            periods = _due_in(template.recurring_frequency, start.day, start, None, first, last)
            expenses += template.amount * periods

        month_patterns = [p for p in patterns if p["month"] == month]
        expenses += sum((p["average_amount"] for p in month_patterns), ZERO)

        prediction.append({
            "month": _month_key(first),
            "expected_income": income,
            "expected_expenses": expenses,
            "net_cash_flow": income - expenses,
            "confidence": confidence_score(month_patterns),
        })

    total_income = sum((row["expected_income"] for row in prediction), ZERO)
    total_expenses = sum((row["expected_expenses"] for row in prediction), ZERO)
    total_net = total_income - total_expenses

    logger.info(
        "Cash flow prediction generated",
        extra={"property_id": property.id, "months": months, "seasonal_patterns": len(patterns)},
    )

    return {
        "property_id": property.id,
        "as_of": as_of,
        "historical_data": _history(property, 12, as_of) if include_historical else [],
        "seasonal_patterns": patterns,
        "prediction": prediction,
        "summary": {
            "total_expected_income": total_income,
            "total_expected_expenses": total_expenses,
            "total_net_cash_flow": total_net,
            "average_monthly_net_cash_flow": (total_net / months).quantize(MONEY_Q, rounding=ROUND_HALF_UP),
        },
    }


# =============================================================================
# Anomalies
# =============================================================================

def _deviation(value: Decimal, mean: Decimal, stdev: Decimal) -> Decimal:
    if not stdev:
        return ZERO
    return (abs(value - mean) / stdev).quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def _monthly_anomalies(history: list[dict]) -> list[dict]:
    anomalies = []
    incomes = [row["income"] for row in history]
    expenses = [row["expenses"] for row in history]
    income_mean, income_stdev = statistics.mean(incomes), statistics.pstdev(incomes)
    expense_mean, expense_stdev = statistics.mean(expenses), statistics.pstdev(expenses)

    def flag(kind, severity, row, value, mean, stdev, description):
        anomalies.append({
            "type": kind,
            "severity": severity,
            "month": row["month"],
            "value": value,
            "expected": mean.quantize(MONEY_Q, rounding=ROUND_HALF_UP),
            "deviation": _deviation(value, mean, stdev),
            "description": description,
        })

    for row in history:
        income, spent = row["income"], row["expenses"]
        if income > income_mean + 2 * income_stdev:
            flag("high_income", "medium", row, income, income_mean, income_stdev,
                 f"Unusually high income for {row['month']}")
        if 0 < income < income_mean - 2 * income_stdev:
            flag("low_income", "high", row, income, income_mean, income_stdev,
                 f"Unusually low income for {row['month']}")
        if spent > expense_mean + 2 * expense_stdev:
            flag("high_expenses", "high", row, spent, expense_mean, expense_stdev,
                 f"Unusually high expenses for {row['month']}")
        if spent < expense_mean - 2 * expense_stdev or (spent == 0 and expense_mean > 0):
            flag("low_expenses", "medium", row, spent, expense_mean, expense_stdev,
                 f"Unusually low or missing expenses for {row['month']}")
    return anomalies


def _duplicate_anomalies(property, as_of: date) -> list[dict]:
    since = _months_back(as_of, DUPLICATE_WINDOW_MONTHS)
    anomalies = []

    receipts = (
        _receipts(property)
        .filter(payment_date__gte=since, payment_date__lte=as_of)
        .values("amount", "payment_date", "payment__recurring_payment__lease__tenant")
        .order_by()
        .annotate(count=Count("id"))
        .filter(count__gt=1)
    )
    for row in receipts:
        tenant_id = row["payment__recurring_payment__lease__tenant"]
        anomalies.append({
            "type": "duplicate_payment",
            "severity": "high",
            "date": row["payment_date"],
            "amount": row["amount"],
            "tenant_id": tenant_id,
            "count": row["count"],
            "description": (
                f"Possible duplicate payment of {row['amount']} from tenant {tenant_id} "
                f"on {row['payment_date'].isoformat()}"
            ),
        })

    expenses = (
        _expenses(property)
        .filter(transaction_date__gte=since, transaction_date__lte=as_of)
        .values("amount", "transaction_date", "category_id", "category__name")
        .order_by()
        .annotate(count=Count("id"))
        .filter(count__gt=1)
    )
    for row in expenses:
        anomalies.append({
            "type": "duplicate_expense",
            "severity": "high",
            "date": row["transaction_date"],
            "amount": row["amount"],
            "category_id": row["category_id"],
            "count": row["count"],
            "description": (
                f"Possible duplicate expense of {row['amount']} in {row['category__name']} "
                f"on {row['transaction_date'].isoformat()}"
            ),
        })
    return anomalies


def detect_anomalies(actor: ActorContext, property, as_of: date | None = None) -> dict:
    require(actor, "reports.view")
    as_of = as_of or timezone.localdate()

    history = _history(property, ANOMALY_HISTORY_MONTHS, as_of)
    if len(history) < 3:
        anomalies = [{
            "type": "insufficient_data",
            "severity": "low",
            "description": "Not enough historical data to detect anomalies",
        }]
    else:
        anomalies = _monthly_anomalies(history) + _duplicate_anomalies(property, as_of)
        if anomalies:
            logger.warning(
                "Cash flow anomalies detected",
                extra={"property_id": property.id, "anomalies": len(anomalies)},
            )

    # most recent first within each severity
    anomalies.sort(key=lambda a: a.get("month") or (a["date"].isoformat() if "date" in a else ""), reverse=True)
    anomalies.sort(key=lambda a: SEVERITY_ORDER[a["severity"]])

    return {"property_id": property.id, "as_of": as_of, "anomalies": anomalies}
