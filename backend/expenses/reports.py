# expenses/reports.py
"""
Expense report (grouped totals) and expense statistics.

Non-cancelled expenses only: a cancelled expense never cost anything.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from expenses.models import Expense
from rent.schedule import add_months

GROUP_BY_CHOICES = ("category", "vendor", "unit", "month", "property")

EXPENSE_REPORT_COLUMNS = [
    {"key": "group", "header": "Group", "width": 28},
    {"key": "count", "header": "Count", "width": 8, "numeric": True},
    {"key": "amount", "header": "Amount", "width": 14, "numeric": True},
    {"key": "tax_amount", "header": "Tax", "width": 12, "numeric": True},
    {"key": "total", "header": "Total", "width": 14, "numeric": True},
    {"key": "tax_deductible_amount", "header": "Tax Deductible", "width": 14, "numeric": True},
]

ZERO = Decimal("0.00")


def _period_expenses(actor: ActorContext, property, start_date: date, end_date: date):
    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.", {"field": "start_date"})

    qs = Expense.objects.filter(
        property__company=actor.company,
        transaction_date__gte=start_date,
        transaction_date__lte=end_date,
    ).exclude(status=Expense.Status.CANCELLED)
    if property is not None:
        qs = qs.filter(property=property)
    return qs.select_related("property", "unit", "category", "vendor").order_by("transaction_date", "id")


def _group_key(expense: Expense, group_by: str) -> tuple:
    if group_by == "category":
        return expense.category_id, expense.category.name
    if group_by == "vendor":
        return expense.vendor_id, expense.vendor.name if expense.vendor else "Unknown Vendor"
    if group_by == "unit":
        return expense.unit_id, expense.unit.unit_number if expense.unit else "Property-wide"
    if group_by == "property":
        return expense.property_id, expense.property.name
    month = expense.transaction_date.strftime("%Y-%m")
    return month, month


def generate_expense_report(
    actor: ActorContext,
    property,
    start_date: date,
    end_date: date,
    group_by: str = "category",
) -> dict:
    require(actor, "reports.view")

    if group_by not in GROUP_BY_CHOICES:
        raise ValidationError(f"group_by must be one of {', '.join(GROUP_BY_CHOICES)}.", {"field": "group_by"})

    groups = {}
    summary = {
        "total_expenses": 0,
        "total_amount": ZERO,
        "total_tax": ZERO,
        "grand_total": ZERO,
        "tax_deductible_amount": ZERO,
        "pending_amount": ZERO,
        "paid_amount": ZERO,
    }

    for expense in _period_expenses(actor, property, start_date, end_date):
        key, label = _group_key(expense, group_by)
        group = groups.setdefault(key, {
            "group_id": key,
            "group": label,
            "count": 0,
            "amount": ZERO,
            "tax_amount": ZERO,
            "total": ZERO,
            "tax_deductible_amount": ZERO,
        })
        group["count"] += 1
        group["amount"] += expense.amount
        group["tax_amount"] += expense.tax_amount
        group["total"] += expense.total_amount
        if expense.category.is_tax_deductible:
            group["tax_deductible_amount"] += expense.amount
            summary["tax_deductible_amount"] += expense.amount

        summary["total_expenses"] += 1
        summary["total_amount"] += expense.amount
        summary["total_tax"] += expense.tax_amount
        summary["grand_total"] += expense.total_amount
        if expense.status == Expense.Status.PAID:
            summary["paid_amount"] += expense.amount
        else:
            summary["pending_amount"] += expense.amount

    rows = sorted(groups.values(), key=lambda g: g["group"] if group_by == "month" else (-g["total"], g["group"]))
    summary["non_tax_deductible_amount"] = summary["total_amount"] - summary["tax_deductible_amount"]

    return {
        "property": {"id": property.id, "name": property.name} if property is not None else None,
        "period": {"start_date": start_date, "end_date": end_date},
        "group_by": group_by,
        "rows": rows,
        "summary": summary,
    }


def _months(start_date: date, end_date: date) -> list[str]:
    months = []
    year, month = start_date.year, start_date.month
    while (year, month) <= (end_date.year, end_date.month):
        months.append(f"{year:04d}-{month:02d}")
        year, month = add_months(year, month, 1)
    return months


def get_expense_statistics(actor: ActorContext, property, start_date: date, end_date: date) -> dict:
    require(actor, "expenses.view")

    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.", {"field": "start_date"})

    months = _months(start_date, end_date)
    trend = {m: {"period": m, "amount": ZERO, "count": 0} for m in months}
    by_status = {s: {"count": 0, "amount": ZERO} for s in Expense.Status.values}
    by_category = {}
    total_amount = total_tax = tax_deductible = ZERO
    count = 0

    expenses = Expense.objects.filter(
        property__company=actor.company,
        transaction_date__gte=start_date,
        transaction_date__lte=end_date,
    ).select_related("category")
    if property is not None:
        expenses = expenses.filter(property=property)

    for expense in expenses:
        by_status[expense.status]["count"] += 1
        by_status[expense.status]["amount"] += expense.amount
        if expense.status == Expense.Status.CANCELLED:
            continue

        count += 1
        total_amount += expense.amount
        total_tax += expense.tax_amount
        if expense.category.is_tax_deductible:
            tax_deductible += expense.amount

        category = by_category.setdefault(expense.category_id, {
            "id": expense.category_id,
            "name": expense.category.name,
            "count": 0,
            "amount": ZERO,
        })
        category["count"] += 1
        category["amount"] += expense.amount

        bucket = trend.get(expense.transaction_date.strftime("%Y-%m"))
        if bucket is not None:
            bucket["amount"] += expense.amount
            bucket["count"] += 1

    for category in by_category.values():
        category["percentage"] = (
            (category["amount"] * 100 / total_amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            if total_amount else ZERO
        )
    top_categories = sorted(by_category.values(), key=lambda c: (-c["amount"], c["name"]))[:5]

    return {
        "property": {"id": property.id, "name": property.name} if property is not None else None,
        "period": {"start_date": start_date, "end_date": end_date},
        "summary": {
            "total_expenses": count,
            "total_amount": total_amount,
            "total_tax_amount": total_tax,
            "tax_deductible_amount": tax_deductible,
            "non_tax_deductible_amount": total_amount - tax_deductible,
            "pending_expenses": by_status[Expense.Status.PENDING]["count"],
            "pending_amount": by_status[Expense.Status.PENDING]["amount"],
            "average_expense_amount": (
                (total_amount / count).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if count else ZERO
            ),
        },
        "by_status": by_status,
        "top_categories": top_categories,
        "monthly_trend": list(trend.values()),
    }
