# expenses/queries.py
"""Read side of expenses: category listings and expense filters."""

from collections import defaultdict

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from expenses.models import Expense, ExpenseCategory


def _category_row(category: ExpenseCategory, level: int, path: list[str]) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "parent_id": category.parent_id,
        "is_tax_deductible": category.is_tax_deductible,
        "is_active": category.is_active,
        "level": level,
        "full_path": " > ".join(path),
    }


def get_expense_categories(
    actor: ActorContext,
    include_inactive: bool = False,
    include_hierarchy: bool = False,
) -> list[dict]:
    """
    Company categories, parents before children, siblings by name.

    Flat: one row per category with `level` (0 for roots) and `full_path`
    ("Parent > Child"). With include_hierarchy every row also carries its
    `children`, and only roots are returned.

    Built from one query and one pass over a parent -> children map.
    """
    require(actor, "expenses.view")

    qs = ExpenseCategory.objects.filter(company=actor.company)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    categories = list(qs.order_by("name", "id"))

    ids = {c.id for c in categories}
    children_of = defaultdict(list)
    for category in categories:
        # An inactive (filtered out) parent promotes its children to roots.
        parent_key = category.parent_id if category.parent_id in ids else None
        children_of[parent_key].append(category)

    flat, roots = [], []

    def walk(category, level, path, siblings):
        row = _category_row(category, level, path + [category.name])
        flat.append(row)
        siblings.append(row)
        if include_hierarchy:
            row["children"] = []
        for child in children_of.get(category.id, []):
            walk(child, level + 1, path + [category.name], row["children"] if include_hierarchy else [])

    for root in children_of.get(None, []):
        walk(root, 0, [], roots)

    return roots if include_hierarchy else flat


EXPENSE_FILTERS = ("status", "category_id", "vendor_id", "unit_id", "start_date", "end_date", "is_recurring")


def get_expenses(actor: ActorContext, property=None, **filters):
    require(actor, "expenses.view")

    qs = (
        Expense.objects.filter(property__company=actor.company)
        .select_related("property", "unit", "category", "vendor")
        .order_by("-transaction_date", "-id")
    )
    if property is not None:
        qs = qs.filter(property=property)

    status = filters.get("status")
    if status:
        if status not in Expense.Status.values:
            raise ValidationError(f"Unknown status: {status}", {"field": "status"})
        qs = qs.filter(status=status)
    if filters.get("category_id"):
        qs = qs.filter(category_id=filters["category_id"])
    if filters.get("vendor_id"):
        qs = qs.filter(vendor_id=filters["vendor_id"])
    if filters.get("unit_id"):
        qs = qs.filter(unit_id=filters["unit_id"])
    if filters.get("start_date"):
        qs = qs.filter(transaction_date__gte=filters["start_date"])
    if filters.get("end_date"):
        qs = qs.filter(transaction_date__lte=filters["end_date"])
    if filters.get("is_recurring") is not None:
        qs = qs.filter(is_recurring=filters["is_recurring"])
    return qs
