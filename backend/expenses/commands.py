# expenses/commands.py
"""
Command layer for expenses, categories and receipt scanning.

Pattern:
1. Validate permissions (require)
2. Resolve entities inside the actor's company
3. Apply business rules, raising accounting.exceptions on violation
4. Perform the change inside one database transaction
"""

import logging
from datetime import date

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import AccountingError, BusinessRuleViolation, NotFoundError, ValidationError
from accounting.money import require_positive, to_money
from expenses.models import Expense, ExpenseCategory, ReceiptImage
from expenses.receipts import (
    ReceiptReadError,
    get_ocr_backend,
    match_vendor,
    parse_receipt_text,
    suggest_category,
    to_json,
)
from ops.metrics import EXPENSES_RECORDED
from properties.models import Vendor
from properties.policies import get_property_for_actor, get_unit_for_actor, get_vendor_for_actor
from rent.schedule import add_months, clamp_day

logger = logging.getLogger(__name__)

FREQUENCY_MONTHS = {
    Expense.RecurringFrequency.MONTHLY: 1,
    Expense.RecurringFrequency.QUARTERLY: 3,
    Expense.RecurringFrequency.ANNUAL: 12,
}


def get_category_for_actor(actor: ActorContext, category_id) -> ExpenseCategory:
    try:
        return ExpenseCategory.objects.get(pk=category_id, company=actor.company)
    except (ExpenseCategory.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Expense category {category_id} not found.")


def get_expense_for_actor(actor: ActorContext, expense_id, for_update: bool = False) -> Expense:
    qs = Expense.objects.select_related("property", "category", "vendor", "unit")
    if for_update:
        qs = qs.select_for_update(of=("self",))
    try:
        return qs.get(pk=expense_id, property__company=actor.company)
    except (Expense.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Expense {expense_id} not found.")


def get_receipt_for_actor(actor: ActorContext, receipt_id) -> ReceiptImage:
    try:
        return ReceiptImage.objects.get(pk=receipt_id, company=actor.company)
    except (ReceiptImage.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Receipt {receipt_id} not found.")


# =============================================================================
# Categories
# =============================================================================

def _is_descendant(category: ExpenseCategory, candidate_parent: ExpenseCategory) -> bool:
    node = candidate_parent
    while node is not None:
        if node.pk == category.pk:
            return True
        node = node.parent
    return False


@transaction.atomic
def create_category(
    actor: ActorContext,
    name: str,
    description: str = "",
    parent_id=None,
    is_tax_deductible: bool = True,
) -> ExpenseCategory:
    require(actor, "expenses.manage")

    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required.", {"field": "name"})
    parent = get_category_for_actor(actor, parent_id) if parent_id else None
    if parent is not None and not parent.is_active:
        raise BusinessRuleViolation("Parent category is inactive.", {"parent_id": parent.id})

    if ExpenseCategory.objects.filter(company=actor.company, parent=parent, name__iexact=name).exists():
        raise ValidationError(f'An expense category named "{name}" already exists.', {"field": "name"})

    category = ExpenseCategory.objects.create(
        company=actor.company,
        name=name,
        description=description,
        parent=parent,
        is_tax_deductible=is_tax_deductible,
        created_by=actor.user,
    )
    logger.info("Expense category created", extra={"category_id": category.id, "company_id": actor.company.id})
    return category


_UNSET = object()


@transaction.atomic
def update_category(
    actor: ActorContext,
    category_id,
    name: str | None = None,
    description: str | None = None,
    parent_id=_UNSET,
    is_tax_deductible: bool | None = None,
) -> ExpenseCategory:
    """Update a category; moving it under one of its own descendants is rejected."""
    require(actor, "expenses.manage")

    category = get_category_for_actor(actor, category_id)

    if parent_id is not _UNSET:
        parent = get_category_for_actor(actor, parent_id) if parent_id else None
        if parent is not None and _is_descendant(category, parent):
            raise ValidationError("A category cannot be moved under itself or its descendants.", {"field": "parent_id"})
        category.parent = parent
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("name is required.", {"field": "name"})
        category.name = name
    if description is not None:
        category.description = description
    if is_tax_deductible is not None:
        category.is_tax_deductible = is_tax_deductible

    duplicate = ExpenseCategory.objects.filter(
        company=actor.company, parent=category.parent, name__iexact=category.name,
    ).exclude(pk=category.pk)
    if duplicate.exists():
        raise ValidationError(f'An expense category named "{category.name}" already exists.', {"field": "name"})

    category.save()
    return category


@transaction.atomic
def deactivate_category(actor: ActorContext, category_id) -> ExpenseCategory:
    """
    Deactivate a category. Categories with active children are rejected;
    expenses of a child category move to its parent.
    """
    require(actor, "expenses.manage")

    category = get_category_for_actor(actor, category_id)
    if category.children.filter(is_active=True).exists():
        raise BusinessRuleViolation(
            "Cannot deactivate a category with active child categories.",
            {"category_id": category.id},
        )
    if category.parent_id:
        moved = Expense.objects.filter(category=category).update(category=category.parent)
        if moved:
            logger.info(
                "Expenses moved to parent category",
                extra={"category_id": category.id, "parent_id": category.parent_id, "count": moved},
            )

    category.is_active = False
    category.save(update_fields=["is_active", "updated_at"])
    return category


# =============================================================================
# Expenses
# =============================================================================

def _validate_recurring(is_recurring: bool, recurring_frequency: str):
    if is_recurring and recurring_frequency not in Expense.RecurringFrequency.values:
        raise ValidationError(
            "recurring_frequency must be monthly, quarterly or annual for recurring expenses.",
            {"field": "recurring_frequency"},
        )
    return recurring_frequency if is_recurring else ""


@transaction.atomic
def record_expense(
    actor: ActorContext,
    property,
    category_id,
    amount,
    transaction_date: date | None = None,
    tax_amount=0,
    unit_id=None,
    vendor_id=None,
    description: str = "",
    due_date: date | None = None,
    payment_date: date | None = None,
    payment_method: str = "",
    reference_number: str = "",
    receipt_id=None,
    is_recurring: bool = False,
    recurring_frequency: str = "",
    notes: str = "",
) -> Expense:
    """
    Record an expense against a property.

    The expense is created `paid` when both payment_date and payment_method
    are supplied, otherwise `pending`.
    """
    require(actor, "expenses.manage")

    amount = require_positive(amount)
    tax_amount = to_money(tax_amount or 0, "tax_amount")
    if tax_amount < 0:
        raise ValidationError("tax_amount must not be negative.", {"field": "tax_amount"})

    category = get_category_for_actor(actor, category_id)
    if not category.is_active:
        raise BusinessRuleViolation("Expense category is inactive.", {"category_id": category.id})
    unit = get_unit_for_actor(actor, unit_id) if unit_id else None
    if unit is not None and unit.property_id != property.id:
        raise ValidationError("unit does not belong to the property.", {"field": "unit_id"})
    vendor = get_vendor_for_actor(actor, vendor_id) if vendor_id else None
    receipt = get_receipt_for_actor(actor, receipt_id) if receipt_id else None
    recurring_frequency = _validate_recurring(is_recurring, recurring_frequency)

    paid = bool(payment_date and payment_method)
    expense = Expense.objects.create(
        property=property,
        unit=unit,
        category=category,
        vendor=vendor,
        amount=amount,
        tax_amount=tax_amount,
        transaction_date=transaction_date or timezone.localdate(),
        due_date=due_date,
        description=description,
        status=Expense.Status.PAID if paid else Expense.Status.PENDING,
        payment_date=payment_date if paid else None,
        payment_method=payment_method if paid else "",
        reference_number=reference_number,
        receipt=receipt,
        is_recurring=is_recurring,
        recurring_frequency=recurring_frequency,
        notes=notes,
        created_by=actor.user,
    )

    EXPENSES_RECORDED.inc()
    logger.info(
        "Expense recorded",
        extra={
            "expense_id": expense.id,
            "property_id": property.id,
            "amount": str(amount),
            "status": expense.status,
            "user_id": actor.user.id,
        },
    )
    return expense


EDITABLE_FIELDS = (
    "category_id", "unit_id", "vendor_id", "amount", "tax_amount", "transaction_date",
    "due_date", "description", "reference_number", "notes", "is_recurring",
    "recurring_frequency", "receipt_id",
)


@transaction.atomic
def update_expense(actor: ActorContext, expense_id, **changes) -> Expense:
    """Edit a pending or disputed expense."""
    require(actor, "expenses.manage")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)})

    expense = get_expense_for_actor(actor, expense_id, for_update=True)
    if expense.status not in (Expense.Status.PENDING, Expense.Status.DISPUTED):
        raise BusinessRuleViolation(
            f"A {expense.status} expense cannot be edited.",
            {"expense_id": expense.id, "status": expense.status},
        )

    if "category_id" in changes:
        category = get_category_for_actor(actor, changes["category_id"])
        if not category.is_active:
            raise BusinessRuleViolation("Expense category is inactive.", {"category_id": category.id})
        expense.category = category
    if "unit_id" in changes:
        unit = get_unit_for_actor(actor, changes["unit_id"]) if changes["unit_id"] else None
        if unit is not None and unit.property_id != expense.property_id:
            raise ValidationError("unit does not belong to the property.", {"field": "unit_id"})
        expense.unit = unit
    if "vendor_id" in changes:
        expense.vendor = get_vendor_for_actor(actor, changes["vendor_id"]) if changes["vendor_id"] else None
    if "receipt_id" in changes:
        expense.receipt = get_receipt_for_actor(actor, changes["receipt_id"]) if changes["receipt_id"] else None
    if "amount" in changes:
        expense.amount = require_positive(changes["amount"])
    if "tax_amount" in changes:
        tax = to_money(changes["tax_amount"] or 0, "tax_amount")
        if tax < 0:
            raise ValidationError("tax_amount must not be negative.", {"field": "tax_amount"})
        expense.tax_amount = tax
    for field in ("transaction_date", "due_date", "description", "reference_number", "notes"):
        if field in changes:
            setattr(expense, field, changes[field])
    if "transaction_date" in changes and not expense.transaction_date:
        raise ValidationError("transaction_date is required.", {"field": "transaction_date"})
    if "is_recurring" in changes or "recurring_frequency" in changes:
        expense.is_recurring = changes.get("is_recurring", expense.is_recurring)
        expense.recurring_frequency = _validate_recurring(
            expense.is_recurring, changes.get("recurring_frequency", expense.recurring_frequency),
        )

    expense.save()
    logger.info("Expense updated", extra={"expense_id": expense.id, "fields": sorted(changes)})
    return expense


@transaction.atomic
def mark_expense_paid(
    actor: ActorContext,
    expense_id,
    payment_date: date,
    payment_method: str,
    reference_number: str = "",
) -> Expense:
    require(actor, "expenses.manage")

    if not payment_date or not payment_method:
        raise ValidationError("payment_date and payment_method are required.", {"field": "payment_method"})

    expense = get_expense_for_actor(actor, expense_id, for_update=True)
    if expense.status not in (Expense.Status.PENDING, Expense.Status.DISPUTED):
        raise BusinessRuleViolation(
            f"A {expense.status} expense cannot be marked paid.",
            {"expense_id": expense.id, "status": expense.status},
        )

    expense.status = Expense.Status.PAID
    expense.payment_date = payment_date
    expense.payment_method = payment_method
    if reference_number:
        expense.reference_number = reference_number
    expense.save(update_fields=["status", "payment_date", "payment_method", "reference_number", "updated_at"])
    logger.info("Expense paid", extra={"expense_id": expense.id, "user_id": actor.user.id})
    return expense


def _transition_from_pending(actor: ActorContext, expense_id, new_status: str, reason: str) -> Expense:
    expense = get_expense_for_actor(actor, expense_id, for_update=True)
    if expense.status != Expense.Status.PENDING:
        raise BusinessRuleViolation(
            f"Only pending expenses can be {new_status}; this one is {expense.status}.",
            {"expense_id": expense.id, "status": expense.status},
        )
    expense.status = new_status
    if reason:
        expense.notes = f"{expense.notes}\n{new_status.title()}: {reason}".strip()
    expense.save(update_fields=["status", "notes", "updated_at"])
    logger.info(f"Expense {new_status}", extra={"expense_id": expense.id, "user_id": actor.user.id})
    return expense


@transaction.atomic
def cancel_expense(actor: ActorContext, expense_id, reason: str = "") -> Expense:
    require(actor, "expenses.manage")
    return _transition_from_pending(actor, expense_id, Expense.Status.CANCELLED, reason)


@transaction.atomic
def dispute_expense(actor: ActorContext, expense_id, reason: str = "") -> Expense:
    require(actor, "expenses.manage")
    return _transition_from_pending(actor, expense_id, Expense.Status.DISPUTED, reason)


# =============================================================================
# Receipts
# =============================================================================

def scan_receipt(actor: ActorContext, uploaded_file, property_id=None) -> dict:
    """
    Store a receipt, extract its text and pre-fill an expense form.

    OCR failures are recorded on the ReceiptImage (status `failed`) and
    returned to the caller, not raised: the upload itself succeeded.
    """
    require(actor, "expenses.manage")

    if uploaded_file is None:
        raise ValidationError("A receipt file is required.", {"field": "file"})
    prop = get_property_for_actor(actor, property_id) if property_id else None

    receipt = ReceiptImage.objects.create(
        company=actor.company,
        file=uploaded_file,
        original_filename=getattr(uploaded_file, "name", "receipt"),
        content_type=getattr(uploaded_file, "content_type", "") or "",
        file_size=getattr(uploaded_file, "size", 0) or 0,
        uploaded_by=actor.user,
    )

    try:
        text = get_ocr_backend()(uploaded_file)
    except (ReceiptReadError, OSError) as e:
        logger.warning("Receipt OCR failed", extra={"receipt_id": receipt.id, "error": str(e)})
        receipt.ocr_status = ReceiptImage.OcrStatus.FAILED
        receipt.error = str(e)
        receipt.processed_at = timezone.now()
        receipt.save(update_fields=["ocr_status", "error", "processed_at"])
        return {"receipt": receipt, "extracted": None, "suggested_expense": None}

    parsed = parse_receipt_text(text)
    vendor = match_vendor(parsed["vendor"], Vendor.objects.filter(company=actor.company, is_active=True).order_by("name"))
    category = suggest_category(text, ExpenseCategory.objects.filter(company=actor.company, is_active=True).order_by("id"))

    receipt.ocr_text = text
    receipt.extracted_data = to_json(parsed)
    receipt.ocr_status = ReceiptImage.OcrStatus.PROCESSED
    receipt.processed_at = timezone.now()
    receipt.save(update_fields=["ocr_text", "extracted_data", "ocr_status", "processed_at"])

    suggested = {
        "receipt_id": receipt.id,
        "property_id": prop.id if prop else None,
        "vendor_id": vendor.id if vendor else None,
        "vendor_name": vendor.name if vendor else parsed["vendor"],
        "category_id": category.id if category else None,
        "category_name": category.name if category else None,
        "amount": parsed["total_amount"],
        "tax_amount": parsed["tax_amount"],
        "transaction_date": parsed["date"],
        "description": f"Receipt from {parsed['vendor']}" if parsed["vendor"] else "",
    }
    logger.info(
        "Receipt scanned",
        extra={"receipt_id": receipt.id, "vendor_matched": vendor is not None, "user_id": actor.user.id},
    )
    return {"receipt": receipt, "extracted": parsed, "suggested_expense": suggested}


# =============================================================================
# Recurring expenses
# =============================================================================

def next_occurrence(anchor: date, frequency: str, periods: int) -> date:
    """The date `periods` frequency steps after anchor, day clamped to month length."""
    year, month = add_months(anchor.year, anchor.month, FREQUENCY_MONTHS[frequency] * periods)
    return clamp_day(year, month, anchor.day)


def process_recurring_expenses(as_of: date, user=None) -> dict:
    """
    Generate the occurrences of every recurring expense due on or before as_of.

    Each recurring expense is a template; its occurrences are new pending
    expenses linked through recurring_source. Generation is idempotent: the
    (recurring_source, transaction_date) pair is unique.
    """
    created, errors = [], []
    templates = (
        Expense.objects.filter(
            is_recurring=True,
            status__in=(Expense.Status.PENDING, Expense.Status.PAID),
            transaction_date__lte=as_of,
        )
        .exclude(recurring_frequency="")
        .select_related("property")
        .order_by("id")
    )

    for template in templates:
        existing = set(template.occurrences.values_list("transaction_date", flat=True))
        periods = 1
        occurrence_date = next_occurrence(template.transaction_date, template.recurring_frequency, periods)
        while occurrence_date <= as_of:
            if occurrence_date not in existing:
                try:
                    with transaction.atomic():
                        expense = Expense.objects.create(
                            property=template.property,
                            unit=template.unit,
                            category=template.category,
                            vendor=template.vendor,
                            amount=template.amount,
                            tax_amount=template.tax_amount,
                            transaction_date=occurrence_date,
                            due_date=occurrence_date,
                            description=template.description or f"Recurring expense for {occurrence_date:%B %Y}",
                            status=Expense.Status.PENDING,
                            recurring_source=template,
                            notes=f"Generated from recurring expense #{template.id}",
                            created_by=user,
                        )
                except (IntegrityError, DatabaseError, AccountingError) as e:
                    logger.error(
                        f"Failed to create recurring expense: {e}",
                        extra={"template_id": template.id, "transaction_date": occurrence_date.isoformat()},
                    )
                    errors.append({"expense_id": template.id, "transaction_date": occurrence_date, "error": str(e)})
                else:
                    EXPENSES_RECORDED.inc()
                    created.append({"expense_id": expense.id, "template_id": template.id, "transaction_date": occurrence_date})
            periods += 1
            occurrence_date = next_occurrence(template.transaction_date, template.recurring_frequency, periods)

    logger.info(
        "Recurring expenses processed",
        extra={"as_of": as_of.isoformat(), "expenses_created": len(created), "errors": len(errors)},
    )
    return {"as_of": as_of, "templates": len(templates), "created": created, "errors": errors}
