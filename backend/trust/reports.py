# trust/reports.py
"""
Trust account statements, the audit report and deposit compliance.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from accounts.authz import ActorContext, require
from accounting.exceptions import ValidationError
from properties.models import Lease
from properties.policies import get_lease_for_actor
from trust.commands import get_account_for_actor
from trust.ledger import ledger_sum
from trust.models import TrustAccount, TrustAccountTransaction

TxnType = TrustAccountTransaction.TransactionType

STATEMENT_COLUMNS = [
    {"key": "transaction_date", "header": "Date", "width": 12},
    {"key": "transaction_type", "header": "Type", "width": 12},
    {"key": "description", "header": "Description", "width": 36},
    {"key": "reference_number", "header": "Reference", "width": 16},
    {"key": "amount", "header": "Amount", "width": 14, "numeric": True},
    {"key": "running_balance", "header": "Balance", "width": 14, "numeric": True},
    {"key": "is_reconciled", "header": "Reconciled", "width": 10},
]

AUDIT_COLUMNS = [
    {"key": "account_name", "header": "Account", "width": 28},
    {"key": "account_type", "header": "Type", "width": 16},
    {"key": "opening_balance", "header": "Opening", "width": 14, "numeric": True},
    {"key": "deposits", "header": "Deposits", "width": 14, "numeric": True},
    {"key": "withdrawals", "header": "Withdrawals", "width": 14, "numeric": True},
    {"key": "interest", "header": "Interest", "width": 12, "numeric": True},
    {"key": "fees", "header": "Fees", "width": 12, "numeric": True},
    {"key": "net_change", "header": "Net Change", "width": 14, "numeric": True},
    {"key": "closing_balance", "header": "Closing", "width": 14, "numeric": True},
    {"key": "unreconciled_count", "header": "Unreconciled", "width": 12, "numeric": True},
]


def _check_period(start_date: date, end_date: date):
    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.", {"field": "start_date"})


def _subtotals(transactions) -> dict:
    totals = {t: Decimal("0.00") for t in TxnType.values}
    for txn in transactions:
        totals[txn.transaction_type] += txn.amount
    return totals


def generate_statement(actor: ActorContext, account_id, start_date: date, end_date: date) -> dict:
    require(actor, "trust.view")
    _check_period(start_date, end_date)

    account = get_account_for_actor(actor, account_id)
    opening = ledger_sum(account.transactions.filter(transaction_date__lt=start_date))
    transactions = list(
        account.transactions.filter(transaction_date__gte=start_date, transaction_date__lte=end_date)
        .order_by("transaction_date", "id")
    )

    running = opening
    rows = []
    for txn in transactions:
        running += txn.signed_amount
        rows.append({
            "id": txn.id,
            "transaction_date": txn.transaction_date,
            "transaction_type": txn.transaction_type,
            "description": txn.description,
            "reference_number": txn.reference_number,
            "amount": txn.signed_amount,
            "running_balance": running,
            "is_reconciled": txn.is_reconciled,
            "reverses_id": txn.reverses_id,
        })

    subtotals = _subtotals(transactions)
    return {
        "account": {
            "id": account.id,
            "account_name": account.account_name,
            "account_type": account.account_type,
            "property_id": account.property_id,
        },
        "period": {"start_date": start_date, "end_date": end_date},
        "opening_balance": opening,
        "rows": rows,
        "summary": {
            "opening_balance": opening,
            "total_deposits": subtotals[TxnType.DEPOSIT],
            "total_withdrawals": subtotals[TxnType.WITHDRAWAL],
            "total_interest": subtotals[TxnType.INTEREST],
            "total_fees": subtotals[TxnType.FEE],
            "closing_balance": running,
            "transaction_count": len(rows),
        },
    }


def security_deposit_compliance(property) -> dict:
    """Deposits held in security deposit accounts vs. deposits owed on active leases."""
    required = sum(
        (lease.security_deposit for lease in Lease.objects.filter(unit__property=property, status=Lease.Status.ACTIVE)),
        Decimal("0.00"),
    )
    held = sum(
        (
            account.balance
            for account in TrustAccount.objects.filter(
                property=property,
                account_type=TrustAccount.AccountType.SECURITY_DEPOSIT,
                is_active=True,
            )
        ),
        Decimal("0.00"),
    )
    return {
        "required": required,
        "held": held,
        "shortfall": max(required - held, Decimal("0.00")),
        "is_compliant": held >= required,
    }


def generate_audit_report(actor: ActorContext, property, start_date: date, end_date: date) -> dict:
    """
    Per-account activity for a period, plus unreconciled items and deposit
    compliance for the property.
    """
    require(actor, "reports.view")
    _check_period(start_date, end_date)

    accounts = list(TrustAccount.objects.filter(property=property).order_by("account_name", "id"))
    rows, unreconciled = [], []
    for account in accounts:
        opening = ledger_sum(account.transactions.filter(transaction_date__lt=start_date))
        period = list(account.transactions.filter(transaction_date__gte=start_date, transaction_date__lte=end_date))
        subtotals = _subtotals(period)
        net_change = sum((t.signed_amount for t in period), Decimal("0.00"))

        open_items = account.transactions.filter(is_reconciled=False, transaction_date__lte=end_date)
        for txn in open_items.order_by("transaction_date", "id"):
            unreconciled.append({
                "id": txn.id,
                "trust_account_id": account.id,
                "account_name": account.account_name,
                "transaction_date": txn.transaction_date,
                "transaction_type": txn.transaction_type,
                "amount": txn.amount,
                "description": txn.description,
            })

        rows.append({
            "trust_account_id": account.id,
            "account_name": account.account_name,
            "account_type": account.account_type,
            "is_active": account.is_active,
            "opening_balance": opening,
            "deposits": subtotals[TxnType.DEPOSIT],
            "withdrawals": subtotals[TxnType.WITHDRAWAL],
            "interest": subtotals[TxnType.INTEREST],
            "fees": subtotals[TxnType.FEE],
            "net_change": net_change,
            "closing_balance": opening + net_change,
            "current_balance": account.balance,
            "unreconciled_count": open_items.count(),
        })

    totals = defaultdict(lambda: Decimal("0.00"))
    for row in rows:
        for key in ("opening_balance", "deposits", "withdrawals", "interest", "fees", "net_change", "closing_balance"):
            totals[key] += row[key]

    return {
        "property": {"id": property.id, "name": property.name},
        "period": {"start_date": start_date, "end_date": end_date},
        "rows": rows,
        "unreconciled": unreconciled,
        "security_deposit_compliance": security_deposit_compliance(property),
        "summary": {
            "account_count": len(rows),
            "total_opening_balance": totals["opening_balance"],
            "total_deposits": totals["deposits"],
            "total_withdrawals": totals["withdrawals"],
            "total_interest": totals["interest"],
            "total_fees": totals["fees"],
            "net_change": totals["net_change"],
            "total_closing_balance": totals["closing_balance"],
            "unreconciled_count": len(unreconciled),
        },
    }


def get_security_deposit_balance(actor: ActorContext, lease_id) -> dict:
    require(actor, "trust.view")

    lease = get_lease_for_actor(actor, lease_id)
    held = ledger_sum(
        TrustAccountTransaction.objects.filter(
            lease=lease,
            trust_account__account_type=TrustAccount.AccountType.SECURITY_DEPOSIT,
        )
    )
    return {
        "lease_id": lease.id,
        "tenant_name": lease.tenant.full_name,
        "required": lease.security_deposit,
        "held": held,
        "difference": held - lease.security_deposit,
    }
