# trust/commands.py
"""
Command layer for trust accounts.

Every balance change goes through trust.ledger.post_entry. Commands wrap
their unit of work in run_with_retry so a serialization failure or deadlock
on a standalone request is retried instead of surfacing as a 500.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import DatabaseError, transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.exceptions import AccountingError, BusinessRuleViolation, NotFoundError, ValidationError
from accounting.money import MONEY_Q, require_positive
from notifications.services import NotificationService
from properties.policies import get_lease_for_actor, get_tenant_for_actor
from rent.schedule import month_bounds
from trust.ledger import ledger_sum, lock_account, post_entry, run_with_retry
from trust.models import TrustAccount, TrustAccountTransaction

logger = logging.getLogger(__name__)

TxnType = TrustAccountTransaction.TransactionType


def get_account_for_actor(actor: ActorContext, account_id) -> TrustAccount:
    try:
        return TrustAccount.objects.select_related("property").get(
            pk=account_id, property__company=actor.company,
        )
    except (TrustAccount.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Trust account {account_id} not found.")


def get_transaction_for_actor(actor: ActorContext, transaction_id) -> TrustAccountTransaction:
    try:
        return TrustAccountTransaction.objects.select_related("trust_account__property").get(
            pk=transaction_id, trust_account__property__company=actor.company,
        )
    except (TrustAccountTransaction.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Trust transaction {transaction_id} not found.")


def _validate_interest(is_interest_bearing: bool, interest_rate):
    if is_interest_bearing:
        if interest_rate is None:
            raise ValidationError("interest_rate is required for interest-bearing accounts.", {"field": "interest_rate"})
        rate = Decimal(str(interest_rate))
        if rate <= 0:
            raise ValidationError("interest_rate must be greater than zero.", {"field": "interest_rate"})
        return rate
    if interest_rate is not None:
        raise ValidationError("interest_rate is only allowed on interest-bearing accounts.", {"field": "interest_rate"})
    return None


def _require_active(account: TrustAccount):
    if not account.is_active:
        raise BusinessRuleViolation("Trust account is inactive.", {"trust_account_id": account.id})


def _find_idempotent(idempotency_key: str | None, account: TrustAccount, transaction_type: str):
    if not idempotency_key:
        return None
    existing = TrustAccountTransaction.objects.filter(idempotency_key=idempotency_key).first()
    if existing is None:
        return None
    if existing.trust_account_id != account.id or existing.transaction_type != transaction_type:
        raise ValidationError(
            "idempotency_key was already used for a different trust transaction.",
            {"field": "idempotency_key", "transaction_id": existing.id},
        )
    return existing


# =============================================================================
# Accounts
# =============================================================================

@transaction.atomic
def create_trust_account(
    actor: ActorContext,
    property,
    account_name: str,
    account_type: str,
    is_interest_bearing: bool = False,
    interest_rate=None,
    account_number: str = "",
    bank_name: str = "",
    routing_number: str = "",
) -> TrustAccount:
    require(actor, "trust.manage")

    if not account_name:
        raise ValidationError("account_name is required.", {"field": "account_name"})
    if account_type not in TrustAccount.AccountType.values:
        raise ValidationError(f"Unknown account_type: {account_type}", {"field": "account_type"})
    rate = _validate_interest(is_interest_bearing, interest_rate)

    account = TrustAccount.objects.create(
        property=property,
        account_name=account_name,
        account_type=account_type,
        is_interest_bearing=is_interest_bearing,
        interest_rate=rate,
        account_number=account_number,
        bank_name=bank_name,
        routing_number=routing_number,
        created_by=actor.user,
    )
    logger.info(
        "Trust account created",
        extra={"trust_account_id": account.id, "property_id": property.id, "account_type": account_type},
    )
    return account


UPDATABLE_FIELDS = ("account_name", "account_number", "bank_name", "routing_number", "is_interest_bearing", "interest_rate")


@transaction.atomic
def update_trust_account(actor: ActorContext, account_id, **changes) -> TrustAccount:
    """Update descriptive fields. Balance and type are never updatable here."""
    require(actor, "trust.manage")

    get_account_for_actor(actor, account_id)
    account = lock_account(account_id)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)})

    for field, value in changes.items():
        setattr(account, field, value)
    if "is_interest_bearing" in changes and not account.is_interest_bearing and "interest_rate" not in changes:
        account.interest_rate = None
    account.interest_rate = _validate_interest(account.is_interest_bearing, account.interest_rate)
    if not account.account_name:
        raise ValidationError("account_name is required.", {"field": "account_name"})

    account.save()
    logger.info("Trust account updated", extra={"trust_account_id": account.id, "fields": sorted(changes)})
    return account


@transaction.atomic
def deactivate_trust_account(actor: ActorContext, account_id) -> TrustAccount:
    require(actor, "trust.manage")

    get_account_for_actor(actor, account_id)
    account = lock_account(account_id)
    if account.balance != 0:
        raise BusinessRuleViolation(
            "Only accounts with a zero balance can be deactivated.",
            {"trust_account_id": account.id, "balance": str(account.balance)},
        )
    account.is_active = False
    account.save(update_fields=["is_active", "updated_at"])
    return account


# =============================================================================
# Ledger writes
# =============================================================================

def _resolve_party(actor: ActorContext, tenant_id=None, lease_id=None):
    lease = get_lease_for_actor(actor, lease_id) if lease_id else None
    if tenant_id:
        tenant = get_tenant_for_actor(actor, tenant_id)
    else:
        tenant = lease.tenant if lease else None
    if lease and tenant and lease.tenant_id != tenant.id:
        raise ValidationError("tenant does not match the lease.", {"field": "tenant_id"})
    return tenant, lease


def _check_deposit_party(account: TrustAccount, tenant):
    if account.account_type == TrustAccount.AccountType.SECURITY_DEPOSIT and tenant is None:
        raise ValidationError(
            "Deposits into a security deposit account require a tenant.",
            {"field": "tenant_id"},
        )


def _record(
    actor: ActorContext,
    account_id,
    transaction_type: str,
    amount,
    transaction_date: date | None,
    description: str,
    reference_number: str,
    payment_method: str,
    tenant_id,
    lease_id,
    idempotency_key: str | None,
):
    amount = require_positive(amount)
    transaction_date = transaction_date or timezone.localdate()
    account = get_account_for_actor(actor, account_id)
    _require_active(account)
    tenant, lease = _resolve_party(actor, tenant_id, lease_id)
    if transaction_type == TxnType.DEPOSIT:
        _check_deposit_party(account, tenant)

    def write():
        locked = lock_account(account.pk)
        existing = _find_idempotent(idempotency_key, locked, transaction_type)
        if existing is not None:
            return existing, False
        entry = post_entry(
            locked,
            transaction_type,
            amount,
            transaction_date,
            user=actor.user,
            description=description,
            reference_number=reference_number,
            payment_method=payment_method,
            tenant=tenant,
            lease=lease,
            idempotency_key=idempotency_key or None,
        )
        return entry, True

    return run_with_retry(write)


def record_deposit(
    actor: ActorContext,
    account_id,
    amount,
    transaction_date: date | None = None,
    description: str = "",
    reference_number: str = "",
    payment_method: str = "",
    tenant_id=None,
    lease_id=None,
    idempotency_key: str | None = None,
    notifier: NotificationService | None = None,
) -> TrustAccountTransaction:
    """
    Deposit into a trust account.

    Security deposit accounts require a tenant (given directly or through the
    lease). The tenant gets a receipt once the deposit commits.
    """
    require(actor, "trust.manage")
    notifier = notifier or NotificationService()

    entry, created = _record(
        actor, account_id, TxnType.DEPOSIT, amount, transaction_date, description,
        reference_number, payment_method, tenant_id, lease_id, idempotency_key,
    )
    if created and entry.tenant_id:
        transaction.on_commit(lambda: notifier.send_deposit_receipt(entry))
    return entry


def record_withdrawal(
    actor: ActorContext,
    account_id,
    amount,
    transaction_date: date | None = None,
    description: str = "",
    reference_number: str = "",
    payment_method: str = "",
    tenant_id=None,
    lease_id=None,
    idempotency_key: str | None = None,
) -> TrustAccountTransaction:
    require(actor, "trust.manage")
    entry, _ = _record(
        actor, account_id, TxnType.WITHDRAWAL, amount, transaction_date, description,
        reference_number, payment_method, tenant_id, lease_id, idempotency_key,
    )
    return entry


def record_fee(
    actor: ActorContext,
    account_id,
    amount,
    transaction_date: date | None = None,
    description: str = "",
    reference_number: str = "",
    idempotency_key: str | None = None,
) -> TrustAccountTransaction:
    """Bank or management fee charged against the account."""
    require(actor, "trust.manage")
    entry, _ = _record(
        actor, account_id, TxnType.FEE, amount, transaction_date, description,
        reference_number, "", None, None, idempotency_key,
    )
    return entry


def transfer_funds(
    actor: ActorContext,
    source_account_id,
    target_account_id,
    amount,
    description: str = "",
    transaction_date: date | None = None,
    tenant_id=None,
    lease_id=None,
) -> dict:
    """
    Move money between two trust accounts of the company.

    Both legs commit together or not at all. Accounts are locked in id order
    so concurrent opposite transfers cannot deadlock.
    """
    require(actor, "trust.manage")

    amount = require_positive(amount)
    if str(source_account_id) == str(target_account_id):
        raise ValidationError("Source and target accounts must differ.", {"field": "target_account_id"})

    source = get_account_for_actor(actor, source_account_id)
    target = get_account_for_actor(actor, target_account_id)
    _require_active(source)
    _require_active(target)
    tenant, lease = _resolve_party(actor, tenant_id, lease_id)
    _check_deposit_party(target, tenant)

    transaction_date = transaction_date or timezone.localdate()
    description = description or f"Transfer {source.account_name} -> {target.account_name}"

    def write():
        locked = {acc.pk: acc for acc in (lock_account(pk) for pk in sorted([source.pk, target.pk]))}
        withdrawal = post_entry(
            locked[source.pk],
            TxnType.WITHDRAWAL,
            amount,
            transaction_date,
            user=actor.user,
            description=description,
            reference_number=f"TRF-{source.pk}-{target.pk}",
            tenant=tenant,
            lease=lease,
        )
        deposit = post_entry(
            locked[target.pk],
            TxnType.DEPOSIT,
            amount,
            transaction_date,
            user=actor.user,
            description=description,
            reference_number=f"TRF-{source.pk}-{target.pk}",
            tenant=tenant,
            lease=lease,
        )
        return withdrawal, deposit

    withdrawal, deposit = run_with_retry(write)

    logger.info(
        "Trust transfer completed",
        extra={"source_id": source.pk, "target_id": target.pk, "amount": str(amount), "user_id": actor.user.id},
    )
    return {"withdrawal": withdrawal, "deposit": deposit}


# =============================================================================
# Interest
# =============================================================================

def average_daily_balance(account: TrustAccount, start: date, end: date) -> Decimal:
    """Mean end-of-day balance over [start, end], both inclusive."""
    days = (end - start).days + 1
    if days <= 0:
        return Decimal("0.00")

    running = ledger_sum(account.transactions.filter(transaction_date__lt=start))
    deltas = {}
    for txn in account.transactions.filter(transaction_date__gte=start, transaction_date__lte=end):
        deltas[txn.transaction_date] = deltas.get(txn.transaction_date, Decimal("0.00")) + txn.signed_amount

    total = Decimal("0.00")
    day = start
    while day <= end:
        running += deltas.get(day, Decimal("0.00"))
        total += running
        day += timedelta(days=1)
    return total / days


def interest_reference(as_of: date) -> str:
    return f"INT-{as_of:%Y-%m}"


def calculate_interest(account: TrustAccount, as_of: date) -> Decimal:
    """
    Monthly interest: average daily balance from the first of the month
    through as_of, times the annual rate / 100 / 12, rounded to cents.
    """
    month_start, _ = month_bounds(as_of)
    adb = average_daily_balance(account, month_start, as_of)
    interest = adb * account.interest_rate / Decimal("100") / Decimal("12")
    return interest.quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def calculate_and_apply_interest(as_of: date, user=None) -> dict:
    """
    Post monthly interest on every active interest-bearing account.

    At most one interest posting per account and calendar month; accounts
    whose interest rounds to zero get nothing. Each account commits on its own.
    """
    posted, skipped, errors = [], [], []
    reference = interest_reference(as_of)
    accounts = TrustAccount.objects.filter(is_active=True, is_interest_bearing=True).order_by("id")

    for account in accounts:
        already = account.transactions.filter(
            transaction_type=TxnType.INTEREST,
            reference_number=reference,
            reverses__isnull=True,
            reversal__isnull=True,
        ).exists()
        if already:
            skipped.append({"trust_account_id": account.id, "reason": "already_posted"})
            continue

        interest = calculate_interest(account, as_of)
        if interest <= 0:
            skipped.append({"trust_account_id": account.id, "reason": "no_interest"})
            continue

        try:
            entry = run_with_retry(
                post_entry,
                account,
                TxnType.INTEREST,
                interest,
                as_of,
                user=user,
                description=f"Interest for {as_of:%B %Y}",
                reference_number=reference,
            )
        except (AccountingError, DatabaseError) as e:
            logger.error(
                f"Failed to post interest: {e}",
                extra={"trust_account_id": account.id, "as_of": as_of.isoformat()},
            )
            errors.append({"trust_account_id": account.id, "error": str(e)})
            continue
        posted.append({"trust_account_id": account.id, "transaction_id": entry.id, "amount": interest})

    logger.info(
        "Trust interest processed",
        extra={"as_of": as_of.isoformat(), "posted": len(posted), "errors": len(errors)},
    )
    return {
        "as_of": as_of,
        "posted": posted,
        "skipped": skipped,
        "errors": errors,
        "total_interest": sum((p["amount"] for p in posted), Decimal("0.00")),
    }


# =============================================================================
# Reconciliation
# =============================================================================

def _outstanding_row(txn: TrustAccountTransaction) -> dict:
    return {
        "id": txn.id,
        "transaction_date": txn.transaction_date,
        "transaction_type": txn.transaction_type,
        "amount": txn.amount,
        "description": txn.description,
    }


@transaction.atomic
def reconcile_trust_account(actor: ActorContext, account_id, bank_balance, as_of: date | None = None) -> dict:
    """
    Match the ledger against a bank statement balance.

    Marks the longest chronological run of unreconciled transactions (dated
    on or before as_of) whose cumulative balance equals bank_balance. Never
    posts an adjustment: any difference is reported for follow-up.
    """
    require(actor, "trust.reconcile")

    as_of = as_of or timezone.localdate()
    bank_balance = Decimal(str(bank_balance)).quantize(MONEY_Q)
    get_account_for_actor(actor, account_id)
    account = lock_account(account_id)

    reconciled_balance = ledger_sum(account.transactions.filter(is_reconciled=True))
    candidates = list(
        account.transactions.filter(is_reconciled=False, transaction_date__lte=as_of).order_by("transaction_date", "id")
    )

    running = reconciled_balance
    matched = 0 if running == bank_balance else None
    for index, txn in enumerate(candidates, start=1):
        running += txn.signed_amount
        if running == bank_balance:
            matched = index
    ledger_balance = running

    to_mark = candidates[:matched] if matched else []
    if to_mark:
        TrustAccountTransaction.objects.filter(pk__in=[t.pk for t in to_mark]).update(
            is_reconciled=True,
            reconciled_date=as_of,
            reconciled_by=actor.user,
        )
    outstanding = candidates[len(to_mark):]

    result = {
        "trust_account_id": account.id,
        "as_of": as_of,
        "bank_balance": bank_balance,
        "ledger_balance": ledger_balance,
        "book_balance": account.balance,
        "difference": bank_balance - ledger_balance,
        "is_balanced": bank_balance == ledger_balance,
        "matched": matched is not None,
        "reconciled_count": len(to_mark),
        "outstanding": [_outstanding_row(t) for t in outstanding],
    }
    logger.info(
        "Trust account reconciled",
        extra={
            "trust_account_id": account.id,
            "reconciled_count": len(to_mark),
            "difference": str(result["difference"]),
            "user_id": actor.user.id,
        },
    )
    return result


@transaction.atomic
def reconcile_transactions(actor: ActorContext, transaction_ids, reconciled_date: date | None = None) -> int:
    """Mark explicit transactions as reconciled; returns how many changed."""
    require(actor, "trust.reconcile")

    ids = list(dict.fromkeys(transaction_ids or []))
    if not ids:
        raise ValidationError("transaction_ids must not be empty.", {"field": "transaction_ids"})

    found = set(
        TrustAccountTransaction.objects.filter(
            pk__in=ids, trust_account__property__company=actor.company,
        ).values_list("pk", flat=True)
    )
    missing = [pk for pk in ids if pk not in found]
    if missing:
        raise NotFoundError("Trust transactions not found.", {"transaction_ids": missing})

    return TrustAccountTransaction.objects.filter(pk__in=ids, is_reconciled=False).update(
        is_reconciled=True,
        reconciled_date=reconciled_date or timezone.localdate(),
        reconciled_by=actor.user,
    )


# =============================================================================
# Reversal
# =============================================================================

def reverse_transaction(
    actor: ActorContext,
    transaction_id,
    reason: str,
    transaction_date: date | None = None,
) -> TrustAccountTransaction:
    """
    Post the compensating entry for a transaction.

    deposit <-> withdrawal, interest <-> fee. The original row is left
    untouched, so reconciled history stays intact. Each transaction can be
    reversed once, and reversal entries themselves cannot be reversed.
    """
    require(actor, "trust.reverse")

    if not reason:
        raise ValidationError("A reason is required to reverse a transaction.", {"field": "reason"})
    original = get_transaction_for_actor(actor, transaction_id)
    transaction_date = transaction_date or timezone.localdate()

    def write():
        account = lock_account(original.trust_account_id)
        txn = TrustAccountTransaction.objects.select_for_update().get(pk=original.pk)
        if txn.reverses_id is not None:
            raise BusinessRuleViolation("Reversal entries cannot be reversed.", {"transaction_id": txn.id})
        if TrustAccountTransaction.objects.filter(reverses=txn).exists():
            raise BusinessRuleViolation("Transaction has already been reversed.", {"transaction_id": txn.id})

        return post_entry(
            account,
            TrustAccountTransaction.REVERSAL_TYPES[txn.transaction_type],
            txn.amount,
            transaction_date,
            user=actor.user,
            description=f"Reversal of #{txn.id}: {reason}",
            reference_number=txn.reference_number,
            tenant=txn.tenant,
            lease=txn.lease,
            reverses=txn,
        )

    reversal = run_with_retry(write)
    logger.info(
        "Trust transaction reversed",
        extra={"transaction_id": original.id, "reversal_id": reversal.id, "user_id": actor.user.id},
    )
    return reversal
