# trust/ledger.py
"""
The trust ledger write primitive.

post_entry() is the only code that changes TrustAccount.balance:

    1. lock the account row (SELECT ... FOR UPDATE)
    2. refuse the entry if the balance would go negative
    3. insert the transaction with its balance_after
    4. recompute the balance from the ledger sum and persist it

All four steps share one transaction, so the cached balance always equals
the signed sum of the account's transactions.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import OperationalError, connection, transaction
from django.db.models import Case, DecimalField, F, Sum, Value, When

from accounting.exceptions import InsufficientFundsError
from ops.metrics import LEDGER_RETRIES, TRUST_TRANSACTIONS
from trust.models import TrustAccount, TrustAccountTransaction

logger = logging.getLogger(__name__)

# PostgreSQL serialization_failure / deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}

ZERO = Decimal("0.00")


def signed_amount_expression():
    """SQL expression for a transaction's signed amount."""
    return Case(
        When(transaction_type__in=TrustAccountTransaction.DEBIT_TYPES, then=-F("amount")),
        default=F("amount"),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


def ledger_sum(queryset) -> Decimal:
    total = queryset.aggregate(total=Sum(signed_amount_expression(), default=Value(ZERO)))["total"]
    return (total or ZERO).quantize(Decimal("0.01"))


def lock_account(account_id) -> TrustAccount:
    return TrustAccount.objects.select_for_update().select_related("property__company").get(pk=account_id)


@transaction.atomic
def post_entry(
    account: TrustAccount,
    transaction_type: str,
    amount: Decimal,
    transaction_date,
    user=None,
    **fields,
) -> TrustAccountTransaction:
    """
    Append one entry to a trust account.

    `account` must already be locked by the caller's transaction (see
    lock_account); the lock is re-taken here so direct callers are safe too.
    Raises InsufficientFundsError before writing anything if the entry would
    overdraw the account.
    """
    account = lock_account(account.pk)

    entry = TrustAccountTransaction(
        trust_account=account,
        transaction_type=transaction_type,
        amount=amount,
        transaction_date=transaction_date,
        created_by=user,
        **fields,
    )
    prospective = account.balance + entry.signed_amount
    if prospective < 0:
        raise InsufficientFundsError(
            f"Insufficient funds: balance {account.balance}, requested {amount}.",
            {
                "trust_account_id": account.id,
                "balance": str(account.balance),
                "requested": str(amount),
            },
        )

    entry.balance_after = prospective
    entry.save()

    account.balance = ledger_sum(account.transactions.all())
    if account.balance < 0:
        raise InsufficientFundsError(
            "Ledger sum is negative.",
            {"trust_account_id": account.id, "balance": str(account.balance)},
        )
    account.save(update_fields=["balance", "updated_at"])

    TRUST_TRANSACTIONS.labels(transaction_type=transaction_type).inc()
    logger.info(
        "Trust ledger entry posted",
        extra={
            "trust_account_id": account.id,
            "transaction_id": entry.id,
            "transaction_type": transaction_type,
            "amount": str(amount),
            "balance": str(account.balance),
        },
    )
    return entry


def _is_retryable(exc: OperationalError) -> bool:
    cause = exc.__cause__
    code = getattr(cause, "pgcode", None) or getattr(cause, "sqlstate", None)
    return code in RETRYABLE_SQLSTATES


def run_with_retry(fn, *args, **kwargs):
    """
    Run fn inside a transaction, retrying serialization failures and deadlocks.

    When already inside an outer atomic block the caller owns the
    transaction, so fn runs once in a savepoint and errors propagate.
    """
    if connection.in_atomic_block:
        with transaction.atomic():
            return fn(*args, **kwargs)

    attempts = max(1, settings.LEDGER_MAX_RETRIES)
    for attempt in range(attempts):
        try:
            with transaction.atomic():
                return fn(*args, **kwargs)
        except OperationalError as exc:
            if not _is_retryable(exc) or attempt == attempts - 1:
                raise
            LEDGER_RETRIES.inc()
            logger.warning(
                "Retrying trust ledger write",
                extra={"attempt": attempt + 1, "error": str(exc)},
            )

    # Unreachable, but keeps type-checkers happy
    raise RuntimeError("Ledger write failed after retries")
