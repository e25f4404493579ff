# tests/test_trust_accounts.py
"""
Tests for trust accounts.

Tests cover:
- Deposits, withdrawals and fees with balance_after
- Overdraft rejection (balance untouched)
- Balance == signed ledger sum after every write
- Transfers commit both legs or neither
- Monthly interest (average daily balance, once per month)
- Reconciliation against a bank balance, immutability of reconciled rows
- Reversals, idempotency keys, statements and the audit report
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied

from accounting.exceptions import BusinessRuleViolation, InsufficientFundsError, ValidationError
from trust import commands as trust_commands
from trust.commands import (
    calculate_and_apply_interest,
    create_trust_account,
    deactivate_trust_account,
    reconcile_trust_account,
    reconcile_transactions,
    record_deposit,
    record_fee,
    record_withdrawal,
    reverse_transaction,
    transfer_funds,
    update_trust_account,
)
from trust.ledger import ledger_sum
from trust.models import TrustAccount, TrustAccountTransaction
from trust.reports import generate_audit_report, generate_statement, get_security_deposit_balance

MARCH_1 = date(2025, 3, 1)


def assert_balance_matches_ledger(account):
    account.refresh_from_db()
    assert account.balance == ledger_sum(account.transactions.all())
    last = account.transactions.order_by("-id").first()
    if last is not None:
        assert last.balance_after == account.balance


@pytest.fixture
def reserve_account(actor, property):
    return create_trust_account(actor, property, "Capital Reserve", TrustAccount.AccountType.RESERVE)


@pytest.fixture
def funded_escrow(actor, escrow_account):
    record_deposit(actor, escrow_account.id, "1000.00", MARCH_1)
    escrow_account.refresh_from_db()
    return escrow_account


# =============================================================================
# Accounts
# =============================================================================

@pytest.mark.django_db
class TestTrustAccountLifecycle:
    def test_create_interest_bearing(self, actor, property):
        account = create_trust_account(
            actor, property, "Deposits", "security_deposit", is_interest_bearing=True, interest_rate="1.5",
        )
        assert account.balance == Decimal("0.00")
        assert account.interest_rate == Decimal("1.5")

    def test_interest_rate_requires_interest_bearing(self, actor, property):
        with pytest.raises(ValidationError):
            create_trust_account(actor, property, "Deposits", "escrow", interest_rate="1.5")

    def test_interest_bearing_requires_rate(self, actor, property):
        with pytest.raises(ValidationError):
            create_trust_account(actor, property, "Deposits", "escrow", is_interest_bearing=True)

    def test_unknown_type(self, actor, property):
        with pytest.raises(ValidationError):
            create_trust_account(actor, property, "Deposits", "checking")

    def test_update_rejects_balance(self, actor, escrow_account):
        with pytest.raises(ValidationError):
            update_trust_account(actor, escrow_account.id, balance="100.00")

        updated = update_trust_account(actor, escrow_account.id, bank_name="First Bank")
        assert updated.bank_name == "First Bank"

    def test_deactivate_requires_zero_balance(self, actor, funded_escrow):
        with pytest.raises(BusinessRuleViolation):
            deactivate_trust_account(actor, funded_escrow.id)

    def test_inactive_account_rejects_writes(self, actor, escrow_account):
        deactivate_trust_account(actor, escrow_account.id)

        with pytest.raises(BusinessRuleViolation):
            record_deposit(actor, escrow_account.id, "10.00")


# =============================================================================
# Ledger writes
# =============================================================================

@pytest.mark.django_db
class TestLedgerWrites:
    def test_deposit_then_overdraft_rejected(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "1000.00", MARCH_1)
        second = record_deposit(actor, escrow_account.id, "500.00", date(2025, 3, 2))

        assert second.balance_after == Decimal("1500.00")

        with pytest.raises(InsufficientFundsError):
            record_withdrawal(actor, escrow_account.id, "2000.00", date(2025, 3, 3))

        escrow_account.refresh_from_db()
        assert escrow_account.balance == Decimal("1500.00")
        assert escrow_account.transactions.count() == 2

    def test_balance_matches_ledger_after_each_write(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "1000.00", MARCH_1)
        assert_balance_matches_ledger(escrow_account)

        record_withdrawal(actor, escrow_account.id, "250.00", date(2025, 3, 4))
        assert_balance_matches_ledger(escrow_account)

        record_fee(actor, escrow_account.id, "12.50", date(2025, 3, 5), description="Bank fee")
        assert_balance_matches_ledger(escrow_account)
        assert escrow_account.balance == Decimal("737.50")

    @pytest.mark.parametrize("amount", ["0", "-1.00", "ten"])
    def test_invalid_amount(self, actor, escrow_account, amount):
        with pytest.raises(ValidationError):
            record_deposit(actor, escrow_account.id, amount)

    def test_security_deposit_requires_tenant(self, actor, trust_account):
        with pytest.raises(ValidationError):
            record_deposit(actor, trust_account.id, "1000.00", MARCH_1)

    def test_security_deposit_through_lease(self, actor, trust_account, lease, tenant):
        entry = record_deposit(actor, trust_account.id, "1000.00", MARCH_1, lease_id=lease.id)

        assert entry.tenant == tenant
        assert entry.lease == lease

    def test_deposit_receipt_sent_after_commit(self, actor, trust_account, lease,
                                               django_capture_on_commit_callbacks, mailoutbox):
        with django_capture_on_commit_callbacks(execute=True):
            record_deposit(actor, trust_account.id, "1000.00", MARCH_1, lease_id=lease.id)

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["jane@example.com"]

    def test_viewer_cannot_deposit(self, viewer_actor, escrow_account):
        with pytest.raises(PermissionDenied):
            record_deposit(viewer_actor, escrow_account.id, "10.00")


@pytest.mark.django_db
class TestIdempotency:
    def test_duplicate_key_returns_existing(self, actor, escrow_account):
        first = record_deposit(actor, escrow_account.id, "100.00", MARCH_1, idempotency_key="bank-123")
        again = record_deposit(actor, escrow_account.id, "100.00", MARCH_1, idempotency_key="bank-123")

        assert again.id == first.id
        escrow_account.refresh_from_db()
        assert escrow_account.balance == Decimal("100.00")

    def test_key_reused_for_other_transaction_type(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "100.00", MARCH_1, idempotency_key="bank-124")

        with pytest.raises(ValidationError):
            record_withdrawal(actor, escrow_account.id, "10.00", MARCH_1, idempotency_key="bank-124")


# =============================================================================
# Transfers
# =============================================================================

@pytest.mark.django_db
class TestTransfers:
    def test_transfer_moves_funds(self, actor, funded_escrow, reserve_account):
        result = transfer_funds(actor, funded_escrow.id, reserve_account.id, "400.00", transaction_date=MARCH_1)

        funded_escrow.refresh_from_db()
        reserve_account.refresh_from_db()
        assert funded_escrow.balance == Decimal("600.00")
        assert reserve_account.balance == Decimal("400.00")
        assert result["withdrawal"].transaction_type == TrustAccountTransaction.TransactionType.WITHDRAWAL
        assert result["deposit"].transaction_type == TrustAccountTransaction.TransactionType.DEPOSIT

    def test_insufficient_funds_moves_nothing(self, actor, funded_escrow, reserve_account):
        with pytest.raises(InsufficientFundsError):
            transfer_funds(actor, funded_escrow.id, reserve_account.id, "5000.00")

        reserve_account.refresh_from_db()
        assert reserve_account.balance == Decimal("0.00")

    def test_failed_second_leg_rolls_back_first(self, actor, funded_escrow, reserve_account, monkeypatch):
        real_post_entry = trust_commands.post_entry
        calls = []

        def flaky_post_entry(*args, **kwargs):
            calls.append(args[1])
            if len(calls) == 2:
                raise BusinessRuleViolation("bank link down")
            return real_post_entry(*args, **kwargs)

        monkeypatch.setattr(trust_commands, "post_entry", flaky_post_entry)

        with pytest.raises(BusinessRuleViolation):
            transfer_funds(actor, funded_escrow.id, reserve_account.id, "400.00")

        funded_escrow.refresh_from_db()
        assert funded_escrow.balance == Decimal("1000.00")
        assert funded_escrow.transactions.count() == 1
        assert reserve_account.transactions.count() == 0

    def test_same_account_rejected(self, actor, funded_escrow):
        with pytest.raises(ValidationError):
            transfer_funds(actor, funded_escrow.id, funded_escrow.id, "10.00")

    def test_transfer_into_security_deposit_requires_tenant(self, actor, funded_escrow, trust_account):
        with pytest.raises(ValidationError):
            transfer_funds(actor, funded_escrow.id, trust_account.id, "10.00")


# =============================================================================
# Interest
# =============================================================================

@pytest.mark.django_db
class TestInterest:
    @pytest.fixture
    def savings(self, actor, property):
        account = create_trust_account(
            actor, property, "Interest Deposits", "escrow", is_interest_bearing=True, interest_rate="1.2",
        )
        record_deposit(actor, account.id, "1000.00", MARCH_1)
        return account

    def test_monthly_interest_posted_once(self, savings):
        result = calculate_and_apply_interest(date(2025, 3, 31))

        assert result["total_interest"] == Decimal("1.00")
        assert result["posted"][0]["trust_account_id"] == savings.id
        savings.refresh_from_db()
        assert savings.balance == Decimal("1001.00")

        again = calculate_and_apply_interest(date(2025, 3, 31))
        assert again["posted"] == []
        assert again["skipped"] == [{"trust_account_id": savings.id, "reason": "already_posted"}]

    def test_reversed_interest_can_be_posted_again(self, actor, savings):
        first = calculate_and_apply_interest(date(2025, 3, 31))
        reverse_transaction(
            actor, first["posted"][0]["transaction_id"], "Posted at the wrong rate", transaction_date=date(2025, 3, 31),
        )

        again = calculate_and_apply_interest(date(2025, 3, 31))

        assert again["total_interest"] == Decimal("1.00")
        savings.refresh_from_db()
        assert savings.balance == Decimal("1001.00")
        assert savings.balance == ledger_sum(savings.transactions.all())

    def test_uses_average_daily_balance(self, actor, property):
        account = create_trust_account(
            actor, property, "Mid-month", "escrow", is_interest_bearing=True, interest_rate="12",
        )
        # 1200.00 held for the last 15 of 30 days: average 600.00
        record_deposit(actor, account.id, "1200.00", date(2025, 4, 16))

        result = calculate_and_apply_interest(date(2025, 4, 30))
        assert result["total_interest"] == Decimal("6.00")

    def test_empty_account_skipped(self, actor, property):
        account = create_trust_account(actor, property, "Empty", "escrow", is_interest_bearing=True, interest_rate="2")

        result = calculate_and_apply_interest(date(2025, 3, 31))
        assert {"trust_account_id": account.id, "reason": "no_interest"} in result["skipped"]


# =============================================================================
# Reconciliation & reversal
# =============================================================================

@pytest.mark.django_db
class TestReconciliation:
    @pytest.fixture
    def activity(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "1000.00", MARCH_1)
        record_deposit(actor, escrow_account.id, "500.00", date(2025, 3, 5))
        record_withdrawal(actor, escrow_account.id, "200.00", date(2025, 3, 10))
        return escrow_account

    def test_balanced_statement(self, actor, activity):
        result = reconcile_trust_account(actor, activity.id, "1300.00", as_of=date(2025, 3, 31))

        assert result["is_balanced"] is True
        assert result["reconciled_count"] == 3
        assert result["outstanding"] == []

    def test_partial_match_reports_difference(self, actor, activity):
        result = reconcile_trust_account(actor, activity.id, "1500.00", as_of=date(2025, 3, 31))

        assert result["matched"] is True
        assert result["reconciled_count"] == 2
        assert result["difference"] == Decimal("200.00")
        assert [row["amount"] for row in result["outstanding"]] == [Decimal("200.00")]
        activity.refresh_from_db()
        assert activity.balance == Decimal("1300.00")

    def test_no_match_marks_nothing(self, actor, activity):
        result = reconcile_trust_account(actor, activity.id, "999.99", as_of=date(2025, 3, 31))

        assert result["matched"] is False
        assert result["reconciled_count"] == 0
        assert activity.transactions.filter(is_reconciled=True).count() == 0

    def test_reconciled_rows_are_immutable(self, actor, activity):
        reconcile_trust_account(actor, activity.id, "1300.00", as_of=date(2025, 3, 31))
        txn = activity.transactions.first()
        txn.description = "edited"

        with pytest.raises(BusinessRuleViolation):
            txn.save()
        with pytest.raises(BusinessRuleViolation):
            txn.delete()

    def test_reconcile_explicit_transactions(self, actor, activity):
        ids = list(activity.transactions.values_list("id", flat=True)[:2])
        assert reconcile_transactions(actor, ids, date(2025, 3, 31)) == 2
        assert reconcile_transactions(actor, ids, date(2025, 3, 31)) == 0


@pytest.mark.django_db
class TestReversal:
    def test_reverse_deposit(self, actor, funded_escrow):
        original = funded_escrow.transactions.get()

        reversal = reverse_transaction(actor, original.id, "Bounced cheque", date(2025, 3, 2))

        assert reversal.transaction_type == TrustAccountTransaction.TransactionType.WITHDRAWAL
        assert reversal.reverses == original
        assert_balance_matches_ledger(funded_escrow)
        assert funded_escrow.balance == Decimal("0.00")

    def test_reverse_fee_posts_interest(self, actor, funded_escrow):
        fee = record_fee(actor, funded_escrow.id, "15.00", date(2025, 3, 3))

        reversal = reverse_transaction(actor, fee.id, "Charged in error")
        assert reversal.transaction_type == TrustAccountTransaction.TransactionType.INTEREST

    def test_reverse_twice_rejected(self, actor, funded_escrow):
        original = funded_escrow.transactions.get()
        reversal = reverse_transaction(actor, original.id, "Duplicate")

        with pytest.raises(BusinessRuleViolation):
            reverse_transaction(actor, original.id, "Duplicate")
        with pytest.raises(BusinessRuleViolation):
            reverse_transaction(actor, reversal.id, "Undo")

    def test_reason_required(self, actor, funded_escrow):
        with pytest.raises(ValidationError):
            reverse_transaction(actor, funded_escrow.transactions.get().id, "")

    def test_reversal_cannot_overdraw(self, actor, funded_escrow):
        original = funded_escrow.transactions.get()
        record_withdrawal(actor, funded_escrow.id, "900.00", date(2025, 3, 2))

        with pytest.raises(InsufficientFundsError):
            reverse_transaction(actor, original.id, "Bounced cheque")


# =============================================================================
# Reports
# =============================================================================

@pytest.mark.django_db
class TestTrustReports:
    def test_statement(self, actor, funded_escrow):
        record_withdrawal(actor, funded_escrow.id, "300.00", date(2025, 4, 10))
        record_deposit(actor, funded_escrow.id, "50.00", date(2025, 4, 20))

        statement = generate_statement(actor, funded_escrow.id, date(2025, 4, 1), date(2025, 4, 30))

        assert statement["opening_balance"] == Decimal("1000.00")
        assert [row["running_balance"] for row in statement["rows"]] == [Decimal("700.00"), Decimal("750.00")]
        assert statement["summary"]["total_withdrawals"] == Decimal("300.00")
        assert statement["summary"]["closing_balance"] == Decimal("750.00")

    def test_statement_inverted_period(self, actor, escrow_account):
        with pytest.raises(ValidationError):
            generate_statement(actor, escrow_account.id, date(2025, 4, 30), date(2025, 4, 1))

    def test_audit_report_and_deposit_compliance(self, actor, property, trust_account, funded_escrow, lease):
        record_deposit(actor, trust_account.id, "600.00", MARCH_1, lease_id=lease.id)

        report = generate_audit_report(actor, property, date(2025, 3, 1), date(2025, 3, 31))

        assert report["summary"]["account_count"] == 2
        assert report["summary"]["total_deposits"] == Decimal("1600.00")
        assert report["summary"]["unreconciled_count"] == 2
        compliance = report["security_deposit_compliance"]
        assert compliance["required"] == Decimal("1000.00")
        assert compliance["held"] == Decimal("600.00")
        assert compliance["shortfall"] == Decimal("400.00")
        assert compliance["is_compliant"] is False

    def test_security_deposit_balance_for_lease(self, actor, trust_account, lease):
        record_deposit(actor, trust_account.id, "1000.00", MARCH_1, lease_id=lease.id)

        balance = get_security_deposit_balance(actor, lease.id)
        assert balance["held"] == Decimal("1000.00")
        assert balance["difference"] == Decimal("0.00")
