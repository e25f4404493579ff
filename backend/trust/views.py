# trust/views.py
"""
Trust account endpoints.

Ledger writes return the posted transaction together with the account's
new balance.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import paginated, parse_int_param, success
from accounting.exports import ExportFormat, create_export_response
from properties.policies import get_property_for_actor
from .commands import (
    create_trust_account,
    deactivate_trust_account,
    get_account_for_actor,
    reconcile_transactions,
    reconcile_trust_account,
    record_deposit,
    record_fee,
    record_withdrawal,
    reverse_transaction,
    transfer_funds,
    update_trust_account,
)
from .models import TrustAccount
from .reports import (
    AUDIT_COLUMNS,
    STATEMENT_COLUMNS,
    generate_audit_report,
    generate_statement,
    get_security_deposit_balance,
)
from .serializers import (
    FeeEntrySerializer,
    LedgerEntrySerializer,
    PeriodQuerySerializer,
    ReconcileAccountSerializer,
    ReconcileTransactionsSerializer,
    ReverseTransactionSerializer,
    TransferSerializer,
    TrustAccountCreateSerializer,
    TrustAccountSerializer,
    TrustAccountUpdateSerializer,
    TrustAuditQuerySerializer,
    TrustTransactionSerializer,
)


def _entry_response(entry, status_code=status.HTTP_201_CREATED):
    entry.trust_account.refresh_from_db(fields=["balance"])
    return success(
        {
            "transaction": TrustTransactionSerializer(entry).data,
            "balance": str(entry.trust_account.balance),
        },
        status_code=status_code,
    )


# =============================================================================
# Accounts
# =============================================================================

class TrustAccountListCreateView(APIView):
    """
    GET /trust-accounts/?property_id=&include_inactive=
    POST /trust-accounts/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "trust.view")

        accounts = TrustAccount.objects.filter(property__company=actor.company).select_related("property")
        property_id = parse_int_param(request, "property_id")
        if property_id is not None:
            accounts = accounts.filter(property=get_property_for_actor(actor, property_id))
        if request.query_params.get("include_inactive") not in ("1", "true"):
            accounts = accounts.filter(is_active=True)

        return paginated(request, accounts.order_by("id"), lambda page: TrustAccountSerializer(page, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = TrustAccountCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prop = get_property_for_actor(actor, data.pop("property_id"))

        account = create_trust_account(actor, prop, **data)
        return success(TrustAccountSerializer(account).data, status_code=status.HTTP_201_CREATED)


class TrustAccountDetailView(APIView):
    """GET / PATCH /trust-accounts/<id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "trust.view")
        return success(TrustAccountSerializer(get_account_for_actor(actor, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)

        serializer = TrustAccountUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        account = update_trust_account(actor, pk, **serializer.validated_data)
        return success(TrustAccountSerializer(account).data)


class TrustAccountDeactivateView(APIView):
    """POST /trust-accounts/<id>/deactivate"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        return success(TrustAccountSerializer(deactivate_trust_account(actor, pk)).data)


class TrustAccountTransactionsView(APIView):
    """GET /trust-accounts/<id>/transactions?limit=&offset="""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "trust.view")

        account = get_account_for_actor(actor, pk)
        transactions = account.transactions.select_related("tenant").order_by("-transaction_date", "-id")
        return paginated(request, transactions, lambda page: TrustTransactionSerializer(page, many=True).data)


# =============================================================================
# Ledger writes
# =============================================================================

class DepositView(APIView):
    """POST /trust-accounts/<id>/deposit"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = LedgerEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get("idempotency_key"):
            data["idempotency_key"] = request.headers.get("Idempotency-Key")

        return _entry_response(record_deposit(actor, pk, **data))


class WithdrawalView(APIView):
    """POST /trust-accounts/<id>/withdrawal"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = LedgerEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get("idempotency_key"):
            data["idempotency_key"] = request.headers.get("Idempotency-Key")

        return _entry_response(record_withdrawal(actor, pk, **data))


class FeeView(APIView):
    """POST /trust-accounts/<id>/fee"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = FeeEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return _entry_response(record_fee(actor, pk, **serializer.validated_data))


class TransferView(APIView):
    """POST /trust-accounts/transfer"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = TransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = transfer_funds(actor, **serializer.validated_data)
        return success(
            {
                "withdrawal": TrustTransactionSerializer(result["withdrawal"]).data,
                "deposit": TrustTransactionSerializer(result["deposit"]).data,
            },
            status_code=status.HTTP_201_CREATED,
            message="Transfer completed",
        )


# =============================================================================
# Reconciliation & reversal
# =============================================================================

class ReconcileAccountView(APIView):
    """POST /trust-accounts/<id>/reconcile {bank_balance, as_of?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ReconcileAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return success(reconcile_trust_account(actor, pk, **serializer.validated_data))


class ReconcileTransactionsView(APIView):
    """POST /trust-transactions/reconcile {transaction_ids, reconciled_date?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ReconcileTransactionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        count = reconcile_transactions(actor, **serializer.validated_data)
        return success({"reconciled": count})


class ReverseTransactionView(APIView):
    """POST /trust-transactions/<id>/reverse {reason}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ReverseTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reversal = reverse_transaction(actor, pk, **serializer.validated_data)
        return _entry_response(reversal)


# =============================================================================
# Reports
# =============================================================================

class StatementView(APIView):
    """GET /trust-accounts/<id>/statement?start_date=&end_date=&format="""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)

        params = PeriodQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data

        statement = generate_statement(actor, pk, query["start_date"], query["end_date"])
        if query["format"] == ExportFormat.JSON:
            return success(statement)

        require(actor, "reports.export")
        return create_export_response(
            statement["rows"],
            STATEMENT_COLUMNS,
            format=query["format"],
            filename=f"trust_statement_{pk}_{query['start_date']}_{query['end_date']}",
            title=f"Trust Statement - {statement['account']['account_name']}",
            summary=statement["summary"],
        )


class SecurityDepositBalanceView(APIView):
    """GET /trust-accounts/security-deposits/<lease_id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, lease_id):
        actor = resolve_actor(request)
        return success(get_security_deposit_balance(actor, lease_id))


class TrustAuditReportView(APIView):
    """GET /reports/trust-audit?property_id=&start_date=&end_date=&format="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        params = TrustAuditQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data
        prop = get_property_for_actor(actor, query["property_id"])

        report = generate_audit_report(actor, prop, query["start_date"], query["end_date"])
        if query["format"] == ExportFormat.JSON:
            return success(report)

        require(actor, "reports.export")
        return create_export_response(
            report["rows"],
            AUDIT_COLUMNS,
            format=query["format"],
            filename=f"trust_audit_{prop.id}_{query['start_date']}_{query['end_date']}",
            title=f"Trust Account Audit - {prop.name}",
            summary=report["summary"],
        )
