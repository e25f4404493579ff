# accounting/views.py
"""
Cross-cutting accounting endpoints: consolidated reports, cash flow,
the dashboard, the recurring batch trigger and a module liveness check.

Domain endpoints live in their own apps (rent, late_fees, trust, expenses)
and are mounted next to these by accounting/urls.py.
"""

from django.utils import timezone
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import parse_bool_param, parse_date_param, parse_int_param, success
from accounting.cash_flow import detect_anomalies, generate_prediction, get_historical_cash_flow
from accounting.module import AccountingModule
from properties.policies import get_property_for_actor
from .serializers import BatchRunSerializer


class FinancialReportView(APIView):
    """GET /reports/financial?property_id=&start_date=&end_date="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))
        start_date = parse_date_param(request, "start_date", required=True)
        end_date = parse_date_param(request, "end_date", required=True)

        return success(AccountingModule().generate_financial_reports(actor, prop, start_date, end_date))


class DashboardView(APIView):
    """GET /dashboard?property_id="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        property_id = parse_int_param(request, "property_id")
        prop = get_property_for_actor(actor, property_id) if property_id else None

        return success(AccountingModule().get_dashboard(actor, prop))


class CashFlowPredictionView(APIView):
    """GET /cash-flow/prediction?property_id=&months=&as_of=&include_historical="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))

        return success(generate_prediction(
            actor,
            prop,
            months=parse_int_param(request, "months", default=6),
            as_of=parse_date_param(request, "as_of"),
            include_historical=parse_bool_param(request, "include_historical", default=True),
        ))


class CashFlowHistoryView(APIView):
    """GET /cash-flow/history?property_id=&months=&as_of="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))
        months = parse_int_param(request, "months", default=12)

        return success(get_historical_cash_flow(actor, prop, months, as_of=parse_date_param(request, "as_of")))


class CashFlowAnomalyView(APIView):
    """GET /cash-flow/anomalies?property_id=&as_of="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))

        return success(detect_anomalies(actor, prop, as_of=parse_date_param(request, "as_of")))


class BatchRecurringView(APIView):
    """POST /batch/recurring {as_of?} -> runs the batch synchronously"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "accounting.batch")

        serializer = BatchRunSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        as_of = serializer.validated_data.get("as_of") or timezone.localdate()

        result = AccountingModule().process_recurring_transactions(as_of, user=actor.user)
        return success(result, message="Batch completed" if result["success"] else "Batch completed with errors")


class ModuleHealthView(APIView):
    """GET /health (no auth)"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return success({"module": "accounting", "status": "ok", "time": timezone.now()})
