# late_fees/views.py
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import paginated, parse_date_param, parse_int_param, success
from accounting.exports import ExportFormat, create_export_response
from properties.policies import get_property_for_actor
from .commands import (
    apply_late_fee,
    apply_late_fees,
    calculate_late_fees,
    create_or_update_configuration,
    deactivate_configuration,
    mark_late_fee_paid,
    waive_late_fee,
)
from .queries import LATE_FEE_REPORT_COLUMNS, generate_late_fee_report, get_configuration, get_late_fees
from .serializers import (
    ApplyLateFeeSerializer,
    LateFeeConfigurationSerializer,
    LateFeeConfigurationWriteSerializer,
    LateFeeReportQuerySerializer,
    LateFeeSerializer,
    MarkLateFeePaidSerializer,
    ProcessLateFeesSerializer,
    WaiveLateFeeSerializer,
)


# =============================================================================
# Configuration
# =============================================================================

class LateFeeConfigurationView(APIView):
    """
    GET /late-fees/configurations?property_id= -> active rule or null
    POST /late-fees/configurations -> replace the property's active rule
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))

        configuration = get_configuration(actor, prop)
        return success(LateFeeConfigurationSerializer(configuration).data if configuration else None)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = LateFeeConfigurationWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prop = get_property_for_actor(actor, data.pop("property_id"))

        configuration = create_or_update_configuration(actor, prop, **data)
        return success(LateFeeConfigurationSerializer(configuration).data, status_code=status.HTTP_201_CREATED)


class LateFeeConfigurationDeactivateView(APIView):
    """POST /late-fees/configurations/deactivate {property_id}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, request.data.get("property_id"))
        return success({"deactivated": deactivate_configuration(actor, prop)})


# =============================================================================
# Fees
# =============================================================================

class LateFeeListView(APIView):
    """GET /late-fees/?property_id=&status="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))

        fees = get_late_fees(actor, prop, status=request.query_params.get("status") or None)
        return paginated(request, fees, lambda page: LateFeeSerializer(page, many=True).data)


class CalculateLateFeesView(APIView):
    """GET /late-fees/calculate?property_id=&as_of= (dry run)"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))
        as_of = parse_date_param(request, "as_of", default=timezone.localdate())
        return success(calculate_late_fees(actor, prop, as_of))


class ProcessLateFeesView(APIView):
    """POST /late-fees/process {property_id, as_of?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ProcessLateFeesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prop = get_property_for_actor(actor, serializer.validated_data["property_id"])
        as_of = serializer.validated_data.get("as_of") or timezone.localdate()

        return success(apply_late_fees(actor, prop, as_of))


class ApplyLateFeeView(APIView):
    """POST /late-fees/apply {payment_id, amount? | percentage?, notes?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ApplyLateFeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        late_fee = apply_late_fee(actor, **serializer.validated_data)
        return success(LateFeeSerializer(late_fee).data, status_code=status.HTTP_201_CREATED, message="Late fee applied")


class WaiveLateFeeView(APIView):
    """POST /late-fees/waive {late_fee_id, reason}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = WaiveLateFeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        late_fee = waive_late_fee(actor, serializer.validated_data["late_fee_id"], serializer.validated_data["reason"])
        return success(LateFeeSerializer(late_fee).data, message="Late fee waived")


class MarkLateFeePaidView(APIView):
    """POST /late-fees/<id>/pay {paid_date?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = MarkLateFeePaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        late_fee = mark_late_fee_paid(actor, pk, serializer.validated_data.get("paid_date"))
        return success(LateFeeSerializer(late_fee).data)


# =============================================================================
# Reports
# =============================================================================

class LateFeeReportView(APIView):
    """GET /reports/late-fees?property_id=&start_date=&end_date=&format="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        params = LateFeeReportQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data
        prop = get_property_for_actor(actor, query["property_id"])

        report = generate_late_fee_report(actor, prop, query["start_date"], query["end_date"])
        if query["format"] == ExportFormat.JSON:
            return success(report)

        require(actor, "reports.export")
        return create_export_response(
            report["rows"],
            LATE_FEE_REPORT_COLUMNS,
            format=query["format"],
            filename=f"late_fees_{prop.id}_{query['start_date']}_{query['end_date']}",
            title=f"Late Fees - {prop.name}",
            summary=report["summary"],
        )
