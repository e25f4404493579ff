# rent/views.py
"""
Thin views over rent commands, queries and reports.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: permissions, business rules, persistence.
"""

from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import paginated, parse_date_param, parse_int_param, success
from accounting.exports import ExportFormat, create_export_response
from properties.policies import get_property_for_actor
from .commands import (
    create_recurring_payment,
    deactivate_recurring_payment,
    record_payment,
    send_payment_reminders,
    waive_payment,
)
from .models import RecurringPayment
from .queries import get_due_payments, get_lease_payment_status
from .reports import RENT_ROLL_COLUMNS, generate_rent_roll_report
from .serializers import (
    PaymentReminderSerializer,
    PaymentSerializer,
    RecordPaymentSerializer,
    RecurringPaymentCreateSerializer,
    RecurringPaymentSerializer,
    RentRollQuerySerializer,
    WaiveSerializer,
)


# =============================================================================
# Payments
# =============================================================================

class DuePaymentsView(APIView):
    """
    GET /payments/due?property_id=&start_date=&end_date=&status=&as_of=

    status accepts pending, partial, paid, waived or overdue.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))
        as_of = parse_date_param(request, "as_of", default=timezone.localdate())

        payments = get_due_payments(
            actor,
            prop,
            start_date=parse_date_param(request, "start_date"),
            end_date=parse_date_param(request, "end_date"),
            status=request.query_params.get("status") or None,
            as_of=as_of,
        )
        return paginated(
            request,
            payments,
            lambda page: PaymentSerializer(page, many=True, context={"as_of": as_of}).data,
        )


class RecordPaymentView(APIView):
    """
    POST /payments/record

    An Idempotency-Key header is used when the body carries no idempotency_key.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get("idempotency_key"):
            data["idempotency_key"] = request.headers.get("Idempotency-Key")

        payment = record_payment(actor, **data)
        return success(PaymentSerializer(payment).data, message="Payment recorded")


class WaivePaymentView(APIView):
    """POST /payments/<id>/waive"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = WaiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = waive_payment(actor, pk, serializer.validated_data["reason"])
        return success(PaymentSerializer(payment).data, message="Payment waived")


class LeasePaymentStatusView(APIView):
    """GET /payments/status/<lease_id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, lease_id):
        actor = resolve_actor(request)
        as_of = parse_date_param(request, "as_of", default=timezone.localdate())
        return success(get_lease_payment_status(actor, lease_id, as_of=as_of))


class PaymentRemindersView(APIView):
    """POST /payments/reminders"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = PaymentReminderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prop = get_property_for_actor(actor, serializer.validated_data["property_id"])

        sent = send_payment_reminders(actor, prop, serializer.validated_data["days_in_advance"])
        return success({"sent": sent})


# =============================================================================
# Recurring payments
# =============================================================================

class RecurringPaymentListCreateView(APIView):
    """
    GET /recurring-payments/?property_id= -> schedules of a property
    POST /recurring-payments/ -> create a schedule for a lease
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "rent.view")
        prop = get_property_for_actor(actor, parse_int_param(request, "property_id", required=True))

        schedules = RecurringPayment.objects.filter(lease__unit__property=prop).order_by("id")
        return paginated(request, schedules, lambda page: RecurringPaymentSerializer(page, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = RecurringPaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        recurring = create_recurring_payment(actor, **serializer.validated_data)
        return success(RecurringPaymentSerializer(recurring).data, status_code=status.HTTP_201_CREATED)


class RecurringPaymentDeactivateView(APIView):
    """POST /recurring-payments/<id>/deactivate"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        recurring = deactivate_recurring_payment(actor, pk)
        return success(RecurringPaymentSerializer(recurring).data)


# =============================================================================
# Reports
# =============================================================================

class RentRollReportView(APIView):
    """GET /reports/rent-roll?property_id=&start_date=&end_date=&format=json|csv|xlsx|pdf"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        params = RentRollQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data
        prop = get_property_for_actor(actor, query["property_id"])

        report = generate_rent_roll_report(actor, prop, query["start_date"], query["end_date"])
        if query["format"] == ExportFormat.JSON:
            return success(report)

        require(actor, "reports.export")
        return create_export_response(
            report["rows"],
            RENT_ROLL_COLUMNS,
            format=query["format"],
            filename=f"rent_roll_{prop.id}_{query['start_date']}_{query['end_date']}",
            title=f"Rent Roll - {prop.name}",
            summary=report["summary"],
        )
