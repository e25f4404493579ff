# expenses/views.py
from django.utils import timezone
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.api import paginated, parse_bool_param, parse_date_param, parse_int_param, success
from accounting.exports import ExportFormat, create_export_response
from properties.policies import get_property_for_actor
from .commands import (
    cancel_expense,
    create_category,
    deactivate_category,
    dispute_expense,
    get_category_for_actor,
    get_expense_for_actor,
    mark_expense_paid,
    record_expense,
    scan_receipt,
    update_category,
    update_expense,
)
from .queries import get_expense_categories, get_expenses
from .reports import EXPENSE_REPORT_COLUMNS, generate_expense_report, get_expense_statistics
from .serializers import (
    ExpenseCategoryCreateSerializer,
    ExpenseCategorySerializer,
    ExpenseCategoryUpdateSerializer,
    ExpenseCreateSerializer,
    ExpenseReasonSerializer,
    ExpenseReportQuerySerializer,
    ExpenseSerializer,
    ExpenseStatisticsQuerySerializer,
    ExpenseUpdateSerializer,
    MarkExpensePaidSerializer,
    ReceiptImageSerializer,
    ScanReceiptSerializer,
)


def _optional_property(actor, property_id):
    return get_property_for_actor(actor, property_id) if property_id else None


# =============================================================================
# Expenses
# =============================================================================

class ExpenseListCreateView(APIView):
    """
    GET /expenses/?property_id=&status=&category_id=&vendor_id=&unit_id=&start_date=&end_date=&is_recurring=
    POST /expenses/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        prop = _optional_property(actor, parse_int_param(request, "property_id"))

        expenses = get_expenses(
            actor,
            prop,
            status=request.query_params.get("status") or None,
            category_id=parse_int_param(request, "category_id"),
            vendor_id=parse_int_param(request, "vendor_id"),
            unit_id=parse_int_param(request, "unit_id"),
            start_date=parse_date_param(request, "start_date"),
            end_date=parse_date_param(request, "end_date"),
            is_recurring=parse_bool_param(request, "is_recurring", default=None),
        )
        return paginated(request, expenses, lambda page: ExpenseSerializer(page, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ExpenseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prop = get_property_for_actor(actor, data.pop("property_id"))

        expense = record_expense(actor, prop, **data)
        return success(ExpenseSerializer(expense).data, status_code=status.HTTP_201_CREATED, message="Expense recorded")


class ExpenseDetailView(APIView):
    """GET/PATCH /expenses/<id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "expenses.view")
        return success(ExpenseSerializer(get_expense_for_actor(actor, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpenseUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        expense = update_expense(actor, pk, **serializer.validated_data)
        return success(ExpenseSerializer(expense).data)


class ExpensePayView(APIView):
    """POST /expenses/<id>/pay {payment_date, payment_method, reference_number?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = MarkExpensePaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        expense = mark_expense_paid(actor, pk, **serializer.validated_data)
        return success(ExpenseSerializer(expense).data, message="Expense paid")


class ExpenseCancelView(APIView):
    """POST /expenses/<id>/cancel {reason?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpenseReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        expense = cancel_expense(actor, pk, serializer.validated_data["reason"])
        return success(ExpenseSerializer(expense).data, message="Expense cancelled")


class ExpenseDisputeView(APIView):
    """POST /expenses/<id>/dispute {reason?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpenseReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        expense = dispute_expense(actor, pk, serializer.validated_data["reason"])
        return success(ExpenseSerializer(expense).data, message="Expense disputed")


# =============================================================================
# Categories
# =============================================================================

class ExpenseCategoryListCreateView(APIView):
    """
    GET /expenses/categories?include_inactive=&include_hierarchy=
    POST /expenses/categories
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        return success(get_expense_categories(
            actor,
            include_inactive=parse_bool_param(request, "include_inactive"),
            include_hierarchy=parse_bool_param(request, "include_hierarchy"),
        ))

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ExpenseCategoryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        category = create_category(actor, **serializer.validated_data)
        return success(ExpenseCategorySerializer(category).data, status_code=status.HTTP_201_CREATED)


class ExpenseCategoryDetailView(APIView):
    """GET/PATCH /expenses/categories/<id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "expenses.view")
        return success(ExpenseCategorySerializer(get_category_for_actor(actor, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpenseCategoryUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        category = update_category(actor, pk, **serializer.validated_data)
        return success(ExpenseCategorySerializer(category).data)


class ExpenseCategoryDeactivateView(APIView):
    """POST /expenses/categories/<id>/deactivate"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        category = deactivate_category(actor, pk)
        return success(ExpenseCategorySerializer(category).data)


# =============================================================================
# Receipts
# =============================================================================

class ReceiptScanView(APIView):
    """POST /expenses/receipts/scan (multipart: file, property_id?)"""
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ScanReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = scan_receipt(
            actor,
            serializer.validated_data["file"],
            property_id=serializer.validated_data.get("property_id"),
        )
        return success(
            {
                "receipt": ReceiptImageSerializer(result["receipt"]).data,
                "extracted": result["extracted"],
                "suggested_expense": result["suggested_expense"],
            },
            status_code=status.HTTP_201_CREATED,
        )


# =============================================================================
# Reports
# =============================================================================

class ExpenseStatisticsView(APIView):
    """GET /expenses/statistics?property_id=&start_date=&end_date="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        params = ExpenseStatisticsQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data
        prop = _optional_property(actor, query.get("property_id"))

        return success(get_expense_statistics(actor, prop, query["start_date"], query["end_date"]))


class ExpenseReportView(APIView):
    """GET /reports/expense?property_id=&start_date=&end_date=&group_by=&format="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        params = ExpenseReportQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data
        prop = _optional_property(actor, query.get("property_id"))

        report = generate_expense_report(actor, prop, query["start_date"], query["end_date"], query["group_by"])
        if query["format"] == ExportFormat.JSON:
            return success(report)

        require(actor, "reports.export")
        scope = prop.id if prop else "all"
        return create_export_response(
            report["rows"],
            EXPENSE_REPORT_COLUMNS,
            format=query["format"],
            filename=f"expenses_{scope}_{query['start_date']}_{query['end_date']}",
            title=f"Expenses - {prop.name if prop else actor.company.name}",
            summary=report["summary"],
        )
