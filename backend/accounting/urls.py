# accounting/urls.py
"""
URL configuration for the accounting API.

Mounted twice by the project (api/accounting/ and api/v1/) with the same
route set:
- properties/ - company properties
- payments/, recurring-payments/ - rent tracking
- late-fees/ - late fee rules and fees
- trust-accounts/, trust-transactions/ - trust ledgers
- expenses/ - expenses, categories, receipts
- reports/ - rent roll, expense, late fee, trust audit, financial
- cash-flow/ - history, prediction, anomalies
- dashboard, batch/recurring, health
"""

from django.urls import include, path

from .views import (
    BatchRecurringView,
    CashFlowAnomalyView,
    CashFlowHistoryView,
    CashFlowPredictionView,
    DashboardView,
    FinancialReportView,
    ModuleHealthView,
)

app_name = "accounting"

urlpatterns = [
    path("properties/", include("properties.urls")),
    path("", include("rent.urls")),
    path("", include("late_fees.urls")),
    path("", include("trust.urls")),
    path("", include("expenses.urls")),

    path("reports/financial", FinancialReportView.as_view(), name="report-financial"),
    path("cash-flow/history", CashFlowHistoryView.as_view(), name="cash-flow-history"),
    path("cash-flow/prediction", CashFlowPredictionView.as_view(), name="cash-flow-prediction"),
    path("cash-flow/anomalies", CashFlowAnomalyView.as_view(), name="cash-flow-anomalies"),
    path("dashboard", DashboardView.as_view(), name="dashboard"),
    path("batch/recurring", BatchRecurringView.as_view(), name="batch-recurring"),
    path("health", ModuleHealthView.as_view(), name="health"),
]
