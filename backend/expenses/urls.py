# expenses/urls.py
from django.urls import path

from .views import (
    ExpenseCancelView,
    ExpenseCategoryDeactivateView,
    ExpenseCategoryDetailView,
    ExpenseCategoryListCreateView,
    ExpenseDetailView,
    ExpenseDisputeView,
    ExpenseListCreateView,
    ExpensePayView,
    ExpenseReportView,
    ExpenseStatisticsView,
    ReceiptScanView,
)

app_name = "expenses"

urlpatterns = [
    path("expenses/", ExpenseListCreateView.as_view(), name="expenses"),
    path("expenses/categories", ExpenseCategoryListCreateView.as_view(), name="expense-categories"),
    path("expenses/categories/<int:pk>", ExpenseCategoryDetailView.as_view(), name="expense-category-detail"),
    path("expenses/categories/<int:pk>/deactivate", ExpenseCategoryDeactivateView.as_view(), name="expense-category-deactivate"),
    path("expenses/receipts/scan", ReceiptScanView.as_view(), name="receipt-scan"),
    path("expenses/statistics", ExpenseStatisticsView.as_view(), name="expense-statistics"),
    path("expenses/<int:pk>", ExpenseDetailView.as_view(), name="expense-detail"),
    path("expenses/<int:pk>/pay", ExpensePayView.as_view(), name="expense-pay"),
    path("expenses/<int:pk>/cancel", ExpenseCancelView.as_view(), name="expense-cancel"),
    path("expenses/<int:pk>/dispute", ExpenseDisputeView.as_view(), name="expense-dispute"),
    path("reports/expense", ExpenseReportView.as_view(), name="report-expense"),
]
