# trust/urls.py
from django.urls import path

from .views import (
    DepositView,
    FeeView,
    ReconcileAccountView,
    ReconcileTransactionsView,
    ReverseTransactionView,
    SecurityDepositBalanceView,
    StatementView,
    TransferView,
    TrustAccountDeactivateView,
    TrustAccountDetailView,
    TrustAccountListCreateView,
    TrustAccountTransactionsView,
    TrustAuditReportView,
    WithdrawalView,
)

app_name = "trust"

urlpatterns = [
    path("trust-accounts/", TrustAccountListCreateView.as_view(), name="trust-accounts"),
    path("trust-accounts/transfer", TransferView.as_view(), name="trust-accounts-transfer"),
    path("trust-accounts/security-deposits/<int:lease_id>", SecurityDepositBalanceView.as_view(), name="security-deposit-balance"),
    path("trust-accounts/<int:pk>", TrustAccountDetailView.as_view(), name="trust-account-detail"),
    path("trust-accounts/<int:pk>/deactivate", TrustAccountDeactivateView.as_view(), name="trust-account-deactivate"),
    path("trust-accounts/<int:pk>/transactions", TrustAccountTransactionsView.as_view(), name="trust-account-transactions"),
    path("trust-accounts/<int:pk>/deposit", DepositView.as_view(), name="trust-account-deposit"),
    path("trust-accounts/<int:pk>/withdrawal", WithdrawalView.as_view(), name="trust-account-withdrawal"),
    path("trust-accounts/<int:pk>/fee", FeeView.as_view(), name="trust-account-fee"),
    path("trust-accounts/<int:pk>/statement", StatementView.as_view(), name="trust-account-statement"),
    path("trust-accounts/<int:pk>/reconcile", ReconcileAccountView.as_view(), name="trust-account-reconcile"),
    path("trust-transactions/reconcile", ReconcileTransactionsView.as_view(), name="trust-transactions-reconcile"),
    path("trust-transactions/<int:pk>/reverse", ReverseTransactionView.as_view(), name="trust-transaction-reverse"),
    path("reports/trust-audit", TrustAuditReportView.as_view(), name="report-trust-audit"),
]
