# rent/urls.py
from django.urls import path

from .views import (
    DuePaymentsView,
    LeasePaymentStatusView,
    PaymentRemindersView,
    RecordPaymentView,
    RecurringPaymentDeactivateView,
    RecurringPaymentListCreateView,
    RentRollReportView,
    WaivePaymentView,
)

app_name = "rent"

urlpatterns = [
    path("payments/due", DuePaymentsView.as_view(), name="payments-due"),
    path("payments/record", RecordPaymentView.as_view(), name="payments-record"),
    path("payments/reminders", PaymentRemindersView.as_view(), name="payments-reminders"),
    path("payments/<int:pk>/waive", WaivePaymentView.as_view(), name="payments-waive"),
    path("payments/status/<int:lease_id>", LeasePaymentStatusView.as_view(), name="payments-status"),
    path("recurring-payments/", RecurringPaymentListCreateView.as_view(), name="recurring-payments"),
    path("recurring-payments/<int:pk>/deactivate", RecurringPaymentDeactivateView.as_view(), name="recurring-payments-deactivate"),
    path("reports/rent-roll", RentRollReportView.as_view(), name="report-rent-roll"),
]
