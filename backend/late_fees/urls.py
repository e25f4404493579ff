# late_fees/urls.py
from django.urls import path

from .views import (
    ApplyLateFeeView,
    CalculateLateFeesView,
    LateFeeConfigurationDeactivateView,
    LateFeeConfigurationView,
    LateFeeListView,
    LateFeeReportView,
    MarkLateFeePaidView,
    ProcessLateFeesView,
    WaiveLateFeeView,
)

app_name = "late_fees"

urlpatterns = [
    path("late-fees/", LateFeeListView.as_view(), name="late-fees"),
    path("late-fees/configurations", LateFeeConfigurationView.as_view(), name="late-fee-configurations"),
    path("late-fees/configurations/deactivate", LateFeeConfigurationDeactivateView.as_view(), name="late-fee-configurations-deactivate"),
    path("late-fees/calculate", CalculateLateFeesView.as_view(), name="late-fees-calculate"),
    path("late-fees/process", ProcessLateFeesView.as_view(), name="late-fees-process"),
    path("late-fees/apply", ApplyLateFeeView.as_view(), name="late-fees-apply"),
    path("late-fees/waive", WaiveLateFeeView.as_view(), name="late-fees-waive"),
    path("late-fees/<int:pk>/pay", MarkLateFeePaidView.as_view(), name="late-fees-pay"),
    path("reports/late-fees", LateFeeReportView.as_view(), name="report-late-fees"),
]
