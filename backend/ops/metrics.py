"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.

Metrics exposed:
- propledger_payments_recorded_total: Payments recorded, by resulting status
- propledger_late_fees_total: Late fee lifecycle events (applied/waived/paid)
- propledger_trust_transactions_total: Trust ledger entries by type
- propledger_ledger_retries_total: Ledger writes retried after a serialization failure
- propledger_expenses_recorded_total: Expenses recorded
- propledger_batch_duration_seconds: Duration of accounting batch jobs
- propledger_trust_balance: Sum of trust balances per company (collected on scrape)
- propledger_overdue_payments: Open payments past due per company (collected on scrape)
- propledger_request_duration_seconds: HTTP request duration histogram
"""
import logging
import re
import time

from django.db.models import Count, Sum
from django.http import HttpResponse
from django.utils import timezone
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)


PAYMENTS_RECORDED = Counter(
    "propledger_payments_recorded_total",
    "Payments recorded, by resulting payment status",
    ["status"],
)

LATE_FEES = Counter(
    "propledger_late_fees_total",
    "Late fee lifecycle events",
    ["action"],
)

TRUST_TRANSACTIONS = Counter(
    "propledger_trust_transactions_total",
    "Trust ledger entries posted",
    ["transaction_type"],
)

LEDGER_RETRIES = Counter(
    "propledger_ledger_retries_total",
    "Trust ledger writes retried after a serialization failure or deadlock",
)

EXPENSES_RECORDED = Counter(
    "propledger_expenses_recorded_total",
    "Expenses recorded",
)

BATCH_DURATION = Histogram(
    "propledger_batch_duration_seconds",
    "Accounting batch job duration in seconds",
    ["job"],
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)

TRUST_BALANCE = Gauge(
    "propledger_trust_balance",
    "Sum of active trust account balances",
    ["company_slug"],
)

OVERDUE_PAYMENTS = Gauge(
    "propledger_overdue_payments",
    "Open payments past their due date",
    ["company_slug"],
)

REQUEST_DURATION = Histogram(
    "propledger_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ACTIVE_REQUESTS = Gauge(
    "propledger_active_requests",
    "Number of requests currently being processed",
)


def collect_metrics():
    """Refresh the gauges that are computed from the database."""
    from rent.models import Payment
    from trust.models import TrustAccount

    try:
        balances = (
            TrustAccount.objects.filter(is_active=True)
            .values("property__company__slug")
            .annotate(total=Sum("balance"))
        )
        for row in balances:
            TRUST_BALANCE.labels(company_slug=row["property__company__slug"]).set(float(row["total"] or 0))

        overdue = (
            Payment.objects.filter(
                status__in=Payment.OPEN_STATUSES,
                due_date__lt=timezone.localdate(),
            )
            .values("recurring_payment__lease__unit__property__company__slug")
            .annotate(count=Count("id"))
        )
        for row in overdue:
            OVERDUE_PAYMENTS.labels(
                company_slug=row["recurring_payment__lease__unit__property__company__slug"],
            ).set(row["count"])
    except Exception as e:
        logger.error(f"Error collecting metrics: {e}")


def get_prometheus_response():
    """Generate Prometheus metrics response."""
    collect_metrics()
    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """

    def middleware(request):
        start = time.time()
        ACTIVE_REQUESTS.inc()
        status = 500

        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            ACTIVE_REQUESTS.dec()
            duration = time.time() - start

            # Normalize endpoint for cardinality control
            endpoint = re.sub(r"/\d+(/|$)", r"/{id}\1", request.path)

            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint[:50],  # Truncate long paths
                status=f"{status // 100}xx",
            ).observe(duration)

    return middleware
