# tests/test_cash_flow.py
"""
Tests for cash flow history, prediction and anomaly detection.

Tests cover:
- Monthly history from receipts and non-cancelled expenses
- Prediction from rent schedules, recurring expenses and seasonal patterns
- Confidence scoring
- Statistical and duplicate anomalies, severity ordering
- The cash-flow endpoints on both mounts
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied

from accounting.cash_flow import (
    SEVERITY_ORDER,
    confidence_score,
    detect_anomalies,
    generate_prediction,
    get_historical_cash_flow,
)
from accounting.exceptions import ValidationError
from accounts.authz import actor_for
from accounts.models import CompanyMembership
from accounts.permissions import revoke_permissions
from expenses.commands import cancel_expense, create_category, record_expense
from properties.models import Lease, Property
from rent.commands import generate_payments, record_payment
from rent.models import Payment

AS_OF = date(2025, 6, 15)


@pytest.fixture
def repairs(actor):
    return create_category(actor, "Repairs")


@pytest.fixture
def history(actor, property, recurring_payment, repairs):
    """Rent paid January to March, one repair in March, one cancelled bill."""
    generate_payments(through_date=date(2025, 6, 30))
    payments = {p.due_date: p for p in recurring_payment.payments.all()}
    for month in (1, 2, 3):
        due = date(2025, month, 1)
        record_payment(actor, payments[due].id, "1000.00", due, "ach")

    record_expense(actor, property, repairs.id, "200.00", date(2025, 3, 5))
    cancelled = record_expense(actor, property, repairs.id, "500.00", date(2025, 3, 6))
    cancel_expense(actor, cancelled.id, "entered twice")


# =============================================================================
# History
# =============================================================================

@pytest.mark.django_db
class TestHistory:
    def test_monthly_totals(self, actor, property, history):
        result = get_historical_cash_flow(actor, property, months=12, as_of=AS_OF)

        assert result["monthly_data"] == [
            {"month": "2025-01", "income": Decimal("1000.00"), "expenses": Decimal("0.00"), "net": Decimal("1000.00")},
            {"month": "2025-02", "income": Decimal("1000.00"), "expenses": Decimal("0.00"), "net": Decimal("1000.00")},
            {"month": "2025-03", "income": Decimal("1000.00"), "expenses": Decimal("200.00"), "net": Decimal("800.00")},
        ]

    def test_window_starts_on_a_month_boundary(self, actor, property, history):
        result = get_historical_cash_flow(actor, property, months=4, as_of=AS_OF)

        assert [row["month"] for row in result["monthly_data"]] == ["2025-03"]

    def test_other_property_is_empty(self, actor, company, history):
        other = Property.objects.create(company=company, name="Birch House", address="2 Birch Rd", city="Springfield")

        assert get_historical_cash_flow(actor, other, as_of=AS_OF)["monthly_data"] == []

    @pytest.mark.parametrize("months", [0, 61])
    def test_months_out_of_range(self, actor, property, months):
        with pytest.raises(ValidationError):
            get_historical_cash_flow(actor, property, months=months, as_of=AS_OF)

    def test_requires_report_permission(self, viewer_user, company, property):
        membership = CompanyMembership.objects.get(user=viewer_user, company=company)
        revoke_permissions(membership, ["reports.view"])

        with pytest.raises(PermissionDenied):
            get_historical_cash_flow(actor_for(viewer_user, company), property, as_of=AS_OF)


# =============================================================================
# Prediction
# =============================================================================

@pytest.fixture
def forecast_setup(actor, property, recurring_payment, repairs):
    """Monthly rent, a quarterly service contract and landscaping every July."""
    services = create_category(actor, "Services")
    record_expense(
        actor, property, services.id, "120.00", date(2025, 3, 10),
        is_recurring=True, recurring_frequency="quarterly",
    )
    landscaping = create_category(actor, "Landscaping")
    record_expense(actor, property, landscaping.id, "300.00", date(2023, 7, 12))
    record_expense(actor, property, landscaping.id, "500.00", date(2024, 7, 8))
    # a single occurrence is not a pattern
    record_expense(actor, property, repairs.id, "90.00", date(2024, 8, 2))
    return {"landscaping": landscaping}


@pytest.mark.django_db
class TestPrediction:
    def test_expected_amounts_per_month(self, actor, property, forecast_setup):
        result = generate_prediction(actor, property, months=3, as_of=AS_OF)

        rows = {row["month"]: row for row in result["prediction"]}
        assert list(rows) == ["2025-06", "2025-07", "2025-08"]

        assert rows["2025-06"]["expected_income"] == Decimal("1000.00")
        assert rows["2025-06"]["expected_expenses"] == Decimal("120.00")
        assert rows["2025-07"]["expected_expenses"] == Decimal("400.00")
        assert rows["2025-07"]["net_cash_flow"] == Decimal("600.00")
        assert rows["2025-08"]["expected_expenses"] == Decimal("0.00")

    def test_confidence_follows_seasonal_patterns(self, actor, property, forecast_setup):
        result = generate_prediction(actor, property, months=3, as_of=AS_OF)

        confidence = {row["month"]: row["confidence"] for row in result["prediction"]}
        assert confidence == {"2025-06": 0.7, "2025-07": 0.79, "2025-08": 0.7}

    def test_seasonal_patterns(self, actor, property, forecast_setup):
        patterns = generate_prediction(actor, property, months=1, as_of=AS_OF)["seasonal_patterns"]

        assert patterns == [{
            "month": 7,
            "category_id": forecast_setup["landscaping"].id,
            "category": "Landscaping",
            "average_amount": Decimal("400.00"),
            "occurrence_count": 2,
        }]

    def test_summary(self, actor, property, forecast_setup):
        summary = generate_prediction(actor, property, months=3, as_of=AS_OF)["summary"]

        assert summary == {
            "total_expected_income": Decimal("3000.00"),
            "total_expected_expenses": Decimal("520.00"),
            "total_net_cash_flow": Decimal("2480.00"),
            "average_monthly_net_cash_flow": Decimal("826.67"),
        }

    def test_ended_lease_brings_no_income(self, actor, property, lease, forecast_setup):
        Lease.objects.filter(id=lease.id).update(status=Lease.Status.ENDED)

        result = generate_prediction(actor, property, months=2, as_of=AS_OF)
        assert all(row["expected_income"] == Decimal("0.00") for row in result["prediction"])

    def test_schedule_end_date_is_honoured(self, actor, property, recurring_payment):
        recurring_payment.end_date = date(2025, 7, 31)
        recurring_payment.save()

        result = generate_prediction(actor, property, months=3, as_of=AS_OF)
        assert [row["expected_income"] for row in result["prediction"]] == [
            Decimal("1000.00"), Decimal("1000.00"), Decimal("0.00"),
        ]

    def test_historical_data_is_optional(self, actor, property, history):
        with_history = generate_prediction(actor, property, months=1, as_of=AS_OF)
        without = generate_prediction(actor, property, months=1, as_of=AS_OF, include_historical=False)

        assert len(with_history["historical_data"]) == 3
        assert without["historical_data"] == []

    def test_months_out_of_range(self, actor, property):
        with pytest.raises(ValidationError):
            generate_prediction(actor, property, months=25, as_of=AS_OF)


class TestConfidenceScore:
    def test_base_without_patterns(self):
        assert confidence_score([]) == 0.7

    def test_strong_patterns_reach_the_ceiling(self):
        patterns = [{"occurrence_count": 6} for _ in range(4)]
        assert confidence_score(patterns) == 0.95


# =============================================================================
# Anomalies
# =============================================================================

@pytest.fixture
def expense_spike(actor, property, repairs):
    """100.00 of repairs each month January to June, then 1000.00 in July."""
    for month in range(1, 7):
        record_expense(actor, property, repairs.id, "100.00", date(2025, month, 5))
    record_expense(actor, property, repairs.id, "1000.00", date(2025, 7, 5))


@pytest.mark.django_db
class TestAnomalies:
    def test_insufficient_data(self, actor, property, history):
        result = detect_anomalies(actor, property, as_of=AS_OF)

        assert result["anomalies"] == [{
            "type": "insufficient_data",
            "severity": "low",
            "description": "Not enough historical data to detect anomalies",
        }]

    def test_high_expense_month(self, actor, property, expense_spike):
        anomalies = detect_anomalies(actor, property, as_of=date(2025, 7, 31))["anomalies"]

        assert len(anomalies) == 1
        spike = anomalies[0]
        assert spike["type"] == "high_expenses"
        assert spike["severity"] == "high"
        assert spike["month"] == "2025-07"
        assert spike["value"] == Decimal("1000.00")
        assert spike["deviation"] > 2

    def test_steady_months_are_not_flagged(self, actor, property, repairs):
        for month in range(1, 7):
            record_expense(actor, property, repairs.id, "100.00", date(2025, month, 5))

        assert detect_anomalies(actor, property, as_of=date(2025, 6, 30))["anomalies"] == []

    def test_duplicate_expense(self, actor, property, repairs, expense_spike):
        record_expense(actor, property, repairs.id, "75.00", date(2025, 7, 20))
        record_expense(actor, property, repairs.id, "75.00", date(2025, 7, 20))

        anomalies = detect_anomalies(actor, property, as_of=date(2025, 7, 31))["anomalies"]

        duplicates = [a for a in anomalies if a["type"] == "duplicate_expense"]
        assert len(duplicates) == 1
        assert duplicates[0]["date"] == date(2025, 7, 20)
        assert duplicates[0]["amount"] == Decimal("75.00")
        assert duplicates[0]["count"] == 2

    def test_cancelled_duplicate_is_ignored(self, actor, property, repairs, expense_spike):
        record_expense(actor, property, repairs.id, "75.00", date(2025, 7, 20))
        second = record_expense(actor, property, repairs.id, "75.00", date(2025, 7, 20))
        cancel_expense(actor, second.id, "entered twice")

        anomalies = detect_anomalies(actor, property, as_of=date(2025, 7, 31))["anomalies"]
        assert not [a for a in anomalies if a["type"] == "duplicate_expense"]

    def test_duplicate_payment_and_ordering(self, actor, property, tenant, recurring_payment, expense_spike):
        payment = Payment.objects.create(
            recurring_payment=recurring_payment, amount=Decimal("1000.00"), due_date=date(2025, 7, 1),
        )
        record_payment(actor, payment.id, "300.00", date(2025, 7, 2), "check")
        record_payment(actor, payment.id, "300.00", date(2025, 7, 2), "check")

        anomalies = detect_anomalies(actor, property, as_of=date(2025, 7, 31))["anomalies"]

        duplicates = [a for a in anomalies if a["type"] == "duplicate_payment"]
        assert len(duplicates) == 1
        assert duplicates[0]["tenant_id"] == tenant.id
        assert duplicates[0]["count"] == 2
        # July is the only month with income
        assert "high_income" in {a["type"] for a in anomalies}

        ranks = [SEVERITY_ORDER[a["severity"]] for a in anomalies]
        assert ranks == sorted(ranks)

    def test_other_company_data_is_not_scanned(self, outsider_actor, second_company, expense_spike):
        other = Property.objects.create(company=second_company, name="Elm Plaza", address="9 Elm St", city="Shelbyville")

        result = detect_anomalies(outsider_actor, other, as_of=date(2025, 7, 31))
        assert [a["type"] for a in result["anomalies"]] == ["insufficient_data"]


# =============================================================================
# Endpoints
# =============================================================================

@pytest.mark.django_db
class TestCashFlowEndpoints:
    def test_prediction(self, authenticated_client, property, forecast_setup):
        response = authenticated_client.get("/api/accounting/cash-flow/prediction", {
            "property_id": property.id, "months": 3, "as_of": "2025-06-15",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert [row["month"] for row in data["prediction"]] == ["2025-06", "2025-07", "2025-08"]

    def test_prediction_requires_property(self, authenticated_client):
        response = authenticated_client.get("/api/accounting/cash-flow/prediction")

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_history_on_v1_mount(self, authenticated_client, property, history):
        response = authenticated_client.get("/api/v1/cash-flow/history", {
            "property_id": property.id, "as_of": "2025-06-15",
        })

        assert response.status_code == 200
        assert len(response.json()["data"]["monthly_data"]) == 3

    def test_anomalies_for_foreign_property_is_404(self, authenticated_client, second_company):
        other = Property.objects.create(company=second_company, name="Elm Plaza", address="9 Elm St", city="Shelbyville")

        response = authenticated_client.get("/api/accounting/cash-flow/anomalies", {"property_id": other.id})
        assert response.status_code == 404

    def test_bad_months_is_400(self, authenticated_client, property):
        response = authenticated_client.get("/api/accounting/cash-flow/history", {
            "property_id": property.id, "months": "0",
        })
        assert response.status_code == 400
