# tests/test_api.py
"""
Tests for the HTTP layer.

Tests cover:
- Success / error envelopes and the status code of each error kind
- Authentication and permission failures
- Pagination with limit/offset
- Both mounts (api/accounting/ and api/v1/)
- File exports and the export permission
- Batch trigger, dashboard, receipt upload and the liveness check
"""

from datetime import date

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from rent.commands import generate_payments

BASE = "/api/accounting"


def record_url():
    return f"{BASE}/payments/record"


# =============================================================================
# Envelopes & error mapping
# =============================================================================

@pytest.mark.django_db
class TestEnvelopes:
    def test_success_envelope(self, authenticated_client, payment):
        response = authenticated_client.post(record_url(), {
            "payment_id": payment.id,
            "amount": "1000.00",
            "payment_date": "2025-04-01",
            "payment_method": "check",
        }, format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Payment recorded"
        assert body["data"]["status"] == "paid"
        assert body["data"]["amount_paid"] == "1000.00"

    def test_serializer_error_is_400(self, authenticated_client, payment):
        response = authenticated_client.post(record_url(), {"payment_id": payment.id, "amount": "10.00"}, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["error"] == "validation_error"
        assert "payment_method" in body["details"]

    def test_overpayment_is_400(self, authenticated_client, payment):
        response = authenticated_client.post(record_url(), {
            "payment_id": payment.id, "amount": "1500.00", "payment_method": "cash",
        }, format="json")

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_unknown_payment_is_404(self, authenticated_client, db):
        response = authenticated_client.post(record_url(), {
            "payment_id": 987654, "amount": "10.00", "payment_method": "cash",
        }, format="json")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_business_rule_violation_is_409(self, authenticated_client, payment):
        url = f"{BASE}/payments/{payment.id}/waive"
        assert authenticated_client.post(url, {"reason": "Hardship"}, format="json").status_code == 200

        response = authenticated_client.post(url, {"reason": "Again"}, format="json")
        assert response.status_code == 409
        assert response.json()["error"] == "business_rule_violation"

    def test_insufficient_funds_is_422(self, authenticated_client, escrow_account):
        deposit = authenticated_client.post(
            f"{BASE}/trust-accounts/{escrow_account.id}/deposit", {"amount": "1000.00"}, format="json",
        )
        assert deposit.status_code == 201
        assert deposit.json()["data"]["balance"] == "1000.00"

        response = authenticated_client.post(
            f"{BASE}/trust-accounts/{escrow_account.id}/withdrawal", {"amount": "2000.00"}, format="json",
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "insufficient_funds"
        assert body["details"]["balance"] == "1000.00"

    def test_idempotency_key_header(self, authenticated_client, escrow_account):
        url = f"{BASE}/trust-accounts/{escrow_account.id}/deposit"
        first = authenticated_client.post(url, {"amount": "50.00"}, format="json", HTTP_IDEMPOTENCY_KEY="dep-9")
        second = authenticated_client.post(url, {"amount": "50.00"}, format="json", HTTP_IDEMPOTENCY_KEY="dep-9")

        assert first.json()["data"]["transaction"]["id"] == second.json()["data"]["transaction"]["id"]
        assert second.json()["data"]["balance"] == "50.00"


# =============================================================================
# Authentication & permissions
# =============================================================================

@pytest.mark.django_db
class TestAccessControl:
    def test_anonymous_is_401(self, api_client, property):
        response = api_client.get(f"{BASE}/payments/due", {"property_id": property.id})

        assert response.status_code == 401
        assert response.json()["status"] == "error"

    def test_viewer_cannot_write(self, viewer_client, payment):
        response = viewer_client.post(record_url(), {
            "payment_id": payment.id, "amount": "10.00", "payment_method": "cash",
        }, format="json")

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_other_company_property_is_404(self, api_client, outsider_user, property):
        api_client.force_authenticate(user=outsider_user)

        response = api_client.get(f"{BASE}/payments/due", {"property_id": property.id})
        assert response.status_code == 404

    def test_health_needs_no_auth(self, api_client):
        response = api_client.get(f"{BASE}/health")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ok"


# =============================================================================
# Listing & mounts
# =============================================================================

@pytest.mark.django_db
class TestListing:
    @pytest.fixture
    def schedule(self, recurring_payment):
        generate_payments(through_date=date(2025, 6, 1))
        return recurring_payment

    def test_unpaginated_list(self, authenticated_client, property, schedule):
        response = authenticated_client.get(
            f"{BASE}/payments/due", {"property_id": property.id, "as_of": "2025-04-15"},
        )

        body = response.json()
        assert response.status_code == 200
        assert "pagination" not in body
        assert [p["due_date"] for p in body["data"]][:2] == ["2025-01-01", "2025-02-01"]

    def test_limit_offset(self, authenticated_client, property, schedule):
        response = authenticated_client.get(
            f"{BASE}/payments/due",
            {"property_id": property.id, "as_of": "2025-04-15", "limit": 2, "offset": 2},
        )

        body = response.json()
        assert [p["due_date"] for p in body["data"]] == ["2025-03-01", "2025-04-01"]
        assert body["pagination"] == {"total": 5, "limit": 2, "offset": 2, "hasMore": True}

    def test_bad_query_parameter(self, authenticated_client, property, schedule):
        response = authenticated_client.get(f"{BASE}/payments/due", {"property_id": property.id, "as_of": "soon"})
        assert response.status_code == 400

    def test_v1_mount(self, authenticated_client, property, schedule):
        url = reverse("v1:rent:payments-due")
        assert url == "/api/v1/payments/due"

        response = authenticated_client.get(url, {"property_id": property.id, "as_of": "2025-04-15"})
        assert response.status_code == 200
        assert len(response.json()["data"]) == 5

    def test_named_routes(self):
        assert reverse("accounting:trust:trust-accounts") == "/api/accounting/trust-accounts/"
        assert reverse("accounting:dashboard") == "/api/accounting/dashboard"


# =============================================================================
# Exports
# =============================================================================

@pytest.mark.django_db
class TestExports:
    def test_rent_roll_csv(self, authenticated_client, property, payment):
        response = authenticated_client.get(f"{BASE}/reports/rent-roll", {
            "property_id": property.id, "start_date": "2025-04-01", "end_date": "2025-04-30", "format": "csv",
        })

        assert response.status_code == 200
        assert response["Content-Type"].startswith("text/csv")
        assert 'filename="rent_roll_' in response["Content-Disposition"]
        lines = response.content.decode("utf-8").splitlines()
        assert lines[0].startswith("Unit,Tenant,Lease")
        assert "Jane Doe" in lines[1]

    def test_rent_roll_xlsx(self, authenticated_client, property, payment):
        response = authenticated_client.get(f"{BASE}/reports/rent-roll", {
            "property_id": property.id, "start_date": "2025-04-01", "end_date": "2025-04-30", "format": "xlsx",
        })

        assert response.status_code == 200
        assert response.content[:2] == b"PK"

    def test_viewer_cannot_export(self, viewer_client, property, payment):
        params = {"property_id": property.id, "start_date": "2025-04-01", "end_date": "2025-04-30"}

        assert viewer_client.get(f"{BASE}/reports/rent-roll", params).status_code == 200
        response = viewer_client.get(f"{BASE}/reports/rent-roll", {**params, "format": "pdf"})
        assert response.status_code == 403


# =============================================================================
# Module endpoints
# =============================================================================

@pytest.mark.django_db
class TestModuleEndpoints:
    def test_batch_requires_permission(self, viewer_client):
        response = viewer_client.post(f"{BASE}/batch/recurring", {"as_of": "2025-04-10"}, format="json")
        assert response.status_code == 403

    def test_batch_runs(self, authenticated_client, recurring_payment):
        response = authenticated_client.post(f"{BASE}/batch/recurring", {"as_of": "2025-04-10"}, format="json")

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Batch completed"
        assert body["data"]["success"] is True
        assert body["data"]["payments_generated"] == 4

    def test_dashboard(self, authenticated_client, property, payment):
        response = authenticated_client.get(f"{BASE}/dashboard", {"property_id": property.id})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["property_id"] == property.id
        assert set(data) >= {"rent", "late_fees", "trust", "expenses"}

    def test_financial_report_requires_dates(self, authenticated_client, property):
        response = authenticated_client.get(f"{BASE}/reports/financial", {"property_id": property.id})
        assert response.status_code == 400

    def test_receipt_upload(self, authenticated_client, property):
        upload = SimpleUploadedFile("receipt.txt", b"Corner Hardware\n03/02/2025\nTotal: 18.40\n", content_type="text/plain")

        response = authenticated_client.post(
            f"{BASE}/expenses/receipts/scan", {"file": upload, "property_id": property.id}, format="multipart",
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["extracted"]["vendor"] == "Corner Hardware"
        assert data["suggested_expense"]["transaction_date"] == "2025-03-02"
