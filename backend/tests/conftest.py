# tests/conftest.py
"""
Pytest fixtures for PropLedger tests.

- ActorContext comes from accounts.authz.actor_for(user, company)
- Non-owner memberships get their role defaults via grant_role_defaults
- API clients authenticate with force_authenticate (no JWT round trip)
"""

from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.authz import actor_for
from accounts.models import Company, CompanyMembership
from accounts.permissions import grant_role_defaults
from properties.models import Lease, Property, Tenant, Unit, Vendor
from rent.models import Payment, RecurringPayment
from trust.models import TrustAccount


User = get_user_model()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    """Receipt uploads go to a throwaway directory."""
    settings.MEDIA_ROOT = tmp_path / "media"


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    return Company.objects.create(name="Test Company", slug="test-company")


@pytest.fixture
def second_company(db):
    """A second company for cross-company isolation tests."""
    return Company.objects.create(name="Second Company", slug="second-company")


def _make_user(email, company, role):
    user = User.objects.create_user(email=email, password="testpass123", name=email.split("@")[0])
    user.active_company = company
    user.save()
    membership = CompanyMembership.objects.create(company=company, user=user, role=role)
    grant_role_defaults(membership)
    return user


@pytest.fixture
def user(company):
    """Company owner."""
    return _make_user("owner@test.com", company, CompanyMembership.Role.OWNER)


@pytest.fixture
def viewer_user(company):
    return _make_user("viewer@test.com", company, CompanyMembership.Role.VIEWER)


@pytest.fixture
def accountant_user(company):
    return _make_user("accountant@test.com", company, CompanyMembership.Role.ACCOUNTANT)


@pytest.fixture
def outsider_user(second_company):
    return _make_user("outsider@test.com", second_company, CompanyMembership.Role.OWNER)


@pytest.fixture
def actor(user, company):
    return actor_for(user, company)


@pytest.fixture
def viewer_actor(viewer_user, company):
    return actor_for(viewer_user, company)


@pytest.fixture
def accountant_actor(accountant_user, company):
    return actor_for(accountant_user, company)


@pytest.fixture
def outsider_actor(outsider_user, second_company):
    return actor_for(outsider_user, second_company)


# =============================================================================
# Property Fixtures
# =============================================================================

@pytest.fixture
def property(company):
    return Property.objects.create(company=company, name="Maple Court", address="1 Maple St", city="Springfield")


@pytest.fixture
def unit(property):
    return Unit.objects.create(property=property, unit_number="101", bedrooms=2, market_rent=Decimal("1000.00"))


@pytest.fixture
def second_unit(property):
    return Unit.objects.create(property=property, unit_number="102", bedrooms=1, market_rent=Decimal("800.00"))


@pytest.fixture
def tenant(company):
    return Tenant.objects.create(company=company, first_name="Jane", last_name="Doe", email="jane@example.com")


@pytest.fixture
def lease(unit, tenant):
    return Lease.objects.create(
        unit=unit,
        tenant=tenant,
        start_date=date(2025, 1, 1),
        monthly_rent=Decimal("1000.00"),
        security_deposit=Decimal("1000.00"),
        status=Lease.Status.ACTIVE,
    )


@pytest.fixture
def vendor(company):
    return Vendor.objects.create(company=company, name="Acme Plumbing")


# =============================================================================
# Rent Fixtures
# =============================================================================

@pytest.fixture
def recurring_payment(lease, user):
    return RecurringPayment.objects.create(
        lease=lease,
        amount=Decimal("1000.00"),
        frequency=RecurringPayment.Frequency.MONTHLY,
        due_day=1,
        start_date=date(2025, 1, 1),
        created_by=user,
    )


@pytest.fixture
def payment(recurring_payment):
    """1000.00 rent due 2025-04-01."""
    return Payment.objects.create(
        recurring_payment=recurring_payment,
        amount=Decimal("1000.00"),
        due_date=date(2025, 4, 1),
    )


# =============================================================================
# Trust Fixtures
# =============================================================================

@pytest.fixture
def trust_account(property, user):
    return TrustAccount.objects.create(
        property=property,
        account_name="Security Deposits",
        account_type=TrustAccount.AccountType.SECURITY_DEPOSIT,
        created_by=user,
    )


@pytest.fixture
def escrow_account(property, user):
    return TrustAccount.objects.create(
        property=property,
        account_name="Escrow",
        account_type=TrustAccount.AccountType.ESCROW,
        created_by=user,
    )


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def viewer_client(viewer_user):
    client = APIClient()
    client.force_authenticate(user=viewer_user)
    return client
