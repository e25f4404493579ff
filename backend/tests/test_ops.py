# tests/test_ops.py
"""
Tests for operations tooling.

Tests cover:
- Trust ledger consistency health check
- Liveness and metrics endpoints
- Ledger write retries on serialization failures
- JSON log formatting of extra fields
- Logging configuration and structured log records from the apps
"""

import json
import logging
from datetime import date
from decimal import Decimal

import pytest
from django.db import OperationalError

from expenses.commands import create_category, process_recurring_expenses, record_expense
from ops.health import HealthCheck
from ops.logging_config import APP_LOGGERS, RESERVED_ATTRS, JsonFormatter, get_logging_config
from rent.commands import generate_payments
from trust.commands import record_deposit
from trust.ledger import run_with_retry
from trust.models import TrustAccount


class SerializationFailure(Exception):
    pgcode = "40001"


class UniqueViolation(Exception):
    pgcode = "23505"


def _operational_error(cause):
    exc = OperationalError("could not serialize access")
    exc.__cause__ = cause
    return exc


@pytest.mark.django_db
class TestHealthChecks:
    def test_trust_ledger_healthy(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "100.00", date(2025, 3, 1))

        result = HealthCheck.check_trust_ledger()
        assert result["status"] == "healthy"
        assert result["mismatched"] == []

    def test_trust_ledger_mismatch_detected(self, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "100.00", date(2025, 3, 1))
        TrustAccount.objects.filter(pk=escrow_account.pk).update(balance=Decimal("90.00"))

        result = HealthCheck.check_trust_ledger()
        assert result["status"] == "unhealthy"
        assert result["mismatched"][0]["ledger"] == "100.00"

    def test_liveness(self, client):
        response = client.get("/_health/live")
        assert response.json() == {"status": "alive"}

    def test_metrics_endpoint(self, client, actor, escrow_account):
        record_deposit(actor, escrow_account.id, "100.00", date(2025, 3, 1))

        response = client.get("/_metrics/")
        assert response.status_code == 200
        assert b"propledger_trust_transactions_total" in response.content


@pytest.mark.django_db(transaction=True)
class TestLedgerRetry:
    def test_serialization_failure_is_retried(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise _operational_error(SerializationFailure())
            return "posted"

        assert run_with_retry(flaky) == "posted"
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self):
        calls = []

        def broken():
            calls.append(1)
            raise _operational_error(UniqueViolation())

        with pytest.raises(OperationalError):
            run_with_retry(broken)
        assert len(calls) == 1

    def test_gives_up_after_max_retries(self, settings):
        settings.LEDGER_MAX_RETRIES = 2
        calls = []

        def always_conflicts():
            calls.append(1)
            raise _operational_error(SerializationFailure())

        with pytest.raises(OperationalError):
            run_with_retry(always_conflicts)
        assert len(calls) == 2


class TestJsonFormatter:
    def test_extra_fields_are_included(self):
        record = logging.LogRecord(
            name="trust.ledger", level=logging.INFO, pathname=__file__, lineno=1,
            msg="Trust ledger entry posted", args=(), exc_info=None,
        )
        record.trust_account_id = 7
        record.amount = Decimal("12.50")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Trust ledger entry posted"
        assert entry["extra"]["trust_account_id"] == 7
        assert entry["extra"]["amount"] == "12.50"

    def test_record_time_and_location(self):
        record = logging.LogRecord(
            name="rent.commands", level=logging.WARNING, pathname=__file__, lineno=42,
            msg="Payment %s skipped", args=(9,), exc_info=None, func="generate_payments",
        )

        entry = json.loads(JsonFormatter().format(record))

        assert entry["message"] == "Payment 9 skipped"
        assert entry["location"] == "test_ops:generate_payments:42"
        assert entry["timestamp"].endswith("Z")
        assert "extra" not in entry


# =============================================================================
# Logging configuration
# =============================================================================

class TestLoggingConfig:
    def test_json_by_default_outside_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=False)

        assert config["formatters"] == {"json": {"()": "ops.logging_config.JsonFormatter"}}
        assert config["handlers"]["stdout"]["formatter"] == "json"
        assert config["root"] == {"handlers": ["stdout"], "level": "INFO"}
        assert config["loggers"]["django.request"]["level"] == "ERROR"

    def test_console_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=True)

        assert list(config["formatters"]) == ["console"]
        assert config["root"]["level"] == "DEBUG"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "console")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        config = get_logging_config(debug=False)

        assert config["handlers"]["stdout"]["formatter"] == "console"
        assert config["loggers"]["trust"] == {"level": "WARNING"}

    def test_unknown_format_falls_back_to_json(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        assert list(get_logging_config()["formatters"]) == ["json"]

    def test_app_loggers_propagate_to_root(self):
        loggers = get_logging_config()["loggers"]

        for app in APP_LOGGERS:
            assert "handlers" not in loggers[app]
            assert loggers[app].get("propagate", True) is True


@pytest.mark.django_db
class TestAppLogging:
    def test_generation_logs_its_counts(self, recurring_payment, caplog):
        with caplog.at_level(logging.INFO, logger="rent"):
            generate_payments(through_date=date(2025, 2, 28))

        record = next(r for r in caplog.records if r.getMessage() == "Payments generated")
        assert record.payments_created == 2
        assert record.through_date == "2025-02-28"

    def test_extra_never_shadows_record_attributes(self, actor, property, caplog):
        utilities = create_category(actor, "Utilities")
        record_expense(
            actor, property, utilities.id, "80.00", date(2025, 1, 10),
            is_recurring=True, recurring_frequency="monthly",
        )

        with caplog.at_level(logging.INFO, logger="expenses"):
            process_recurring_expenses(date(2025, 3, 15))

        record = next(r for r in caplog.records if r.getMessage() == "Recurring expenses processed")
        assert record.expenses_created == 2
        assert not RESERVED_ATTRS & {"through_date", "payments_created", "expenses_created", "as_of", "errors"}
