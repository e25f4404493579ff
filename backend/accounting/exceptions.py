# accounting/exceptions.py
"""
Error taxonomy shared by the accounting services.

Services raise these; the DRF exception handler in accounting.api turns them
into the `{"status": "error", ...}` envelope with the matching HTTP status.
"""


class AccountingError(Exception):
    """Base class for errors that carry an HTTP status and an error code."""

    status_code = 400
    code = "accounting_error"

    def __init__(self, message: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details = details or {}


class ValidationError(AccountingError):
    """Bad or missing input."""

    status_code = 400
    code = "validation_error"


class NotFoundError(AccountingError):
    """The referenced entity does not exist or lives in another company."""

    status_code = 404
    code = "not_found"


class BusinessRuleViolation(AccountingError):
    """The entity exists but its current state forbids the operation."""

    status_code = 409
    code = "business_rule_violation"


class InsufficientFundsError(BusinessRuleViolation):
    """A trust ledger entry would drive the account balance below zero."""

    status_code = 422
    code = "insufficient_funds"
