# accounting/api.py
"""
HTTP plumbing shared by every accounting view.

- success()/paginated(): the `{"status": "success", "data": ...}` envelope
- exception_handler(): DRF EXCEPTION_HANDLER producing the error envelope
- query parameter parsing helpers that raise ValidationError
"""

import logging
from datetime import date

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from django.utils.dateparse import parse_date
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from accounting.exceptions import AccountingError, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# Envelopes
# =============================================================================

def success(data=None, status_code: int = status.HTTP_200_OK, message: str | None = None) -> Response:
    body = {"status": "success", "data": data}
    if message:
        body["message"] = message
    return Response(body, status=status_code)


def error_body(code: str, message: str, details=None) -> dict:
    body = {"status": "error", "error": code, "message": message}
    if details:
        body["details"] = details
    return body


def paginated(request, items, serialize=None) -> Response:
    """
    Return a list, paginated when the caller passes `limit` or `offset`.

    `items` may be a queryset or a list; `serialize` turns the page into
    JSON-ready data (defaults to identity).
    """
    serialize = serialize or (lambda page: list(page))
    params = request.query_params
    if "limit" not in params and "offset" not in params:
        return success(serialize(items))

    limit = parse_int_param(request, "limit", default=settings.ACCOUNTING_API_PAGE_SIZE, minimum=1)
    limit = min(limit, settings.ACCOUNTING_API_MAX_PAGE_SIZE)
    offset = parse_int_param(request, "offset", default=0, minimum=0)

    total = items.count() if hasattr(items, "count") and not isinstance(items, list) else len(items)
    page = items[offset:offset + limit]

    return Response({
        "status": "success",
        "data": serialize(page),
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < total,
        },
    })


# =============================================================================
# Exception handler
# =============================================================================

def exception_handler(exc, context):
    """Map every API error onto the error envelope."""
    if isinstance(exc, AccountingError):
        return Response(
            error_body(exc.code, exc.message, exc.details),
            status=exc.status_code,
        )

    if isinstance(exc, Http404):
        exc = exceptions.NotFound(str(exc) or None)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied(str(exc) or None)

    response = drf_exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.error(
            "Unhandled API error",
            exc_info=exc,
            extra={"view": view.__class__.__name__ if view else None},
        )
        return Response(
            error_body("internal_error", "An unexpected error occurred."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = error_body("validation_error", "Invalid input.", response.data)
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        code = getattr(exc, "default_code", "error")
        response.data = error_body(code, str(detail))
    return response


# =============================================================================
# Query parameter helpers
# =============================================================================

def parse_date_param(request, name: str, required: bool = False, default: date | None = None) -> date | None:
    raw = request.query_params.get(name)
    if not raw:
        if required:
            raise ValidationError(f"{name} is required.", {"field": name})
        return default
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD).", {"field": name})
    return value


def parse_int_param(request, name: str, required: bool = False, default: int | None = None,
                    minimum: int | None = None) -> int | None:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        if required:
            raise ValidationError(f"{name} is required.", {"field": name})
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer.", {"field": name})
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}.", {"field": name})
    return value


def parse_bool_param(request, name: str, default: bool = False) -> bool:
    raw = request.query_params.get(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes")
