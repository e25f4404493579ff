# rent/schedule.py
"""
Billing-period arithmetic for recurring payments.

Pure functions: no database access.
"""

import calendar
from datetime import date
from typing import Iterator

FREQUENCY_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "annual": 12,
}


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def clamp_day(year: int, month: int, day: int) -> date:
    """Day `day` of the month, or its last day for short months."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def iter_due_dates(frequency: str, due_day: int, start_date: date, end_date: date | None,
                   through: date) -> Iterator[date]:
    """
    Yield the due dates of a schedule from start_date up to `through`.

    Periods are counted from the start month: monthly every month,
    quarterly every third month, annual once a year. A due date that falls
    before start_date (e.g. due_day=1 on a lease starting the 15th) is skipped.
    """
    step = FREQUENCY_MONTHS[frequency]
    last = min(through, end_date) if end_date else through
    year, month = start_date.year, start_date.month
    while True:
        due = clamp_day(year, month, due_day)
        if due > last:
            return
        if due >= start_date:
            yield due
        year, month = add_months(year, month, step)


def month_bounds(day: date) -> tuple[date, date]:
    return day.replace(day=1), clamp_day(day.year, day.month, 31)
