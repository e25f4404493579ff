"""
Celery tasks for the accounting batch.

Tasks:
- process_recurring_transactions_task: the daily as-of batch (payments,
  late fees, trust interest, recurring expenses)

Usage:
    # Scheduled by CELERY_BEAT_SCHEDULE["accounting-daily-batch"]

    # Or run for a specific date
    from accounting.tasks import process_recurring_transactions_task
    process_recurring_transactions_task.delay(as_of="2026-03-01")
"""
import logging
from typing import Optional

from celery import shared_task
from django.db import OperationalError
from django.utils import timezone
from django.utils.dateparse import parse_date

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
)
def process_recurring_transactions_task(self, as_of: Optional[str] = None) -> dict:
    """
    Run the accounting batch for as_of (ISO date, default today).

    Returns:
        Counts-only summary of the run
    """
    from accounting.module import AccountingModule, summarize_batch

    run_date = parse_date(as_of) if as_of else timezone.localdate()
    if run_date is None:
        logger.error(f"Invalid as_of date for accounting batch: {as_of}")
        return {"error": f"Invalid as_of date: {as_of}"}

    logger.info(f"Starting accounting batch for {run_date.isoformat()}")
    summary = summarize_batch(AccountingModule().process_recurring_transactions(run_date))

    if not summary["success"]:
        logger.warning("Accounting batch finished with errors", extra={"failed_jobs": summary["errors"]})
    return summary
