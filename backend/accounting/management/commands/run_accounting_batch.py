# accounting/management/commands/run_accounting_batch.py
"""
Management command to run the accounting batch.

Usage:
    # Run for today
    python manage.py run_accounting_batch

    # Run for a specific date (e.g. to catch up after downtime)
    python manage.py run_accounting_batch --as-of 2026-03-01

    # Print the full result as JSON
    python manage.py run_accounting_batch --json
"""

import json

from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
from django.utils.dateparse import parse_date

from accounting.module import AccountingModule, summarize_batch


class Command(BaseCommand):
    help = "Generate due payments, apply late fees, post trust interest and create recurring expenses"

    def add_arguments(self, parser):
        parser.add_argument(
            "--as-of",
            type=str,
            help="Date to run the batch for, YYYY-MM-DD (default: today)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the full batch result as JSON",
        )

    def handle(self, *args, **options):
        as_of = timezone.localdate()
        if options["as_of"]:
            try:
                as_of = parse_date(options["as_of"])
            except ValueError:
                as_of = None
            if as_of is None:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        result = AccountingModule().process_recurring_transactions(as_of)

        if options["json"]:
            self.stdout.write(json.dumps(result, cls=DjangoJSONEncoder, indent=2))
            return

        summary = summarize_batch(result)
        self.stdout.write(f"Accounting batch for {summary['as_of']}:")
        self.stdout.write(f"  Payments generated: {summary['payments_generated']}")
        self.stdout.write(f"  Late fees applied:  {summary['late_fees_applied']} ({summary['late_fee_total']})")
        self.stdout.write(f"  Interest postings:  {summary['interest_posted']} ({summary['interest_total']})")
        self.stdout.write(f"  Recurring expenses: {summary['expenses_created']}")

        if summary["success"]:
            self.stdout.write(self.style.SUCCESS("Done!"))
        else:
            self.stdout.write(self.style.ERROR(f"Failed jobs: {', '.join(summary['errors'])}"))
