# accounts/management/commands/seed_permissions.py

from django.core.management.base import BaseCommand

from accounts.models import CompanyMembership
from accounts.permissions import grant_role_defaults


class Command(BaseCommand):
    help = "Grant role default permissions to every active membership"

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Drop existing grants before applying the role defaults.",
        )

    def handle(self, *args, **options):
        granted = 0
        memberships = CompanyMembership.objects.filter(is_active=True).select_related("company")
        for membership in memberships:
            granted += grant_role_defaults(membership, overwrite=options["overwrite"])

        self.stdout.write(self.style.SUCCESS(
            f"Done! Granted {granted} permissions across {memberships.count()} memberships."
        ))
