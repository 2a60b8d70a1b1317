from django.core.management.base import BaseCommand
from django.db import transaction

from backend.core.cache_signals import suspend_cache_signals
from backend.payments.services import recalculate_balances
from backend.sales.services import mark_overdue_invoices


class Command(BaseCommand):
    help = 'Rebuilds invoice balances and statuses from payment and credit applications'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without saving',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        with suspend_cache_signals(), transaction.atomic():
            changed = recalculate_balances()
            overdue = mark_overdue_invoices()
            self.stdout.write(f"Invoices with corrected balance or status: {changed}")
            self.stdout.write(f"Invoices newly marked overdue: {overdue}")

            if dry_run:
                self.stdout.write(self.style.WARNING("Dry run complete. Rolling back changes."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS("Balance recalculation complete and committed."))
