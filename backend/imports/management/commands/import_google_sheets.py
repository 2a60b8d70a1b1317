from django.core.management.base import BaseCommand, CommandError

from backend.core.exceptions import CRMError
from backend.imports.google_sheets import import_from_google_sheets, SCOPES


class Command(BaseCommand):
    help = "Imports customers and/or invoices from the configured Google Sheets workbooks"

    def add_arguments(self, parser):
        parser.add_argument('--scope', choices=SCOPES, default='all')

    def handle(self, *args, **options):
        scope = options['scope']
        self.stdout.write(f"Importing {scope} from Google Sheets...")
        try:
            results = import_from_google_sheets(scope)
        except CRMError as e:
            raise CommandError(e.message)

        if 'customers' in results:
            customers = results['customers']
            self.stdout.write(f"Customers: {customers['imported']} imported, {customers['skipped']} skipped")
        if 'invoices' in results:
            invoices = results['invoices']
            self.stdout.write(f"Invoices: {invoices['successful']} imported, {invoices['failed']} failed")
        self.stdout.write(self.style.SUCCESS("Google Sheets import complete."))
