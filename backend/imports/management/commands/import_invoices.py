"""
Management command to import historical invoices from a CSV or JSON file
"""
import os

from django.core.management.base import BaseCommand, CommandError

from backend.core.exceptions import CRMError
from backend.imports.invoices import import_invoices
from backend.imports.parsers import read_rows_file


class Command(BaseCommand):
    help = "Imports invoices from a CSV or JSON file (spaced or camelCase columns)"

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Path to the CSV or JSON file')

    def handle(self, *args, **options):
        path = options['path']
        if not os.path.exists(path):
            raise CommandError(f"File not found: {path}")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("IMPORTING INVOICES"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"File: {path}")

        try:
            results = import_invoices(read_rows_file(path))
        except CRMError as e:
            raise CommandError(e.message)

        self.stdout.write(f"Invoices:   {results['total']}")
        self.stdout.write(f"Successful: {results['successful']}")
        self.stdout.write(f"Failed:     {results['failed']}")
        for error in results['errors']:
            self.stdout.write(self.style.WARNING(f"  {error['invoice_number']}: {error['error']}"))
        for warning in results['warnings']:
            self.stdout.write(self.style.WARNING(f"  {warning}"))
        self.stdout.write(self.style.SUCCESS("Invoice import complete."))
