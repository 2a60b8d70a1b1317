"""
Management command to import customers from a CSV file in the CUSTOMERS
sheet layout
"""
import os

from django.core.management.base import BaseCommand, CommandError

from backend.imports.customers import import_customers
from backend.imports.parsers import read_rows_file


class Command(BaseCommand):
    help = "Imports customers from a CSV or JSON file (CUSTOMER NAME, RELATIONSHIP MANAGER, LOCATION, ...)"

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Path to the CSV or JSON file')

    def handle(self, *args, **options):
        path = options['path']
        if not os.path.exists(path):
            raise CommandError(f"File not found: {path}")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("IMPORTING CUSTOMERS"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"File: {path}")

        rows = read_rows_file(path)
        if not rows:
            raise CommandError("No rows found in file")

        results = import_customers(rows)

        self.stdout.write(f"Imported: {results['imported']}")
        self.stdout.write(f"Skipped:  {results['skipped']}")
        for error in results['errors']:
            self.stdout.write(self.style.WARNING(f"  Row {error['row']}: {error['error']}"))
        self.stdout.write(self.style.SUCCESS("Customer import complete."))
