"""
Test suite for Imports module
Tests: value parsing, invoice and customer imports, Google Sheets reading and import endpoints
"""
from datetime import date
from decimal import Decimal
from unittest import mock

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status

from backend.core.exceptions import ValidationFailed
from backend.core.notifications import broadcaster
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.imports import google_sheets
from backend.imports.customers import import_customers
from backend.imports.invoices import (
    detect_format, group_rows, import_invoices, FORMAT_SPACED, FORMAT_CAMEL, UNASSIGNED_LOCATION,
)
from backend.imports.parsers import parse_currency, parse_date, clean_text
from backend.imports.progress import ImportProgress
from backend.parties.models import Customer
from backend.sales.models import Invoice


class ParserTests(TestCase):

    def test_currency(self):
        self.assertEqual(parse_currency('₦1,500.00'), Decimal('1500.00'))
        self.assertEqual(parse_currency('$1,200'), Decimal('1200'))
        self.assertEqual(parse_currency('N25,500'), Decimal('25500'))
        self.assertEqual(parse_currency(12.5), Decimal('12.5'))
        self.assertEqual(parse_currency('n/a'), Decimal('0'))
        self.assertEqual(parse_currency(None), Decimal('0'))

    def test_short_sheet_dates(self):
        self.assertEqual(parse_date('1-Sep-25'), date(2025, 9, 1))
        self.assertEqual(parse_date('15-Jan-99'), date(1999, 1, 15))

    def test_other_date_formats(self):
        self.assertEqual(parse_date('2025-03-04'), date(2025, 3, 4))
        self.assertEqual(parse_date('03/04/2025'), date(2025, 3, 4))
        self.assertEqual(parse_date('5 Jun 2025'), date(2025, 6, 5))
        self.assertIsNone(parse_date('sometime'))
        self.assertIsNone(parse_date(''))

    def test_clean_text(self):
        self.assertEqual(clean_text('  Acme   Stationers '), 'Acme Stationers')
        self.assertEqual(clean_text(None), '')


def spaced_row(number, customer, product, quantity='2', price='₦50.00', total='₦100.00', **extra):
    row = {
        'Invoice No': number, 'Date': '1-Sep-25', 'Customer': customer, 'Product': product,
        'Quantity': quantity, 'Item Unit Price': price, 'Item Total Price': '', 'Invoice Total': total,
    }
    row.update(extra)
    return row


class InvoiceImportTests(TestCase):
    """Test importing historical invoices"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.item = TestDataFactory.create_inventory_item(name='A4 Copy Paper', quantity=Decimal('10'))

    def test_detect_format(self):
        self.assertEqual(detect_format({'Invoice No': 'X'}), FORMAT_SPACED)
        self.assertEqual(detect_format({'Invoice': 'X'}), FORMAT_SPACED)
        self.assertEqual(detect_format({'invoiceNo': 'X'}), FORMAT_CAMEL)
        with self.assertRaises(ValidationFailed):
            detect_format({'number': 'X'})

    def test_rows_group_into_invoices(self):
        rows = [
            spaced_row('INV-1', 'Acme', 'A4 Copy Paper'),
            spaced_row('INV-1', 'Acme', 'Envelopes'),
            spaced_row('INV-2', 'Acme', 'A4 Copy Paper'),
            spaced_row('', 'Acme', 'A4 Copy Paper'),
        ]
        invoices = group_rows(rows, FORMAT_SPACED)
        self.assertEqual([i['invoice_number'] for i in invoices], ['INV-1', 'INV-2'])
        self.assertEqual(len(invoices[0]['items']), 2)
        self.assertEqual(invoices[0]['items'][0]['line_total'], Decimal('100.00'))
        self.assertEqual(invoices[0]['date'], date(2025, 9, 1))

    def test_import_creates_approved_invoices_without_moving_stock(self):
        results = import_invoices([
            spaced_row('INV-1', 'Brand New Customer', 'a4 copy paper'),
            spaced_row('INV-2', 'Brand New Customer', 'A4 Copy Paper', Status='Paid'),
        ])
        self.assertEqual(results['successful'], 2)
        self.assertEqual(results['failed'], 0)

        open_invoice = Invoice.objects.get(invoice_number='INV-1')
        self.assertEqual(open_invoice.approval_status, Invoice.APPROVAL_APPROVED)
        self.assertEqual(open_invoice.status, Invoice.STATUS_OPEN)
        self.assertEqual(open_invoice.balance, Decimal('100.00'))
        paid_invoice = Invoice.objects.get(invoice_number='INV-2')
        self.assertEqual(paid_invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(paid_invoice.balance, Decimal('0.00'))

        customer = Customer.objects.get(name='Brand New Customer')
        self.assertEqual(customer.location.name, UNASSIGNED_LOCATION)
        self.assertEqual(customer.last_order_date, date(2025, 9, 1))
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('10'))

    def test_duplicates_and_unknown_products_are_reported(self):
        TestDataFactory.create_invoice(self.admin)
        existing = Invoice.objects.get()
        results = import_invoices([
            spaced_row(existing.invoice_number, 'Acme', 'A4 Copy Paper'),
            spaced_row('INV-9', 'Acme', 'Mystery Paper'),
            spaced_row('INV-10', 'Acme', 'A4 Copy Paper'),
            spaced_row('INV-10', 'Acme', 'Mystery Paper'),
        ])
        self.assertEqual(results['total'], 3)
        self.assertEqual(results['successful'], 1)
        self.assertEqual(results['failed'], 2)
        errors = {e['invoice_number']: e for e in results['errors']}
        self.assertIn('already exists', errors[existing.invoice_number]['error'])
        self.assertEqual(errors['INV-9']['missing_products'], ['Mystery Paper'])
        self.assertEqual(results['warnings'], ['Invoice INV-10: Missing products - Mystery Paper'])

    def test_camel_case_rows(self):
        results = import_invoices([{
            'invoiceNo': 'C-1', 'date': '2025-02-01', 'customer': 'Camel Ltd', 'product': 'A4 Copy Paper',
            'quantity': 1, 'itemUnitPrice': 50, 'itemTotalPrice': 50, 'invoiceTotal': 50,
        }])
        self.assertEqual(results['successful'], 1)
        self.assertEqual(Invoice.objects.get(invoice_number='C-1').total_amount, Decimal('50'))

    def test_no_rows(self):
        with self.assertRaises(ValidationFailed):
            import_invoices([])


class CustomerImportTests(TestCase):

    def test_import_customers(self):
        lagos = TestDataFactory.create_location(name='Lagos')
        team = TestDataFactory.create_team(locations=[lagos])
        manager = TestDataFactory.create_user(full_name='Jane Doe', permissions=[])
        TestDataFactory.create_customer(name='Existing Stores')

        results = import_customers([
            {'CUSTOMER NAME': 'Acme Stationers', 'RELATIONSHIP MANAGER': 'jane doe', 'LOCATION': 'lagos',
             'ADDRESS': '12 Marina', 'DATE OF ONBOARDING': '5 Jun 2025', 'LAST ORDER DATE': '1-Sep-25'},
            {'CUSTOMER NAME': 'existing stores', 'LOCATION': 'Lagos'},
            {'CUSTOMER NAME': 'Far Away Ltd', 'LOCATION': 'Atlantis'},
            {'CUSTOMER NAME': '', 'LOCATION': 'Lagos'},
        ])

        self.assertEqual(results['imported'], 2)
        self.assertEqual(results['skipped'], 2)
        self.assertEqual(results['errors'][0]['row'], 4)

        acme = Customer.objects.get(name='Acme Stationers')
        self.assertEqual(acme.location, lagos)
        self.assertEqual(acme.team, team)
        self.assertEqual(acme.relationship_manager, manager)
        self.assertEqual(acme.onboarding_date, date(2025, 6, 5))
        self.assertEqual(Customer.objects.get(name='Far Away Ltd').location.name, UNASSIGNED_LOCATION)


class ImportProgressTests(TestCase):

    def tearDown(self):
        broadcaster.reset()

    def test_progress_updates_one_notification(self):
        stream = broadcaster.connect(5)
        progress = ImportProgress(5, 'Invoice import', 20, every=10)
        for processed in range(1, 21):
            progress.step(processed)
        progress.done('Finished')

        payloads = []
        while not stream._queue.empty():
            payloads.append(stream._queue.get_nowait())
        self.assertEqual(len(payloads), 4)
        self.assertEqual({p['id'] for p in payloads}, {progress.notification_id})
        self.assertEqual(payloads[-1]['type'], 'success')

    def test_without_user_only_logs(self):
        progress = ImportProgress(None, 'Customer import', 3)
        progress.step(3)
        progress.done('Finished')
        self.assertIsNone(progress.notification_id)


@override_settings(
    GOOGLE_SHEETS_API_KEY='test-key', GOOGLE_SHEETS_DATABASE_ID='db-sheet', GOOGLE_SHEETS_MASTER_ID='master-sheet'
)
class GoogleSheetsTests(TestCase):
    """Sheets API calls are mocked"""

    def _response(self, values):
        response = mock.Mock()
        response.json.return_value = {'values': values}
        response.raise_for_status.return_value = None
        return response

    def test_rows_to_dicts_pads_short_rows(self):
        records = google_sheets.rows_to_dicts([['A', 'B', 'C'], ['1'], [], ['', ' '], ['x', 'y', 'z']])
        self.assertEqual(records, [{'A': '1', 'B': '', 'C': ''}, {'A': 'x', 'B': 'y', 'C': 'z'}])

    @mock.patch('backend.imports.google_sheets.requests.get')
    def test_read_sheet(self, mock_get):
        mock_get.return_value = self._response([['CUSTOMER NAME'], ['Acme']])
        self.assertEqual(google_sheets.read_customers(), [{'CUSTOMER NAME': 'Acme'}])
        url = mock_get.call_args[0][0]
        self.assertIn('db-sheet', url)
        self.assertEqual(mock_get.call_args[1]['params'], {'key': 'test-key'})

    @mock.patch('backend.imports.google_sheets.requests.get')
    def test_api_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('down')
        with self.assertRaises(google_sheets.SheetsError):
            google_sheets.read_invoices()

    @override_settings(GOOGLE_SHEETS_API_KEY='')
    def test_not_configured(self):
        with self.assertRaises(ValidationFailed):
            google_sheets.read_customers()

    @mock.patch('backend.imports.google_sheets.requests.get')
    def test_import_all(self, mock_get):
        TestDataFactory.create_admin()
        TestDataFactory.create_inventory_item(name='A4 Copy Paper')
        mock_get.side_effect = [
            self._response([['CUSTOMER NAME', 'LOCATION'], ['Sheet Customer', '']]),
            self._response([
                ['Invoice', 'Date', 'Customer', 'Product', 'Quantity', 'Item Unit Price', 'Item Total Price',
                 'Invoice Total'],
                ['G-1', '1-Sep-25', 'Sheet Customer', 'A4 Copy Paper', '1', '50', '50', '50'],
            ]),
        ]
        results = google_sheets.import_from_google_sheets('all')
        self.assertEqual(results['customers']['imported'], 1)
        self.assertEqual(results['invoices']['successful'], 1)
        self.assertEqual(Invoice.objects.get(invoice_number='G-1').customer.name, 'Sheet Customer')

    def test_unknown_scope(self):
        with self.assertRaises(ValidationFailed):
            google_sheets.import_from_google_sheets('suppliers')


class ImportAPITests(TestCase):
    """Test import endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        TestDataFactory.create_inventory_item(name='A4 Copy Paper')

    def test_import_invoice_rows(self):
        response = self.client.post(
            '/api/v1/imports/invoices/', {'rows': [spaced_row('API-1', 'Acme', 'A4 Copy Paper')]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results']['successful'], 1)

    def test_import_invoice_csv_upload(self):
        content = (
            'Invoice No,Date,Customer,Product,Quantity,Item Unit Price,Item Total Price,Invoice Total\n'
            'CSV-1,1-Sep-25,Acme,A4 Copy Paper,2,50,100,100\n'
        ).encode('utf-8')
        upload = SimpleUploadedFile('invoices.csv', content, content_type='text/csv')
        response = self.client.post('/api/v1/imports/invoices/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Invoice.objects.filter(invoice_number='CSV-1').exists())

    def test_empty_import(self):
        response = self.client.post('/api/v1/imports/invoices/', {'rows': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unrecognised_format(self):
        response = self.client.post('/api/v1/imports/invoices/', {'rows': [{'foo': 'bar'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_import_customers(self):
        response = self.client.post(
            '/api/v1/imports/customers/', [{'CUSTOMER NAME': 'Listed Ltd'}], format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['imported'], 1)

    def test_templates(self):
        response = self.client.get('/api/v1/imports/invoices/template/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertTrue(response.content.decode().startswith('Invoice No,Date,Customer'))

    @override_settings(GOOGLE_SHEETS_API_KEY='')
    def test_google_sheets_requires_key(self):
        response = self.client.post('/api/v1/imports/google-sheets/', {'scope': 'all'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status(self):
        response = self.client.get('/api/v1/imports/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['counts']['inventory_items'], 1)

    def test_import_permission(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(permissions=['invoices:view']))
        response = client.post('/api/v1/imports/invoices/', {'rows': [spaced_row('X', 'Y', 'Z')]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
