"""
Test suite for Reports module
Tests: A/R aging buckets, dashboard, overdue invoices, sales, exports and dynamic queries
"""
from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.reports.aging import MODE_OUTSTANDING, age_in_days, bucket_for, build_aging
from backend.reports.queries import segment_for, payment_speed
from backend.sales.models import Invoice


class AgingBucketTests(TestCase):
    """Bucket boundaries for both aging modes"""

    def test_due_mode_boundaries(self):
        self.assertEqual(bucket_for(-5), 'current')
        self.assertEqual(bucket_for(0), 'current')
        self.assertEqual(bucket_for(1), 'd1_30')
        self.assertEqual(bucket_for(30), 'd1_30')
        self.assertEqual(bucket_for(31), 'd31_60')
        self.assertEqual(bucket_for(60), 'd31_60')
        self.assertEqual(bucket_for(61), 'd61_90')
        self.assertEqual(bucket_for(90), 'd61_90')
        self.assertEqual(bucket_for(91), 'd90_plus')

    def test_outstanding_mode_boundaries(self):
        self.assertEqual(bucket_for(30, 'outstanding'), 'current')
        self.assertEqual(bucket_for(31, 'outstanding'), 'd1_30')
        self.assertEqual(bucket_for(60, 'outstanding'), 'd1_30')
        self.assertEqual(bucket_for(61, 'outstanding'), 'd31_60')
        self.assertEqual(bucket_for(90, 'outstanding'), 'd31_60')
        self.assertEqual(bucket_for(91, 'outstanding'), 'd90_plus')


class AgingReportTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.today = timezone.localdate()
        self.customer = TestDataFactory.create_customer(name='Aging Stationers')

    def test_buckets_by_days_past_due(self):
        TestDataFactory.create_invoice(
            self.user, customer=self.customer, date=self.today - timedelta(days=75),
            due_date=self.today - timedelta(days=45)
        )
        TestDataFactory.create_invoice(
            self.user, customer=self.customer, date=self.today, due_date=self.today + timedelta(days=30)
        )
        data = build_aging(self.today)
        self.assertEqual(data['customer_count'], 1)
        row = data['customers'][0]
        self.assertEqual(row['buckets']['d31_60'], 100.0)
        self.assertEqual(row['buckets']['current'], 100.0)
        self.assertEqual(data['grand_total'], 200.0)

    def test_not_yet_due_invoice_has_zero_days(self):
        invoice = TestDataFactory.create_invoice(
            self.user, customer=self.customer, date=self.today, due_date=self.today + timedelta(days=20)
        )
        self.assertEqual(age_in_days(invoice, self.today), 0)
        self.assertEqual(age_in_days(invoice, self.today, mode=MODE_OUTSTANDING), 0)

    def test_missing_due_date_uses_net_days(self):
        invoice = TestDataFactory.create_invoice(self.user, customer=self.customer, date=self.today - timedelta(days=40))
        Invoice.objects.filter(pk=invoice.pk).update(due_date=None)
        data = build_aging(self.today, net_days=30)
        self.assertEqual(data['customers'][0]['invoices'][0]['days'], 10)
        self.assertEqual(data['totals']['d1_30'], 100.0)

    def test_paid_and_cancelled_invoices_are_excluded(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer, status=Invoice.STATUS_PAID, balance=Decimal('0'))
        TestDataFactory.create_invoice(self.user, customer=self.customer, status=Invoice.STATUS_CANCELLED)
        data = build_aging(self.today)
        self.assertEqual(data['customers'], [])
        self.assertEqual(data['grand_total'], 0.0)

    def test_customers_sorted_by_total(self):
        small = TestDataFactory.create_customer(name='Small Buyer')
        TestDataFactory.create_invoice(self.user, customer=small)
        big_item = TestDataFactory.create_inventory_item()
        TestDataFactory.create_invoice(self.user, customer=self.customer, items=[(big_item, 10, '100.00')])
        data = build_aging(self.today)
        self.assertEqual([c['customer_name'] for c in data['customers']], ['Aging Stationers', 'Small Buyer'])

    def test_endpoint_outstanding_mode(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer, date=self.today - timedelta(days=45))
        response = self.client.get('/api/v1/reports/ar-aging/?mode=outstanding')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['mode'], 'outstanding')
        self.assertEqual(response.data['totals']['d1_30'], 100.0)

    def test_endpoint_rejects_unknown_mode(self):
        response = self.client.get('/api/v1/reports/ar-aging/?mode=weekly')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ReportsTests(TestCase):
    """Test report endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.today = timezone.localdate()

    def test_dashboard(self):
        location = TestDataFactory.create_location()
        TestDataFactory.create_inventory_item(location=location, quantity=Decimal('3'), min_stock=Decimal('10'))
        TestDataFactory.create_invoice(self.user, approval_status=Invoice.APPROVAL_PENDING)
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['low_stock_count'], 1)
        self.assertEqual(response.data['pending_approvals'], 1)
        self.assertEqual(response.data['pending_invoices'], 1)
        self.assertEqual(len(response.data['low_stock_items']), 1)

    def test_dashboard_requires_permission(self):
        viewer = TestDataFactory.create_user(permissions=['customers:view'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(viewer)
        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_overdue_invoices(self):
        invoice = TestDataFactory.create_invoice(
            self.user, date=self.today - timedelta(days=40), due_date=self.today - timedelta(days=10)
        )
        TestDataFactory.create_invoice(self.user)
        response = self.client.get('/api/v1/reports/overdue-invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['invoices'][0]['days_overdue'], 10)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)

    def test_sales_report(self):
        TestDataFactory.create_invoice(self.user)
        TestDataFactory.create_invoice(self.user, status=Invoice.STATUS_CANCELLED)
        response = self.client.get('/api/v1/reports/sales/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['invoice_count'], 1)
        self.assertEqual(response.data['summary']['total_sales'], 100.0)
        self.assertEqual(response.data['top_billers'][0]['user_id'], self.user.id)

    def test_teams_and_operations_reports(self):
        self.assertEqual(self.client.get('/api/v1/reports/teams/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/v1/reports/operations/').status_code, status.HTTP_200_OK)

    def test_executive_growth(self):
        TestDataFactory.create_invoice(self.user, date=self.today - timedelta(days=5))
        response = self.client.get('/api/v1/reports/executive/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['revenue']['current'], 100.0)
        self.assertEqual(response.data['revenue']['growth'], 100.0)

    def test_customers_report(self):
        TestDataFactory.create_invoice(self.user)
        response = self.client.get('/api/v1/reports/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['active_customers'], 1)
        self.assertEqual(len(response.data['top_customers']), 1)

    def test_inventory_report(self):
        TestDataFactory.create_inventory_item(quantity=Decimal('4'), unit_price=Decimal('25.00'))
        response = self.client.get('/api/v1/reports/inventory/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['total_value'], 100.0)
        self.assertEqual(response.data['summary']['low_stock_count'], 1)

    def test_segments_and_payment_speed(self):
        self.assertEqual(segment_for(Decimal('150000')), 'High')
        self.assertEqual(segment_for(Decimal('50000')), 'Medium')
        self.assertEqual(segment_for(Decimal('10000')), 'Regular')
        self.assertEqual(segment_for(Decimal('0')), 'Low')
        self.assertEqual(payment_speed(7), 'Fast')
        self.assertEqual(payment_speed(30), 'Regular')
        self.assertEqual(payment_speed(31), 'Slow')


class ReportExportTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        TestDataFactory.create_invoice(self.user)

    def test_invalid_report_type(self):
        response = self.client.post('/api/v1/reports/export/', {'report_type': 'payroll'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid report type')

    def test_json_export(self):
        response = self.client.post('/api/v1/reports/export/', {'report_type': 'sales', 'format': 'json'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['report_type'], 'sales')
        self.assertIn('summary', response.data['data'])

    def test_csv_export(self):
        response = self.client.post('/api/v1/reports/export/', {'report_type': 'sales', 'format': 'csv'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        lines = response.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith('Invoice,Date,Customer'))
        self.assertEqual(len(lines), 2)

    def test_pdf_export(self):
        response = self.client.post('/api/v1/reports/export/', {'report_type': 'aging', 'format': 'pdf'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))


class DynamicQueryTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_rejects_unknown_model(self):
        response = self.client.post('/api/v1/reports/query/', {'model': 'user'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid model', response.data['error'])

    def test_rejects_field_outside_allow_list(self):
        response = self.client.post(
            '/api/v1/reports/query/', {'model': 'invoice', 'group_by': ['billed_by__password']}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_group_by_status(self):
        TestDataFactory.create_invoice(self.user)
        TestDataFactory.create_invoice(self.user)
        TestDataFactory.create_invoice(self.user, status=Invoice.STATUS_PAID, balance=Decimal('0'))
        response = self.client.post('/api/v1/reports/query/', {
            'model': 'invoice',
            'group_by': ['status'],
            'aggregate': ['count', 'sum:total_amount'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['query_type'], 'group_by')
        rows = {row['status']: row for row in response.data['data']}
        self.assertEqual(rows['OPEN']['count'], 2)
        self.assertEqual(rows['PAID']['count'], 1)

    def test_plain_aggregate(self):
        TestDataFactory.create_invoice(self.user)
        response = self.client.post('/api/v1/reports/query/', {'model': 'invoice', 'aggregate': ['count']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['aggregation']['count'], 1)
