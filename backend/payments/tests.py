"""
Test suite for Payments module
Tests: payment allocation, overpayment credits, credit application, balance recalculation,
financial reports and QuickBooks exports
"""
from datetime import date, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ValidationFailed, NotFound
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.payments.financial import age_category, financial_report, quickbooks_export
from backend.payments.models import CustomerPayment, PaymentApplication, Credit, QuickBooksExport
from backend.payments.services import process_payment, apply_credit, recalculate_balances
from backend.sales.models import Invoice


class PaymentAllocationTests(TestCase):
    """Payments settle the oldest-due invoices first"""

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        today = timezone.localdate()
        self.older = TestDataFactory.create_invoice(
            self.user, customer=self.customer, date=today - timedelta(days=20), due_date=today - timedelta(days=5)
        )
        self.newer = TestDataFactory.create_invoice(
            self.user, customer=self.customer, date=today, due_date=today + timedelta(days=30)
        )

    def _pay(self, amount, **extra):
        data = {'customer_id': self.customer.id, 'amount': amount, 'payment_method': 'CASH'}
        data.update(extra)
        return process_payment(self.user, data)

    def test_partial_payment_goes_to_oldest_due(self):
        result = self._pay('60.00')
        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.balance, Decimal('40.00'))
        self.assertEqual(self.older.status, Invoice.STATUS_PARTIAL)
        self.assertEqual(self.newer.balance, Decimal('100.00'))
        self.assertEqual(result['total_allocated'], Decimal('60.00'))
        self.assertIsNone(result['credit_created'])

    def test_payment_spans_invoices(self):
        result = self._pay('150.00')
        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.status, Invoice.STATUS_PAID)
        self.assertEqual(self.older.balance, Decimal('0.00'))
        self.assertEqual(self.newer.balance, Decimal('50.00'))
        self.assertEqual(len(result['invoices_updated']), 2)
        self.assertEqual(PaymentApplication.objects.count(), 2)

    def test_overpayment_creates_credit(self):
        result = self._pay('250.00')
        payment = result['payment']
        self.assertEqual(payment.allocated_amount, Decimal('200.00'))
        self.assertEqual(payment.credit_amount, Decimal('50.00'))
        credit = Credit.objects.get(source_payment=payment)
        self.assertEqual(credit.reason, Credit.REASON_OVERPAYMENT)
        self.assertEqual(credit.available_amount, Decimal('50.00'))

    def test_targeted_invoices(self):
        self._pay('100.00', invoice_ids=[self.newer.id])
        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.balance, Decimal('100.00'))
        self.assertEqual(self.newer.status, Invoice.STATUS_PAID)

    def test_cancelled_invoices_are_skipped(self):
        self.older.status = Invoice.STATUS_CANCELLED
        self.older.save()
        self._pay('100.00')
        self.newer.refresh_from_db()
        self.assertEqual(self.newer.status, Invoice.STATUS_PAID)

    def test_validation(self):
        with self.assertRaises(ValidationFailed):
            self._pay('0')
        with self.assertRaises(ValidationFailed):
            self._pay('10.00', payment_method='BARTER')
        with self.assertRaises(ValidationFailed):
            process_payment(self.user, {'amount': '10.00', 'payment_method': 'CASH'})
        with self.assertRaises(NotFound):
            process_payment(self.user, {'customer_id': 999999, 'amount': '10.00', 'payment_method': 'CASH'})
        self.assertFalse(CustomerPayment.objects.exists())

    def test_payment_date_accepts_plain_date(self):
        result = self._pay('10.00', payment_date='2025-03-04')
        self.assertEqual(timezone.localtime(result['payment'].payment_date).date(), date(2025, 3, 4))


class CreditApplicationTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.invoice = TestDataFactory.create_invoice(self.user, customer=self.customer)
        self.credit = Credit.objects.create(
            customer=self.customer, amount=Decimal('150.00'), available_amount=Decimal('150.00'),
            reason=Credit.REASON_ADJUSTMENT,
        )

    def test_apply_caps_at_invoice_balance(self):
        result = apply_credit(self.user, self.credit.id, self.invoice.id, '150.00')
        self.assertEqual(result['amount_applied'], Decimal('100.00'))
        self.assertEqual(result['new_credit_available'], Decimal('50.00'))
        self.assertEqual(result['new_invoice_status'], Invoice.STATUS_PAID)

    def test_fully_used_credit_is_applied(self):
        self.credit.available_amount = Decimal('100.00')
        self.credit.save()
        apply_credit(self.user, self.credit.id, self.invoice.id, '100.00')
        self.credit.refresh_from_db()
        self.assertEqual(self.credit.status, Credit.STATUS_APPLIED)

    def test_insufficient_credit(self):
        with self.assertRaises(ValidationFailed):
            apply_credit(self.user, self.credit.id, self.invoice.id, '200.00')

    def test_other_customers_invoice(self):
        stranger = TestDataFactory.create_invoice(self.user)
        with self.assertRaises(ValidationFailed):
            apply_credit(self.user, self.credit.id, stranger.id, '10.00')

    def test_paid_invoice(self):
        self.invoice.balance = Decimal('0.00')
        self.invoice.status = Invoice.STATUS_PAID
        self.invoice.save()
        with self.assertRaises(ValidationFailed):
            apply_credit(self.user, self.credit.id, self.invoice.id, '10.00')


class RecalculateBalancesTests(TestCase):

    def test_rebuilds_from_applications(self):
        user = TestDataFactory.create_admin()
        customer = TestDataFactory.create_customer()
        invoice = TestDataFactory.create_invoice(user, customer=customer)
        process_payment(user, {'customer_id': customer.id, 'amount': '30.00', 'payment_method': 'CASH'})

        # Corrupt the stored balance
        Invoice.objects.filter(pk=invoice.pk).update(balance=Decimal('100.00'), status=Invoice.STATUS_OPEN)

        self.assertEqual(recalculate_balances(), 1)
        invoice.refresh_from_db()
        self.assertEqual(invoice.balance, Decimal('70.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_PARTIAL)
        self.assertEqual(recalculate_balances(), 0)


class FinancialReportTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()

    def test_age_categories(self):
        self.assertEqual(age_category(0), 'Current')
        self.assertEqual(age_category(30), '1-30 days')
        self.assertEqual(age_category(31), '31-60 days')
        self.assertEqual(age_category(90), '61-90 days')
        self.assertEqual(age_category(91), '90+ days')

    def test_aged_receivables(self):
        today = timezone.localdate()
        TestDataFactory.create_invoice(self.user, date=today - timedelta(days=80), due_date=today - timedelta(days=45))
        TestDataFactory.create_invoice(self.user, date=today)
        data = financial_report('aged-receivables', None, None)
        self.assertEqual(data['summary']['31-60 days'], Decimal('100.00'))
        self.assertEqual(data['summary']['Current'], Decimal('100.00'))

    def test_tax_summary(self):
        invoice = TestDataFactory.create_invoice(self.user, date=date(2025, 5, 10))
        invoice.tax_amount = Decimal('7.50')
        invoice.save()
        data = financial_report('tax-summary', date(2025, 5, 1), date(2025, 5, 31))
        self.assertEqual(data['total_tax'], Decimal('7.50'))
        self.assertEqual(data['monthly'][0]['month'], '2025-05')

    def test_unknown_report(self):
        with self.assertRaises(ValidationFailed):
            financial_report('balance-sheet', None, None)

    def test_quickbooks_invoice_export(self):
        invoice = TestDataFactory.create_invoice(self.user)
        record = quickbooks_export(self.user, 'INVOICES', [invoice.id])
        self.assertEqual(record.export_data['invoices'][0]['InvoiceNumber'], invoice.invoice_number)
        self.assertEqual(record.export_data['invoices'][0]['Total'], 100.0)
        self.assertTrue(record.filename.startswith('invoices_export_'))
        self.assertEqual(QuickBooksExport.objects.count(), 1)

    def test_quickbooks_bad_type(self):
        with self.assertRaises(ValidationFailed):
            quickbooks_export(self.user, 'RECEIPTS')


class PaymentAPITests(TestCase):
    """Test payment endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.customer = TestDataFactory.create_customer()
        self.invoice = TestDataFactory.create_invoice(self.admin, customer=self.customer)

    def test_record_payment(self):
        response = self.client.post('/api/v1/payments/', {
            'customer_id': self.customer.id, 'amount': '120.00', 'payment_method': 'BANK_TRANSFER',
            'reference_number': 'TRF-991',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['credit_created']['amount'], Decimal('20.00'))
        self.assertEqual(response.data['payment']['reference_number'], 'TRF-991')

    def test_record_payment_missing_fields(self):
        response = self.client.post('/api/v1/payments/', {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Customer, amount, and payment method are required')

    def test_record_payment_nan_amount(self):
        response = self.client.post('/api/v1/payments/', {
            'customer_id': self.customer.id, 'amount': 'NaN', 'payment_method': 'CASH',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CustomerPayment.objects.exists())

    def test_customer_credits_and_apply(self):
        self.client.post('/api/v1/payments/', {
            'customer_id': self.customer.id, 'amount': '150.00', 'payment_method': 'CASH',
        }, format='json')
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/credits/')
        self.assertEqual(response.data['total_available_credit'], Decimal('50.00'))

        second = TestDataFactory.create_invoice(self.admin, customer=self.customer)
        response = self.client.post('/api/v1/credits/apply/', {
            'credit_id': response.data['credits'][0]['id'], 'invoice_id': second.id, 'amount': '50.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        second.refresh_from_db()
        self.assertEqual(second.balance, Decimal('50.00'))

    def test_open_invoices(self):
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/open-invoices/')
        self.assertEqual([i['id'] for i in response.data], [self.invoice.id])

    def test_summary(self):
        response = self.client.get('/api/v1/payments/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_outstanding'], Decimal('100.00'))

    def test_financial_dashboard(self):
        response = self.client.get('/api/v1/financial/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['monthly_trend']), 12)
        self.assertEqual(response.data['outstanding_count'], 1)

    def test_recalculate_needs_fix_data_permission(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(permissions=['payments:*']))
        response = client.post('/api/v1/payments/recalculate-balances/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
