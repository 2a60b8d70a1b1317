"""
Test suite for Sales module
Tests: invoice creation and stock, approval workflow, cancellation, overdue marking,
sales returns and credit notes
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ValidationFailed, AccessDenied, NotFound
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.payments.models import Credit
from backend.payments.services import process_payment
from backend.sales.filters import date_range_start
from backend.sales.models import Invoice, SalesReturn
from backend.sales.services import (
    create_invoice, approve_invoice, reject_invoice, cancel_invoice, delete_invoice,
    mark_overdue_invoices, generate_invoice_number, generate_return_number,
    create_sales_return, process_sales_return,
)


class InvoiceServiceTests(TestCase):
    """Test invoice creation and approval"""

    def setUp(self):
        self.rep = TestDataFactory.create_user(permissions=['invoices:create'])
        self.approver = TestDataFactory.create_user(permissions=['invoices:approve'])
        self.customer = TestDataFactory.create_customer(default_payment_term_days=14)
        self.item = TestDataFactory.create_inventory_item(quantity=Decimal('20'), unit_price=Decimal('50.00'))

    def _create(self, **overrides):
        data = {
            'customer_id': self.customer.id,
            'items': [{'inventory_item_id': self.item.id, 'quantity': '4'}],
        }
        data.update(overrides)
        return create_invoice(self.rep, data)

    def test_create_takes_stock_and_sets_totals(self):
        invoice = self._create(tax_amount='10.00', discount_amount='5.00')
        self.assertEqual(invoice.total_amount, Decimal('205.00'))
        self.assertEqual(invoice.balance, invoice.total_amount)
        self.assertEqual(invoice.status, Invoice.STATUS_OPEN)
        self.assertEqual(invoice.approval_status, Invoice.APPROVAL_PENDING)
        self.assertEqual(invoice.due_date, invoice.date + timedelta(days=14))
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('16'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.last_order_date, invoice.date)

    def test_price_override(self):
        invoice = self._create(items=[{'inventory_item_id': self.item.id, 'quantity': '2', 'unit_price': '45.00'}])
        self.assertEqual(invoice.total_amount, Decimal('90.00'))

    def test_insufficient_stock_changes_nothing(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self._create(items=[{'inventory_item_id': self.item.id, 'quantity': '25'}])
        self.assertIn('Insufficient stock', ctx.exception.message)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('20'))
        self.assertFalse(Invoice.objects.exists())

    def test_repeated_item_lines_share_stock(self):
        lines = [
            {'inventory_item_id': self.item.id, 'quantity': '12'},
            {'inventory_item_id': self.item.id, 'quantity': '12'},
        ]
        with self.assertRaises(ValidationFailed) as ctx:
            self._create(items=lines)
        self.assertIn('Requested: 24', ctx.exception.message)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('20'))
        self.assertFalse(Invoice.objects.exists())

        invoice = self._create(items=[
            {'inventory_item_id': self.item.id, 'quantity': '4'},
            {'inventory_item_id': self.item.id, 'quantity': '6'},
        ])
        self.assertEqual(invoice.items.count(), 2)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('10'))

    def test_non_finite_quantity(self):
        for value in ('NaN', 'Infinity'):
            with self.assertRaises(ValidationFailed):
                self._create(items=[{'inventory_item_id': self.item.id, 'quantity': value}])
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('20'))

    def test_missing_customer(self):
        with self.assertRaises(ValidationFailed):
            create_invoice(self.rep, {'items': [{'inventory_item_id': self.item.id, 'quantity': '1'}]})
        with self.assertRaises(NotFound):
            self._create(customer_id=999999)

    def test_invoice_numbers_are_sequential_per_day(self):
        first = self._create()
        second = self._create()
        self.assertTrue(first.invoice_number.endswith('-001'))
        self.assertTrue(second.invoice_number.endswith('-002'))
        self.assertEqual(generate_invoice_number(first.date)[-3:], '003')

    def test_approve(self):
        invoice = self._create()
        invoice = approve_invoice(invoice.id, self.approver)
        self.assertEqual(invoice.approval_status, Invoice.APPROVAL_APPROVED)
        self.assertEqual(invoice.approved_by, self.approver)
        self.assertTrue(AuditLog.objects.filter(action='invoice_approve', object_id=invoice.id).exists())

    def test_cannot_approve_own_invoice(self):
        invoice = self._create()
        with self.assertRaises(AccessDenied):
            approve_invoice(invoice.id, self.rep)

    def test_decision_only_once(self):
        invoice = self._create()
        approve_invoice(invoice.id, self.approver)
        with self.assertRaises(ValidationFailed):
            reject_invoice(invoice.id, self.approver, 'Changed my mind')

    def test_reject_requires_reason(self):
        invoice = self._create()
        with self.assertRaises(ValidationFailed):
            reject_invoice(invoice.id, self.approver, '  ')
        invoice = reject_invoice(invoice.id, self.approver, 'Wrong price')
        self.assertEqual(invoice.rejection_reason, 'Wrong price')

    def test_cancel_restores_stock(self):
        invoice = self._create()
        cancel_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_CANCELLED)
        self.assertEqual(invoice.balance, Decimal('0.00'))
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('20'))
        with self.assertRaises(ValidationFailed):
            cancel_invoice(invoice)

    def test_delete_restores_stock(self):
        invoice = self._create()
        delete_invoice(invoice)
        self.assertFalse(Invoice.objects.filter(pk=invoice.pk).exists())
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('20'))

    def test_delete_partly_paid_refused(self):
        invoice = self._create()
        invoice.balance = Decimal('50.00')
        invoice.save()
        with self.assertRaises(ValidationFailed):
            delete_invoice(invoice)


class OverdueTests(TestCase):

    def test_mark_overdue(self):
        user = TestDataFactory.create_admin()
        today = timezone.localdate()
        late = TestDataFactory.create_invoice(user, date=today - timedelta(days=40), due_date=today - timedelta(days=10))
        paid = TestDataFactory.create_invoice(
            user, date=today - timedelta(days=40), due_date=today - timedelta(days=10),
            status=Invoice.STATUS_PAID, balance=Decimal('0.00')
        )
        current = TestDataFactory.create_invoice(user, date=today)

        self.assertEqual(mark_overdue_invoices(), 1)
        late.refresh_from_db()
        paid.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(late.status, Invoice.STATUS_OVERDUE)
        self.assertEqual(paid.status, Invoice.STATUS_PAID)
        self.assertEqual(current.status, Invoice.STATUS_OPEN)


class DateRangeFilterTests(TestCase):

    def test_named_ranges(self):
        today = timezone.localdate().replace(year=2025, month=8, day=20)
        self.assertEqual(date_range_start('today', today), today)
        self.assertEqual(date_range_start('week', today), today - timedelta(days=7))
        self.assertEqual(date_range_start('month', today), today.replace(day=1))
        self.assertEqual(date_range_start('quarter', today), today.replace(month=7, day=1))
        self.assertIsNone(date_range_start('decade', today))


class InvoiceAPITests(TestCase):
    """Test invoice endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.customer = TestDataFactory.create_customer(name='Acme Stationers')
        self.item = TestDataFactory.create_inventory_item(quantity=Decimal('10'))

    def test_create_invoice(self):
        response = self.client.post('/api/v1/invoices/', {
            'customer_id': self.customer.id,
            'items': [{'inventory_item_id': self.item.id, 'quantity': '3'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['items']), 1)
        self.assertTrue(AuditLog.objects.filter(action='invoice_create').exists())

    def test_create_without_items(self):
        response = self.client.post('/api/v1/invoices/', {'customer_id': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invoice items are required')

    def test_create_with_nan_quantity(self):
        response = self.client.post('/api/v1/invoices/', {
            'customer_id': self.customer.id,
            'items': [{'inventory_item_id': self.item.id, 'quantity': 'NaN'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Item quantity must be greater than zero')

    def test_list_filters(self):
        TestDataFactory.create_invoice(self.admin, customer=self.customer)
        TestDataFactory.create_invoice(self.admin, status=Invoice.STATUS_PAID, balance=Decimal('0.00'))
        response = self.client.get('/api/v1/invoices/?search=acme')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/invoices/?status=PAID')
        self.assertEqual(response.data['count'], 1)

    def test_pending_approval_queue(self):
        TestDataFactory.create_invoice(self.admin, approval_status=Invoice.APPROVAL_PENDING)
        TestDataFactory.create_invoice(self.admin)
        response = self.client.get('/api/v1/invoices/pending-approval/')
        self.assertEqual(response.data['count'], 1)

    def test_cancel_through_patch(self):
        invoice = TestDataFactory.create_invoice(self.admin, items=[(self.item, Decimal('2'), Decimal('50.00'))])
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'status': 'CANCELLED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Invoice.STATUS_CANCELLED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('12'))
        self.assertTrue(AuditLog.objects.filter(action='invoice_cancel').exists())

    def test_refused_cancel_keeps_other_edits(self):
        invoice = TestDataFactory.create_invoice(
            self.admin, customer=self.customer, items=[(self.item, Decimal('2'), Decimal('50.00'))]
        )
        process_payment(self.admin, {
            'customer_id': self.customer.id, 'amount': '40.00', 'payment_method': 'CASH',
            'invoice_ids': [invoice.id],
        })
        response = self.client.patch(
            f'/api/v1/invoices/{invoice.id}/', {'notes': 'Customer called', 'status': 'CANCELLED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot cancel an invoice that has payments applied')
        invoice.refresh_from_db()
        self.assertNotEqual(invoice.notes, 'Customer called')
        self.assertNotEqual(invoice.status, Invoice.STATUS_CANCELLED)
        self.assertFalse(AuditLog.objects.filter(action='invoice_cancel').exists())

    def test_approve_own_invoice_forbidden(self):
        invoice = TestDataFactory.create_invoice(self.admin, approval_status=Invoice.APPROVAL_PENDING)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invoice_pdf(self):
        invoice = TestDataFactory.create_invoice(self.admin, customer=self.customer)
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn(invoice.invoice_number, response['Content-Disposition'])


class SalesReturnTests(TestCase):
    """Test sales returns and credit notes"""

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.item = TestDataFactory.create_inventory_item(quantity=Decimal('10'))
        self.invoice = TestDataFactory.create_invoice(
            self.user, items=[(self.item, Decimal('4'), Decimal('50.00'))]
        )
        self.line = self.invoice.items.get()

    def _return(self, quantity='2', condition='Good', refund_method=SalesReturn.REFUND_CREDIT_NOTE):
        return create_sales_return(self.user, {
            'invoice_id': self.invoice.id,
            'reason': 'Wrong size',
            'refund_method': refund_method,
            'items': [{'invoice_item_id': self.line.id, 'quantity_returned': quantity, 'condition': condition}],
        })

    def test_create_return(self):
        sales_return = self._return()
        self.assertTrue(sales_return.return_number.startswith(f'RET-{timezone.localdate().year}-'))
        self.assertEqual(sales_return.total_amount, Decimal('100.00'))
        self.assertEqual(generate_return_number()[-4:], '0002')

    def test_cannot_return_more_than_invoiced(self):
        self._return(quantity='3')
        with self.assertRaises(ValidationFailed):
            self._return(quantity='2')

    def test_return_period_expired(self):
        self.invoice.date = timezone.localdate() - timedelta(days=45)
        self.invoice.save()
        with self.assertRaises(ValidationFailed) as ctx:
            self._return()
        self.assertIn('30 days', ctx.exception.message)

    def test_zero_day_return_policy(self):
        self.invoice.customer.return_policy_days = 0
        self.invoice.customer.save()
        self.invoice.date = timezone.localdate() - timedelta(days=1)
        self.invoice.save()
        with self.assertRaises(ValidationFailed) as ctx:
            self._return()
        self.assertIn('0 days', ctx.exception.message)

    def test_reason_required(self):
        with self.assertRaises(ValidationFailed):
            create_sales_return(self.user, {'invoice_id': self.invoice.id, 'items': [{'invoice_item_id': self.line.id}]})

    def test_process_restocks_and_issues_credit(self):
        sales_return = self._return()
        sales_return, credit = process_sales_return(sales_return.id, self.user)
        self.assertEqual(sales_return.refund_status, SalesReturn.REFUND_COMPLETED)
        self.assertEqual(sales_return.restock_status, SalesReturn.RESTOCK_RESTOCKED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('12'))
        self.assertEqual(credit.reason, Credit.REASON_RETURN)
        self.assertEqual(credit.available_amount, Decimal('100.00'))

        with self.assertRaises(ValidationFailed):
            process_sales_return(sales_return.id, self.user)

    def test_damaged_goods_not_restocked(self):
        sales_return = self._return(condition='Damaged', refund_method=SalesReturn.REFUND_BANK_TRANSFER)
        sales_return, credit = process_sales_return(sales_return.id, self.user)
        self.assertEqual(sales_return.restock_status, SalesReturn.RESTOCK_NOT_RESTOCKED)
        self.assertIsNone(credit)
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('10'))

    def test_api_flow(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.post('/api/v1/sales-returns/', {
            'invoice_id': self.invoice.id,
            'reason': 'Torn reams',
            'items': [{'invoice_item_id': self.line.id, 'quantity_returned': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = client.post(f"/api/v1/sales-returns/{response.data['id']}/process/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['credit_id'])

        response = client.get(f'/api/v1/sales-returns/invoice/{self.invoice.id}/')
        self.assertEqual(len(response.data), 1)
