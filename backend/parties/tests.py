"""
Test suite for Parties module
Tests: customer CRUD, team assignment from location, balances, statements and bank accounts
"""
from datetime import date, datetime
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.ledger import customer_balance, period_ledger
from backend.parties.models import Customer, BankAccount
from backend.payments.models import CustomerPayment, Credit
from backend.sales.models import Invoice


def make_payment(customer, amount, on, status=CustomerPayment.STATUS_COMPLETED):
    return CustomerPayment.objects.create(
        customer=customer,
        amount=Decimal(amount),
        payment_method='BANK_TRANSFER',
        payment_date=timezone.make_aware(datetime(on.year, on.month, on.day, 12, 0)),
        status=status,
    )


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.location = TestDataFactory.create_location()

    def test_create_customer_picks_team_from_location(self):
        team = TestDataFactory.create_team(locations=[self.location])
        response = self.client.post('/api/v1/customers/', {
            'name': 'Acme Stationers',
            'email': 'Orders@Acme.test',
            'location': self.location.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['team'], team.id)
        self.assertEqual(response.data['email'], 'orders@acme.test')

    def test_location_is_required(self):
        response = self.client.post('/api/v1/customers/', {'name': 'No Home'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('location', response.data)

    def test_duplicate_email_rejected(self):
        TestDataFactory.create_customer(email='dup@paper.test', location=self.location)
        response = self.client.post('/api/v1/customers/', {
            'name': 'Second', 'email': 'DUP@paper.test', 'location': self.location.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_moving_location_reassigns_team(self):
        customer = TestDataFactory.create_customer(location=self.location)
        new_location = TestDataFactory.create_location()
        new_team = TestDataFactory.create_team(locations=[new_location])
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'location': new_location.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.team, new_team)

    def test_search_and_pagination(self):
        TestDataFactory.create_customer(name='Paper Palace', location=self.location)
        TestDataFactory.create_customer(name='Ink World', location=self.location)
        response = self.client.get('/api/v1/customers/?search=palace')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Paper Palace')

    def test_cannot_delete_customer_with_invoices(self):
        customer = TestDataFactory.create_customer(location=self.location)
        TestDataFactory.create_invoice(self.admin, customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.pk).exists())

    def test_detail_includes_balance_summary(self):
        customer = TestDataFactory.create_customer(location=self.location)
        TestDataFactory.create_invoice(self.admin, customer=customer)
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.data['balance_summary']['balance'], Decimal('100.00'))


class CustomerBalanceTests(TestCase):
    """Balances are computed at customer level"""

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer(opening_balance=Decimal('50.00'))

    def test_balance_owed(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer)
        make_payment(self.customer, '30.00', date.today())
        summary = customer_balance(self.customer)
        self.assertEqual(summary['total_invoiced'], Decimal('100.00'))
        self.assertEqual(summary['total_paid'], Decimal('30.00'))
        self.assertEqual(summary['balance'], Decimal('120.00'))
        self.assertEqual(summary['credit'], Decimal('0.00'))

    def test_cancelled_invoices_and_reversed_payments_ignored(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer, status=Invoice.STATUS_CANCELLED)
        make_payment(self.customer, '500.00', date.today(), status=CustomerPayment.STATUS_REVERSED)
        summary = customer_balance(self.customer)
        self.assertEqual(summary['actual_balance'], Decimal('50.00'))

    def test_credit_position(self):
        make_payment(self.customer, '80.00', date.today())
        Credit.objects.create(
            customer=self.customer, amount=Decimal('30.00'), available_amount=Decimal('30.00'),
            reason=Credit.REASON_OVERPAYMENT,
        )
        summary = customer_balance(self.customer)
        self.assertEqual(summary['balance'], Decimal('0.00'))
        self.assertEqual(summary['credit'], Decimal('30.00'))
        self.assertEqual(summary['available_credit'], Decimal('30.00'))


class CustomerLedgerTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()

    def test_running_balance(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer, date=date(2025, 1, 10))
        TestDataFactory.create_invoice(self.user, customer=self.customer, date=date(2025, 2, 5))
        make_payment(self.customer, '40.00', date(2025, 2, 5))
        make_payment(self.customer, '10.00', date(2025, 3, 1))

        ledger = period_ledger(self.customer, date(2025, 2, 1), date(2025, 2, 28))
        self.assertEqual(ledger['opening_balance'], Decimal('100.00'))
        self.assertEqual([t['type'] for t in ledger['transactions']], ['INVOICE', 'PAYMENT'])
        self.assertEqual(ledger['transactions'][0]['balance'], Decimal('200.00'))
        self.assertEqual(ledger['closing_balance'], Decimal('160.00'))
        self.assertEqual(ledger['totals']['net_movement'], Decimal('60.00'))

    def test_dates_required(self):
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/ledger/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_start_after_end(self):
        response = self.client.get(
            f'/api/v1/customers/{self.customer.id}/ledger/?start_date=2025-03-01&end_date=2025-02-01'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_customer(self):
        response = self.client.get('/api/v1/customers/999999/ledger/?start_date=2025-01-01&end_date=2025-02-01')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_pdf_statement(self):
        TestDataFactory.create_invoice(self.user, customer=self.customer, date=date(2025, 1, 10))
        response = self.client.get(
            f'/api/v1/customers/{self.customer.id}/ledger/?start_date=2025-01-01&end_date=2025-01-31&format=pdf'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))


class BankAccountTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_delete_deactivates(self):
        account = TestDataFactory.create_bank_account()
        response = self.client.delete(f'/api/v1/bank-accounts/{account.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        account.refresh_from_db()
        self.assertFalse(account.is_active)
        self.assertTrue(BankAccount.objects.filter(pk=account.pk).exists())

    def test_list_hides_inactive(self):
        TestDataFactory.create_bank_account(bank_name='Open Bank')
        closed = TestDataFactory.create_bank_account(bank_name='Closed Bank')
        closed.is_active = False
        closed.save()
        banks = [a['bank_name'] for a in self.client.get('/api/v1/bank-accounts/').data]
        self.assertEqual(banks, ['Open Bank'])
