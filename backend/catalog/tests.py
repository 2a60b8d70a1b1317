"""
Test suite for Catalog module
Tests: product groups, products, filters and monthly sales targets
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.catalog.models import MonthlySalesTarget
from backend.catalog.targets import achieved_for, percent
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.sales.models import Invoice


class ProductAPITests(TestCase):
    """Test product and product group endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.group = TestDataFactory.create_product_group(name='A4 Paper')

    def test_create_product(self):
        response = self.client.post('/api/v1/products/', {
            'name': 'Copy Paper 80gsm', 'product_group': self.group.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_search_matches_every_word(self):
        TestDataFactory.create_product(name='Copy Paper 80gsm', product_group=self.group)
        TestDataFactory.create_product(name='Copy Paper 70gsm', product_group=self.group)
        response = self.client.get('/api/v1/products/?search=copy 80gsm')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Copy Paper 80gsm'])

    def test_filter_by_group(self):
        tissue = TestDataFactory.create_product_group(name='Tissue')
        TestDataFactory.create_product(name='Toilet Roll', product_group=tissue)
        TestDataFactory.create_product(name='Copy Paper', product_group=self.group)
        response = self.client.get(f'/api/v1/products/?group={tissue.id}')
        self.assertEqual([p['name'] for p in response.data], ['Toilet Roll'])

    def test_cannot_delete_group_with_products(self):
        TestDataFactory.create_product(product_group=self.group)
        response = self.client.delete(f'/api/v1/product-groups/{self.group.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_product_with_inventory(self):
        product = TestDataFactory.create_product(product_group=self.group)
        TestDataFactory.create_inventory_item(product=product)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SalesTargetTests(TestCase):
    """Test monthly sales targets and achievement"""

    def setUp(self):
        self.rep = TestDataFactory.create_user(permissions=['invoices:view'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.rep)
        self.product = TestDataFactory.create_product()
        self.item = TestDataFactory.create_inventory_item(product=self.product)

    def _bill(self, quantity, price, on=date(2025, 6, 10), **kwargs):
        return TestDataFactory.create_invoice(
            self.rep, items=[(self.item, Decimal(quantity), Decimal(price))], date=on, **kwargs
        )

    def test_achievement_counts_approved_invoices_only(self):
        self._bill('4', '50.00')
        self._bill('10', '50.00', approval_status=Invoice.APPROVAL_PENDING)
        self._bill('10', '50.00', status=Invoice.STATUS_CANCELLED)
        self._bill('10', '50.00', on=date(2025, 7, 1))
        quantity, amount = achieved_for(self.rep, self.product, 2025, 6)
        self.assertEqual(quantity, Decimal('4'))
        self.assertEqual(amount, Decimal('200.00'))

    def test_set_target_and_performance(self):
        self._bill('5', '100.00')
        response = self.client.post('/api/v1/sales-targets/', {
            'product': self.product.id, 'year': 2025, 'month': 6,
            'target_quantity': '10', 'target_amount': '1000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post('/api/v1/sales-targets/', {
            'product': self.product.id, 'year': 2025, 'month': 6,
            'target_quantity': '20', 'target_amount': '2000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(MonthlySalesTarget.objects.filter(user=self.rep).count(), 1)

        response = self.client.get('/api/v1/sales-targets/performance/?year=2025&month=6')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['products_count'], 1)
        self.assertEqual(response.data['summary']['amount_achievement_percent'], 25.0)
        self.assertEqual(response.data['targets'][0]['quantity_achievement_percent'], 25.0)

    def test_missing_fields(self):
        response = self.client.post('/api/v1/sales-targets/', {'product': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_users_targets_need_permission(self):
        other = TestDataFactory.create_user(permissions=[])
        response = self.client.get(f'/api/v1/sales-targets/?user={other.id}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_percent_without_target(self):
        self.assertIsNone(percent(Decimal('5'), Decimal('0')))
        self.assertEqual(percent(Decimal('5'), Decimal('20')), 25.0)
