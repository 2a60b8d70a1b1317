"""
Test suite for Inventory module
Tests: location-scoped listing, stock adjustments, low stock and price audit
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.stock import adjust_stock, weighted_unit_price


class StockMovementTests(TestCase):
    """Test stock helpers"""

    def setUp(self):
        self.item = TestDataFactory.create_inventory_item(quantity=Decimal('10'))

    def test_add_subtract_set(self):
        item, previous = adjust_stock(self.item.id, '5', 'add')
        self.assertEqual(previous, Decimal('10'))
        self.assertEqual(item.current_quantity, Decimal('15'))
        item, _ = adjust_stock(self.item.id, '3', 'subtract')
        self.assertEqual(item.current_quantity, Decimal('12'))
        item, _ = adjust_stock(self.item.id, '40', 'set')
        self.assertEqual(item.current_quantity, Decimal('40'))

    def test_subtract_below_zero(self):
        with self.assertRaises(ValidationFailed):
            adjust_stock(self.item.id, '11', 'subtract')
        self.item.refresh_from_db()
        self.assertEqual(self.item.current_quantity, Decimal('10'))

    def test_unknown_type(self):
        with self.assertRaises(ValidationFailed):
            adjust_stock(self.item.id, '1', 'double')

    def test_weighted_unit_price(self):
        price = weighted_unit_price(Decimal('50.00'), Decimal('10'), Decimal('80.00'), Decimal('10'))
        self.assertEqual(price, Decimal('65.00'))

    def test_weighted_price_from_empty_stock(self):
        price = weighted_unit_price(Decimal('50.00'), Decimal('0'), Decimal('80.00'), Decimal('10'))
        self.assertEqual(price, Decimal('80.00'))


class InventoryAPITests(TestCase):
    """Test inventory endpoints"""

    def setUp(self):
        self.home = TestDataFactory.create_location(name='Home Depot')
        self.away = TestDataFactory.create_location(name='Away Depot')
        self.clerk = TestDataFactory.create_user(
            permissions=['inventory:view', 'inventory:create', 'inventory:edit', 'inventory:adjust'],
            primary_location=self.home,
        )
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.clerk)

    def test_list_is_scoped_to_accessible_locations(self):
        TestDataFactory.create_inventory_item(location=self.home, name='Home Ream')
        TestDataFactory.create_inventory_item(location=self.away, name='Away Ream')
        response = self.client.get('/api/v1/inventory/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i['name'] for i in response.data['results']], ['Home Ream'])

    def test_item_in_other_location_is_hidden(self):
        item = TestDataFactory.create_inventory_item(location=self.away)
        response = self.client.get(f'/api/v1/inventory/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_in_inaccessible_location(self):
        response = self.client.post('/api/v1/inventory/', {
            'sku': 'A4-80', 'name': 'A4 80gsm', 'unit': 'ream', 'location': self.away.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_duplicate_sku_per_location(self):
        TestDataFactory.create_inventory_item(location=self.home, sku='A4-80')
        response = self.client.post('/api/v1/inventory/', {
            'sku': 'A4-80', 'name': 'A4 80gsm', 'unit': 'ream', 'location': self.home.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sku', response.data)

    def test_low_stock(self):
        TestDataFactory.create_inventory_item(location=self.home, name='Plenty', quantity=Decimal('100'))
        TestDataFactory.create_inventory_item(location=self.home, name='Scarce', quantity=Decimal('5'))
        response = self.client.get('/api/v1/inventory/low-stock/')
        self.assertEqual([i['name'] for i in response.data], ['Scarce'])

    def test_stock_update(self):
        item = TestDataFactory.create_inventory_item(location=self.home, quantity=Decimal('10'))
        response = self.client.put(
            f'/api/v1/inventory/{item.id}/stock/', {'quantity': '4', 'type': 'subtract', 'reason': 'Damaged'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['current_quantity']), Decimal('6'))
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', object_id=item.id).exists())

    def test_stock_update_rejects_negative_result(self):
        item = TestDataFactory.create_inventory_item(location=self.home, quantity=Decimal('2'))
        response = self.client.put(
            f'/api/v1/inventory/{item.id}/stock/', {'quantity': '5', 'type': 'subtract'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot reduce stock below zero')

    def test_price_change_is_audited(self):
        item = TestDataFactory.create_inventory_item(location=self.home)
        response = self.client.patch(f'/api/v1/inventory/{item.id}/', {'unit_price': '75.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='price_change', object_id=item.id).exists())

    def test_cannot_delete_invoiced_item(self):
        admin = TestDataFactory.create_admin()
        item = TestDataFactory.create_inventory_item(location=self.home)
        TestDataFactory.create_invoice(admin, items=[(item, Decimal('1'), Decimal('50.00'))])
        client = AuthenticatedAPIClient()
        client.authenticate_user(admin)
        response = client.delete(f'/api/v1/inventory/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
