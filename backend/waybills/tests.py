"""
Test suite for Waybills module
Tests: waybill creation, processing into inventory, new-product review and approval
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import InventoryItem
from backend.waybills.models import Waybill, WaybillItem
from backend.waybills.services import process_waybill, approve_products


class WaybillProcessingTests(TestCase):
    """Test merging received quantities into inventory"""

    def setUp(self):
        self.user = TestDataFactory.create_admin()
        self.location = TestDataFactory.create_location()

    def test_existing_sku_gets_quantity_and_weighted_price(self):
        item = TestDataFactory.create_inventory_item(
            location=self.location, sku='A4-80', quantity=Decimal('10'), unit_price=Decimal('50.00')
        )
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'A4-80', 'name': 'A4 80gsm', 'quantity_received': Decimal('10'), 'unit_cost': Decimal('80.00')},
        ])

        waybill = process_waybill(waybill.id, self.user)

        self.assertEqual(waybill.status, Waybill.STATUS_COMPLETED)
        item.refresh_from_db()
        self.assertEqual(item.current_quantity, Decimal('20'))
        self.assertEqual(item.unit_price, Decimal('65.00'))
        line = waybill.items.get()
        self.assertEqual(line.status, WaybillItem.STATUS_PROCESSED)
        self.assertEqual(line.inventory_item, item)

    def test_sku_known_elsewhere_is_copied_to_this_location(self):
        other_location = TestDataFactory.create_location()
        template = TestDataFactory.create_inventory_item(location=other_location, sku='TIS-12', name='Tissue 12s')
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'TIS-12', 'name': 'Tissue', 'quantity_received': Decimal('30'), 'unit_cost': Decimal('12.00')},
        ])

        process_waybill(waybill.id, self.user)

        created = InventoryItem.objects.get(sku='TIS-12', location=self.location)
        self.assertEqual(created.name, template.name)
        self.assertEqual(created.current_quantity, Decimal('30'))
        self.assertEqual(created.unit_price, Decimal('12.00'))

    def test_unknown_sku_needs_review(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-1', 'name': 'Kraft Paper', 'quantity_received': Decimal('5'), 'unit_cost': Decimal('20.00')},
        ])

        waybill = process_waybill(waybill.id, self.user)

        self.assertEqual(waybill.status, Waybill.STATUS_REVIEW)
        self.assertEqual(waybill.items.get().status, WaybillItem.STATUS_NEW_PRODUCT)
        self.assertFalse(InventoryItem.objects.filter(sku='NEW-1').exists())

    def test_cannot_process_twice(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location)
        process_waybill(waybill.id, self.user)
        with self.assertRaises(ValidationFailed):
            process_waybill(waybill.id, self.user)

    def test_approve_new_products_completes_waybill(self):
        product = TestDataFactory.create_product()
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-1', 'name': 'Kraft Paper', 'quantity_received': Decimal('5'), 'unit_cost': Decimal('20.00')},
        ])
        process_waybill(waybill.id, self.user)
        line = waybill.items.get()

        waybill, results = approve_products(waybill.id, [{'item_id': line.id, 'product': product.id}], self.user)

        self.assertEqual(waybill.status, Waybill.STATUS_COMPLETED)
        self.assertEqual(len(results), 1)
        created = InventoryItem.objects.get(pk=results[0]['inventory_item_id'])
        self.assertEqual(created.product, product)
        self.assertEqual(created.current_quantity, Decimal('5'))
        self.assertTrue(AuditLog.objects.filter(action='waybill_approve').exists())

    def test_approve_with_unknown_product(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-2', 'name': 'Card', 'quantity_received': Decimal('5'), 'unit_cost': Decimal('20.00')},
        ])
        process_waybill(waybill.id, self.user)
        line = waybill.items.get()
        with self.assertRaises(ValidationFailed):
            approve_products(waybill.id, [{'item_id': line.id, 'product': 999999}], self.user)

    def test_approve_repeated_new_sku_merges_lines(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-1', 'name': 'Kraft Paper', 'quantity_received': Decimal('5'), 'unit_cost': Decimal('20.00')},
            {'sku': 'NEW-1', 'name': 'Kraft Paper', 'quantity_received': Decimal('15'), 'unit_cost': Decimal('40.00')},
        ])
        process_waybill(waybill.id, self.user)
        approvals = [{'item_id': line.id} for line in waybill.items.order_by('id')]

        waybill, results = approve_products(waybill.id, approvals, self.user)

        self.assertEqual(waybill.status, Waybill.STATUS_COMPLETED)
        item = InventoryItem.objects.get(sku='NEW-1', location=self.location)
        self.assertEqual(item.current_quantity, Decimal('20'))
        self.assertEqual(item.unit_price, Decimal('35.00'))
        self.assertEqual({r['inventory_item_id'] for r in results}, {item.id})

    def test_approve_after_sku_was_created_at_location(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-3', 'name': 'Manila', 'quantity_received': Decimal('10'), 'unit_cost': Decimal('30.00')},
        ])
        process_waybill(waybill.id, self.user)
        existing = TestDataFactory.create_inventory_item(
            location=self.location, sku='NEW-3', quantity=Decimal('10'), unit_price=Decimal('10.00')
        )
        line = waybill.items.get()

        approve_products(waybill.id, [{'item_id': line.id}], self.user)

        existing.refresh_from_db()
        self.assertEqual(existing.current_quantity, Decimal('20'))
        self.assertEqual(existing.unit_price, Decimal('20.00'))
        self.assertEqual(InventoryItem.objects.filter(sku='NEW-3').count(), 1)
        line.refresh_from_db()
        self.assertEqual(line.inventory_item, existing)

    def test_approve_keeps_zero_min_stock(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location, items=[
            {'sku': 'NEW-4', 'name': 'Card', 'quantity_received': Decimal('5'), 'unit_cost': Decimal('20.00')},
        ])
        process_waybill(waybill.id, self.user)
        line = waybill.items.get()

        approve_products(waybill.id, [{'item_id': line.id, 'min_stock': Decimal('0')}], self.user)

        self.assertEqual(InventoryItem.objects.get(sku='NEW-4').min_stock, Decimal('0'))


class WaybillAPITests(TestCase):
    """Test waybill endpoints"""

    def setUp(self):
        self.location = TestDataFactory.create_location()
        self.user = TestDataFactory.create_user(
            permissions=['waybills:*', 'inventory:view'], primary_location=self.location
        )
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _payload(self, number='WB-001', location=None):
        return {
            'waybill_number': number,
            'date': '2025-06-01',
            'supplier': 'Northern Mill',
            'location': (location or self.location).id,
            'items': [
                {'sku': 'A4-80', 'name': 'A4 80gsm', 'unit': 'ream', 'quantity_received': '10', 'unit_cost': '45.00'},
            ],
        }

    def test_create_with_items(self):
        response = self.client.post('/api/v1/waybills/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['item_count'], 1)
        self.assertEqual(response.data['status'], Waybill.STATUS_PENDING)

    def test_duplicate_number(self):
        self.client.post('/api/v1/waybills/', self._payload(), format='json')
        response = self.client.post('/api/v1/waybills/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('waybill_number', response.data)

    def test_zero_quantity_rejected(self):
        payload = self._payload()
        payload['items'][0]['quantity_received'] = '0'
        response = self.client.post('/api/v1/waybills/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_inaccessible_location(self):
        response = self.client.post(
            '/api/v1/waybills/', self._payload(location=TestDataFactory.create_location()), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_process_then_edit_refused(self):
        created = self.client.post('/api/v1/waybills/', self._payload(), format='json').data
        response = self.client.post(f"/api/v1/waybills/{created['id']}/process/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['needs_review'])

        response = self.client.patch(f"/api/v1/waybills/{created['id']}/", {'supplier': 'Other'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_queue_and_approval(self):
        created = self.client.post('/api/v1/waybills/', self._payload(), format='json').data
        self.client.post(f"/api/v1/waybills/{created['id']}/process/")

        review = self.client.get('/api/v1/waybills/review/').data
        self.assertEqual(len(review), 1)
        line_id = review[0]['items'][0]['id']

        response = self.client.post(
            f"/api/v1/waybills/{created['id']}/approve-products/",
            {'approvals': [{'item_id': line_id, 'min_stock': '5'}]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['waybill_status'], Waybill.STATUS_COMPLETED)
        self.assertEqual(InventoryItem.objects.get(sku='A4-80').min_stock, Decimal('5'))

    def test_approval_list_required(self):
        waybill = TestDataFactory.create_waybill(self.user, location=self.location)
        response = self.client.post(f'/api/v1/waybills/{waybill.id}/approve-products/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
