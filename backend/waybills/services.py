"""
Waybill processing: received quantities are merged into inventory at the
waybill's location. Unknown SKUs are parked as NEW_PRODUCT until an
approver supplies the product details.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from backend.catalog.models import Product
from backend.core.exceptions import ValidationFailed
from backend.core.utils import create_audit_log
from backend.inventory.models import InventoryItem
from backend.inventory.stock import weighted_unit_price
from .models import Waybill, WaybillItem

logger = logging.getLogger(__name__)

DEFAULT_MIN_STOCK = Decimal('10')


def _audit_item(request, user, action, item, waybill, changes):
    create_audit_log(
        request=request, user=user, action=action, model_name='InventoryItem', object_id=item.id,
        object_name=item.name, object_reference=waybill.waybill_number, changes=changes
    )


def _merge_into(existing, quantity, unit_cost, waybill, user, request):
    """Add received stock to a locked item, re-weighting its unit price"""
    previous_quantity = existing.current_quantity
    previous_price = existing.unit_price
    existing.unit_price = weighted_unit_price(previous_price, previous_quantity, unit_cost, quantity)
    existing.current_quantity = previous_quantity + quantity
    existing.save(update_fields=['unit_price', 'current_quantity', 'updated_at'])
    _audit_item(request, user, 'stock_adjust', existing, waybill, {
        'previous': {'current_quantity': previous_quantity, 'unit_price': previous_price},
        'current': {'current_quantity': existing.current_quantity, 'unit_price': existing.unit_price},
        'waybill_number': waybill.waybill_number,
    })
    return existing


def process_waybill(waybill_id, user, request=None):
    """
    Receive every item of a waybill. Returns the waybill with its final
    status (COMPLETED, or REVIEW when unknown SKUs remain).
    """
    with transaction.atomic():
        waybill = Waybill.objects.select_for_update().get(pk=waybill_id)
        if waybill.status == Waybill.STATUS_COMPLETED:
            raise ValidationFailed('Waybill already processed')

        now = timezone.now()
        waybill.status = Waybill.STATUS_PROCESSING
        waybill.processed_by = user
        waybill.processed_at = now
        waybill.save(update_fields=['status', 'processed_by', 'processed_at', 'updated_at'])

        pending = waybill.items.exclude(status=WaybillItem.STATUS_PROCESSED)
        for waybill_item in pending:
            quantity = waybill_item.quantity_received
            existing = InventoryItem.objects.select_for_update().filter(
                sku=waybill_item.sku, location_id=waybill.location_id
            ).first()

            if existing:
                inventory_item = _merge_into(existing, quantity, waybill_item.unit_cost, waybill, user, request)
            else:
                template = InventoryItem.objects.filter(sku=waybill_item.sku).order_by('id').first()
                if template is None:
                    waybill_item.status = WaybillItem.STATUS_NEW_PRODUCT
                    waybill_item.save(update_fields=['status'])
                    continue
                inventory_item = InventoryItem.objects.create(
                    sku=template.sku,
                    name=template.name,
                    description=template.description,
                    unit=template.unit,
                    product=template.product,
                    unit_price=waybill_item.unit_cost,
                    current_quantity=quantity,
                    min_stock=DEFAULT_MIN_STOCK,
                    location_id=waybill.location_id,
                )
                _audit_item(request, user, 'create', inventory_item, waybill, {
                    'current': {
                        'sku': inventory_item.sku,
                        'location_id': waybill.location_id,
                        'current_quantity': quantity,
                        'unit_price': inventory_item.unit_price,
                    },
                    'waybill_number': waybill.waybill_number,
                })

            waybill_item.inventory_item = inventory_item
            waybill_item.status = WaybillItem.STATUS_PROCESSED
            waybill_item.processed_at = now
            waybill_item.save(update_fields=['inventory_item', 'status', 'processed_at'])

        has_new = waybill.items.filter(status=WaybillItem.STATUS_NEW_PRODUCT).exists()
        waybill.status = Waybill.STATUS_REVIEW if has_new else Waybill.STATUS_COMPLETED
        waybill.save(update_fields=['status', 'updated_at'])

    logger.info(f"Waybill {waybill.waybill_number} processed by {user}: {waybill.status}")
    return waybill


def approve_products(waybill_id, approvals, user, request=None):
    """
    Create inventory items for approved NEW_PRODUCT lines. ``approvals`` is a
    list of dicts with ``item_id`` and optional product/min_stock/unit_price
    and name/description/unit overrides. Unknown or already processed lines
    are skipped.
    """
    results = []
    with transaction.atomic():
        waybill = Waybill.objects.select_for_update().get(pk=waybill_id)
        for approval in approvals:
            waybill_item = WaybillItem.objects.select_for_update().filter(
                pk=approval['item_id'], waybill=waybill, status=WaybillItem.STATUS_NEW_PRODUCT
            ).first()
            if waybill_item is None:
                continue

            product = None
            if approval.get('product'):
                product = Product.objects.filter(pk=approval['product']).first()
                if product is None:
                    raise ValidationFailed(f"Product {approval['product']} not found")

            unit_price = approval.get('unit_price')
            if unit_price is None:
                unit_price = waybill_item.unit_cost
            min_stock = approval.get('min_stock')
            if min_stock is None:
                min_stock = DEFAULT_MIN_STOCK

            # The SKU may already exist here: an earlier line of this waybill or
            # stock created since processing
            existing = InventoryItem.objects.select_for_update().filter(
                sku=waybill_item.sku, location_id=waybill.location_id
            ).first()
            if existing:
                inventory_item = _merge_into(existing, waybill_item.quantity_received, unit_price, waybill, user, request)
            else:
                inventory_item = InventoryItem.objects.create(
                    sku=waybill_item.sku,
                    name=approval.get('name') or waybill_item.name,
                    description=approval.get('description') or waybill_item.description,
                    unit=approval.get('unit') or waybill_item.unit,
                    unit_price=unit_price,
                    current_quantity=waybill_item.quantity_received,
                    min_stock=min_stock,
                    location_id=waybill.location_id,
                    product=product,
                )
            waybill_item.inventory_item = inventory_item
            waybill_item.status = WaybillItem.STATUS_PROCESSED
            waybill_item.processed_at = timezone.now()
            waybill_item.save(update_fields=['inventory_item', 'status', 'processed_at'])
            _audit_item(request, user, 'waybill_approve', inventory_item, waybill, {
                'current': {
                    'sku': inventory_item.sku,
                    'current_quantity': inventory_item.current_quantity,
                    'unit_price': inventory_item.unit_price,
                },
                'waybill_item_id': waybill_item.id,
            })
            results.append({'waybill_item_id': waybill_item.id, 'inventory_item_id': inventory_item.id})

        if not waybill.items.filter(status=WaybillItem.STATUS_NEW_PRODUCT).exists():
            waybill.status = Waybill.STATUS_COMPLETED
            waybill.save(update_fields=['status', 'updated_at'])

    return waybill, results
