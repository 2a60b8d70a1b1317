"""Stock movements on inventory items"""
import logging
from decimal import Decimal

from django.db import transaction

from backend.core.exceptions import ValidationFailed
from .models import InventoryItem

logger = logging.getLogger(__name__)


def adjust_stock(item_id, quantity, adjustment_type):
    """
    Apply an add/subtract/set movement under a row lock and return
    ``(item, previous_quantity)``.
    """
    quantity = Decimal(quantity)
    with transaction.atomic():
        item = InventoryItem.objects.select_for_update().get(pk=item_id)
        previous = item.current_quantity
        if adjustment_type == 'add':
            new_quantity = previous + quantity
        elif adjustment_type == 'subtract':
            new_quantity = previous - quantity
            if new_quantity < 0:
                raise ValidationFailed('Cannot reduce stock below zero')
        elif adjustment_type == 'set':
            if quantity < 0:
                raise ValidationFailed('Stock cannot be negative')
            new_quantity = quantity
        else:
            raise ValidationFailed('Invalid adjustment type')
        item.current_quantity = new_quantity
        item.save(update_fields=['current_quantity', 'updated_at'])
    logger.info(f"Stock {adjustment_type} {quantity} on {item.sku}@{item.location_id}: {previous} -> {new_quantity}")
    return item, previous


def weighted_unit_price(current_price, current_quantity, incoming_cost, incoming_quantity):
    """Moving-average unit price after receiving stock at ``incoming_cost``"""
    if current_quantity <= 0:
        return Decimal(incoming_cost)
    total = current_quantity + incoming_quantity
    price = current_price + (incoming_cost - current_price) * incoming_quantity / total
    return price.quantize(Decimal('0.01'))
