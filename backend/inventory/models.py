from decimal import Decimal

from django.db import models


class InventoryItem(models.Model):
    """Stock of one SKU at one location"""
    sku = models.CharField(max_length=100)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=50)
    unit_price = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    current_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    min_stock = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='inventory_items')
    product = models.ForeignKey(
        'catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_items'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.sku} - {self.name} ({self.location})"

    @property
    def is_low_stock(self):
        return self.current_quantity <= self.min_stock

    class Meta:
        db_table = 'inventory_items'
        ordering = ['name']
        unique_together = [['sku', 'location']]
        indexes = [
            models.Index(fields=['sku'], name='inventory_sku_idx'),
            models.Index(fields=['name'], name='inventory_name_idx'),
        ]
