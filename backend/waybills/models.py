from decimal import Decimal

from django.conf import settings
from django.db import models


class Waybill(models.Model):
    """Inbound (or transfer) stock document for one location"""
    STATUS_PENDING = 'PENDING'
    STATUS_PROCESSING = 'PROCESSING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_REVIEW = 'REVIEW'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_REVIEW, 'Needs Review'),
    ]

    TRANSFER_TYPE_CHOICES = [
        ('RECEIVING', 'Receiving'),
        ('TRANSFER_IN', 'Transfer In'),
        ('TRANSFER_OUT', 'Transfer Out'),
        ('RETURN', 'Return'),
    ]

    waybill_number = models.CharField(max_length=100, unique=True)
    date = models.DateField()
    supplier = models.CharField(max_length=255, blank=True)
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='waybills')
    source_location = models.ForeignKey(
        'locations.Location', on_delete=models.SET_NULL, null=True, blank=True, related_name='outgoing_waybills'
    )
    destination_customer = models.ForeignKey(
        'parties.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='waybills'
    )
    transfer_type = models.CharField(max_length=20, choices=TRANSFER_TYPE_CHOICES, default='RECEIVING')
    received_by = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='processed_waybills'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_waybills'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.waybill_number

    class Meta:
        db_table = 'waybills'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='waybill_status_idx'),
        ]


class WaybillItem(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_MATCHED = 'MATCHED'
    STATUS_NEW_PRODUCT = 'NEW_PRODUCT'
    STATUS_PROCESSED = 'PROCESSED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_MATCHED, 'Matched'),
        (STATUS_NEW_PRODUCT, 'New Product'),
        (STATUS_PROCESSED, 'Processed'),
    ]

    waybill = models.ForeignKey(Waybill, on_delete=models.CASCADE, related_name='items')
    sku = models.CharField(max_length=100)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=50, default='unit')
    quantity_received = models.DecimalField(max_digits=12, decimal_places=2)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    batch_no = models.CharField(max_length=100, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    inventory_item = models.ForeignKey(
        'inventory.InventoryItem', on_delete=models.SET_NULL, null=True, blank=True, related_name='waybill_items'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    processed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.waybill.waybill_number} - {self.sku} x{self.quantity_received}"

    class Meta:
        db_table = 'waybill_items'
        ordering = ['id']
