from decimal import Decimal

from django.conf import settings
from django.db import models


class ProductGroup(models.Model):
    """Product family (e.g. tissue, A4 paper) with a monthly sales target"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    monthly_target = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'product_groups'
        ordering = ['name']


class Product(models.Model):
    """Sellable product definition; stock lives in inventory items per location"""
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    product_group = models.ForeignKey(ProductGroup, on_delete=models.PROTECT, related_name='products')
    monthly_target = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['name']
        unique_together = [['name', 'product_group']]


class MonthlySalesTarget(models.Model):
    """Per-user, per-product monthly target with achieved figures"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='sales_targets')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sales_targets')
    year = models.PositiveIntegerField()
    month = models.PositiveSmallIntegerField()
    target_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    target_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    achieved_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    achieved_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product} {self.year}-{self.month:02d} ({self.user})"

    class Meta:
        db_table = 'monthly_sales_targets'
        unique_together = [['product', 'user', 'year', 'month']]
        ordering = ['-year', '-month']
