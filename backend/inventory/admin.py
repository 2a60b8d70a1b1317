from django.contrib import admin
from .models import InventoryItem


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'location', 'product', 'current_quantity', 'min_stock', 'unit_price', 'updated_at']
    list_filter = ['location', 'product__product_group']
    search_fields = ['sku', 'name', 'description']
    ordering = ['name']
