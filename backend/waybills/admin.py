from django.contrib import admin
from .models import Waybill, WaybillItem


class WaybillItemInline(admin.TabularInline):
    model = WaybillItem
    extra = 0
    readonly_fields = ['inventory_item', 'status', 'processed_at']


@admin.register(Waybill)
class WaybillAdmin(admin.ModelAdmin):
    list_display = ['waybill_number', 'date', 'supplier', 'location', 'transfer_type', 'status', 'processed_at']
    list_filter = ['status', 'transfer_type', 'location']
    search_fields = ['waybill_number', 'supplier']
    inlines = [WaybillItemInline]
