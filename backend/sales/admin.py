from django.contrib import admin
from .models import Invoice, InvoiceItem, SalesReturn, SalesReturnItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    raw_id_fields = ['inventory_item']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = [
        'invoice_number', 'date', 'customer_name', 'total_amount', 'balance', 'status', 'approval_status',
        'billed_by', 'due_date'
    ]
    list_filter = ['status', 'approval_status', 'team', 'location']
    search_fields = ['invoice_number', 'customer_name', 'customer__name']
    raw_id_fields = ['customer', 'billed_by', 'approved_by']
    inlines = [InvoiceItemInline]


class SalesReturnItemInline(admin.TabularInline):
    model = SalesReturnItem
    extra = 0
    raw_id_fields = ['invoice_item', 'inventory_item']


@admin.register(SalesReturn)
class SalesReturnAdmin(admin.ModelAdmin):
    list_display = ['return_number', 'invoice', 'customer', 'total_amount', 'refund_method', 'refund_status',
                    'restock_status', 'return_date']
    list_filter = ['refund_status', 'restock_status', 'refund_method']
    search_fields = ['return_number', 'invoice__invoice_number', 'customer__name']
    inlines = [SalesReturnItemInline]
