from django.contrib import admin
from .models import CustomerPayment, PaymentApplication, Credit, CreditApplication, QuickBooksExport


class PaymentApplicationInline(admin.TabularInline):
    model = PaymentApplication
    extra = 0
    readonly_fields = ['invoice', 'amount_applied', 'notes', 'applied_at']


@admin.register(CustomerPayment)
class CustomerPaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'amount', 'payment_method', 'payment_date', 'status', 'allocated_amount',
                    'credit_amount']
    list_filter = ['payment_method', 'status']
    search_fields = ['customer__name', 'reference_number']
    inlines = [PaymentApplicationInline]


class CreditApplicationInline(admin.TabularInline):
    model = CreditApplication
    extra = 0
    readonly_fields = ['invoice', 'amount_applied', 'applied_by', 'applied_at']


@admin.register(Credit)
class CreditAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'amount', 'available_amount', 'reason', 'status', 'created_at']
    list_filter = ['reason', 'status']
    search_fields = ['customer__name', 'description']
    inlines = [CreditApplicationInline]


@admin.register(QuickBooksExport)
class QuickBooksExportAdmin(admin.ModelAdmin):
    list_display = ['filename', 'export_type', 'exported_by', 'export_date', 'status']
    list_filter = ['export_type', 'status']
