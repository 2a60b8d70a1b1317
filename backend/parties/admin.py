from django.contrib import admin
from .models import Customer, BankAccount


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'phone', 'location', 'team', 'relationship_manager', 'last_order_date']
    list_filter = ['location', 'team']
    search_fields = ['name', 'email', 'phone', 'company_name', 'contact_person']
    ordering = ['name']


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ['bank_name', 'account_name', 'account_number', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['bank_name', 'account_name', 'account_number']
