from django.contrib import admin
from .models import ProductGroup, Product, MonthlySalesTarget


@admin.register(ProductGroup)
class ProductGroupAdmin(admin.ModelAdmin):
    list_display = ['name', 'monthly_target', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'product_group', 'monthly_target', 'created_at']
    list_filter = ['product_group']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(MonthlySalesTarget)
class MonthlySalesTargetAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'year', 'month', 'target_quantity', 'achieved_quantity', 'target_amount', 'achieved_amount']
    list_filter = ['year', 'month']
    search_fields = ['product__name', 'user__email']
