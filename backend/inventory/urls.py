from django.urls import path
from .views import (
    inventory_list_create, inventory_low_stock, inventory_for_invoicing,
    inventory_detail, inventory_stock_update,
)

urlpatterns = [
    path('inventory/', inventory_list_create, name='inventory-list-create'),
    path('inventory/low-stock/', inventory_low_stock, name='inventory-low-stock'),
    path('inventory/for-invoicing/', inventory_for_invoicing, name='inventory-for-invoicing'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),
    path('inventory/<int:pk>/stock/', inventory_stock_update, name='inventory-stock-update'),
]
