from django.urls import path
from .views import (
    product_group_list_create, product_group_detail,
    product_list_create, product_detail,
    sales_target_list_create, sales_target_performance,
)

urlpatterns = [
    path('product-groups/', product_group_list_create, name='product-group-list-create'),
    path('product-groups/<int:pk>/', product_group_detail, name='product-group-detail'),
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('sales-targets/', sales_target_list_create, name='sales-target-list-create'),
    path('sales-targets/performance/', sales_target_performance, name='sales-target-performance'),
]
