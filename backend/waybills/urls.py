from django.urls import path
from .views import (
    waybill_list_create, waybill_review_list, waybill_detail,
    waybill_process, waybill_approve_products,
)

urlpatterns = [
    path('waybills/', waybill_list_create, name='waybill-list-create'),
    path('waybills/review/', waybill_review_list, name='waybill-review-list'),
    path('waybills/<int:pk>/', waybill_detail, name='waybill-detail'),
    path('waybills/<int:pk>/process/', waybill_process, name='waybill-process'),
    path('waybills/<int:pk>/approve-products/', waybill_approve_products, name='waybill-approve-products'),
]
