from django.urls import path
from .views import (
    customer_list_create, customer_detail, customer_balance_view, customer_ledger,
    bank_account_list_create, bank_account_detail,
)

urlpatterns = [
    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/balance/', customer_balance_view, name='customer-balance'),
    path('customers/<int:pk>/ledger/', customer_ledger, name='customer-ledger'),

    # Bank account endpoints
    path('bank-accounts/', bank_account_list_create, name='bank-account-list-create'),
    path('bank-accounts/<int:pk>/', bank_account_detail, name='bank-account-detail'),
]
