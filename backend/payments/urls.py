from django.urls import path
from .views import (
    payment_list_create, payment_detail, payment_summary, payment_recent, payment_outstanding,
    payment_methods, payment_recalculate_balances,
    customer_payments, customer_credits, customer_open_invoices, credit_apply,
    financial_dashboard_view, financial_reports, financial_quickbooks_export, financial_exports,
)

urlpatterns = [
    # Payment endpoints
    path('payments/', payment_list_create, name='payment-list-create'),
    path('payments/summary/', payment_summary, name='payment-summary'),
    path('payments/recent/', payment_recent, name='payment-recent'),
    path('payments/outstanding/', payment_outstanding, name='payment-outstanding'),
    path('payments/methods/', payment_methods, name='payment-methods'),
    path('payments/recalculate-balances/', payment_recalculate_balances, name='payment-recalculate-balances'),
    path('payments/<int:pk>/', payment_detail, name='payment-detail'),

    # Customer-scoped endpoints
    path('customers/<int:pk>/payments/', customer_payments, name='customer-payments'),
    path('customers/<int:pk>/credits/', customer_credits, name='customer-credits'),
    path('customers/<int:pk>/open-invoices/', customer_open_invoices, name='customer-open-invoices'),
    path('credits/apply/', credit_apply, name='credit-apply'),

    # Financial endpoints
    path('financial/dashboard/', financial_dashboard_view, name='financial-dashboard'),
    path('financial/reports/', financial_reports, name='financial-reports'),
    path('financial/quickbooks-export/', financial_quickbooks_export, name='financial-quickbooks-export'),
    path('financial/exports/', financial_exports, name='financial-exports'),
]
