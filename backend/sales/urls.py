from django.urls import path
from .views import (
    invoice_list_create, invoice_pending_approval, invoice_detail,
    invoice_approve, invoice_reject, invoice_pdf,
    sales_return_list_create, sales_return_detail, sales_return_process, sales_returns_for_invoice,
)

urlpatterns = [
    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/pending-approval/', invoice_pending_approval, name='invoice-pending-approval'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/approve/', invoice_approve, name='invoice-approve'),
    path('invoices/<int:pk>/reject/', invoice_reject, name='invoice-reject'),
    path('invoices/<int:pk>/pdf/', invoice_pdf, name='invoice-pdf'),

    # Sales return endpoints
    path('sales-returns/', sales_return_list_create, name='sales-return-list-create'),
    path('sales-returns/<int:pk>/', sales_return_detail, name='sales-return-detail'),
    path('sales-returns/<int:pk>/process/', sales_return_process, name='sales-return-process'),
    path('sales-returns/invoice/<int:invoice_id>/', sales_returns_for_invoice, name='sales-returns-for-invoice'),
]
