from django.urls import path
from . import views

urlpatterns = [
    path('imports/invoices/', views.import_invoices_view, name='import-invoices'),
    path('imports/invoices/template/', views.invoice_template, name='import-invoices-template'),
    path('imports/customers/', views.import_customers_view, name='import-customers'),
    path('imports/customers/template/', views.customer_template, name='import-customers-template'),
    path('imports/google-sheets/', views.import_google_sheets_view, name='import-google-sheets'),
    path('imports/status/', views.import_status, name='import-status'),
]
