from django.urls import path
from . import views

urlpatterns = [
    path('reports/dashboard/', views.dashboard, name='reports-dashboard'),
    path('reports/ar-aging/', views.ar_aging, name='reports-ar-aging'),
    path('reports/overdue-invoices/', views.overdue_invoices, name='reports-overdue-invoices'),
    path('reports/sales/', views.sales, name='reports-sales'),
    path('reports/teams/', views.teams, name='reports-teams'),
    path('reports/executive/', views.executive, name='reports-executive'),
    path('reports/customers/', views.customers, name='reports-customers'),
    path('reports/inventory/', views.inventory, name='reports-inventory'),
    path('reports/operations/', views.operations, name='reports-operations'),
    path('reports/export/', views.export, name='reports-export'),
    path('reports/query/', views.query, name='reports-query'),
]
