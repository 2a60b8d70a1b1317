"""
URL configuration for the CRM backend.

Every app contributes its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Paper CRM Admin Panel"
admin.site.site_title = "Paper CRM Admin Portal"
admin.site.index_title = "Welcome to the Paper CRM Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.locations.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.waybills.urls')),
    path('api/v1/', include('backend.sales.urls')),
    path('api/v1/', include('backend.payments.urls')),
    path('api/v1/', include('backend.reports.urls')),
    path('api/v1/', include('backend.imports.urls')),
]
