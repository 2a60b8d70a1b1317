from datetime import timedelta

import django_filters
from django.db.models import Q
from django.utils import timezone

from .models import Invoice, SalesReturn


def date_range_start(value, today=None):
    """First day covered by a named range (today, week, month, quarter)"""
    today = today or timezone.localdate()
    if value == 'today':
        return today
    if value == 'week':
        return today - timedelta(days=7)
    if value == 'month':
        return today.replace(day=1)
    if value == 'quarter':
        first_month = 3 * ((today.month - 1) // 3) + 1
        return today.replace(month=first_month, day=1)
    return None


class InvoiceFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter(field_name='status')
    approval_status = django_filters.CharFilter(field_name='approval_status')
    date_range = django_filters.CharFilter(method='filter_date_range')
    start_date = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='date', lookup_expr='lte')
    customer_name = django_filters.CharFilter(field_name='customer_name', lookup_expr='icontains')
    customer = django_filters.NumberFilter(field_name='customer_id')
    location = django_filters.NumberFilter(field_name='location_id')
    team = django_filters.NumberFilter(field_name='team_id')
    billed_by = django_filters.NumberFilter(field_name='billed_by_id')

    class Meta:
        model = Invoice
        fields = []

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(invoice_number__icontains=value) |
            Q(customer_name__icontains=value) |
            Q(customer__name__icontains=value) |
            Q(notes__icontains=value)
        )

    def filter_date_range(self, queryset, name, value):
        start = date_range_start(value)
        if start is None:
            return queryset
        return queryset.filter(date__gte=start)


class SalesReturnFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id')
    invoice = django_filters.NumberFilter(field_name='invoice_id')
    refund_status = django_filters.CharFilter(field_name='refund_status')
    start_date = django_filters.DateFilter(field_name='return_date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='return_date', lookup_expr='lte')

    class Meta:
        model = SalesReturn
        fields = []
