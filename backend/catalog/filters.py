import django_filters
from django.db.models import Q
from .models import Product, MonthlySalesTarget


class ProductFilter(django_filters.FilterSet):
    """Product list filters"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    group = django_filters.NumberFilter(field_name='product_group_id', lookup_expr='exact')
    group_name = django_filters.CharFilter(field_name='product_group__name', lookup_expr='iexact')

    class Meta:
        model = Product
        fields = ['search', 'group', 'group_name']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, description or group name"""
        words = value.split()
        for word in words:
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(description__icontains=word) |
                Q(product_group__name__icontains=word)
            )
        return queryset


class SalesTargetFilter(django_filters.FilterSet):
    year = django_filters.NumberFilter(field_name='year')
    month = django_filters.NumberFilter(field_name='month')
    product = django_filters.NumberFilter(field_name='product_id')
    group = django_filters.NumberFilter(field_name='product__product_group_id')

    class Meta:
        model = MonthlySalesTarget
        fields = ['year', 'month', 'product', 'group']
