from rest_framework import serializers
from .models import InventoryItem


class InventoryItemSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source='location.name', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_group_name = serializers.CharField(source='product.product_group.name', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'sku', 'name', 'description', 'unit', 'unit_price', 'current_quantity', 'min_stock',
            'location', 'location_name', 'product', 'product_name', 'product_group_name', 'is_low_stock',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']
        # (sku, location) uniqueness is checked in validate() with its own message
        validators = []

    def validate_current_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative")
        return value

    def validate(self, attrs):
        sku = attrs.get('sku', getattr(self.instance, 'sku', None))
        location = attrs.get('location', getattr(self.instance, 'location', None))
        if sku and location:
            queryset = InventoryItem.objects.filter(sku=sku, location=location)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError({'sku': 'An item with this SKU already exists at this location'})
        return attrs


class StockUpdateSerializer(serializers.Serializer):
    TYPE_CHOICES = ['add', 'subtract', 'set']

    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    type = serializers.CharField()
    reason = serializers.CharField(allow_blank=True, default='')

    def validate_type(self, value):
        if value not in self.TYPE_CHOICES:
            raise serializers.ValidationError("Type must be one of: add, subtract, set")
        return value
