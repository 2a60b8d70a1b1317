from rest_framework import serializers
from .models import Waybill, WaybillItem


class WaybillItemSerializer(serializers.ModelSerializer):
    inventory_item_name = serializers.CharField(source='inventory_item.name', read_only=True)

    class Meta:
        model = WaybillItem
        fields = [
            'id', 'sku', 'name', 'description', 'unit', 'quantity_received', 'unit_cost', 'batch_no',
            'expiry_date', 'inventory_item', 'inventory_item_name', 'status', 'processed_at'
        ]
        read_only_fields = ['inventory_item', 'status', 'processed_at']

    def validate_quantity_received(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity received must be greater than zero")
        return value


class WaybillSerializer(serializers.ModelSerializer):
    """Waybill with nested items; item payloads arrive in context['items_data']"""
    items = WaybillItemSerializer(many=True, read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    source_location_name = serializers.CharField(source='source_location.name', read_only=True)
    destination_customer_name = serializers.CharField(source='destination_customer.name', read_only=True)
    processed_by_name = serializers.CharField(source='processed_by.display_name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True)
    item_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = Waybill
        fields = [
            'id', 'waybill_number', 'date', 'supplier', 'location', 'location_name', 'source_location',
            'source_location_name', 'destination_customer', 'destination_customer_name', 'transfer_type',
            'received_by', 'notes', 'status', 'processed_at', 'processed_by', 'processed_by_name',
            'created_by', 'created_by_name', 'items', 'item_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['status', 'processed_at', 'processed_by', 'created_by', 'created_at', 'updated_at']
        extra_kwargs = {
            'waybill_number': {'validators': []},
            'location': {'error_messages': {'does_not_exist': 'Location not found'}},
        }

    def validate_waybill_number(self, value):
        queryset = Waybill.objects.filter(waybill_number=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Waybill number already exists")
        return value

    def validate(self, attrs):
        items_data = self.context.get('items_data')
        self._items = None
        if items_data is not None:
            item_serializer = WaybillItemSerializer(data=items_data, many=True)
            if not item_serializer.is_valid():
                raise serializers.ValidationError({'items': item_serializer.errors})
            self._items = item_serializer.validated_data
        return attrs

    def create(self, validated_data):
        items = self._items or []
        waybill = Waybill.objects.create(**validated_data)
        for item in items:
            WaybillItem.objects.create(waybill=waybill, **item)
        return waybill

    def update(self, instance, validated_data):
        items = self._items
        instance = super().update(instance, validated_data)
        if items is not None:
            # Items are replaced wholesale on edit
            instance.items.all().delete()
            for item in items:
                WaybillItem.objects.create(waybill=instance, **item)
        return instance


class ProductApprovalSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    product = serializers.IntegerField(required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    unit = serializers.CharField(required=False, allow_blank=True)
    min_stock = serializers.DecimalField(max_digits=12, decimal_places=2, default=10)
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
