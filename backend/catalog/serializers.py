from rest_framework import serializers
from .models import ProductGroup, Product, MonthlySalesTarget


class ProductGroupSerializer(serializers.ModelSerializer):
    product_count = serializers.IntegerField(source='products.count', read_only=True)

    class Meta:
        model = ProductGroup
        fields = ['id', 'name', 'description', 'monthly_target', 'product_count', 'created_at', 'updated_at']


class ProductSerializer(serializers.ModelSerializer):
    product_group_name = serializers.CharField(source='product_group.name', read_only=True)
    inventory_item_count = serializers.IntegerField(source='inventory_items.count', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'product_group', 'product_group_name', 'monthly_target',
            'inventory_item_count', 'created_at', 'updated_at'
        ]
        extra_kwargs = {
            'product_group': {'error_messages': {'required': 'Product group is required', 'null': 'Product group is required'}},
        }


class MonthlySalesTargetSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_group_name = serializers.CharField(source='product.product_group.name', read_only=True)
    user_name = serializers.CharField(source='user.display_name', read_only=True)

    class Meta:
        model = MonthlySalesTarget
        fields = [
            'id', 'product', 'product_name', 'product_group_name', 'user', 'user_name', 'year', 'month',
            'target_quantity', 'target_amount', 'achieved_quantity', 'achieved_amount', 'created_at', 'updated_at'
        ]
        read_only_fields = ['user', 'achieved_quantity', 'achieved_amount', 'created_at', 'updated_at']
        # Upserted in the view, so the (product, user, year, month) check does not apply
        validators = []

    def validate_month(self, value):
        if value < 1 or value > 12:
            raise serializers.ValidationError("Month must be between 1 and 12")
        return value
