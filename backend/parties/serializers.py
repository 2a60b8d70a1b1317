from rest_framework import serializers
from .models import Customer, BankAccount


class CustomerSerializer(serializers.ModelSerializer):
    relationship_manager_name = serializers.CharField(source='relationship_manager.display_name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    team_name = serializers.CharField(source='team.name', read_only=True)
    invoice_count = serializers.IntegerField(source='invoices.count', read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'email', 'phone', 'address', 'company_name', 'contact_person',
            'relationship_manager', 'relationship_manager_name', 'location', 'location_name',
            'team', 'team_name', 'default_payment_term_days', 'opening_balance', 'return_policy_days',
            'onboarding_date', 'last_order_date', 'invoice_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['team', 'last_order_date', 'created_at', 'updated_at']
        extra_kwargs = {
            'name': {'error_messages': {'required': 'Customer name is required', 'blank': 'Customer name is required'}},
            'location': {'error_messages': {'required': 'Location is required', 'null': 'Location is required'}},
            'email': {'validators': []},
        }

    def validate_email(self, value):
        if not value:
            return None
        value = value.strip().lower()
        queryset = Customer.objects.filter(email__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Customer with this email already exists")
        return value


class BankAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = BankAccount
        fields = ['id', 'account_name', 'account_number', 'bank_name', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
