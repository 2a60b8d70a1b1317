from rest_framework import serializers
from .models import CustomerPayment, PaymentApplication, Credit, CreditApplication, QuickBooksExport


class PaymentApplicationSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    invoice_total = serializers.DecimalField(source='invoice.total_amount', max_digits=15, decimal_places=2, read_only=True)

    class Meta:
        model = PaymentApplication
        fields = ['id', 'invoice', 'invoice_number', 'invoice_total', 'amount_applied', 'notes', 'applied_at']


class CustomerPaymentSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    customer_company = serializers.CharField(source='customer.company_name', read_only=True)
    recorded_by_name = serializers.CharField(source='recorded_by.display_name', read_only=True)
    bank_account_name = serializers.CharField(source='bank_account.__str__', read_only=True)
    applications = PaymentApplicationSerializer(many=True, read_only=True)

    class Meta:
        model = CustomerPayment
        fields = [
            'id', 'customer', 'customer_name', 'customer_company', 'amount', 'payment_method', 'payment_date',
            'reference_number', 'notes', 'recorded_by', 'recorded_by_name', 'status', 'allocated_amount',
            'credit_amount', 'bank_account', 'bank_account_name', 'applications', 'created_at'
        ]
        read_only_fields = fields


class CustomerPaymentUpdateSerializer(serializers.ModelSerializer):
    """Bookkeeping fields only; amounts are fixed once allocated"""

    class Meta:
        model = CustomerPayment
        fields = ['reference_number', 'notes', 'status', 'bank_account']


class CreditApplicationSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    applied_by_name = serializers.CharField(source='applied_by.display_name', read_only=True)

    class Meta:
        model = CreditApplication
        fields = ['id', 'invoice', 'invoice_number', 'amount_applied', 'applied_by', 'applied_by_name', 'notes',
                  'applied_at']


class CreditSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True)
    applications = CreditApplicationSerializer(many=True, read_only=True)

    class Meta:
        model = Credit
        fields = [
            'id', 'customer', 'customer_name', 'amount', 'available_amount', 'source_payment', 'source_return',
            'reason', 'description', 'created_by', 'created_by_name', 'status', 'expiry_date', 'applications',
            'created_at'
        ]
        read_only_fields = fields


class QuickBooksExportSerializer(serializers.ModelSerializer):
    exported_by_name = serializers.CharField(source='exported_by.display_name', read_only=True)

    class Meta:
        model = QuickBooksExport
        fields = ['id', 'export_type', 'entity_ids', 'filename', 'status', 'exported_by', 'exported_by_name',
                  'export_date']
