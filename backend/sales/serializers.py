from rest_framework import serializers
from .models import Invoice, InvoiceItem, SalesReturn, SalesReturnItem


class InvoiceItemSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source='inventory_item.sku', read_only=True)
    name = serializers.CharField(source='inventory_item.name', read_only=True)
    unit = serializers.CharField(source='inventory_item.unit', read_only=True)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'inventory_item', 'sku', 'name', 'unit', 'quantity', 'unit_price', 'line_total']


class InvoiceSerializer(serializers.ModelSerializer):
    """List representation"""
    customer_display = serializers.CharField(source='customer.name', read_only=True)
    billed_by_name = serializers.CharField(source='billed_by.display_name', read_only=True)
    approved_by_name = serializers.CharField(source='approved_by.display_name', read_only=True)
    team_name = serializers.CharField(source='team.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    subtotal = serializers.DecimalField(max_digits=15, decimal_places=2, read_only=True)
    paid_amount = serializers.DecimalField(max_digits=15, decimal_places=2, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'date', 'customer', 'customer_name', 'customer_display', 'billed_by',
            'billed_by_name', 'team', 'team_name', 'region', 'location', 'location_name', 'subtotal',
            'total_amount', 'tax_amount', 'discount_amount', 'balance', 'paid_amount', 'due_date', 'notes',
            'status', 'payment_method', 'bank_account', 'approval_status', 'approved_at', 'approved_by',
            'approved_by_name', 'rejection_reason', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceSerializer):
    items = InvoiceItemSerializer(many=True, read_only=True)
    payment_applications = serializers.SerializerMethodField()
    credit_applications = serializers.SerializerMethodField()

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['items', 'payment_applications', 'credit_applications']
        read_only_fields = fields

    def get_payment_applications(self, obj):
        return [
            {
                'id': application.id,
                'payment_id': application.customer_payment_id,
                'amount_applied': application.amount_applied,
                'payment_date': application.customer_payment.payment_date,
                'payment_method': application.customer_payment.payment_method,
                'reference_number': application.customer_payment.reference_number,
                'notes': application.notes,
            }
            for application in obj.payment_applications.select_related('customer_payment')
        ]

    def get_credit_applications(self, obj):
        return [
            {
                'id': application.id,
                'credit_id': application.credit_id,
                'amount_applied': application.amount_applied,
                'applied_at': application.applied_at,
            }
            for application in obj.credit_applications.all()
        ]


class InvoiceUpdateSerializer(serializers.ModelSerializer):
    """Fields that may change after an invoice is issued"""

    class Meta:
        model = Invoice
        fields = ['notes', 'due_date', 'status', 'payment_method', 'bank_account']
        extra_kwargs = {
            'bank_account': {'error_messages': {'does_not_exist': 'Bank account not found'}},
        }

    def validate_status(self, value):
        if value not in dict(Invoice.STATUS_CHOICES):
            raise serializers.ValidationError("Invalid status value")
        return value

    def validate_bank_account(self, value):
        if value is not None and not value.is_active:
            raise serializers.ValidationError("Bank account is inactive")
        return value


class SalesReturnItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SalesReturnItem
        fields = [
            'id', 'invoice_item', 'inventory_item', 'product_name', 'sku', 'quantity_returned', 'unit_price',
            'subtotal', 'condition', 'restocked'
        ]


class SalesReturnSerializer(serializers.ModelSerializer):
    items = SalesReturnItemSerializer(many=True, read_only=True)
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True)
    processed_by_name = serializers.CharField(source='processed_by.display_name', read_only=True)

    class Meta:
        model = SalesReturn
        fields = [
            'id', 'return_number', 'invoice', 'invoice_number', 'customer', 'customer_name', 'reason', 'notes',
            'total_amount', 'refund_method', 'refund_status', 'restock_status', 'return_date', 'created_by',
            'created_by_name', 'processed_at', 'processed_by', 'processed_by_name', 'items', 'created_at'
        ]
        read_only_fields = fields
