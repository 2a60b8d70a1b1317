from decimal import Decimal

from django.conf import settings
from django.db import models


class CustomerPayment(models.Model):
    """Money received from a customer, allocated across open invoices"""
    METHOD_CHOICES = [
        ('CASH', 'Cash'),
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('CHEQUE', 'Cheque'),
        ('CARD', 'Card'),
        ('MOBILE_MONEY', 'Mobile Money'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_FAILED = 'FAILED'
    STATUS_REVERSED = 'REVERSED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_REVERSED, 'Reversed'),
    ]

    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    payment_date = models.DateTimeField()
    reference_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='recorded_payments'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)
    allocated_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    credit_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    bank_account = models.ForeignKey(
        'parties.BankAccount', on_delete=models.SET_NULL, null=True, blank=True, related_name='payments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Payment {self.id} - {self.customer} {self.amount}"

    class Meta:
        db_table = 'customer_payments'
        ordering = ['-payment_date']
        indexes = [
            models.Index(fields=['payment_date'], name='payment_date_idx'),
            models.Index(fields=['status'], name='payment_status_idx'),
        ]


class PaymentApplication(models.Model):
    customer_payment = models.ForeignKey(CustomerPayment, on_delete=models.CASCADE, related_name='applications')
    invoice = models.ForeignKey('sales.Invoice', on_delete=models.PROTECT, related_name='payment_applications')
    amount_applied = models.DecimalField(max_digits=15, decimal_places=2)
    notes = models.CharField(max_length=255, blank=True)
    applied_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer_payment_id} -> {self.invoice_id}: {self.amount_applied}"

    class Meta:
        db_table = 'payment_applications'
        ordering = ['applied_at']


class Credit(models.Model):
    """Customer credit from overpayment, returns or manual adjustment"""
    REASON_OVERPAYMENT = 'OVERPAYMENT'
    REASON_RETURN = 'RETURN'
    REASON_ADJUSTMENT = 'ADJUSTMENT'
    REASON_CHOICES = [
        (REASON_OVERPAYMENT, 'Overpayment'),
        (REASON_RETURN, 'Return'),
        (REASON_ADJUSTMENT, 'Adjustment'),
    ]

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_APPLIED = 'APPLIED'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_APPLIED, 'Applied'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='credits')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    available_amount = models.DecimalField(max_digits=15, decimal_places=2)
    source_payment = models.ForeignKey(
        CustomerPayment, on_delete=models.SET_NULL, null=True, blank=True, related_name='credits'
    )
    source_return = models.ForeignKey(
        'sales.SalesReturn', on_delete=models.SET_NULL, null=True, blank=True, related_name='credits'
    )
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)
    description = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_credits'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Credit {self.id} - {self.customer} {self.available_amount}/{self.amount}"

    class Meta:
        db_table = 'credits'
        ordering = ['-created_at']


class CreditApplication(models.Model):
    credit = models.ForeignKey(Credit, on_delete=models.CASCADE, related_name='applications')
    invoice = models.ForeignKey('sales.Invoice', on_delete=models.PROTECT, related_name='credit_applications')
    amount_applied = models.DecimalField(max_digits=15, decimal_places=2)
    applied_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='credit_applications'
    )
    notes = models.CharField(max_length=255, blank=True)
    applied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'credit_applications'
        ordering = ['applied_at']


class QuickBooksExport(models.Model):
    EXPORT_TYPE_CHOICES = [
        ('INVOICES', 'Invoices'),
        ('PAYMENTS', 'Payments'),
    ]

    export_type = models.CharField(max_length=20, choices=EXPORT_TYPE_CHOICES)
    entity_ids = models.JSONField(default=list, blank=True)
    export_data = models.JSONField(default=dict)
    exported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='quickbooks_exports'
    )
    export_date = models.DateTimeField(auto_now_add=True)
    filename = models.CharField(max_length=255)
    status = models.CharField(max_length=20, default='COMPLETED')

    def __str__(self):
        return self.filename

    class Meta:
        db_table = 'quickbooks_exports'
        ordering = ['-export_date']
