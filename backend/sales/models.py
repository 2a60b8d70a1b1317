from decimal import Decimal

from django.conf import settings
from django.db import models


class Invoice(models.Model):
    """Customer invoice; stock leaves inventory when the invoice is created"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_OPEN = 'OPEN'
    STATUS_PARTIAL = 'PARTIAL'
    STATUS_PAID = 'PAID'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_OPEN, 'Open'),
        (STATUS_PARTIAL, 'Partially Paid'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_OVERDUE, 'Overdue'),
    ]
    # Statuses that can still receive payments
    PAYABLE_STATUSES = [STATUS_OPEN, STATUS_PARTIAL, STATUS_OVERDUE]

    APPROVAL_PENDING = 'PENDING'
    APPROVAL_APPROVED = 'APPROVED'
    APPROVAL_REJECTED = 'REJECTED'
    APPROVAL_CHOICES = [
        (APPROVAL_PENDING, 'Pending'),
        (APPROVAL_APPROVED, 'Approved'),
        (APPROVAL_REJECTED, 'Rejected'),
    ]

    invoice_number = models.CharField(max_length=50, unique=True)
    date = models.DateField()
    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='invoices')
    customer_name = models.CharField(max_length=255, blank=True)
    billed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='billed_invoices')
    team = models.ForeignKey('locations.Team', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    region = models.ForeignKey('locations.Region', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    location = models.ForeignKey(
        'locations.Location', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices'
    )
    total_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    balance = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    due_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    payment_method = models.CharField(max_length=50, blank=True)
    bank_account = models.ForeignKey(
        'parties.BankAccount', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices'
    )
    approval_status = models.CharField(max_length=20, choices=APPROVAL_CHOICES, default=APPROVAL_PENDING)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_invoices'
    )
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @property
    def subtotal(self):
        return self.total_amount - self.tax_amount + self.discount_amount

    @property
    def paid_amount(self):
        return self.total_amount - self.balance

    class Meta:
        db_table = 'invoices'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['date'], name='invoice_date_idx'),
            models.Index(fields=['status'], name='invoice_status_idx'),
            models.Index(fields=['approval_status'], name='invoice_approval_idx'),
            models.Index(fields=['due_date'], name='invoice_due_idx'),
        ]


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    inventory_item = models.ForeignKey('inventory.InventoryItem', on_delete=models.PROTECT, related_name='invoice_items')
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(max_digits=15, decimal_places=2)
    line_total = models.DecimalField(max_digits=15, decimal_places=2)

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.inventory_item.sku} x{self.quantity}"

    class Meta:
        db_table = 'invoice_items'
        ordering = ['id']


class SalesReturn(models.Model):
    """Goods returned against an invoice"""
    REFUND_CREDIT_NOTE = 'Credit Note'
    REFUND_BANK_TRANSFER = 'Bank Transfer'
    REFUND_METHOD_CHOICES = [
        (REFUND_CREDIT_NOTE, 'Credit Note'),
        (REFUND_BANK_TRANSFER, 'Bank Transfer'),
    ]

    REFUND_PENDING = 'Pending'
    REFUND_COMPLETED = 'Completed'
    REFUND_STATUS_CHOICES = [
        (REFUND_PENDING, 'Pending'),
        (REFUND_COMPLETED, 'Completed'),
    ]

    RESTOCK_PENDING = 'Pending'
    RESTOCK_RESTOCKED = 'Restocked'
    RESTOCK_NOT_RESTOCKED = 'Not Restocked'
    RESTOCK_STATUS_CHOICES = [
        (RESTOCK_PENDING, 'Pending'),
        (RESTOCK_RESTOCKED, 'Restocked'),
        (RESTOCK_NOT_RESTOCKED, 'Not Restocked'),
    ]

    return_number = models.CharField(max_length=50, unique=True)
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='returns')
    customer = models.ForeignKey('parties.Customer', on_delete=models.PROTECT, related_name='returns')
    reason = models.CharField(max_length=255)
    notes = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    refund_method = models.CharField(max_length=20, choices=REFUND_METHOD_CHOICES, default=REFUND_CREDIT_NOTE)
    refund_status = models.CharField(max_length=20, choices=REFUND_STATUS_CHOICES, default=REFUND_PENDING)
    restock_status = models.CharField(max_length=20, choices=RESTOCK_STATUS_CHOICES, default=RESTOCK_PENDING)
    return_date = models.DateField()
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_returns'
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='processed_returns'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.return_number

    class Meta:
        db_table = 'sales_returns'
        ordering = ['-return_date', '-created_at']


class SalesReturnItem(models.Model):
    CONDITION_GOOD = 'Good'
    CONDITION_CHOICES = [
        (CONDITION_GOOD, 'Good'),
        ('Damaged', 'Damaged'),
        ('Defective', 'Defective'),
    ]

    sales_return = models.ForeignKey(SalesReturn, on_delete=models.CASCADE, related_name='items')
    invoice_item = models.ForeignKey(InvoiceItem, on_delete=models.PROTECT, related_name='return_items')
    inventory_item = models.ForeignKey(
        'inventory.InventoryItem', on_delete=models.PROTECT, related_name='return_items'
    )
    product_name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100)
    quantity_returned = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(max_digits=15, decimal_places=2)
    subtotal = models.DecimalField(max_digits=15, decimal_places=2)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, default=CONDITION_GOOD)
    restocked = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.sales_return.return_number} - {self.sku} x{self.quantity_returned}"

    class Meta:
        db_table = 'sales_return_items'
        ordering = ['id']
