from decimal import Decimal

from django.conf import settings
from django.db import models


class Customer(models.Model):
    """Business customer"""
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True, blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    relationship_manager = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='managed_customers'
    )
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='customers')
    team = models.ForeignKey('locations.Team', on_delete=models.SET_NULL, null=True, blank=True, related_name='customers')
    default_payment_term_days = models.PositiveIntegerField(default=30)
    opening_balance = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    return_policy_days = models.PositiveIntegerField(default=30)
    onboarding_date = models.DateField(null=True, blank=True)
    last_order_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'customers'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name'], name='customer_name_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.email == '':
            self.email = None
        super().save(*args, **kwargs)


class BankAccount(models.Model):
    """Company bank account printed on invoices and used for transfers"""
    account_name = models.CharField(max_length=255)
    account_number = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.bank_name} - {self.account_number}"

    class Meta:
        db_table = 'bank_accounts'
        ordering = ['-created_at']
