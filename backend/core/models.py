from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    """Named set of permission strings"""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'roles'
        ordering = ['name']


class User(AbstractUser):
    """Extended user model with role, team and location assignments"""
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.ForeignKey(Role, on_delete=models.PROTECT, null=True, blank=True, related_name='users')
    team = models.ForeignKey('locations.Team', on_delete=models.SET_NULL, null=True, blank=True, related_name='members')
    region = models.ForeignKey('locations.Region', on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    primary_location = models.ForeignKey(
        'locations.Location', on_delete=models.SET_NULL, null=True, blank=True, related_name='primary_users'
    )
    locations = models.ManyToManyField('locations.Location', blank=True, related_name='assigned_users', db_table='user_locations')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.full_name or self.username

    @property
    def display_name(self):
        return self.full_name or self.get_full_name() or self.username

    @property
    def permission_list(self):
        """Effective permission strings for this user"""
        if not self.is_active:
            return []
        if self.is_superuser:
            return ['*']
        if self.role_id is None:
            return []
        return list(self.role.permissions or [])

    def has_crm_permission(self, permission):
        from .permissions import has_permission
        return has_permission(self.permission_list, permission)


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class UserSetting(models.Model):
    """Per-user preferences; created with defaults on first read"""
    CHART_CHOICES = [
        ('bar', 'Bar'),
        ('line', 'Line'),
        ('pie', 'Pie'),
        ('area', 'Area'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='preferences')
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=False)
    default_dashboard_view = models.CharField(max_length=100, blank=True, null=True)
    preferred_chart_type = models.CharField(max_length=20, choices=CHART_CHOICES, blank=True, null=True)
    default_date_range = models.PositiveIntegerField(default=30)
    custom_settings = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Settings for {self.user}"

    class Meta:
        db_table = 'user_settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('login', 'Login'),
        ('stock_adjust', 'Stock Adjustment'),
        ('price_change', 'Price Change'),
        ('invoice_create', 'Invoice Created'),
        ('invoice_update', 'Invoice Updated'),
        ('invoice_cancel', 'Invoice Cancelled'),
        ('invoice_approve', 'Invoice Approved'),
        ('invoice_reject', 'Invoice Rejected'),
        ('payment_add', 'Payment Added'),
        ('credit_apply', 'Credit Applied'),
        ('return', 'Return'),
        ('refund', 'Refund'),
        ('waybill_process', 'Waybill Processed'),
        ('waybill_approve', 'Waybill Products Approved'),
        ('import', 'Import'),
        ('export', 'Export'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., customer name, invoice number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., invoice number, waybill number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_created_idx'),
            models.Index(fields=['action'], name='audit_action_idx'),
            models.Index(fields=['model_name'], name='audit_model_idx'),
            models.Index(fields=['object_reference'], name='audit_reference_idx'),
        ]
