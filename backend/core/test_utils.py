"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.core.models import Role
from backend.locations.models import Region, Location, Team, TeamLocation
from backend.catalog.models import ProductGroup, Product
from backend.parties.models import Customer, BankAccount
from backend.inventory.models import InventoryItem
from backend.sales.models import Invoice, InvoiceItem
from backend.waybills.models import Waybill, WaybillItem
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_role(name=None, permissions=None):
        if not name:
            name = f'Role_{TestDataFactory.random_string(6)}'
        return Role.objects.create(name=name, permissions=permissions or [])

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', permissions=None, role=None,
                    is_superuser=False, full_name=None, **extra):
        """
        Create a test user. ``permissions`` builds a throwaway role holding
        exactly those permission strings; pass ``['*']`` for full access.
        """
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        if role is None and permissions is not None:
            role = TestDataFactory.create_role(permissions=permissions)
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name or username,
            role=role,
            is_superuser=is_superuser,
            **extra
        )

    @staticmethod
    def create_admin():
        return TestDataFactory.create_user(permissions=['*'])

    @staticmethod
    def create_region(name=None):
        if not name:
            name = f'Region_{TestDataFactory.random_string(6)}'
        return Region.objects.create(name=name)

    @staticmethod
    def create_location(name=None):
        if not name:
            name = f'Location_{TestDataFactory.random_string(6)}'
        return Location.objects.create(name=name, address=f'Test Address {name}')

    @staticmethod
    def create_team(name=None, region=None, locations=None, leader=None):
        if not name:
            name = f'Team_{TestDataFactory.random_string(6)}'
        if not region:
            region = TestDataFactory.create_region()
        team = Team.objects.create(name=name, region=region, leader=leader)
        for location in locations or []:
            TeamLocation.objects.create(team=team, location=location)
        return team

    @staticmethod
    def create_customer(name=None, location=None, team=None, relationship_manager=None, **extra):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not location:
            location = TestDataFactory.create_location()
        return Customer.objects.create(
            name=name,
            phone=f'080{random.randint(10000000, 99999999)}',
            location=location,
            team=team,
            relationship_manager=relationship_manager,
            **extra
        )

    @staticmethod
    def create_bank_account(bank_name='Test Bank'):
        return BankAccount.objects.create(
            account_name='Paper Products Ltd',
            account_number=str(random.randint(1000000000, 9999999999)),
            bank_name=bank_name,
        )

    @staticmethod
    def create_product_group(name=None):
        if not name:
            name = f'Group_{TestDataFactory.random_string(6)}'
        return ProductGroup.objects.create(name=name)

    @staticmethod
    def create_product(name=None, product_group=None):
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not product_group:
            product_group = TestDataFactory.create_product_group()
        return Product.objects.create(name=name, product_group=product_group)

    @staticmethod
    def create_inventory_item(location=None, sku=None, name=None, quantity=Decimal('100'),
                              unit_price=Decimal('50.00'), min_stock=Decimal('10'), product=None):
        if not location:
            location = TestDataFactory.create_location()
        if not sku:
            sku = f'SKU-{TestDataFactory.random_string(8).upper()}'
        return InventoryItem.objects.create(
            sku=sku,
            name=name or f'Item {sku}',
            unit='ream',
            unit_price=unit_price,
            current_quantity=quantity,
            min_stock=min_stock,
            location=location,
            product=product,
        )

    @staticmethod
    def create_invoice(user, customer=None, items=None, status=Invoice.STATUS_OPEN,
                       approval_status=Invoice.APPROVAL_APPROVED, date=None, due_date=None, balance=None):
        """
        Create an invoice directly (no stock movement). ``items`` is a list of
        ``(inventory_item, quantity, unit_price)``.
        """
        if not customer:
            customer = TestDataFactory.create_customer()
        if not date:
            date = timezone.localdate()
        if not items:
            items = [(TestDataFactory.create_inventory_item(), Decimal('2'), Decimal('50.00'))]
        total = sum((Decimal(q) * Decimal(p) for _, q, p in items), Decimal('0.00'))
        invoice = Invoice.objects.create(
            invoice_number=f'INV-TEST-{TestDataFactory.random_string(8).upper()}',
            date=date,
            due_date=due_date or date + timedelta(days=30),
            customer=customer,
            customer_name=customer.name,
            billed_by=user,
            team=customer.team,
            total_amount=total,
            balance=total if balance is None else balance,
            status=status,
            approval_status=approval_status,
        )
        for inventory_item, quantity, unit_price in items:
            InvoiceItem.objects.create(
                invoice=invoice,
                inventory_item=inventory_item,
                quantity=Decimal(quantity),
                unit_price=Decimal(unit_price),
                line_total=Decimal(quantity) * Decimal(unit_price),
            )
        return invoice

    @staticmethod
    def create_waybill(user, location=None, items=None, waybill_number=None):
        """``items`` is a list of dicts with sku, name, quantity_received, unit_cost"""
        if not location:
            location = TestDataFactory.create_location()
        waybill = Waybill.objects.create(
            waybill_number=waybill_number or f'WB-{TestDataFactory.random_string(8).upper()}',
            date=timezone.localdate(),
            supplier='Test Mill',
            location=location,
            created_by=user,
        )
        for item in items or []:
            WaybillItem.objects.create(waybill=waybill, unit='ream', **item)
        return waybill


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
