"""
Invoice and sales-return workflows. Stock moves and balance changes happen
inside the same transaction as the document they belong to.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date

from backend.core.exceptions import ValidationFailed, NotFound, AccessDenied
from backend.core.notifications import send_notification
from backend.core.utils import create_audit_log, to_decimal
from backend.inventory.models import InventoryItem
from backend.parties.models import Customer
from .models import Invoice, InvoiceItem, SalesReturn, SalesReturnItem

logger = logging.getLogger(__name__)


def generate_invoice_number(on_date=None):
    """INV-YYYYMMDD-NNN, sequential within the day"""
    on_date = on_date or timezone.localdate()
    prefix = f"INV-{on_date.strftime('%Y%m%d')}-"
    sequence = Invoice.objects.filter(invoice_number__startswith=prefix).count() + 1
    number = f"{prefix}{sequence:03d}"
    while Invoice.objects.filter(invoice_number=number).exists():
        sequence += 1
        number = f"{prefix}{sequence:03d}"
    return number


def generate_return_number(year=None):
    """RET-YYYY-NNNN, sequential within the year"""
    year = year or timezone.localdate().year
    prefix = f"RET-{year}-"
    last = SalesReturn.objects.filter(return_number__startswith=prefix).order_by('-return_number').first()
    sequence = int(last.return_number.rsplit('-', 1)[-1]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def _date_field(value, label):
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value)[:10])
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationFailed(f"Invalid {label}, expected YYYY-MM-DD")
    return parsed


def create_invoice(user, data):
    """
    Create an invoice and take its items out of stock.

    ``data`` carries ``customer_id``, ``items`` (``inventory_item_id``,
    ``quantity``, optional ``unit_price``) and optional tax/discount amounts,
    notes, due date, payment method and bank account.
    """
    customer_id = data.get('customer_id') or data.get('customer')
    items = data.get('items')
    if not customer_id:
        raise ValidationFailed('Customer ID is required')
    if not items or not isinstance(items, list):
        raise ValidationFailed('Invoice items are required')

    customer = Customer.objects.select_related('team').filter(pk=customer_id).first()
    if customer is None:
        raise NotFound('Customer not found')

    tax_amount = to_decimal(data.get('tax_amount'), Decimal('0.00'))
    discount_amount = to_decimal(data.get('discount_amount'), Decimal('0.00'))
    if tax_amount is None or discount_amount is None or tax_amount < 0 or discount_amount < 0:
        raise ValidationFailed('Tax and discount amounts must be non-negative numbers')

    invoice_date = _date_field(data.get('date'), 'date') or timezone.localdate()
    due_date = _date_field(data.get('due_date'), 'due date')
    if not due_date:
        due_date = invoice_date + timedelta(days=customer.default_payment_term_days)

    with transaction.atomic():
        lines = []
        # One locked row per item; repeated lines draw on the same stock
        locked = {}
        requested = {}
        for entry in items:
            item_id = entry.get('inventory_item_id') or entry.get('inventory_item')
            quantity = to_decimal(entry.get('quantity'))
            if quantity is None or quantity <= 0:
                raise ValidationFailed('Item quantity must be greater than zero')
            inventory_item = locked.get(str(item_id))
            if inventory_item is None:
                inventory_item = InventoryItem.objects.select_for_update().filter(pk=item_id).first()
                if inventory_item is None:
                    raise NotFound(f"Inventory item with ID {item_id} not found")
                locked[str(item_id)] = inventory_item
            requested[inventory_item.pk] = requested.get(inventory_item.pk, Decimal('0')) + quantity
            if inventory_item.current_quantity < requested[inventory_item.pk]:
                raise ValidationFailed(
                    f"Insufficient stock for {inventory_item.name}. "
                    f"Available: {inventory_item.current_quantity}, Requested: {requested[inventory_item.pk]}"
                )
            unit_price = to_decimal(entry.get('unit_price'), inventory_item.unit_price)
            if unit_price is None or unit_price < 0:
                raise ValidationFailed('Unit price must be a non-negative number')
            lines.append((inventory_item, quantity, unit_price, quantity * unit_price))

        subtotal = sum((line[3] for line in lines), Decimal('0.00'))
        total = subtotal + tax_amount - discount_amount

        invoice = Invoice.objects.create(
            invoice_number=generate_invoice_number(invoice_date),
            date=invoice_date,
            customer=customer,
            customer_name=customer.name,
            billed_by=user,
            team=customer.team,
            region=user.region,
            location=lines[0][0].location,
            total_amount=total,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            balance=total,
            due_date=due_date,
            notes=data.get('notes') or '',
            status=Invoice.STATUS_OPEN,
            payment_method=data.get('payment_method') or '',
            bank_account_id=data.get('bank_account_id') or data.get('bank_account') or None,
            approval_status=Invoice.APPROVAL_PENDING,
        )
        for inventory_item, quantity, unit_price, line_total in lines:
            InvoiceItem.objects.create(
                invoice=invoice, inventory_item=inventory_item, quantity=quantity,
                unit_price=unit_price, line_total=line_total,
            )
            inventory_item.current_quantity -= quantity
            inventory_item.save(update_fields=['current_quantity', 'updated_at'])

        customer.last_order_date = invoice_date
        customer.save(update_fields=['last_order_date', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} created by {user} for {customer.name}: {total}")
    send_notification(
        user.id, 'progress', 'Invoice created',
        f"Invoice {invoice.invoice_number} is awaiting approval",
        {'invoice_id': invoice.id, 'invoice_number': invoice.invoice_number, 'approval_status': invoice.approval_status},
    )
    return invoice


def _decide(invoice_id, user, approve, reason=''):
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().filter(pk=invoice_id).first()
        if invoice is None:
            raise NotFound('Invoice not found')
        if invoice.billed_by_id == user.id:
            raise AccessDenied('You cannot approve or reject your own invoice')
        if invoice.approval_status != Invoice.APPROVAL_PENDING:
            raise ValidationFailed('Only pending invoices can be approved or rejected')
        invoice.approval_status = Invoice.APPROVAL_APPROVED if approve else Invoice.APPROVAL_REJECTED
        invoice.approved_by = user
        invoice.approved_at = timezone.now()
        invoice.rejection_reason = '' if approve else reason
        invoice.save(update_fields=['approval_status', 'approved_by', 'approved_at', 'rejection_reason', 'updated_at'])
    return invoice


def approve_invoice(invoice_id, user, request=None):
    invoice = _decide(invoice_id, user, approve=True)
    create_audit_log(
        request=request, user=user, action='invoice_approve', model_name='Invoice', object_id=invoice.id,
        object_name=invoice.customer_name, object_reference=invoice.invoice_number,
        changes={'approval_status': invoice.approval_status}
    )
    send_notification(
        invoice.billed_by_id, 'success', 'Invoice approved',
        f"Invoice {invoice.invoice_number} was approved by {user.display_name}",
        {'invoice_id': invoice.id, 'invoice_number': invoice.invoice_number},
    )
    return invoice


def reject_invoice(invoice_id, user, reason, request=None):
    if not reason or not str(reason).strip():
        raise ValidationFailed('Rejection reason is required')
    invoice = _decide(invoice_id, user, approve=False, reason=str(reason).strip())
    create_audit_log(
        request=request, user=user, action='invoice_reject', model_name='Invoice', object_id=invoice.id,
        object_name=invoice.customer_name, object_reference=invoice.invoice_number,
        changes={'approval_status': invoice.approval_status, 'reason': invoice.rejection_reason}
    )
    send_notification(
        invoice.billed_by_id, 'warning', 'Invoice rejected',
        f"Invoice {invoice.invoice_number} was rejected: {invoice.rejection_reason}",
        {'invoice_id': invoice.id, 'invoice_number': invoice.invoice_number},
    )
    return invoice


def restore_invoice_stock(invoice):
    """Put every invoiced quantity back into inventory (caller holds the transaction)"""
    for item in invoice.items.all():
        inventory_item = InventoryItem.objects.select_for_update().get(pk=item.inventory_item_id)
        inventory_item.current_quantity += item.quantity
        inventory_item.save(update_fields=['current_quantity', 'updated_at'])


def cancel_invoice(invoice):
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if invoice.status == Invoice.STATUS_CANCELLED:
            raise ValidationFailed('Invoice is already cancelled')
        if invoice.payment_applications.exists() or invoice.credit_applications.exists():
            raise ValidationFailed('Cannot cancel an invoice that has payments applied')
        restore_invoice_stock(invoice)
        invoice.status = Invoice.STATUS_CANCELLED
        invoice.balance = Decimal('0.00')
        invoice.save(update_fields=['status', 'balance', 'updated_at'])
    return invoice


def delete_invoice(invoice):
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        paid = invoice.status != Invoice.STATUS_CANCELLED and invoice.balance < invoice.total_amount
        if paid or invoice.payment_applications.exists() or invoice.credit_applications.exists():
            raise ValidationFailed('Cannot delete an invoice that has payments applied')
        if invoice.returns.exists():
            raise ValidationFailed('Cannot delete an invoice that has sales returns')
        if invoice.status != Invoice.STATUS_CANCELLED:
            restore_invoice_stock(invoice)
        invoice.delete()


def mark_overdue_invoices():
    """Flag unpaid invoices past their due date; returns how many changed"""
    today = timezone.localdate()
    updated = Invoice.objects.filter(
        status__in=[Invoice.STATUS_OPEN, Invoice.STATUS_PARTIAL],
        due_date__lt=today,
        balance__gt=0,
    ).update(status=Invoice.STATUS_OVERDUE, updated_at=timezone.now())
    if updated:
        logger.info(f"Marked {updated} invoices as overdue")
    return updated


def returned_quantity(invoice_item):
    total = SalesReturnItem.objects.filter(invoice_item=invoice_item).aggregate(
        total=Sum('quantity_returned')
    )['total']
    return total or Decimal('0')


def create_sales_return(user, data):
    """
    Record goods coming back against an invoice. ``data`` carries
    ``invoice_id``, ``reason``, ``refund_method`` and ``items``
    (``invoice_item_id``, ``quantity_returned``, optional ``condition``).
    """
    invoice_id = data.get('invoice_id') or data.get('invoice')
    items = data.get('items')
    if not invoice_id:
        raise ValidationFailed('Invoice ID is required')
    if not data.get('reason'):
        raise ValidationFailed('Return reason is required')
    if not items or not isinstance(items, list):
        raise ValidationFailed('Return items are required')
    refund_method = data.get('refund_method') or SalesReturn.REFUND_CREDIT_NOTE
    if refund_method not in dict(SalesReturn.REFUND_METHOD_CHOICES):
        raise ValidationFailed('Invalid refund method')

    invoice = Invoice.objects.select_related('customer').filter(pk=invoice_id).first()
    if invoice is None:
        raise NotFound('Invoice not found')
    if invoice.status == Invoice.STATUS_CANCELLED:
        raise ValidationFailed('Cannot return items from a cancelled invoice')

    policy_days = invoice.customer.return_policy_days
    if policy_days is None:
        policy_days = 30
    if (timezone.localdate() - invoice.date).days > policy_days:
        raise ValidationFailed(f"Return period expired. This customer's return policy is {policy_days} days.")

    with transaction.atomic():
        lines = []
        for entry in items:
            invoice_item = invoice.items.select_related('inventory_item').filter(
                pk=entry.get('invoice_item_id') or entry.get('invoice_item')
            ).first()
            if invoice_item is None:
                raise ValidationFailed(f"Item {entry.get('product_name') or entry.get('invoice_item_id')} not found in invoice")
            quantity = to_decimal(entry.get('quantity_returned'))
            if quantity is None or quantity <= 0:
                raise ValidationFailed('Returned quantity must be greater than zero')
            if returned_quantity(invoice_item) + quantity > invoice_item.quantity:
                raise ValidationFailed(
                    f"Cannot return more than invoiced quantity for {invoice_item.inventory_item.name}"
                )
            condition = entry.get('condition') or SalesReturnItem.CONDITION_GOOD
            if condition not in dict(SalesReturnItem.CONDITION_CHOICES):
                raise ValidationFailed(f"Invalid condition: {condition}")
            lines.append((invoice_item, quantity, condition))

        sales_return = SalesReturn.objects.create(
            return_number=generate_return_number(),
            invoice=invoice,
            customer=invoice.customer,
            reason=data['reason'],
            notes=data.get('notes') or '',
            refund_method=refund_method,
            return_date=timezone.localdate(),
            created_by=user,
        )
        total = Decimal('0.00')
        for invoice_item, quantity, condition in lines:
            subtotal = quantity * invoice_item.unit_price
            total += subtotal
            SalesReturnItem.objects.create(
                sales_return=sales_return,
                invoice_item=invoice_item,
                inventory_item=invoice_item.inventory_item,
                product_name=invoice_item.inventory_item.name,
                sku=invoice_item.inventory_item.sku,
                quantity_returned=quantity,
                unit_price=invoice_item.unit_price,
                subtotal=subtotal,
                condition=condition,
            )
        sales_return.total_amount = total
        sales_return.save(update_fields=['total_amount'])

    logger.info(f"Sales return {sales_return.return_number} created by {user} against {invoice.invoice_number}")
    return sales_return


def process_sales_return(return_id, user):
    """Restock good items, complete the refund and issue a credit note when asked for"""
    from backend.payments.models import Credit

    with transaction.atomic():
        sales_return = SalesReturn.objects.select_for_update().filter(pk=return_id).first()
        if sales_return is None:
            raise NotFound('Sales return not found')
        if sales_return.refund_status == SalesReturn.REFUND_COMPLETED:
            raise ValidationFailed('Sales return already processed')

        restocked_any = False
        for item in sales_return.items.all():
            if item.condition != SalesReturnItem.CONDITION_GOOD:
                continue
            inventory_item = InventoryItem.objects.select_for_update().get(pk=item.inventory_item_id)
            inventory_item.current_quantity += item.quantity_returned
            inventory_item.save(update_fields=['current_quantity', 'updated_at'])
            item.restocked = True
            item.save(update_fields=['restocked'])
            restocked_any = True

        sales_return.refund_status = SalesReturn.REFUND_COMPLETED
        sales_return.restock_status = (
            SalesReturn.RESTOCK_RESTOCKED if restocked_any else SalesReturn.RESTOCK_NOT_RESTOCKED
        )
        sales_return.processed_at = timezone.now()
        sales_return.processed_by = user
        sales_return.save(update_fields=['refund_status', 'restock_status', 'processed_at', 'processed_by', 'updated_at'])

        credit = None
        if sales_return.refund_method == SalesReturn.REFUND_CREDIT_NOTE and sales_return.total_amount > 0:
            credit = Credit.objects.create(
                customer_id=sales_return.customer_id,
                amount=sales_return.total_amount,
                available_amount=sales_return.total_amount,
                source_return=sales_return,
                reason=Credit.REASON_RETURN,
                description=f"Credit note for return {sales_return.return_number}",
                created_by=user,
                status=Credit.STATUS_ACTIVE,
            )

    logger.info(f"Sales return {sales_return.return_number} processed by {user}")
    return sales_return, credit
