"""
Payment allocation and credit handling.

Payments are applied oldest-due first across a customer's payable invoices;
whatever is left over becomes an overpayment credit that can later be
applied to a specific invoice.
"""
import logging
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from backend.core.exceptions import ValidationFailed, NotFound
from backend.core.notifications import send_notification
from backend.core.utils import to_decimal
from backend.parties.models import Customer
from backend.sales.models import Invoice
from .models import CustomerPayment, PaymentApplication, Credit, CreditApplication

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _settle(invoice, amount):
    """Reduce an invoice balance and move it to PAID or PARTIAL"""
    invoice.balance -= amount
    invoice.status = Invoice.STATUS_PAID if invoice.balance <= 0 else Invoice.STATUS_PARTIAL
    if invoice.balance < 0:
        invoice.balance = ZERO
    invoice.save(update_fields=['balance', 'status', 'updated_at'])


def _payment_datetime(value):
    if not value:
        return timezone.now()
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value)[:10])
            if day is None:
                raise ValidationFailed('Invalid payment date')
            parsed = datetime.combine(day, datetime.min.time())
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def process_payment(user, data):
    """
    Record a payment and allocate it. ``data`` carries ``customer_id``,
    ``amount``, ``payment_method`` and optionally ``payment_date``,
    ``reference_number``, ``notes``, ``bank_account_id`` and ``invoice_ids``.
    """
    customer_id = data.get('customer_id') or data.get('customer')
    amount = to_decimal(data.get('amount'))
    method = data.get('payment_method')
    if not customer_id or amount is None or not method:
        raise ValidationFailed('Customer, amount, and payment method are required')
    if amount <= 0:
        raise ValidationFailed('Amount must be greater than zero')
    if method not in dict(CustomerPayment.METHOD_CHOICES):
        raise ValidationFailed('Invalid payment method')
    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        raise NotFound('Customer not found')

    invoice_ids = data.get('invoice_ids')
    with transaction.atomic():
        payment = CustomerPayment.objects.create(
            customer=customer,
            amount=amount,
            payment_method=method,
            payment_date=_payment_datetime(data.get('payment_date')),
            reference_number=data.get('reference_number') or '',
            notes=data.get('notes') or '',
            recorded_by=user,
            status=CustomerPayment.STATUS_COMPLETED,
            bank_account_id=data.get('bank_account_id') or data.get('bank_account') or None,
        )

        invoices = Invoice.objects.select_for_update().filter(
            customer=customer, status__in=Invoice.PAYABLE_STATUSES, balance__gt=0
        )
        if invoice_ids:
            invoices = invoices.filter(pk__in=invoice_ids)

        remaining = amount
        allocated = ZERO
        invoices_updated = []
        for invoice in invoices.order_by('due_date', 'date', 'id'):
            if remaining <= 0:
                break
            applied = min(remaining, invoice.balance)
            PaymentApplication.objects.create(
                customer_payment=payment,
                invoice=invoice,
                amount_applied=applied,
                notes=f"Auto-allocation from payment {payment.id}",
            )
            _settle(invoice, applied)
            invoices_updated.append({
                'invoice_id': invoice.id,
                'invoice_number': invoice.invoice_number,
                'amount_applied': applied,
                'new_balance': invoice.balance,
                'new_status': invoice.status,
            })
            remaining -= applied
            allocated += applied

        credit = None
        if remaining > 0:
            credit = Credit.objects.create(
                customer=customer,
                amount=remaining,
                available_amount=remaining,
                source_payment=payment,
                reason=Credit.REASON_OVERPAYMENT,
                description=f"Credit from overpayment on payment {payment.id}",
                created_by=user,
                status=Credit.STATUS_ACTIVE,
            )

        payment.allocated_amount = allocated
        payment.credit_amount = remaining if credit else ZERO
        payment.save(update_fields=['allocated_amount', 'credit_amount', 'updated_at'])

    logger.info(
        f"Payment {payment.id} of {amount} from {customer.name}: allocated {allocated} "
        f"across {len(invoices_updated)} invoices, credit {payment.credit_amount}"
    )
    send_notification(
        user.id, 'success', 'Payment recorded',
        f"Payment of {amount} from {customer.name} applied to {len(invoices_updated)} invoice(s)",
        {'payment_id': payment.id, 'customer_id': customer.id},
    )
    return {
        'payment': payment,
        'total_paid': amount,
        'total_allocated': allocated,
        'total_credit': payment.credit_amount,
        'invoices_updated': invoices_updated,
        'credit_created': {'credit_id': credit.id, 'amount': credit.amount} if credit else None,
    }


def apply_credit(user, credit_id, invoice_id, amount):
    """Apply part of an active credit to one of the same customer's invoices"""
    amount = to_decimal(amount)
    if not credit_id or not invoice_id or amount is None:
        raise ValidationFailed('Credit ID, invoice ID, and amount are required')
    if amount <= 0:
        raise ValidationFailed('Amount must be greater than zero')

    with transaction.atomic():
        credit = Credit.objects.select_for_update().filter(pk=credit_id, status=Credit.STATUS_ACTIVE).first()
        if credit is None:
            raise ValidationFailed('Credit not found or not active')
        if credit.available_amount < amount:
            raise ValidationFailed('Insufficient credit amount available')
        invoice = Invoice.objects.select_for_update().filter(pk=invoice_id).first()
        if invoice is None:
            raise NotFound('Invoice not found')
        if invoice.customer_id != credit.customer_id:
            raise ValidationFailed('Invoice does not belong to this customer')
        if invoice.balance <= 0:
            raise ValidationFailed('Invoice is already fully paid')

        applied = min(invoice.balance, amount)
        CreditApplication.objects.create(
            credit=credit, invoice=invoice, amount_applied=applied, applied_by=user,
            notes=f"Credit application to invoice {invoice.invoice_number}",
        )
        credit.available_amount -= applied
        if credit.available_amount <= 0:
            credit.status = Credit.STATUS_APPLIED
        credit.save(update_fields=['available_amount', 'status', 'updated_at'])
        _settle(invoice, applied)

    return {
        'credit_id': credit.id,
        'invoice_id': invoice.id,
        'amount_applied': applied,
        'new_credit_available': credit.available_amount,
        'new_invoice_balance': invoice.balance,
        'new_invoice_status': invoice.status,
    }


def recalculate_balances():
    """
    Rebuild every non-cancelled invoice's balance and status from its payment
    and credit applications. Returns the number of invoices changed.
    """
    changed = 0
    today = timezone.localdate()
    with transaction.atomic():
        for invoice in Invoice.objects.select_for_update().exclude(status=Invoice.STATUS_CANCELLED):
            paid = invoice.payment_applications.aggregate(total=Sum('amount_applied'))['total'] or ZERO
            credited = invoice.credit_applications.aggregate(total=Sum('amount_applied'))['total'] or ZERO
            balance = max(invoice.total_amount - paid - credited, ZERO)
            if balance == 0:
                new_status = Invoice.STATUS_PAID
            elif paid + credited > 0:
                new_status = Invoice.STATUS_PARTIAL
            elif invoice.status == Invoice.STATUS_DRAFT:
                new_status = Invoice.STATUS_DRAFT
            else:
                new_status = Invoice.STATUS_OPEN
            if new_status in (Invoice.STATUS_OPEN, Invoice.STATUS_PARTIAL) and invoice.due_date \
                    and invoice.due_date < today:
                new_status = Invoice.STATUS_OVERDUE
            if balance != invoice.balance or new_status != invoice.status:
                invoice.balance = balance
                invoice.status = new_status
                invoice.save(update_fields=['balance', 'status', 'updated_at'])
                changed += 1
    logger.info(f"Recalculated invoice balances: {changed} changed")
    return changed
