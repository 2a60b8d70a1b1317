"""
Customer balances and statements.

A customer's position is computed at customer level rather than from
per-invoice balances: opening balance plus everything invoiced (cancelled
invoices excluded) minus every completed payment.
"""
from decimal import Decimal

from django.db.models import Sum

ZERO = Decimal('0.00')


def _invoices(customer):
    from backend.sales.models import Invoice
    return Invoice.objects.filter(customer=customer).exclude(status=Invoice.STATUS_CANCELLED)


def _payments(customer):
    from backend.payments.models import CustomerPayment
    return CustomerPayment.objects.filter(customer=customer, status=CustomerPayment.STATUS_COMPLETED)


def customer_balance(customer):
    """Summary of what a customer owes (``balance``) or holds in credit (``credit``)"""
    from backend.payments.models import Credit

    opening = customer.opening_balance or ZERO
    total_invoiced = _invoices(customer).aggregate(total=Sum('total_amount'))['total'] or ZERO
    total_paid = _payments(customer).aggregate(total=Sum('amount'))['total'] or ZERO
    actual = opening + total_invoiced - total_paid
    available_credit = Credit.objects.filter(
        customer=customer, status=Credit.STATUS_ACTIVE
    ).aggregate(total=Sum('available_amount'))['total'] or ZERO
    outstanding_invoices = _invoices(customer).filter(balance__gt=0).aggregate(total=Sum('balance'))['total'] or ZERO

    return {
        'opening_balance': opening,
        'total_invoiced': total_invoiced,
        'total_paid': total_paid,
        'actual_balance': actual,
        'balance': actual if actual > 0 else ZERO,
        'credit': -actual if actual < 0 else ZERO,
        'available_credit': available_credit,
        'outstanding_invoices': outstanding_invoices,
    }


def period_ledger(customer, start_date, end_date):
    """
    Statement for ``start_date``..``end_date`` (inclusive dates) with an
    opening balance carried from everything before the period and a running
    balance per transaction.
    """
    invoices = _invoices(customer)
    payments = _payments(customer)

    invoiced_before = invoices.filter(date__lt=start_date).aggregate(total=Sum('total_amount'))['total'] or ZERO
    paid_before = payments.filter(payment_date__date__lt=start_date).aggregate(total=Sum('amount'))['total'] or ZERO
    opening = (customer.opening_balance or ZERO) + invoiced_before - paid_before

    transactions = []
    for invoice in invoices.filter(date__gte=start_date, date__lte=end_date):
        transactions.append({
            'date': invoice.date,
            'type': 'INVOICE',
            'reference': invoice.invoice_number,
            'description': invoice.notes or f'Invoice {invoice.invoice_number}',
            'debit': invoice.total_amount,
            'credit': ZERO,
            'id': invoice.id,
        })
    for payment in payments.filter(payment_date__date__gte=start_date, payment_date__date__lte=end_date):
        transactions.append({
            'date': payment.payment_date.date(),
            'type': 'PAYMENT',
            'reference': payment.reference_number or '-',
            'description': f'Payment via {payment.get_payment_method_display()}',
            'debit': ZERO,
            'credit': payment.amount,
            'id': payment.id,
        })

    # Invoices sort ahead of payments made on the same day
    transactions.sort(key=lambda t: (t['date'], 0 if t['type'] == 'INVOICE' else 1, t['id']))

    running_balance = opening
    total_debits = ZERO
    total_credits = ZERO
    for transaction in transactions:
        running_balance += transaction['debit'] - transaction['credit']
        total_debits += transaction['debit']
        total_credits += transaction['credit']
        transaction['balance'] = running_balance

    return {
        'customer': {
            'id': customer.id,
            'name': customer.name,
            'email': customer.email,
            'phone': customer.phone,
            'address': customer.address,
        },
        'period': {'start_date': start_date, 'end_date': end_date},
        'opening_balance': opening,
        'transactions': transactions,
        'closing_balance': running_balance,
        'totals': {
            'total_invoices': total_debits,
            'total_payments': total_credits,
            'net_movement': total_debits - total_credits,
        },
    }
