"""
Accounts-receivable aging.

Two modes:
    due          days past the due date (invoice date + net days when the
                 invoice has no due date)
    outstanding  days since the invoice date
Balances come from the stored invoice balance, which payments keep current.
"""
from datetime import timedelta
from decimal import Decimal

from backend.sales.models import Invoice

BUCKETS = ['current', 'd1_30', 'd31_60', 'd61_90', 'd90_plus']

MODE_DUE = 'due'
MODE_OUTSTANDING = 'outstanding'


def bucket_for(days, mode=MODE_DUE):
    if mode == MODE_OUTSTANDING:
        if days <= 30:
            return 'current'
        if days <= 60:
            return 'd1_30'
        if days <= 90:
            return 'd31_60'
        return 'd90_plus'

    if days <= 0:
        return 'current'
    if days <= 30:
        return 'd1_30'
    if days <= 60:
        return 'd31_60'
    if days <= 90:
        return 'd61_90'
    return 'd90_plus'


def age_in_days(invoice, as_of, mode=MODE_DUE, net_days=30):
    if mode == MODE_OUTSTANDING:
        return (as_of - invoice.date).days
    due = invoice.due_date or (invoice.date + timedelta(days=net_days))
    return max(0, (as_of - due).days)


def _empty_buckets():
    return {bucket: Decimal('0.00') for bucket in BUCKETS}


def build_aging(as_of, mode=MODE_DUE, net_days=30, team_id=None, region_id=None, customer_id=None):
    invoices = Invoice.objects.filter(
        status__in=Invoice.PAYABLE_STATUSES,
        balance__gt=0,
        date__lte=as_of,
    ).select_related('customer').order_by('date', 'id')
    if team_id:
        invoices = invoices.filter(team_id=team_id)
    if region_id:
        invoices = invoices.filter(region_id=region_id)
    if customer_id:
        invoices = invoices.filter(customer_id=customer_id)

    customers = {}
    totals = _empty_buckets()
    for invoice in invoices:
        days = age_in_days(invoice, as_of, mode, net_days)
        bucket = bucket_for(days, mode)

        row = customers.get(invoice.customer_id)
        if row is None:
            row = {
                'customer_id': invoice.customer_id,
                'customer_name': invoice.customer_name or invoice.customer.name,
                'buckets': _empty_buckets(),
                'total': Decimal('0.00'),
                'invoices': [],
            }
            customers[invoice.customer_id] = row

        row['buckets'][bucket] += invoice.balance
        row['total'] += invoice.balance
        totals[bucket] += invoice.balance
        row['invoices'].append({
            'id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'date': invoice.date.isoformat(),
            'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
            'total_amount': float(invoice.total_amount),
            'balance': float(invoice.balance),
            'days': days,
            'bucket': bucket,
        })

    rows = sorted(customers.values(), key=lambda r: r['total'], reverse=True)
    for row in rows:
        row['buckets'] = {k: float(v) for k, v in row['buckets'].items()}
        row['total'] = float(row['total'])

    grand_total = sum(totals.values(), Decimal('0.00'))
    return {
        'as_of': as_of.isoformat(),
        'mode': mode,
        'net_days': net_days,
        'customers': rows,
        'totals': {k: float(v) for k, v in totals.items()},
        'grand_total': float(grand_total),
        'customer_count': len(rows),
    }
