"""Accounting views over invoices and payments"""
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum, Count
from django.db.models.functions import TruncMonth
from django.utils import timezone

from backend.core.cache_utils import cached_query, DASHBOARD_CACHE_TTL
from backend.core.exceptions import ValidationFailed
from backend.sales.models import Invoice
from .models import CustomerPayment, QuickBooksExport

ZERO = Decimal('0.00')

AGE_BUCKETS = ['Current', '1-30 days', '31-60 days', '61-90 days', '90+ days']


def age_category(days_past_due):
    if days_past_due <= 0:
        return 'Current'
    if days_past_due <= 30:
        return '1-30 days'
    if days_past_due <= 60:
        return '31-60 days'
    if days_past_due <= 90:
        return '61-90 days'
    return '90+ days'


def _completed_payments():
    return CustomerPayment.objects.filter(status=CustomerPayment.STATUS_COMPLETED)


def _month_start(day, months_back):
    month = day.month - months_back
    year = day.year
    while month <= 0:
        month += 12
        year -= 1
    return day.replace(year=year, month=month, day=1)


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix="financial_dashboard")
def financial_dashboard():
    today = timezone.localdate()
    approved = Invoice.objects.filter(approval_status=Invoice.APPROVAL_APPROVED).exclude(
        status=Invoice.STATUS_CANCELLED
    )
    totals = approved.aggregate(total=Sum('total_amount'), outstanding=Sum('balance'))
    revenue = (totals['total'] or ZERO) - (totals['outstanding'] or ZERO)

    outstanding = Invoice.objects.filter(status__in=Invoice.PAYABLE_STATUSES, balance__gt=0).aggregate(
        amount=Sum('balance'), count=Count('id')
    )

    recent = _completed_payments().select_related('customer').order_by('-payment_date')[:10]
    recent_payments = [
        {
            'id': payment.id,
            'customer_name': payment.customer.name,
            'amount': payment.amount,
            'payment_method': payment.payment_method,
            'payment_date': payment.payment_date,
        }
        for payment in recent
    ]

    since = timezone.now() - timedelta(days=30)
    method_breakdown = list(
        _completed_payments().filter(payment_date__gte=since).values('payment_method').annotate(
            total=Sum('amount'), count=Count('id')
        ).order_by('-total')
    )

    tax_this_year = Invoice.objects.filter(date__year=today.year).exclude(
        status=Invoice.STATUS_CANCELLED
    ).aggregate(total=Sum('tax_amount'))['total'] or ZERO

    start = _month_start(today, 11)
    invoiced = {
        row['month'].strftime('%Y-%m'): row['total']
        for row in Invoice.objects.filter(date__gte=start).exclude(status=Invoice.STATUS_CANCELLED)
        .annotate(month=TruncMonth('date')).values('month').annotate(total=Sum('total_amount'))
    }
    paid = {
        row['month'].strftime('%Y-%m'): row['total']
        for row in _completed_payments().filter(payment_date__date__gte=start)
        .annotate(month=TruncMonth('payment_date')).values('month').annotate(total=Sum('amount'))
    }
    monthly = []
    for offset in range(11, -1, -1):
        key = _month_start(today, offset).strftime('%Y-%m')
        monthly.append({'month': key, 'invoiced': invoiced.get(key, ZERO), 'paid': paid.get(key, ZERO)})

    return {
        'revenue': revenue,
        'outstanding_amount': outstanding['amount'] or ZERO,
        'outstanding_count': outstanding['count'],
        'recent_payments': recent_payments,
        'payment_methods': method_breakdown,
        'tax_collected_this_year': tax_this_year,
        'monthly_trend': monthly,
    }


def income_statement(start, end):
    revenue = _completed_payments().filter(
        payment_date__date__gte=start, payment_date__date__lte=end
    ).aggregate(total=Sum('amount'))['total'] or ZERO
    tax = Invoice.objects.filter(
        date__gte=start, date__lte=end, status__in=[Invoice.STATUS_PAID, Invoice.STATUS_PARTIAL]
    ).aggregate(total=Sum('tax_amount'))['total'] or ZERO
    return {
        'period': {'start': start, 'end': end},
        'revenue': revenue,
        'tax_collected': tax,
        'net_revenue': revenue - tax,
    }


def aged_receivables():
    today = timezone.localdate()
    rows = []
    summary = {bucket: ZERO for bucket in AGE_BUCKETS}
    invoices = Invoice.objects.filter(status__in=Invoice.PAYABLE_STATUSES, balance__gt=0).select_related('customer')
    for invoice in invoices.order_by('due_date'):
        days = (today - invoice.due_date).days if invoice.due_date else 0
        category = age_category(days)
        summary[category] += invoice.balance
        rows.append({
            'invoice_id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'customer_name': invoice.customer.name,
            'total_amount': invoice.total_amount,
            'remaining_amount': invoice.balance,
            'due_date': invoice.due_date,
            'days_past_due': max(days, 0),
            'age_category': category,
        })
    return {'invoices': rows, 'summary': summary}


def tax_summary(start, end):
    rows = Invoice.objects.filter(date__gte=start, date__lte=end).exclude(
        status=Invoice.STATUS_CANCELLED
    ).annotate(month=TruncMonth('date')).values('month').annotate(
        tax=Sum('tax_amount'), sales=Sum('total_amount'), invoices=Count('id')
    ).order_by('month')
    monthly = [
        {'month': row['month'].strftime('%Y-%m'), 'tax': row['tax'], 'sales': row['sales'], 'invoices': row['invoices']}
        for row in rows
    ]
    return {
        'period': {'start': start, 'end': end},
        'total_tax': sum((row['tax'] for row in monthly), ZERO),
        'total_sales': sum((row['sales'] for row in monthly), ZERO),
        'monthly': monthly,
    }


def financial_report(report_type, start, end):
    if report_type == 'income-statement':
        return income_statement(start, end)
    if report_type == 'aged-receivables':
        return aged_receivables()
    if report_type == 'tax-summary':
        return tax_summary(start, end)
    raise ValidationFailed('Invalid report type')


def _iso(value):
    return value.isoformat() if value else None


def quickbooks_export(user, export_type, entity_ids=None, start_date=None, end_date=None):
    """Build QuickBooks-shaped JSON for invoices or payments and store a record of it"""
    today = timezone.localdate().isoformat()
    if export_type == 'INVOICES':
        invoices = Invoice.objects.select_related('customer').prefetch_related(
            'items__inventory_item', 'payment_applications__customer_payment'
        )
        if entity_ids:
            invoices = invoices.filter(pk__in=entity_ids)
        if start_date and end_date:
            invoices = invoices.filter(date__gte=start_date, date__lte=end_date)
        export_data = {'invoices': [
            {
                'InvoiceNumber': invoice.invoice_number,
                'Date': _iso(invoice.date),
                'CustomerName': invoice.customer.name,
                'CustomerEmail': invoice.customer.email,
                'DueDate': _iso(invoice.due_date),
                'Subtotal': float(invoice.total_amount - invoice.tax_amount),
                'TaxAmount': float(invoice.tax_amount),
                'Total': float(invoice.total_amount),
                'Status': invoice.status,
                'Items': [
                    {
                        'Description': item.inventory_item.name,
                        'Quantity': float(item.quantity),
                        'UnitPrice': float(item.unit_price),
                        'LineTotal': float(item.line_total),
                    }
                    for item in invoice.items.all()
                ],
                'Payments': [
                    {
                        'Date': _iso(application.customer_payment.payment_date.date()),
                        'Amount': float(application.amount_applied),
                        'Method': application.customer_payment.payment_method,
                        'Reference': application.customer_payment.reference_number,
                    }
                    for application in invoice.payment_applications.all()
                ],
            }
            for invoice in invoices
        ]}
        filename = f"invoices_export_{today}.json"
    elif export_type == 'PAYMENTS':
        payments = CustomerPayment.objects.select_related('customer').prefetch_related('applications__invoice')
        if entity_ids:
            payments = payments.filter(pk__in=entity_ids)
        if start_date and end_date:
            payments = payments.filter(payment_date__date__gte=start_date, payment_date__date__lte=end_date)
        export_data = {'payments': [
            {
                'PaymentDate': _iso(payment.payment_date.date()),
                'Amount': float(payment.amount),
                'PaymentMethod': payment.payment_method,
                'ReferenceNumber': payment.reference_number,
                'InvoiceNumbers': [a.invoice.invoice_number for a in payment.applications.all()],
                'CustomerName': payment.customer.name,
                'Status': payment.status,
            }
            for payment in payments
        ]}
        filename = f"payments_export_{today}.json"
    else:
        raise ValidationFailed('Invalid export type')

    record = QuickBooksExport.objects.create(
        export_type=export_type,
        entity_ids=list(entity_ids or []),
        export_data=export_data,
        exported_by=user,
        filename=filename,
        status='COMPLETED',
    )
    return record
