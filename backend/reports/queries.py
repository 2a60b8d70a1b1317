"""
Report payload builders.

Each builder returns a JSON-ready dict and is cached for a short TTL; cache
keys are derived from the arguments, so callers pass plain values (dates,
ids) rather than request objects.
"""
import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Sum, Count, Avg, Q, F, Max, DecimalField, DurationField, ExpressionWrapper
from django.db.models.functions import TruncMonth
from django.utils import timezone

from backend.core.cache_utils import cached_query, DASHBOARD_CACHE_TTL, REPORTS_CACHE_TTL
from backend.inventory.models import InventoryItem
from backend.locations.models import Location, Team
from backend.parties.models import Customer
from backend.payments.models import PaymentApplication
from backend.sales.models import Invoice, InvoiceItem
from backend.waybills.models import Waybill

logger = logging.getLogger('backend.reports')

ZERO = Decimal('0.00')

SEGMENTS = [
    ('High', Decimal('100000')),
    ('Medium', Decimal('50000')),
    ('Regular', Decimal('10000')),
    ('Low', ZERO),
]


def _money(value):
    return float(value or ZERO)


def _billable():
    return Invoice.objects.exclude(status=Invoice.STATUS_CANCELLED)


def _months_ago(day, months):
    month = day.month - months
    year = day.year
    while month <= 0:
        month += 12
        year -= 1
    return day.replace(year=year, month=month, day=1)


def _growth(current, previous):
    if not previous:
        return 100.0 if current else 0.0
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


def _previous_period(start, end):
    """Equal-length window ending the day before ``start``"""
    length = (end - start).days + 1
    previous_end = start - timedelta(days=1)
    return previous_end - timedelta(days=length - 1), previous_end


def segment_for(revenue):
    for name, floor in SEGMENTS:
        if revenue >= floor:
            return name
    return 'Low'


def payment_speed(avg_days):
    if avg_days <= 7:
        return 'Fast'
    if avg_days <= 30:
        return 'Regular'
    return 'Slow'


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix="dashboard")
def dashboard_stats():
    User = get_user_model()
    today = timezone.localdate()
    month_start = today.replace(day=1)

    low_stock = InventoryItem.objects.filter(current_quantity__lte=F('min_stock'))
    low_stock_items = [
        {
            'id': item.id,
            'sku': item.sku,
            'name': item.name,
            'location': item.location.name,
            'current_quantity': float(item.current_quantity),
            'min_stock': float(item.min_stock),
        }
        for item in low_stock.select_related('location').order_by('current_quantity')[:5]
    ]

    month_sales = _billable().filter(date__gte=month_start, date__lte=today).aggregate(
        total=Sum('total_amount')
    )['total']

    return {
        'total_users': User.objects.count(),
        'active_users': User.objects.filter(is_active=True).count(),
        'total_inventory_items': InventoryItem.objects.count(),
        'low_stock_count': low_stock.count(),
        'total_invoices': Invoice.objects.count(),
        'pending_invoices': Invoice.objects.filter(status=Invoice.STATUS_OPEN).count(),
        'pending_approvals': Invoice.objects.filter(approval_status=Invoice.APPROVAL_PENDING).count(),
        'total_waybills': Waybill.objects.count(),
        'total_customers': Customer.objects.count(),
        'low_stock_items': low_stock_items,
        'month_sales': _money(month_sales),
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_sales")
def sales_report(start, end, user_id=None, team_id=None, region_id=None):
    invoices = _billable().filter(date__gte=start, date__lte=end)
    if user_id:
        invoices = invoices.filter(billed_by_id=user_id)
    if team_id:
        invoices = invoices.filter(team_id=team_id)
    if region_id:
        invoices = invoices.filter(region_id=region_id)

    summary = invoices.aggregate(count=Count('id'), total=Sum('total_amount'), average=Avg('total_amount'))

    by_status = [
        {'status': row['status'], 'count': row['count'], 'total': _money(row['total'])}
        for row in invoices.values('status').annotate(count=Count('id'), total=Sum('total_amount')).order_by('status')
    ]

    top_billers = [
        {
            'user_id': row['billed_by_id'],
            'name': row['billed_by__full_name'] or row['billed_by__username'],
            'invoice_count': row['count'],
            'total': _money(row['total']),
        }
        for row in invoices.values('billed_by_id', 'billed_by__full_name', 'billed_by__username').annotate(
            count=Count('id'), total=Sum('total_amount')
        ).order_by('-total')[:10]
    ]

    logger.debug(f"Sales report {start}..{end}: {summary['count']} invoices")
    return {
        'period': {'start_date': start.isoformat(), 'end_date': end.isoformat()},
        'summary': {
            'invoice_count': summary['count'],
            'total_sales': _money(summary['total']),
            'average_sale': _money(summary['average']),
        },
        'by_status': by_status,
        'top_billers': top_billers,
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_teams")
def teams_report(start, end):
    teams = []
    for team in Team.objects.select_related('region', 'leader').order_by('name'):
        members = team.members.all()
        invoices = _billable().filter(team=team, date__gte=start, date__lte=end)
        totals = invoices.aggregate(count=Count('id'), total=Sum('total_amount'))
        active_members = members.filter(is_active=True).count()
        total_sales = totals['total'] or ZERO
        teams.append({
            'id': team.id,
            'name': team.name,
            'region': team.region.name,
            'leader': team.leader.display_name if team.leader_id else None,
            'member_count': members.count(),
            'active_members': active_members,
            'invoice_count': totals['count'],
            'total_sales': _money(total_sales),
            'average_per_member': _money(total_sales / active_members) if active_members else 0.0,
        })
    teams.sort(key=lambda t: t['total_sales'], reverse=True)
    return {
        'period': {'start_date': start.isoformat(), 'end_date': end.isoformat()},
        'teams': teams,
    }


def _top_products(invoices, limit=10):
    rows = InvoiceItem.objects.filter(invoice__in=invoices).values(
        'inventory_item__sku', 'inventory_item__name'
    ).annotate(quantity=Sum('quantity'), revenue=Sum('line_total')).order_by('-revenue')[:limit]
    return [
        {
            'sku': row['inventory_item__sku'],
            'name': row['inventory_item__name'],
            'quantity': float(row['quantity'] or 0),
            'revenue': _money(row['revenue']),
        }
        for row in rows
    ]


def _monthly_revenue(since):
    rows = _billable().filter(date__gte=since).annotate(month=TruncMonth('date')).values('month').annotate(
        total=Sum('total_amount'), count=Count('id')
    ).order_by('month')
    return [
        {'month': row['month'].strftime('%Y-%m'), 'total': _money(row['total']), 'invoice_count': row['count']}
        for row in rows
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_executive")
def executive_report(start, end):
    today = timezone.localdate()
    previous_start, previous_end = _previous_period(start, end)

    current = _billable().filter(date__gte=start, date__lte=end)
    previous = _billable().filter(date__gte=previous_start, date__lte=previous_end)
    current_revenue = current.aggregate(total=Sum('total_amount'))['total'] or ZERO
    previous_revenue = previous.aggregate(total=Sum('total_amount'))['total'] or ZERO

    total_customers = Customer.objects.count()
    new_customers = Customer.objects.filter(created_at__date__gte=start, created_at__date__lte=end).count()
    active_customers = Customer.objects.filter(
        invoices__in=_billable().filter(date__gte=today - timedelta(days=90))
    ).distinct().count()
    retention = round(active_customers / total_customers * 100, 2) if total_customers else 0.0

    team_revenue = [
        {'team': row['team__name'] or 'Unassigned', 'total': _money(row['total']), 'invoice_count': row['count']}
        for row in current.values('team__name').annotate(total=Sum('total_amount'), count=Count('id')).order_by('-total')
    ]

    return {
        'period': {
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
            'previous_start_date': previous_start.isoformat(),
            'previous_end_date': previous_end.isoformat(),
        },
        'revenue': {
            'current': _money(current_revenue),
            'previous': _money(previous_revenue),
            'growth': _growth(current_revenue, previous_revenue),
            'invoice_count': current.count(),
        },
        'customers': {
            'total': total_customers,
            'new': new_customers,
            'active': active_customers,
            'retention_rate': retention,
        },
        'top_products': _top_products(current),
        'monthly_trend': _monthly_revenue(_months_ago(today, 11)),
        'team_revenue': team_revenue,
    }


def _payment_behaviour():
    """Average days from invoice date to payment application, per customer"""
    days_by_customer = defaultdict(list)
    applications = PaymentApplication.objects.select_related('invoice').values_list(
        'invoice__customer_id', 'invoice__date', 'applied_at'
    )
    for customer_id, invoice_date, applied_at in applications:
        days = (timezone.localtime(applied_at).date() - invoice_date).days
        days_by_customer[customer_id].append(max(days, 0))

    groups = {'Fast': 0, 'Regular': 0, 'Slow': 0}
    for days in days_by_customer.values():
        groups[payment_speed(sum(days) / len(days))] += 1
    return [{'category': name, 'customer_count': count} for name, count in groups.items()]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_customers")
def customers_report(start, end):
    today = timezone.localdate()
    previous_start, previous_end = _previous_period(start, end)
    cutoff = today - timedelta(days=90)

    total = Customer.objects.count()
    new_current = Customer.objects.filter(created_at__date__gte=start, created_at__date__lte=end).count()
    new_previous = Customer.objects.filter(
        created_at__date__gte=previous_start, created_at__date__lte=previous_end
    ).count()

    activity = Customer.objects.annotate(
        last_invoice=Max('invoices__date', filter=~Q(invoices__status=Invoice.STATUS_CANCELLED)),
        revenue=Sum('invoices__total_amount', filter=~Q(invoices__status=Invoice.STATUS_CANCELLED)),
        invoice_count=Count('invoices', filter=~Q(invoices__status=Invoice.STATUS_CANCELLED)),
    )
    active = activity.filter(last_invoice__gte=cutoff).count()
    at_risk = activity.filter(last_invoice__lt=cutoff).count()

    acquisition = [
        {'month': row['month'].strftime('%Y-%m'), 'count': row['count']}
        for row in Customer.objects.filter(created_at__date__gte=_months_ago(today, 11)).annotate(
            month=TruncMonth('created_at')
        ).values('month').annotate(count=Count('id')).order_by('month')
    ]

    top_customers = [
        {
            'id': customer.id,
            'name': customer.name,
            'revenue': _money(customer.revenue),
            'invoice_count': customer.invoice_count,
            'last_invoice_date': customer.last_invoice.isoformat() if customer.last_invoice else None,
        }
        for customer in activity.filter(revenue__gt=0).order_by('-revenue')[:20]
    ]

    segments = {name: {'segment': name, 'customer_count': 0, 'revenue': ZERO} for name, _ in SEGMENTS}
    for revenue in activity.values_list('revenue', flat=True):
        revenue = revenue or ZERO
        segment = segments[segment_for(revenue)]
        segment['customer_count'] += 1
        segment['revenue'] += revenue
    for segment in segments.values():
        segment['revenue'] = _money(segment['revenue'])

    by_location = [
        {'location': row['location__name'], 'count': row['count']}
        for row in Customer.objects.values('location__name').annotate(count=Count('id')).order_by('-count')
    ]

    return {
        'period': {'start_date': start.isoformat(), 'end_date': end.isoformat()},
        'summary': {
            'total_customers': total,
            'new_customers': new_current,
            'previous_new_customers': new_previous,
            'growth': _growth(new_current, new_previous),
            'active_customers': active,
            'retention_rate': round(active / total * 100, 2) if total else 0.0,
            'at_risk_customers': at_risk,
        },
        'acquisition': acquisition,
        'top_customers': top_customers,
        'segmentation': list(segments.values()),
        'by_location': by_location,
        'payment_behaviour': _payment_behaviour(),
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_inventory")
def inventory_report(location_ids=None):
    """``location_ids`` limits the report to those locations; None means all"""
    items = InventoryItem.objects.all()
    if location_ids is not None:
        items = items.filter(location_id__in=location_ids)

    value_expr = ExpressionWrapper(F('current_quantity') * F('unit_price'), output_field=DecimalField())
    totals = items.aggregate(count=Count('id'), quantity=Sum('current_quantity'), value=Sum(value_expr))
    low_stock = items.filter(current_quantity__lte=F('min_stock'))

    by_location = [
        {
            'location': row['location__name'],
            'item_count': row['count'],
            'quantity': float(row['quantity'] or 0),
            'value': _money(row['value']),
        }
        for row in items.values('location__name').annotate(
            count=Count('id'), quantity=Sum('current_quantity'), value=Sum(value_expr)
        ).order_by('location__name')
    ]

    top_items = [
        {'id': item.id, 'sku': item.sku, 'name': item.name, 'location': item.location.name,
         'current_quantity': float(item.current_quantity)}
        for item in items.select_related('location').order_by('-current_quantity')[:10]
    ]

    reorder = [
        {'id': item.id, 'sku': item.sku, 'name': item.name, 'location': item.location.name,
         'current_quantity': float(item.current_quantity), 'min_stock': float(item.min_stock),
         'shortfall': float(item.min_stock - item.current_quantity)}
        for item in low_stock.select_related('location').order_by('current_quantity')
    ]

    return {
        'summary': {
            'total_items': totals['count'],
            'total_quantity': float(totals['quantity'] or 0),
            'total_value': _money(totals['value']),
            'low_stock_count': len(reorder),
        },
        'by_location': by_location,
        'top_items': top_items,
        'reorder': reorder,
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_operations")
def operations_report(start, end):
    waybills = Waybill.objects.filter(date__gte=start, date__lte=end)
    waybills_by_status = [
        {'status': row['status'], 'count': row['count']}
        for row in waybills.values('status').annotate(count=Count('id')).order_by('status')
    ]

    processing = waybills.filter(processed_at__isnull=False).aggregate(
        avg=Avg(ExpressionWrapper(F('processed_at') - F('created_at'), output_field=DurationField()))
    )['avg']
    avg_hours = round(processing.total_seconds() / 3600, 2) if processing else 0.0

    inventory_by_location = [
        {
            'location': location.name,
            'item_count': location.item_count,
            'quantity': float(location.quantity or 0),
        }
        for location in Location.objects.annotate(
            item_count=Count('inventory_items'), quantity=Sum('inventory_items__current_quantity')
        ).order_by('name')
    ]

    invoices_by_status = [
        {'status': row['status'], 'count': row['count'], 'total': _money(row['total'])}
        for row in Invoice.objects.filter(date__gte=start, date__lte=end).values('status').annotate(
            count=Count('id'), total=Sum('total_amount')
        ).order_by('status')
    ]

    return {
        'period': {'start_date': start.isoformat(), 'end_date': end.isoformat()},
        'waybills_by_status': waybills_by_status,
        'average_processing_hours': avg_hours,
        'inventory_by_location': inventory_by_location,
        'invoices_by_status': invoices_by_status,
    }
