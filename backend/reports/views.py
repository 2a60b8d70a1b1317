import csv
import io
import logging
from datetime import datetime, timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse
from django.utils import timezone

from backend.core.access import permission_required, get_accessible_location_ids
from backend.core.cache_utils import cached_query, REPORTS_CACHE_TTL
from backend.core.exceptions import CRMError
from backend.core.pdf import render_table_pdf
from backend.core.utils import create_audit_log
from backend.inventory.models import InventoryItem
from backend.sales.models import Invoice
from backend.sales.services import mark_overdue_invoices
from .aging import build_aging, BUCKETS, MODE_DUE, MODE_OUTSTANDING
from .dynamic import run_query
from .queries import (
    dashboard_stats, sales_report, teams_report, executive_report,
    customers_report, inventory_report, operations_report,
)

logger = logging.getLogger('backend.reports')

EXPORT_TYPES = ['sales', 'inventory', 'executive', 'aging']
EXPORT_FORMATS = ['json', 'csv', 'pdf']


def _parse_day(value, default):
    if not value:
        return default
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return default


def _date_range(params, default_days=30):
    """start_date/end_date query values; defaults to the last ``default_days`` days"""
    today = timezone.localdate()
    end = _parse_day(params.get('end_date'), today)
    start = _parse_day(params.get('start_date'), end - timedelta(days=default_days))
    if start > end:
        start, end = end, start
    return start, end


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_dashboard')])
def dashboard(request):
    """Headline counts for the landing page"""
    return Response(dashboard_stats())


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="report_aging")
def _cached_aging(as_of, mode, net_days, team_id, region_id, customer_id):
    return build_aging(as_of, mode, net_days, team_id, region_id, customer_id)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_ar_aging')])
def ar_aging(request):
    """
    Accounts-receivable aging.

    ?as_of=YYYY-MM-DD  (default today)
    ?mode=due|outstanding
    ?net_days=30       terms assumed for invoices without a due date
    ?team= ?region= ?customer=
    """
    params = request.query_params
    mode = params.get('mode', MODE_DUE)
    if mode not in (MODE_DUE, MODE_OUTSTANDING):
        return Response({'error': 'Mode must be one of: due, outstanding'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        net_days = max(0, int(params.get('net_days', 30)))
    except (TypeError, ValueError):
        net_days = 30
    as_of = _parse_day(params.get('as_of'), timezone.localdate())

    data = _cached_aging(
        as_of, mode, net_days, params.get('team') or None, params.get('region') or None, params.get('customer') or None
    )
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_overdue')])
def overdue_invoices(request):
    """Unpaid invoices past their due date, most overdue first"""
    mark_overdue_invoices()
    today = timezone.localdate()
    invoices = Invoice.objects.filter(
        due_date__lt=today, balance__gt=0
    ).exclude(
        status__in=[Invoice.STATUS_PAID, Invoice.STATUS_CANCELLED]
    ).select_related('customer', 'billed_by', 'team').order_by('due_date')

    results = []
    total = 0
    for invoice in invoices:
        total += invoice.balance
        results.append({
            'id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'customer_id': invoice.customer_id,
            'customer_name': invoice.customer_name or invoice.customer.name,
            'date': invoice.date.isoformat(),
            'due_date': invoice.due_date.isoformat(),
            'total_amount': float(invoice.total_amount),
            'balance': float(invoice.balance),
            'days_overdue': (today - invoice.due_date).days,
            'status': invoice.status,
            'billed_by': invoice.billed_by.display_name,
            'team': invoice.team.name if invoice.team_id else None,
        })

    return Response({
        'count': len(results),
        'total_overdue': float(total),
        'invoices': results,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_sales')])
def sales(request):
    """?start_date&end_date&user&team&region"""
    start, end = _date_range(request.query_params)
    params = request.query_params
    return Response(sales_report(
        start, end, params.get('user') or None, params.get('team') or None, params.get('region') or None
    ))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_sales')])
def teams(request):
    start, end = _date_range(request.query_params)
    return Response(teams_report(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['reports:view_sales', 'reports:view_financial'])])
def executive(request):
    """Revenue against the previous period of equal length, customers and trends"""
    start, end = _date_range(request.query_params)
    return Response(executive_report(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_sales')])
def customers(request):
    start, end = _date_range(request.query_params)
    return Response(customers_report(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_inventory')])
def inventory(request):
    location_ids = get_accessible_location_ids(request.user)
    if location_ids != 'ALL':
        location_ids = sorted(location_ids)
    else:
        location_ids = None
    return Response(inventory_report(location_ids))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['reports:view_inventory', 'reports:view_sales'])])
def operations(request):
    start, end = _date_range(request.query_params)
    return Response(operations_report(start, end))


def _export_table(report_type, start, end, user):
    """(title, columns, rows, payload) for a report export"""
    if report_type == 'sales':
        invoices = Invoice.objects.filter(date__gte=start, date__lte=end).exclude(
            status=Invoice.STATUS_CANCELLED
        ).select_related('customer', 'billed_by').order_by('date', 'id')
        rows = [
            [i.invoice_number, i.date.isoformat(), i.customer_name or i.customer.name, i.status,
             i.billed_by.display_name, i.total_amount, i.balance]
            for i in invoices
        ]
        columns = ['Invoice', 'Date', 'Customer', 'Status', 'Billed by', 'Total', 'Balance']
        return 'Sales Report', columns, rows, sales_report(start, end)

    if report_type == 'inventory':
        location_ids = get_accessible_location_ids(user)
        items = InventoryItem.objects.select_related('location').order_by('location__name', 'sku')
        if location_ids != 'ALL':
            items = items.filter(location_id__in=location_ids)
        rows = [
            [item.sku, item.name, item.location.name, item.unit, item.current_quantity, item.min_stock, item.unit_price]
            for item in items
        ]
        columns = ['SKU', 'Name', 'Location', 'Unit', 'Quantity', 'Min stock', 'Unit price']
        payload = inventory_report(None if location_ids == 'ALL' else sorted(location_ids))
        return 'Inventory Report', columns, rows, payload

    if report_type == 'executive':
        payload = executive_report(start, end)
        rows = [[m['month'], m['invoice_count'], m['total']] for m in payload['monthly_trend']]
        return 'Executive Summary', ['Month', 'Invoices', 'Revenue'], rows, payload

    if report_type == 'aging':
        payload = build_aging(end)
        rows = [
            [c['customer_name']] + [c['buckets'][b] for b in BUCKETS] + [c['total']]
            for c in payload['customers']
        ]
        columns = ['Customer', 'Current', '1-30', '31-60', '61-90', '90+', 'Total']
        return 'Accounts Receivable Aging', columns, rows, payload

    raise CRMError("Invalid report type")


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('reports:export')])
def export(request):
    """
    Export a report as JSON, CSV or PDF.

    Body: {report_type: sales|inventory|executive|aging, format: json|csv|pdf,
           start_date, end_date}
    """
    report_type = request.data.get('report_type')
    export_format = request.data.get('format', 'json')
    if report_type not in EXPORT_TYPES:
        return Response({'error': 'Invalid report type'}, status=status.HTTP_400_BAD_REQUEST)
    if export_format not in EXPORT_FORMATS:
        return Response({'error': 'Invalid export format'}, status=status.HTTP_400_BAD_REQUEST)

    start, end = _date_range(request.data)
    title, columns, rows, payload = _export_table(report_type, start, end, request.user)
    filename = f"{report_type}_report_{timezone.localdate().isoformat()}"

    create_audit_log(
        request=request, action='export', model_name='Report', object_name=title,
        changes={'report_type': report_type, 'format': export_format, 'rows': len(rows)}
    )
    logger.info(f"Report export {report_type}/{export_format} by {request.user.username}: {len(rows)} rows")

    if export_format == 'csv':
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(columns)
        writer.writerows(rows)
        response = HttpResponse(buffer.getvalue(), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}.csv"'
        return response

    if export_format == 'pdf':
        subtitle = f"{start.isoformat()} to {end.isoformat()}"
        response = HttpResponse(render_table_pdf(title, columns, rows, subtitle=subtitle), content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="{filename}.pdf"'
        return response

    return Response({
        'report_type': report_type,
        'format': export_format,
        'filename': f"{filename}.json",
        'data': payload,
        'generated_at': timezone.now().isoformat(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required(['reports:view_sales', 'reports:view_financial'])])
def query(request):
    """Grouped aggregates over an allow-listed model"""
    try:
        data = run_query(request.data)
    except CRMError as e:
        return e.to_response()
    logger.info(f"Dynamic report on {data['model']} by {request.user.username}")
    return Response(data)
