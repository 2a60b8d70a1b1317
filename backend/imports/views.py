import csv
import io
import json
import logging
import threading

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db import connection
from django.http import HttpResponse

from backend.core.access import permission_required
from backend.core.exceptions import CRMError
from backend.core.notifications import send_notification
from backend.core.utils import create_audit_log
from backend.inventory.models import InventoryItem
from backend.parties.models import Customer
from backend.sales.models import Invoice
from . import customers as customer_import
from . import invoices as invoice_import
from .google_sheets import credential_status, import_from_google_sheets, SCOPES

logger = logging.getLogger(__name__)


def _rows_from_request(request):
    """
    Rows from an uploaded ``file`` (CSV or JSON), a JSON ``rows`` list, or a
    bare JSON list body. Returns None when nothing usable was sent.
    """
    upload = request.FILES.get('file')
    if upload is not None:
        content = upload.read().decode('utf-8-sig')
        if upload.name.lower().endswith('.json'):
            data = json.loads(content)
            return data if isinstance(data, list) else data.get('rows')
        return list(csv.DictReader(io.StringIO(content)))

    if isinstance(request.data, list):
        return request.data
    rows = request.data.get('rows')
    return rows if isinstance(rows, list) else None


def _template_response(filename, columns, example):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns)
    writer.writerow(example)
    response = HttpResponse(buffer.getvalue(), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('invoices:import')])
def import_invoices_view(request):
    """Import invoices from JSON rows or an uploaded CSV/JSON file"""
    try:
        rows = _rows_from_request(request)
    except (ValueError, UnicodeDecodeError) as e:
        return Response({'error': f"Could not read file: {str(e)}"}, status=status.HTTP_400_BAD_REQUEST)
    if not rows:
        return Response({'error': 'No invoice rows provided'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        results = invoice_import.import_invoices(rows, notify_user_id=request.user.id)
    except CRMError as e:
        return e.to_response()

    create_audit_log(
        request=request, action='import', model_name='Invoice',
        changes={'total': results['total'], 'successful': results['successful'], 'failed': results['failed']}
    )
    return Response({
        'message': f"Import completed: {results['successful']} invoices imported successfully, {results['failed']} failed",
        'results': results,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('customers:import')])
def import_customers_view(request):
    """Import customers from JSON rows or an uploaded CSV/JSON file"""
    try:
        rows = _rows_from_request(request)
    except (ValueError, UnicodeDecodeError) as e:
        return Response({'error': f"Could not read file: {str(e)}"}, status=status.HTTP_400_BAD_REQUEST)
    if not rows:
        return Response({'error': 'No customer rows provided'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        results = customer_import.import_customers(rows, notify_user_id=request.user.id)
    except CRMError as e:
        return e.to_response()

    create_audit_log(
        request=request, action='import', model_name='Customer',
        changes={'imported': results['imported'], 'skipped': results['skipped']}
    )
    return Response(results)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('invoices:import')])
def invoice_template(request):
    return _template_response(
        'invoice_import_template.csv',
        invoice_import.TEMPLATE_COLUMNS,
        ['INV-1001', '1-Sep-25', 'Acme Stationers', 'A4 Copy Paper 80gsm', '10', '₦4,500.00', '₦45,000.00',
         '₦45,000.00', 'Open'],
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('customers:import')])
def customer_template(request):
    return _template_response(
        'customer_import_template.csv',
        customer_import.TEMPLATE_COLUMNS,
        ['Acme Stationers', 'Jane Doe', 'Lagos', '12 Marina Road', '5 Jun 2025', '1-Sep-25'],
    )


def _run_sheet_import(scope, user_id):
    try:
        import_from_google_sheets(scope, notify_user_id=user_id)
    except CRMError as e:
        logger.warning(f"Google Sheets import ({scope}) failed: {e.message}")
        send_notification(user_id, 'error', 'Google Sheets import failed', e.message)
    except Exception as e:
        logger.error(f"Google Sheets import ({scope}) crashed: {str(e)}", exc_info=True)
        send_notification(user_id, 'error', 'Google Sheets import failed', str(e))
    finally:
        # worker threads own their database connection
        connection.close()


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('admin:import_google_sheets')])
def import_google_sheets_view(request):
    """Start a Google Sheets import in the background; progress arrives as notifications"""
    scope = request.data.get('scope', 'all')
    if scope not in SCOPES:
        return Response({'error': f"Scope must be one of: {', '.join(SCOPES)}"}, status=status.HTTP_400_BAD_REQUEST)
    if not credential_status()['api_key_configured']:
        return Response({'error': 'Google Sheets API key is not configured'}, status=status.HTTP_400_BAD_REQUEST)

    thread = threading.Thread(target=_run_sheet_import, args=(scope, request.user.id), daemon=True)
    thread.start()

    create_audit_log(request=request, action='import', model_name='GoogleSheets', changes={'scope': scope})
    logger.info(f"Google Sheets import ({scope}) started by {request.user.username}")
    return Response(
        {'message': 'Import started. You will be notified when it completes.', 'scope': scope},
        status=status.HTTP_202_ACCEPTED
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['admin:import_google_sheets', 'invoices:import', 'customers:import'])])
def import_status(request):
    """Google Sheets credentials and current record counts"""
    User = get_user_model()
    return Response({
        'google_sheets': credential_status(),
        'counts': {
            'customers': Customer.objects.count(),
            'invoices': Invoice.objects.count(),
            'inventory_items': InventoryItem.objects.count(),
            'users': User.objects.count(),
        },
    })
