import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Sum, Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from backend.core.access import permission_required
from backend.core.exceptions import CRMError
from backend.core.utils import create_audit_log, paginate
from backend.parties.models import Customer
from backend.sales.models import Invoice
from backend.sales.serializers import InvoiceSerializer
from .financial import financial_dashboard, financial_report, quickbooks_export
from .models import CustomerPayment, Credit, QuickBooksExport
from .serializers import (
    CustomerPaymentSerializer, CustomerPaymentUpdateSerializer, CreditSerializer, QuickBooksExportSerializer,
)
from .services import process_payment, apply_credit, recalculate_balances

logger = logging.getLogger(__name__)

PAYABLE_FILTER = {'status__in': Invoice.PAYABLE_STATUSES, 'balance__gt': 0}


def _payment_queryset():
    return CustomerPayment.objects.select_related(
        'customer', 'recorded_by', 'bank_account'
    ).prefetch_related('applications', 'applications__invoice')


def _payment_result(result):
    data = dict(result)
    data['payment'] = CustomerPaymentSerializer(_payment_queryset().get(pk=result['payment'].pk)).data
    return data


# Payment views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'payments:view', 'POST': 'payments:create'})])
def payment_list_create(request):
    """List payments or record (and auto-allocate) a new payment"""
    if request.method == 'GET':
        queryset = _payment_queryset()

        start_date = request.query_params.get('start_date')
        if start_date:
            queryset = queryset.filter(payment_date__date__gte=start_date)
        end_date = request.query_params.get('end_date')
        if end_date:
            queryset = queryset.filter(payment_date__date__lte=end_date)
        method = request.query_params.get('payment_method')
        if method:
            queryset = queryset.filter(payment_method=method)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        customer_id = request.query_params.get('customer')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(reference_number__icontains=search) |
                Q(notes__icontains=search) |
                Q(customer__name__icontains=search) |
                Q(customer__company_name__icontains=search)
            )
        return Response(paginate(request, queryset.order_by('-payment_date'), CustomerPaymentSerializer))
    else:
        try:
            result = process_payment(request.user, request.data)
        except CRMError as e:
            return e.to_response()
        payment = result['payment']
        create_audit_log(
            request=request, action='payment_add', model_name='CustomerPayment', object_id=payment.id,
            object_name=payment.customer.name, object_reference=payment.reference_number or None,
            changes={
                'amount': payment.amount,
                'allocated_amount': payment.allocated_amount,
                'credit_amount': payment.credit_amount,
                'invoices': [row['invoice_number'] for row in result['invoices_updated']],
            }
        )
        return Response(_payment_result(result), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'payments:view', 'PATCH': 'payments:edit'})])
def payment_detail(request, pk):
    """Retrieve a payment or update its bookkeeping fields"""
    payment = get_object_or_404(_payment_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(CustomerPaymentSerializer(payment).data)
    else:
        previous = CustomerPaymentSerializer(payment).data
        serializer = CustomerPaymentUpdateSerializer(payment, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            payment = _payment_queryset().get(pk=pk)
            current = CustomerPaymentSerializer(payment).data
            create_audit_log(
                request=request, action='update', model_name='CustomerPayment', object_id=payment.id,
                object_name=payment.customer.name, changes={'previous': previous, 'current': current}
            )
            return Response(current)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('payments:view')])
def payment_summary(request):
    """Today's and this month's takings plus receivable and credit totals"""
    now = timezone.localtime()
    today = now.date()
    completed = CustomerPayment.objects.filter(status=CustomerPayment.STATUS_COMPLETED)
    today_totals = completed.filter(payment_date__date=today).aggregate(total=Sum('amount'), count=Count('id'))
    month_totals = completed.filter(
        payment_date__date__gte=today.replace(day=1)
    ).aggregate(total=Sum('amount'), count=Count('id'))
    outstanding = Invoice.objects.filter(**PAYABLE_FILTER).aggregate(total=Sum('balance'))['total'] or 0
    credit = Credit.objects.filter(status=Credit.STATUS_ACTIVE).aggregate(total=Sum('available_amount'))['total'] or 0
    return Response({
        'today': {'total': today_totals['total'] or 0, 'count': today_totals['count']},
        'this_month': {'total': month_totals['total'] or 0, 'count': month_totals['count']},
        'total_outstanding': outstanding,
        'total_available_credit': credit,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('payments:view')])
def payment_recent(request):
    try:
        limit = min(max(int(request.query_params.get('limit', 10)), 1), 100)
    except ValueError:
        limit = 10
    payments = _payment_queryset().order_by('-payment_date')[:limit]
    return Response(CustomerPaymentSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['payments:view', 'invoices:view'])])
def payment_outstanding(request):
    """Invoices that still carry a balance, oldest due first"""
    queryset = Invoice.objects.filter(**PAYABLE_FILTER).select_related('customer', 'billed_by')
    customer_id = request.query_params.get('customer')
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)
    return Response(paginate(request, queryset.order_by('due_date', 'date'), InvoiceSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_methods(request):
    return Response([{'value': value, 'label': label} for value, label in CustomerPayment.METHOD_CHOICES])


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('admin:fix_data')])
def payment_recalculate_balances(request):
    """Rebuild invoice balances from recorded applications"""
    changed = recalculate_balances()
    create_audit_log(
        request=request, action='update', model_name='Invoice', object_id='*',
        object_name='Balance recalculation', changes={'invoices_changed': changed}
    )
    return Response({'message': 'Balances recalculated', 'invoices_updated': changed})


# Customer-scoped views
@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('payments:view')])
def customer_payments(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    queryset = _payment_queryset().filter(customer=customer).order_by('-payment_date')
    return Response(paginate(request, queryset, CustomerPaymentSerializer, default_limit=20))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['credits:view', 'payments:view'])])
def customer_credits(request, pk):
    """Customer credits; active ones only unless ?all=true"""
    customer = get_object_or_404(Customer, pk=pk)
    credits = Credit.objects.filter(customer=customer).select_related('created_by', 'customer').prefetch_related(
        'applications', 'applications__invoice', 'applications__applied_by'
    )
    if request.query_params.get('all', '').lower() != 'true':
        credits = credits.filter(status=Credit.STATUS_ACTIVE, available_amount__gt=0)
    available = credits.filter(status=Credit.STATUS_ACTIVE).aggregate(total=Sum('available_amount'))['total'] or 0
    return Response({
        'credits': CreditSerializer(credits, many=True).data,
        'total_available_credit': available,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['payments:view', 'invoices:view'])])
def customer_open_invoices(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    invoices = Invoice.objects.filter(customer=customer, **PAYABLE_FILTER).select_related('customer', 'billed_by')
    return Response(InvoiceSerializer(invoices.order_by('due_date', 'date'), many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('credits:apply')])
def credit_apply(request):
    """Apply an active credit to an invoice"""
    try:
        result = apply_credit(
            request.user, request.data.get('credit_id'), request.data.get('invoice_id'), request.data.get('amount')
        )
    except CRMError as e:
        return e.to_response()
    create_audit_log(
        request=request, action='credit_apply', model_name='Credit', object_id=result['credit_id'],
        object_reference=str(result['invoice_id']), changes=result
    )
    return Response(result)


# Financial views
def _period(request):
    today = timezone.localdate()
    start = parse_date(request.query_params.get('start_date', '') or '') or today.replace(month=1, day=1)
    end = parse_date(request.query_params.get('end_date', '') or '') or today
    return start, end


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_financial')])
def financial_dashboard_view(request):
    return Response(financial_dashboard())


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('reports:view_financial')])
def financial_reports(request):
    """?type=income-statement | aged-receivables | tax-summary"""
    start, end = _period(request)
    try:
        data = financial_report(request.query_params.get('type'), start, end)
    except CRMError as e:
        return e.to_response()
    return Response({'type': request.query_params.get('type'), 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required(['payments:export', 'invoices:export'])])
def financial_quickbooks_export(request):
    start_date = parse_date(request.data.get('start_date') or '')
    end_date = parse_date(request.data.get('end_date') or '')
    try:
        record = quickbooks_export(
            request.user, request.data.get('export_type'), request.data.get('entity_ids'), start_date, end_date
        )
    except CRMError as e:
        return e.to_response()
    create_audit_log(
        request=request, action='export', model_name='QuickBooksExport', object_id=record.id,
        object_name=record.filename, changes={'export_type': record.export_type}
    )
    return Response({'export_id': record.id, 'filename': record.filename, 'export_data': record.export_data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['payments:export', 'invoices:export'])])
def financial_exports(request):
    queryset = QuickBooksExport.objects.select_related('exported_by').order_by('-export_date')
    return Response(paginate(request, queryset, QuickBooksExportSerializer, default_limit=20))
