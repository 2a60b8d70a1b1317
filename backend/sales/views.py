import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from backend.core.access import permission_required
from backend.core.exceptions import CRMError
from backend.core.pdf import render_invoice_pdf
from backend.core.utils import create_audit_log, paginate
from .filters import InvoiceFilter, SalesReturnFilter
from .models import Invoice, SalesReturn
from .serializers import (
    InvoiceSerializer, InvoiceDetailSerializer, InvoiceUpdateSerializer, SalesReturnSerializer,
)
from .services import (
    create_invoice, approve_invoice, reject_invoice, cancel_invoice, delete_invoice,
    create_sales_return, process_sales_return,
)

logger = logging.getLogger(__name__)


def _invoice_queryset():
    return Invoice.objects.select_related(
        'customer', 'billed_by', 'approved_by', 'team', 'location', 'bank_account'
    )


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'invoices:view', 'POST': 'invoices:create'})])
def invoice_list_create(request):
    """List invoices (filters + pagination) or create an invoice"""
    if request.method == 'GET':
        filterset = InvoiceFilter(request.query_params, queryset=_invoice_queryset())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-date', '-created_at')
        return Response(paginate(request, queryset, InvoiceSerializer))
    else:
        try:
            invoice = create_invoice(request.user, request.data)
        except CRMError as e:
            return e.to_response()
        create_audit_log(
            request=request, action='invoice_create', model_name='Invoice', object_id=invoice.id,
            object_name=invoice.customer_name, object_reference=invoice.invoice_number,
            changes={
                'total_amount': invoice.total_amount,
                'items': invoice.items.count(),
                'customer_id': invoice.customer_id,
            }
        )
        invoice = _invoice_queryset().get(pk=invoice.pk)
        return Response(InvoiceDetailSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['invoices:view', 'invoices:approve'])])
def invoice_pending_approval(request):
    """Invoices awaiting an approval decision"""
    queryset = _invoice_queryset().filter(approval_status=Invoice.APPROVAL_PENDING).order_by('created_at')
    return Response(paginate(request, queryset, InvoiceSerializer))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'invoices:view', 'PATCH': 'invoices:edit', 'DELETE': 'invoices:delete',
})])
def invoice_detail(request, pk):
    """Retrieve, update or delete an invoice"""
    invoice = get_object_or_404(_invoice_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = InvoiceDetailSerializer(invoice)
        return Response(serializer.data)
    elif request.method == 'PATCH':
        if invoice.status == Invoice.STATUS_CANCELLED:
            return Response({'error': 'Cancelled invoices cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)
        previous = InvoiceSerializer(invoice).data
        serializer = InvoiceUpdateSerializer(invoice, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cancelling = serializer.validated_data.get('status') == Invoice.STATUS_CANCELLED
        if cancelling:
            serializer.validated_data.pop('status')
        try:
            with transaction.atomic():
                if serializer.validated_data:
                    serializer.save()
                if cancelling:
                    cancel_invoice(invoice)
        except CRMError as e:
            return e.to_response()
        action = 'invoice_cancel' if cancelling else 'invoice_update'

        invoice = _invoice_queryset().get(pk=invoice.pk)
        current = InvoiceSerializer(invoice).data
        create_audit_log(
            request=request, action=action, model_name='Invoice', object_id=invoice.id,
            object_name=invoice.customer_name, object_reference=invoice.invoice_number,
            changes={'previous': previous, 'current': current}
        )
        return Response(InvoiceDetailSerializer(invoice).data)
    else:  # DELETE
        number = invoice.invoice_number
        try:
            delete_invoice(invoice)
        except CRMError as e:
            return e.to_response()
        create_audit_log(
            request=request, action='delete', model_name='Invoice', object_id=pk,
            object_name=invoice.customer_name, object_reference=number
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('invoices:approve')])
def invoice_approve(request, pk):
    try:
        invoice = approve_invoice(pk, request.user, request=request)
    except CRMError as e:
        return e.to_response()
    invoice = _invoice_queryset().get(pk=invoice.pk)
    return Response({'message': 'Invoice approved successfully', 'invoice': InvoiceSerializer(invoice).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('invoices:approve')])
def invoice_reject(request, pk):
    try:
        invoice = reject_invoice(pk, request.user, request.data.get('reason'), request=request)
    except CRMError as e:
        return e.to_response()
    invoice = _invoice_queryset().get(pk=invoice.pk)
    return Response({'message': 'Invoice rejected', 'invoice': InvoiceSerializer(invoice).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['invoices:view', 'invoices:export'])])
def invoice_pdf(request, pk):
    """Printable invoice"""
    invoice = get_object_or_404(_invoice_queryset().select_related('customer'), pk=pk)
    pdf = render_invoice_pdf(invoice)
    response = HttpResponse(pdf, content_type='application/pdf')
    disposition = 'inline' if request.query_params.get('inline') else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{invoice.invoice_number}.pdf"'
    return response


# Sales return views
def _return_queryset():
    return SalesReturn.objects.select_related(
        'invoice', 'customer', 'created_by', 'processed_by'
    ).prefetch_related('items')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'returns:view', 'POST': 'returns:create'})])
def sales_return_list_create(request):
    """List sales returns or record a new one"""
    if request.method == 'GET':
        filterset = SalesReturnFilter(request.query_params, queryset=_return_queryset())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(paginate(request, filterset.qs.order_by('-return_date', '-created_at'), SalesReturnSerializer))
    else:
        try:
            sales_return = create_sales_return(request.user, request.data)
        except CRMError as e:
            return e.to_response()
        create_audit_log(
            request=request, action='return', model_name='SalesReturn', object_id=sales_return.id,
            object_name=sales_return.customer.name, object_reference=sales_return.return_number,
            changes={'invoice': sales_return.invoice.invoice_number, 'total_amount': sales_return.total_amount}
        )
        return Response(SalesReturnSerializer(_return_queryset().get(pk=sales_return.pk)).data,
                        status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('returns:view')])
def sales_return_detail(request, pk):
    sales_return = get_object_or_404(_return_queryset(), pk=pk)
    return Response(SalesReturnSerializer(sales_return).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('returns:approve')])
def sales_return_process(request, pk):
    """Restock and refund a sales return"""
    try:
        sales_return, credit = process_sales_return(pk, request.user)
    except CRMError as e:
        return e.to_response()
    create_audit_log(
        request=request, action='refund', model_name='SalesReturn', object_id=sales_return.id,
        object_name=sales_return.customer.name, object_reference=sales_return.return_number,
        changes={
            'restock_status': sales_return.restock_status,
            'refund_method': sales_return.refund_method,
            'credit_id': credit.id if credit else None,
        }
    )
    return Response({
        'message': 'Sales return processed successfully',
        'sales_return': SalesReturnSerializer(_return_queryset().get(pk=sales_return.pk)).data,
        'credit_id': credit.id if credit else None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('returns:view')])
def sales_returns_for_invoice(request, invoice_id):
    get_object_or_404(Invoice, pk=invoice_id)
    queryset = _return_queryset().filter(invoice_id=invoice_id).order_by('-created_at')
    return Response(SalesReturnSerializer(queryset, many=True).data)
