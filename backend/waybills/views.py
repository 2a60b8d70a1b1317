import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Prefetch
from django.shortcuts import get_object_or_404

from backend.core.access import permission_required, can_access_location, filter_by_locations
from backend.core.exceptions import CRMError
from backend.core.utils import create_audit_log, paginate
from .models import Waybill, WaybillItem
from .serializers import WaybillSerializer, ProductApprovalSerializer
from .services import process_waybill, approve_products

logger = logging.getLogger(__name__)


def _waybill_queryset(user):
    queryset = Waybill.objects.select_related(
        'location', 'source_location', 'destination_customer', 'processed_by', 'created_by'
    ).prefetch_related('items', 'items__inventory_item')
    return filter_by_locations(queryset, user)


def _split_items(request):
    data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
    items_data = data.pop('items', None)
    return data, items_data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'waybills:view', 'POST': 'waybills:create'})])
def waybill_list_create(request):
    """List waybills in accessible locations or create one with its items"""
    if request.method == 'GET':
        queryset = _waybill_queryset(request.user)

        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        location_id = request.query_params.get('location')
        if location_id:
            queryset = queryset.filter(location_id=location_id)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(waybill_number__icontains=search) |
                Q(supplier__icontains=search) |
                Q(received_by__icontains=search)
            )
        return Response(paginate(request, queryset.order_by('-date', '-created_at'), WaybillSerializer))
    else:
        data, items_data = _split_items(request)
        serializer = WaybillSerializer(data=data, context={'items_data': items_data or [], 'request': request})
        if serializer.is_valid():
            location = serializer.validated_data['location']
            if not can_access_location(request.user, location.id):
                return Response({'error': 'You do not have access to this location'}, status=status.HTTP_403_FORBIDDEN)
            with transaction.atomic():
                waybill = serializer.save(created_by=request.user)
            create_audit_log(
                request=request, action='create', model_name='Waybill', object_id=waybill.id,
                object_name=waybill.waybill_number, object_reference=waybill.waybill_number,
                changes={'items': len(items_data or [])}
            )
            return Response(WaybillSerializer(waybill).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('waybills:view')])
def waybill_review_list(request):
    """Waybills waiting for new-product approval, with only the unmatched lines"""
    queryset = filter_by_locations(
        Waybill.objects.filter(status=Waybill.STATUS_REVIEW).select_related('location', 'processed_by'),
        request.user
    ).prefetch_related(Prefetch(
        'items', queryset=WaybillItem.objects.filter(status=WaybillItem.STATUS_NEW_PRODUCT)
    )).order_by('-created_at')
    serializer = WaybillSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'waybills:view', 'PUT': 'waybills:edit', 'PATCH': 'waybills:edit', 'DELETE': 'waybills:delete',
})])
def waybill_detail(request, pk):
    """Retrieve, update (pending only) or delete (pending only) a waybill"""
    waybill = get_object_or_404(_waybill_queryset(request.user), pk=pk)

    if request.method == 'GET':
        serializer = WaybillSerializer(waybill)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        if waybill.status != Waybill.STATUS_PENDING:
            return Response({'error': 'Only pending waybills can be edited'}, status=status.HTTP_400_BAD_REQUEST)
        data, items_data = _split_items(request)
        serializer = WaybillSerializer(
            waybill, data=data, partial=request.method == 'PATCH',
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            location = serializer.validated_data.get('location')
            if location is not None and not can_access_location(request.user, location.id):
                return Response({'error': 'You do not have access to this location'}, status=status.HTTP_403_FORBIDDEN)
            with transaction.atomic():
                waybill = serializer.save()
            create_audit_log(
                request=request, action='update', model_name='Waybill', object_id=waybill.id,
                object_name=waybill.waybill_number, object_reference=waybill.waybill_number,
                changes={'current': request.data}
            )
            return Response(WaybillSerializer(waybill).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if waybill.status != Waybill.STATUS_PENDING:
            return Response({'error': 'Only pending waybills can be deleted'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request, action='delete', model_name='Waybill', object_id=waybill.id,
            object_name=waybill.waybill_number, object_reference=waybill.waybill_number
        )
        waybill.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required(['waybills:edit', 'waybills:approve'])])
def waybill_process(request, pk):
    """Merge the waybill's items into inventory"""
    waybill = get_object_or_404(filter_by_locations(Waybill.objects.all(), request.user), pk=pk)
    try:
        waybill = process_waybill(waybill.id, request.user, request=request)
    except CRMError as e:
        return e.to_response()

    create_audit_log(
        request=request, action='waybill_process', model_name='Waybill', object_id=waybill.id,
        object_name=waybill.waybill_number, object_reference=waybill.waybill_number,
        changes={'status': waybill.status}
    )
    waybill = _waybill_queryset(request.user).get(pk=waybill.pk)
    return Response({
        'message': 'Waybill processed successfully',
        'waybill': WaybillSerializer(waybill).data,
        'needs_review': waybill.status == Waybill.STATUS_REVIEW,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('waybills:approve')])
def waybill_approve_products(request, pk):
    """Create inventory items for approved new-product lines"""
    waybill = get_object_or_404(filter_by_locations(Waybill.objects.all(), request.user), pk=pk)
    approvals = request.data.get('approvals')
    if not isinstance(approvals, list) or not approvals:
        return Response({'error': 'Approvals list is required'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = ProductApprovalSerializer(data=approvals, many=True)
    if not serializer.is_valid():
        return Response({'approvals': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    try:
        waybill, results = approve_products(waybill.id, serializer.validated_data, request.user, request=request)
    except CRMError as e:
        return e.to_response()

    return Response({
        'message': 'Products approved successfully',
        'results': results,
        'waybill_status': waybill.status,
    })
