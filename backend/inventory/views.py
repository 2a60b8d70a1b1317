import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, F
from django.shortcuts import get_object_or_404

from backend.core.access import permission_required, can_access_location, filter_by_locations
from backend.core.exceptions import CRMError
from backend.core.utils import create_audit_log, paginate
from .models import InventoryItem
from .serializers import InventoryItemSerializer, StockUpdateSerializer
from .stock import adjust_stock

logger = logging.getLogger(__name__)


def _inventory_queryset(user):
    queryset = InventoryItem.objects.select_related('location', 'product', 'product__product_group')
    return filter_by_locations(queryset, user)


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'yes')


# InventoryItem views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'inventory:view', 'POST': 'inventory:create'})])
def inventory_list_create(request):
    """List inventory in the caller's locations, or create an item"""
    if request.method == 'GET':
        queryset = _inventory_queryset(request.user)

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(sku__icontains=search) |
                Q(description__icontains=search)
            )
        location_id = request.query_params.get('location')
        if location_id:
            queryset = queryset.filter(location_id=location_id)
        product_id = request.query_params.get('product')
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        if _truthy(request.query_params.get('in_stock', '')):
            queryset = queryset.filter(current_quantity__gt=0)
        if _truthy(request.query_params.get('low_stock', '')):
            queryset = queryset.filter(current_quantity__lte=F('min_stock'))

        return Response(paginate(request, queryset.order_by('name', 'sku'), InventoryItemSerializer))
    else:
        serializer = InventoryItemSerializer(data=request.data)
        if serializer.is_valid():
            location = serializer.validated_data['location']
            if not can_access_location(request.user, location.id):
                return Response({'error': 'You do not have access to this location'}, status=status.HTTP_403_FORBIDDEN)
            item = serializer.save()
            create_audit_log(
                request=request, action='create', model_name='InventoryItem', object_id=item.id,
                object_name=item.name, object_reference=item.sku, changes={'current': serializer.data}
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('inventory:view')])
def inventory_low_stock(request):
    """Items at or below their minimum stock"""
    queryset = _inventory_queryset(request.user).filter(current_quantity__lte=F('min_stock'))
    location_id = request.query_params.get('location')
    if location_id:
        queryset = queryset.filter(location_id=location_id)
    serializer = InventoryItemSerializer(queryset.order_by('current_quantity', 'name'), many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['inventory:view', 'invoices:create'])])
def inventory_for_invoicing(request):
    """In-stock items the caller can sell from"""
    queryset = _inventory_queryset(request.user).filter(current_quantity__gt=0)
    location_id = request.query_params.get('location')
    if location_id:
        queryset = queryset.filter(location_id=location_id)
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(Q(name__icontains=search) | Q(sku__icontains=search))
    serializer = InventoryItemSerializer(queryset.order_by('name'), many=True)
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'inventory:view', 'PUT': 'inventory:edit', 'PATCH': 'inventory:edit', 'DELETE': 'inventory:delete',
})])
def inventory_detail(request, pk):
    """Retrieve, update or delete an inventory item"""
    item = get_object_or_404(_inventory_queryset(request.user), pk=pk)

    if request.method == 'GET':
        serializer = InventoryItemSerializer(item)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        previous = InventoryItemSerializer(item).data
        serializer = InventoryItemSerializer(item, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            location = serializer.validated_data.get('location')
            if location is not None and not can_access_location(request.user, location.id):
                return Response({'error': 'You do not have access to this location'}, status=status.HTTP_403_FORBIDDEN)
            item = serializer.save()
            action = 'price_change' if previous['unit_price'] != serializer.data['unit_price'] else 'update'
            create_audit_log(
                request=request, action=action, model_name='InventoryItem', object_id=item.id,
                object_name=item.name, object_reference=item.sku,
                changes={'previous': previous, 'current': serializer.data}
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if item.invoice_items.exists() or item.waybill_items.exists():
            return Response(
                {'error': 'Cannot delete inventory item that is referenced by invoices or waybills'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(
            request=request, action='delete', model_name='InventoryItem', object_id=item.id,
            object_name=item.name, object_reference=item.sku
        )
        item.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_required(['inventory:adjust', 'inventory:edit'])])
def inventory_stock_update(request, pk):
    """Add to, subtract from or overwrite an item's stock level"""
    item = get_object_or_404(_inventory_queryset(request.user), pk=pk)
    serializer = StockUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        item, previous = adjust_stock(item.id, data['quantity'], data['type'])
    except CRMError as e:
        return e.to_response()

    create_audit_log(
        request=request, action='stock_adjust', model_name='InventoryItem', object_id=item.id,
        object_name=item.name, object_reference=item.sku,
        changes={
            'type': data['type'],
            'quantity': data['quantity'],
            'reason': data['reason'],
            'previous_quantity': previous,
            'new_quantity': item.current_quantity,
        }
    )
    return Response(InventoryItemSerializer(item).data)
