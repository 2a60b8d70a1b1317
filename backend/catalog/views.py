from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.access import permission_required, user_has_permission
from backend.core.permissions import PERMISSIONS
from backend.core.utils import create_audit_log
from .filters import ProductFilter, SalesTargetFilter
from .models import ProductGroup, Product, MonthlySalesTarget
from .serializers import ProductGroupSerializer, ProductSerializer, MonthlySalesTargetSerializer
from .targets import refresh_achievement, percent

User = get_user_model()


# ProductGroup views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'products:view', 'POST': 'products:manage_groups'})])
def product_group_list_create(request):
    """List all product groups or create a new group"""
    if request.method == 'GET':
        groups = ProductGroup.objects.all()
        serializer = ProductGroupSerializer(groups, many=True)
        return Response(serializer.data)
    else:
        serializer = ProductGroupSerializer(data=request.data)
        if serializer.is_valid():
            group = serializer.save()
            create_audit_log(request=request, action='create', model_name='ProductGroup', object_id=group.id,
                             object_name=group.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'products:view', 'PUT': 'products:manage_groups', 'PATCH': 'products:manage_groups',
    'DELETE': 'products:manage_groups',
})])
def product_group_detail(request, pk):
    """Retrieve, update or delete a product group"""
    group = get_object_or_404(ProductGroup, pk=pk)

    if request.method == 'GET':
        serializer = ProductGroupSerializer(group)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductGroupSerializer(group, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_count = group.products.count()
        if product_count:
            return Response(
                {'error': f'Cannot delete product group. It has {product_count} products.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='ProductGroup', object_id=group.id,
                         object_name=group.name)
        group.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'products:view', 'POST': 'products:create'})])
def product_list_create(request):
    """List products (django-filter backed) or create a product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('product_group')
        filterset = ProductFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ProductSerializer(filterset.qs.order_by('name'), many=True)
        return Response(serializer.data)
    else:
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            create_audit_log(request=request, action='create', model_name='Product', object_id=product.id,
                             object_name=product.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'products:view', 'PUT': 'products:edit', 'PATCH': 'products:edit', 'DELETE': 'products:delete',
})])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('product_group'), pk=pk)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Product', object_id=product.id,
                             object_name=product.name, changes={'current': request.data})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if product.inventory_items.exists():
            return Response(
                {'error': 'Cannot delete product that has inventory items'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='Product', object_id=product.id,
                         object_name=product.name)
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Sales target views
def _target_owner(request):
    """Targets belong to the caller unless a users:view holder asks for someone else"""
    user_id = request.query_params.get('user')
    if not user_id and request.method == 'POST':
        user_id = request.data.get('user_id')
    if user_id and str(user_id) != str(request.user.id):
        if not user_has_permission(request.user, PERMISSIONS['USERS_VIEW']):
            return None
        return get_object_or_404(User, pk=user_id)
    return request.user


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def sales_target_list_create(request):
    """List targets (year/month/product/group filters) or set a target"""
    owner = _target_owner(request)
    if owner is None:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        queryset = MonthlySalesTarget.objects.filter(user=owner).select_related('product', 'product__product_group', 'user')
        filterset = SalesTargetFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = MonthlySalesTargetSerializer(filterset.qs, many=True)
        return Response(serializer.data)
    else:
        if not request.data.get('product') or not request.data.get('year') or not request.data.get('month'):
            return Response({'error': 'Product ID, year, and month are required'}, status=status.HTTP_400_BAD_REQUEST)
        serializer = MonthlySalesTargetSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        target, created = MonthlySalesTarget.objects.update_or_create(
            product=data['product'], user=owner, year=data['year'], month=data['month'],
            defaults={
                'target_quantity': data.get('target_quantity', 0),
                'target_amount': data.get('target_amount', 0),
            },
        )
        refresh_achievement(target)
        return Response(
            MonthlySalesTargetSerializer(target).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_target_performance(request):
    """Targets for one month with live achievement and totals"""
    owner = _target_owner(request)
    if owner is None:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    today = timezone.localdate()
    try:
        year = int(request.query_params.get('year', today.year))
        month = int(request.query_params.get('month', today.month))
    except ValueError:
        return Response({'error': 'Year and month must be numbers'}, status=status.HTTP_400_BAD_REQUEST)

    targets = [
        refresh_achievement(target)
        for target in MonthlySalesTarget.objects.filter(user=owner, year=year, month=month).select_related(
            'product', 'product__product_group', 'user'
        )
    ]
    rows = MonthlySalesTargetSerializer(targets, many=True).data
    for row, target in zip(rows, targets):
        row['quantity_achievement_percent'] = percent(target.achieved_quantity, target.target_quantity)
        row['amount_achievement_percent'] = percent(target.achieved_amount, target.target_amount)

    summary = {
        'total_target_quantity': sum(t.target_quantity for t in targets),
        'total_achieved_quantity': sum(t.achieved_quantity for t in targets),
        'total_target_amount': sum(t.target_amount for t in targets),
        'total_achieved_amount': sum(t.achieved_amount for t in targets),
        'products_count': len(targets),
        'year': year,
        'month': month,
    }
    summary['amount_achievement_percent'] = percent(summary['total_achieved_amount'], summary['total_target_amount'])
    return Response({'summary': summary, 'targets': rows})
