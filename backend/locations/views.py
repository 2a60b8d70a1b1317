from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404

from backend.core.access import permission_required
from backend.core.utils import create_audit_log
from .models import Region, Location, Team
from .serializers import RegionSerializer, LocationSerializer, TeamSerializer, TeamMembershipSerializer

User = get_user_model()


# Location views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'locations:view', 'POST': 'locations:create'})])
def location_list_create(request):
    """List locations or create a new location"""
    if request.method == 'GET':
        locations = Location.objects.all()
        include_inactive = request.query_params.get('include_inactive', '').lower() in ('true', '1')
        if not include_inactive:
            locations = locations.filter(is_active=True)
        serializer = LocationSerializer(locations, many=True)
        return Response(serializer.data)
    else:
        serializer = LocationSerializer(data=request.data)
        if serializer.is_valid():
            location = serializer.save()
            create_audit_log(request=request, action='create', model_name='Location',
                             object_id=location.id, object_name=location.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'locations:view', 'PUT': 'locations:edit', 'PATCH': 'locations:edit', 'DELETE': 'locations:delete',
})])
def location_detail(request, pk):
    """Retrieve, update or delete a location"""
    location = get_object_or_404(Location, pk=pk)

    if request.method == 'GET':
        serializer = LocationSerializer(location)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = LocationSerializer(location, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Location',
                             object_id=location.id, object_name=location.name, changes={'current': request.data})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if location.inventory_items.exists() or location.customers.exists():
            return Response(
                {'error': 'Cannot delete location with inventory or customers. Deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='Location',
                         object_id=location.id, object_name=location.name)
        location.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Region views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'teams:view', 'POST': 'settings:manage_regions'})])
def region_list_create(request):
    """List all regions or create a new region"""
    if request.method == 'GET':
        regions = Region.objects.select_related('parent')
        serializer = RegionSerializer(regions, many=True)
        return Response(serializer.data)
    else:
        serializer = RegionSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'teams:view', 'PUT': 'settings:manage_regions', 'PATCH': 'settings:manage_regions',
    'DELETE': 'settings:manage_regions',
})])
def region_detail(request, pk):
    """Retrieve, update or delete a region"""
    region = get_object_or_404(Region, pk=pk)

    if request.method == 'GET':
        serializer = RegionSerializer(region)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = RegionSerializer(region, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            if serializer.validated_data.get('parent') == region:
                return Response({'error': 'A region cannot be its own parent'}, status=status.HTTP_400_BAD_REQUEST)
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            region.delete()
        except ProtectedError:
            return Response({'error': 'Cannot delete region. It still has teams.'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Team views
def _team_queryset():
    return Team.objects.select_related('region', 'leader').prefetch_related('locations', 'members')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'teams:view', 'POST': 'teams:create'})])
def team_list_create(request):
    """List teams with members and locations, or create a team"""
    if request.method == 'GET':
        teams = _team_queryset()
        region_id = request.query_params.get('region')
        if region_id:
            teams = teams.filter(region_id=region_id)
        serializer = TeamSerializer(teams, many=True)
        return Response(serializer.data)
    else:
        serializer = TeamSerializer(data=request.data)
        if serializer.is_valid():
            team = serializer.save()
            create_audit_log(request=request, action='create', model_name='Team', object_id=team.id,
                             object_name=team.name)
            return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'teams:view', 'PUT': 'teams:edit', 'PATCH': 'teams:edit', 'DELETE': 'teams:delete',
})])
def team_detail(request, pk):
    """Retrieve, update or delete a team"""
    team = get_object_or_404(_team_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = TeamSerializer(team)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = TeamSerializer(team, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            team = serializer.save()
            create_audit_log(request=request, action='update', model_name='Team', object_id=team.id,
                             object_name=team.name, changes={'current': request.data})
            return Response(TeamSerializer(team).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        member_count = team.members.count()
        if member_count:
            return Response(
                {'error': f'Cannot delete team. It has {member_count} members. Please reassign them first.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        customer_count = team.customers.count()
        if customer_count:
            return Response(
                {'error': f'Cannot delete team. It has {customer_count} customers. Please reassign them first.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        invoice_count = team.invoices.count()
        if invoice_count:
            return Response(
                {'error': f'Cannot delete team. It has {invoice_count} invoices.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='Team', object_id=team.id, object_name=team.name)
        team.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required('teams:assign_members')])
def team_members(request, pk):
    """Add (POST) or remove (DELETE) team members"""
    team = get_object_or_404(Team, pk=pk)
    serializer = TeamMembershipSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'User IDs array is required'}, status=status.HTTP_400_BAD_REQUEST)

    user_ids = set(serializer.validated_data['user_ids'])
    users = User.objects.filter(pk__in=user_ids)
    if users.count() != len(user_ids):
        return Response({'error': 'One or more user IDs are invalid'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'POST':
        updated = users.update(team=team)
        action_label = 'added'
    else:  # DELETE
        updated = users.filter(team=team).update(team=None)
        action_label = 'removed'

    create_audit_log(request=request, action='update', model_name='Team', object_id=team.id, object_name=team.name,
                     changes={f'members_{action_label}': sorted(user_ids)})
    team = _team_queryset().get(pk=team.pk)
    return Response({
        'message': f'{updated} members {action_label}',
        'team': TeamSerializer(team).data,
    })
