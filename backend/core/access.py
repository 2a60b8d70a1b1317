"""
Role-based permission checks and location scoping.

``permission_required`` builds DRF permission classes from permission
strings, either one string for every method or a mapping of HTTP method to
permission string::

    @permission_classes([IsAuthenticated, permission_required({
        'GET': 'customers:view',
        'POST': 'customers:create',
    })])
"""
from rest_framework.permissions import BasePermission

from .permissions import has_permission, has_any_permission, PERMISSIONS

ALL_LOCATIONS = 'ALL'


def permission_required(required):
    """Return a DRF permission class enforcing ``required``"""

    class _HasPermission(BasePermission):
        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            if isinstance(required, dict):
                needed = required.get(request.method)
                if needed is None and request.method in ('HEAD', 'OPTIONS'):
                    needed = required.get('GET')
                if needed is None:
                    return True
            else:
                needed = required
            perms = user.permission_list
            if isinstance(needed, (list, tuple)):
                return has_any_permission(perms, needed)
            return has_permission(perms, needed)

    _HasPermission.__name__ = f'HasPermission({required})'
    return _HasPermission


def user_has_permission(user, permission):
    if not user or not user.is_authenticated:
        return False
    return has_permission(user.permission_list, permission)


def get_accessible_location_ids(user):
    """
    Locations the user may see: 'ALL' for global inventory roles, otherwise
    the primary location plus any explicitly assigned ones.
    """
    perms = user.permission_list
    if (
        '*' in perms
        or has_permission(perms, PERMISSIONS['INVENTORY_MANAGE_ALL_LOCATIONS'])
        or has_permission(perms, PERMISSIONS['INVENTORY_VIEW_ALL_LOCATIONS'])
    ):
        return ALL_LOCATIONS

    ids = set(user.locations.values_list('id', flat=True))
    if user.primary_location_id:
        ids.add(user.primary_location_id)
    return sorted(ids)


def can_access_location(user, location_id):
    accessible = get_accessible_location_ids(user)
    if accessible == ALL_LOCATIONS:
        return True
    try:
        return int(location_id) in accessible
    except (TypeError, ValueError):
        return False


def filter_by_locations(queryset, user, field='location_id'):
    """Restrict a queryset to the user's accessible locations"""
    accessible = get_accessible_location_ids(user)
    if accessible == ALL_LOCATIONS:
        return queryset
    return queryset.filter(**{f'{field}__in': accessible})
