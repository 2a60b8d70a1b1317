import copy
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db.models import ProtectedError, Q
from django.http import JsonResponse, StreamingHttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_GET

from .access import permission_required, user_has_permission, get_accessible_location_ids, filter_by_locations
from .models import Role, Setting, UserSetting, AuditLog
from .notifications import broadcaster, send_notification
from .permissions import get_permissions_by_resource, get_permission_label, PERMISSIONS
from .serializers import (
    UserSerializer, UserCreateSerializer, RoleSerializer, PasswordChangeSerializer,
    SettingSerializer, UserSettingSerializer, StructuredSettingsSerializer, AuditLogSerializer
)
from .utils import create_audit_log, paginate

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    default_error_messages = {
        'no_active_account': 'Invalid credentials',
    }

    def __init__(self, *args, **kwargs):
        data = kwargs.get('data')
        # Accept {"email": ..., "password": ...} as well as the username form
        if data is not None and 'email' in data and self.username_field not in data:
            data = dict(data.items())
            data[self.username_field] = data['email']
            kwargs['data'] = data
        super().__init__(*args, **kwargs)

    def validate(self, attrs):
        username = attrs.get(self.username_field)
        candidate = User.objects.filter(
            Q(username__iexact=username) | Q(email__iexact=username)
        ).first()
        if candidate is not None:
            if not candidate.is_active and candidate.check_password(attrs.get('password', '')):
                raise AuthenticationFailed('Account is deactivated')
            attrs[self.username_field] = candidate.username
        data = super().validate(attrs)
        create_audit_log(
            request=self.context.get('request'),
            action='login',
            model_name='User',
            object_id=self.user.id,
            user=self.user,
            object_name=self.user.display_name,
        )
        data['user'] = UserSerializer(self.user).data
        data['user']['permissions'] = self.user.permission_list
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['email'] = user.email
        token['role'] = user.role.name if user.role_id else None
        token['permissions'] = user.permission_list
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


def _profile(user):
    user_data = UserSerializer(user).data
    user_data['role'] = {
        'id': user.role.id,
        'name': user.role.name,
    } if user.role_id else None
    user_data['permissions'] = user.permission_list
    user_data['accessible_locations'] = get_accessible_location_ids(user)
    return user_data


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with role, permissions and accessible locations"""
    return Response(_profile(request.user))


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'users:view', 'POST': 'users:create'})])
def user_list_create(request):
    """List users or create a new user"""
    if request.method == 'GET':
        queryset = User.objects.select_related('role', 'team', 'region', 'primary_location').order_by('full_name', 'username')

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search) | Q(email__icontains=search) | Q(username__icontains=search)
            )
        role_id = request.query_params.get('role')
        if role_id:
            queryset = queryset.filter(role_id=role_id)
        team_id = request.query_params.get('team')
        if team_id:
            queryset = queryset.filter(team_id=team_id)
        is_active = request.query_params.get('is_active')
        if is_active is not None and is_active != '':
            queryset = queryset.filter(is_active=is_active.lower() in ('true', '1'))

        return Response(paginate(request, queryset, UserSerializer))
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(
                request=request, action='create', model_name='User', object_id=user.id,
                object_name=user.display_name, changes={'current': {'email': user.email, 'role': user.role_id}}
            )
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'users:view', 'PUT': 'users:edit', 'PATCH': 'users:edit', 'DELETE': 'users:delete',
})])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        previous = UserSerializer(user).data
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request, action='update', model_name='User', object_id=user.id,
                object_name=user.display_name, changes={'previous': previous, 'current': serializer.data}
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        name = user.display_name
        try:
            user.delete()
        except ProtectedError:
            return Response(
                {'error': 'User has related records and cannot be deleted. Deactivate the account instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='User', object_id=pk, object_name=name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def user_change_password(request, pk):
    """Change a password; users changing their own must supply the current one"""
    user = get_object_or_404(User, pk=pk)
    is_self = user.pk == request.user.pk
    if not is_self and not user_has_permission(request.user, PERMISSIONS['USERS_EDIT']):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PasswordChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    if is_self and not user.check_password(serializer.validated_data.get('current_password') or ''):
        return Response({'error': 'Current password is incorrect'}, status=status.HTTP_400_BAD_REQUEST)

    user.set_password(serializer.validated_data['new_password'])
    user.save(update_fields=['password', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='User', object_id=user.id,
                     object_name=user.display_name, changes={'field': 'password'})
    return Response({'message': 'Password updated successfully'})


def _set_active(request, pk, active):
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk and not active:
        return Response({'error': 'You cannot deactivate your own account'}, status=status.HTTP_400_BAD_REQUEST)
    previous = user.is_active
    user.is_active = active
    user.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='User', object_id=user.id,
                     object_name=user.display_name,
                     changes={'previous': {'is_active': previous}, 'current': {'is_active': active}})
    return Response(UserSerializer(user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('users:activate')])
def user_activate(request, pk):
    return _set_active(request, pk, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_required('users:deactivate')])
def user_deactivate(request, pk):
    return _set_active(request, pk, False)


# Role views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'roles:view', 'POST': 'roles:create'})])
def role_list_create(request):
    """List all roles or create a new role"""
    if request.method == 'GET':
        roles = Role.objects.all()
        serializer = RoleSerializer(roles, many=True)
        return Response(serializer.data)
    else:
        serializer = RoleSerializer(data=request.data)
        if serializer.is_valid():
            role = serializer.save()
            create_audit_log(request=request, action='create', model_name='Role', object_id=role.id,
                             object_name=role.name, changes={'current': {'permissions': role.permissions}})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'roles:view', 'PUT': 'roles:edit', 'PATCH': 'roles:edit', 'DELETE': 'roles:delete',
})])
def role_detail(request, pk):
    """Retrieve, update or delete a role"""
    role = get_object_or_404(Role, pk=pk)

    if request.method == 'GET':
        return Response(RoleSerializer(role).data)
    elif request.method in ('PUT', 'PATCH'):
        previous = list(role.permissions)
        serializer = RoleSerializer(role, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Role', object_id=role.id,
                             object_name=role.name,
                             changes={'previous': {'permissions': previous}, 'current': {'permissions': role.permissions}})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        user_count = role.users.count()
        if user_count:
            return Response(
                {'error': f'Cannot delete role. It is assigned to {user_count} users.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='Role', object_id=role.id, object_name=role.name)
        role.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('roles:view')])
def permission_catalogue(request):
    """All permissions grouped by resource, with display labels"""
    grouped = {
        resource: [{'permission': perm, 'label': get_permission_label(perm)} for perm in perms]
        for resource, perms in get_permissions_by_resource().items()
    }
    return Response({'resources': grouped, 'wildcards': ['*'] + [f'{r}:*' for r in grouped]})


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'settings:view', 'POST': 'settings:edit'})])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings_qs = Setting.objects.order_by('key')
        serializer = SettingSerializer(settings_qs, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'settings:view', 'PUT': 'settings:edit', 'PATCH': 'settings:edit', 'DELETE': 'settings:edit',
})])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method == 'PUT':
        serializer = SettingSerializer(setting, data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    elif request.method == 'PATCH':
        serializer = SettingSerializer(setting, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# User settings views
def deep_merge(base, updates):
    """Recursively merge ``updates`` into a copy of ``base``"""
    merged = copy.deepcopy(base) if isinstance(base, dict) else {}
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _user_settings(user):
    user_settings, _ = UserSetting.objects.get_or_create(user=user)
    return user_settings


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_settings_detail(request):
    """Current user's settings, created with defaults on first access"""
    return Response(UserSettingSerializer(_user_settings(request.user)).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def user_settings_structured(request):
    serializer = StructuredSettingsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user_settings = _user_settings(request.user)
    for field, value in serializer.validated_data.items():
        setattr(user_settings, field, value)
    user_settings.save()
    return Response(UserSettingSerializer(user_settings).data)


@api_view(['PATCH', 'PUT'])
@permission_classes([IsAuthenticated])
def user_settings_custom(request):
    """PATCH deep-merges into the custom settings, PUT replaces them"""
    if not isinstance(request.data, dict):
        return Response({'error': 'Custom settings must be an object'}, status=status.HTTP_400_BAD_REQUEST)
    user_settings = _user_settings(request.user)
    if request.method == 'PATCH':
        user_settings.custom_settings = deep_merge(user_settings.custom_settings or {}, dict(request.data))
    else:  # PUT
        user_settings.custom_settings = dict(request.data)
    user_settings.save(update_fields=['custom_settings', 'updated_at'])
    return Response(UserSettingSerializer(user_settings).data)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def user_settings_custom_key(request, key):
    user_settings = _user_settings(request.user)
    custom = dict(user_settings.custom_settings or {})
    if key not in custom:
        return Response({'error': f'Setting {key} not found'}, status=status.HTTP_404_NOT_FOUND)
    del custom[key]
    user_settings.custom_settings = custom
    user_settings.save(update_fields=['custom_settings', 'updated_at'])
    return Response(UserSettingSerializer(user_settings).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def user_settings_reset(request):
    UserSetting.objects.filter(user=request.user).delete()
    return Response(UserSettingSerializer(_user_settings(request.user)).data)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('audit:view')])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    user_filter = request.query_params.get('user', None)
    if user_filter:
        queryset = queryset.filter(user_id=user_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    return Response(paginate(request, queryset, AuditLogSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required('audit:view')])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)
    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search customers, invoices, inventory and waybills the caller can see"""
    query = request.query_params.get('q', '').strip()
    results = {'customers': [], 'invoices': [], 'inventory': [], 'waybills': []}
    if not query:
        return Response(results)

    from backend.parties.models import Customer
    from backend.sales.models import Invoice
    from backend.inventory.models import InventoryItem
    from backend.waybills.models import Waybill

    user = request.user
    if user_has_permission(user, PERMISSIONS['CUSTOMERS_VIEW']):
        customers = Customer.objects.filter(
            Q(name__icontains=query) | Q(email__icontains=query) | Q(phone__icontains=query)
            | Q(company_name__icontains=query)
        ).order_by('name')[:20]
        results['customers'] = [{'id': c.id, 'name': c.name, 'email': c.email, 'phone': c.phone} for c in customers]

    if user_has_permission(user, PERMISSIONS['INVOICES_VIEW']):
        invoices = Invoice.objects.filter(
            Q(invoice_number__icontains=query) | Q(customer_name__icontains=query)
        ).order_by('-date')[:20]
        results['invoices'] = [
            {'id': i.id, 'invoice_number': i.invoice_number, 'customer_name': i.customer_name,
             'total_amount': i.total_amount, 'status': i.status}
            for i in invoices
        ]

    if user_has_permission(user, PERMISSIONS['INVENTORY_VIEW']):
        items = filter_by_locations(
            InventoryItem.objects.filter(Q(name__icontains=query) | Q(sku__icontains=query)), user
        ).select_related('location').order_by('name')[:20]
        results['inventory'] = [
            {'id': i.id, 'sku': i.sku, 'name': i.name, 'location': i.location.name,
             'current_quantity': i.current_quantity}
            for i in items
        ]

    if user_has_permission(user, PERMISSIONS['WAYBILLS_VIEW']):
        waybills = filter_by_locations(
            Waybill.objects.filter(Q(waybill_number__icontains=query) | Q(supplier__icontains=query)), user
        ).order_by('-date')[:20]
        results['waybills'] = [
            {'id': w.id, 'waybill_number': w.waybill_number, 'supplier': w.supplier, 'status': w.status}
            for w in waybills
        ]

    return Response(results)


# Notifications
def _token_user(raw_token):
    """Resolve the user behind an access token, or return an error JsonResponse"""
    try:
        token = AccessToken(raw_token)
    except TokenError:
        try:
            unverified = AccessToken(raw_token, verify=False)
        except TokenError:
            unverified = None
        exp = unverified.get('exp') if unverified is not None else None
        if exp is not None and exp <= int(timezone.now().timestamp()):
            return None, JsonResponse(
                {'error': 'Token expired. Please refresh your session.', 'code': 'TOKEN_EXPIRED'}, status=401
            )
        return None, JsonResponse({'error': 'Invalid token'}, status=401)

    user = User.objects.filter(pk=token.get(jwt_settings.USER_ID_CLAIM)).first()
    if user is None:
        return None, JsonResponse({'error': 'User not found'}, status=401)
    if not user.is_active:
        return None, JsonResponse({'error': 'User account is inactive'}, status=401)
    return user, None


@require_GET
def notification_stream(request):
    """
    Server-Sent Events stream. EventSource cannot send headers, so the access
    token travels in the ``token`` query parameter.
    """
    raw_token = request.GET.get('token')
    if not raw_token:
        return JsonResponse({'error': 'Access token required in query parameter'}, status=401)

    user, error = _token_user(raw_token)
    if error is not None:
        return error

    stream = broadcaster.connect(user.id)
    response = StreamingHttpResponse(
        stream.frames(broadcaster, keepalive_seconds=settings.NOTIFICATION_KEEPALIVE_SECONDS),
        content_type='text/event-stream',
    )
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_test(request):
    """Send a test notification to the caller"""
    notification_id = send_notification(
        request.user.id,
        'info',
        'Test Notification',
        'This is a test notification to verify the SSE system is working correctly.',
        {'test': True},
    )
    return Response({
        'message': 'Test notification sent. Check your notification bell!',
        'notification_id': notification_id,
        'connected': broadcaster.is_connected(request.user.id),
    })
