"""
Test suite for Core module
Tests: permission matching, authentication, users and roles, settings, audit log,
global search, notifications and report cache invalidation
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import Client, TestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken

from backend.core.access import get_accessible_location_ids, can_access_location
from backend.core.cache_signals import suspend_cache_signals
from backend.core.models import AuditLog, Role
from backend.core.notifications import (
    broadcaster, send_notification, update_notification, broadcast_notification, format_sse,
)
from backend.core.permissions import has_permission, has_any_permission, is_valid_permission
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import to_decimal


class PermissionMatchingTests(TestCase):

    def test_exact_match(self):
        self.assertTrue(has_permission(['customers:view'], 'customers:view'))
        self.assertFalse(has_permission(['customers:view'], 'customers:edit'))

    def test_resource_wildcard(self):
        self.assertTrue(has_permission(['invoices:*'], 'invoices:approve'))
        self.assertFalse(has_permission(['invoices:*'], 'payments:view'))

    def test_global_wildcard(self):
        self.assertTrue(has_permission(['*'], 'admin:fix_data'))

    def test_empty_permissions(self):
        self.assertFalse(has_permission([], 'customers:view'))
        self.assertFalse(has_permission(None, 'customers:view'))

    def test_any_permission(self):
        self.assertTrue(has_any_permission(['payments:export'], ['invoices:export', 'payments:export']))
        self.assertFalse(has_any_permission(['payments:view'], ['invoices:export', 'payments:export']))

    def test_valid_permission_strings(self):
        self.assertTrue(is_valid_permission('reports:view_ar_aging'))
        self.assertTrue(is_valid_permission('waybills:*'))
        self.assertTrue(is_valid_permission('*'))
        self.assertFalse(is_valid_permission('spaceships:launch'))

    def test_inactive_user_has_no_permissions(self):
        user = TestDataFactory.create_user(permissions=['*'])
        user.is_active = False
        self.assertEqual(user.permission_list, [])


class LocationAccessTests(TestCase):

    def test_global_roles_see_all_locations(self):
        user = TestDataFactory.create_user(permissions=['inventory:view_all_locations'])
        self.assertEqual(get_accessible_location_ids(user), 'ALL')

    def test_assigned_and_primary_locations(self):
        primary = TestDataFactory.create_location()
        assigned = TestDataFactory.create_location()
        other = TestDataFactory.create_location()
        user = TestDataFactory.create_user(permissions=['inventory:view'], primary_location=primary)
        user.locations.add(assigned)
        self.assertEqual(get_accessible_location_ids(user), sorted([primary.id, assigned.id]))
        self.assertTrue(can_access_location(user, assigned.id))
        self.assertFalse(can_access_location(user, other.id))
        self.assertFalse(can_access_location(user, 'not-a-number'))


class UtilsTests(TestCase):

    def test_to_decimal(self):
        self.assertEqual(str(to_decimal('12.50')), '12.50')
        self.assertIsNone(to_decimal('abc'))
        self.assertEqual(to_decimal('', default=0), 0)

    def test_to_decimal_non_finite(self):
        self.assertIsNone(to_decimal('NaN'))
        self.assertIsNone(to_decimal('Infinity'))
        self.assertEqual(to_decimal('-inf', default=0), 0)


class AuthTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(
            username='jane@paper.test', email='jane@paper.test', permissions=['customers:view']
        )

    def test_login_with_email(self):
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'JANE@paper.test', 'password': 'testpass123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['permissions'], ['customers:view'])
        self.assertTrue(AuditLog.objects.filter(action='login', user=self.user).exists())

    def test_login_wrong_password(self):
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'jane@paper.test', 'password': 'nope'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_deactivated_account(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'jane@paper.test', 'password': 'testpass123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['permissions'], ['customers:view'])
        self.assertEqual(response.data['accessible_locations'], [])

    def test_unauthenticated(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserAndRoleTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.role = TestDataFactory.create_role(name='Sales Rep', permissions=['customers:view'])

    def test_create_user_uses_email_as_username(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'New.Rep@Paper.test',
            'full_name': 'New Rep',
            'password': 'S3cure-pass-99',
            'role': self.role.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'new.rep@paper.test')

    def test_create_user_invalid_role(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'x@paper.test', 'full_name': 'X', 'password': 'S3cure-pass-99', 'role': 99999,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_with_unknown_permission(self):
        response = self.client.post('/api/v1/roles/', {'name': 'Bad', 'permissions': ['fly:away']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_in_use_cannot_be_deleted(self):
        TestDataFactory.create_user(role=self.role)
        response = self.client.delete(f'/api/v1/roles/{self.role.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Role.objects.filter(pk=self.role.pk).exists())

    def test_users_list_requires_permission(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(permissions=['customers:view']))
        self.assertEqual(client.get('/api/v1/users/').status_code, status.HTTP_403_FORBIDDEN)


class UserSettingsTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user(permissions=[])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_custom_settings_deep_merge(self):
        self.client.patch('/api/v1/user-settings/custom/', {'table': {'page_size': 25, 'dense': True}}, format='json')
        response = self.client.patch('/api/v1/user-settings/custom/', {'table': {'page_size': 50}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['custom_settings'], {'table': {'page_size': 50, 'dense': True}})

    def test_delete_missing_custom_key(self):
        response = self.client.delete('/api/v1/user-settings/custom/missing/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_structured_settings_validation(self):
        response = self.client.patch('/api/v1/user-settings/structured/', {'default_date_range': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class GlobalSearchTests(TestCase):

    def test_results_follow_permissions(self):
        user = TestDataFactory.create_user(permissions=['customers:view'])
        TestDataFactory.create_customer(name='Searchable Stationers')
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)
        response = client.get('/api/v1/search/?q=searchable')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['customers']), 1)
        self.assertEqual(response.data['invoices'], [])


class NotificationTests(TestCase):

    def tearDown(self):
        broadcaster.reset()

    def test_send_to_connected_user(self):
        stream = broadcaster.connect(7)
        notification_id = send_notification(7, 'info', 'Hello', 'World')
        payload = stream._queue.get_nowait()
        self.assertEqual(payload['id'], notification_id)
        self.assertEqual(payload['type'], 'info')

    def test_update_keeps_id(self):
        stream = broadcaster.connect(7)
        notification_id = send_notification(7, 'progress', 'Import', 'Starting')
        update_notification(notification_id, 7, 'success', 'Import', 'Done')
        stream._queue.get_nowait()
        updated = stream._queue.get_nowait()
        self.assertEqual(updated['id'], notification_id)
        self.assertTrue(updated['is_update'])

    def test_reconnect_replaces_stream(self):
        first = broadcaster.connect(7)
        broadcaster.connect(7)
        self.assertTrue(first.closed)
        self.assertEqual(broadcaster.client_count, 1)

    def test_broadcast_reaches_every_stream(self):
        broadcaster.connect(1)
        broadcaster.connect(2)
        broadcast_notification('warning', 'Maintenance', 'Going down')
        self.assertEqual(broadcaster.client_count, 2)

    def test_unknown_type_rejected(self):
        with self.assertRaises(ValueError):
            send_notification(7, 'shout', 'Hi', 'there')

    def test_sse_frame(self):
        self.assertEqual(format_sse({'a': 1}), 'data: {"a": 1}\n\n')


class NotificationStreamTests(TestCase):
    """Test the SSE endpoint, which authenticates with a query-string token"""

    url = '/api/v1/notifications/stream/'

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = Client()

    def tearDown(self):
        broadcaster.reset()

    def _get(self, token):
        return self.client.get(self.url, {'token': str(token)})

    def test_missing_token(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Access token required in query parameter')

    def test_expired_token(self):
        token = AccessToken.for_user(self.user)
        token.set_exp(lifetime=-timedelta(minutes=1))
        response = self._get(token)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'TOKEN_EXPIRED')

    def test_invalid_token(self):
        response = self._get('not-a-token')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Invalid token')
        self.assertNotIn('code', response.json())

    def test_unknown_user(self):
        token = AccessToken.for_user(self.user)
        self.user.delete()
        response = self._get(token)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'User not found')

    def test_inactive_user(self):
        token = AccessToken.for_user(self.user)
        self.user.is_active = False
        self.user.save()
        response = self._get(token)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'User account is inactive')

    def test_stream_opens_with_connected_frame(self):
        response = self._get(AccessToken.for_user(self.user))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Type'].startswith('text/event-stream'))
        self.assertEqual(response['Cache-Control'], 'no-cache')
        self.assertEqual(response['X-Accel-Buffering'], 'no')
        self.assertTrue(broadcaster.is_connected(self.user.id))

        first = next(iter(response.streaming_content))
        if isinstance(first, bytes):
            first = first.decode()
        self.assertTrue(first.startswith('data: {"type": "connected"'))
        response.close()


class CacheInvalidationTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_customer_save_clears_report_cache(self):
        cache.set('report_sales:abc', {'cached': True})
        TestDataFactory.create_customer()
        self.assertIsNone(cache.get('report_sales:abc'))

    def test_suspended_signals_invalidate_once_on_exit(self):
        cache.set('dashboard:abc', {'cached': True})
        with suspend_cache_signals():
            TestDataFactory.create_customer()
            self.assertEqual(cache.get('dashboard:abc'), {'cached': True})
        self.assertIsNone(cache.get('dashboard:abc'))
