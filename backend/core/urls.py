from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, user_me,
    user_list_create, user_detail, user_change_password, user_activate, user_deactivate,
    role_list_create, role_detail, permission_catalogue,
    setting_list_create, setting_detail,
    user_settings_detail, user_settings_structured, user_settings_custom,
    user_settings_custom_key, user_settings_reset,
    audit_log_list, audit_log_detail,
    global_search,
    notification_stream, notification_test,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/password/', user_change_password, name='user-change-password'),
    path('users/<int:pk>/activate/', user_activate, name='user-activate'),
    path('users/<int:pk>/deactivate/', user_deactivate, name='user-deactivate'),

    # Role endpoints
    path('roles/', role_list_create, name='role-list-create'),
    path('roles/<int:pk>/', role_detail, name='role-detail'),
    path('permissions/', permission_catalogue, name='permission-catalogue'),

    # Setting endpoints
    path('settings/', setting_list_create, name='setting-list-create'),
    path('settings/<int:pk>/', setting_detail, name='setting-detail'),

    # User settings endpoints
    path('user-settings/', user_settings_detail, name='user-settings-detail'),
    path('user-settings/structured/', user_settings_structured, name='user-settings-structured'),
    path('user-settings/custom/', user_settings_custom, name='user-settings-custom'),
    path('user-settings/custom/<str:key>/', user_settings_custom_key, name='user-settings-custom-key'),
    path('user-settings/reset/', user_settings_reset, name='user-settings-reset'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    # Global search endpoint
    path('search/', global_search, name='global-search'),

    # Notification endpoints
    path('notifications/stream/', notification_stream, name='notification-stream'),
    path('notifications/test/', notification_test, name='notification-test'),
]
