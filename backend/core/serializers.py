from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Role, Setting, UserSetting, AuditLog
from .permissions import is_valid_permission


class RoleSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(source='users.count', read_only=True)

    class Meta:
        model = Role
        fields = ['id', 'name', 'description', 'permissions', 'user_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_permissions(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Permissions must be a list")
        invalid = [p for p in value if not isinstance(p, str) or not is_valid_permission(p)]
        if invalid:
            raise serializers.ValidationError(f"Unknown permissions: {', '.join(map(str, invalid))}")
        return list(dict.fromkeys(value))


class UserSerializer(serializers.ModelSerializer):
    role_name = serializers.CharField(source='role.name', read_only=True)
    team_name = serializers.CharField(source='team.name', read_only=True)
    region_name = serializers.CharField(source='region.name', read_only=True)
    primary_location_name = serializers.CharField(source='primary_location.name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'full_name', 'phone', 'role', 'role_name', 'team', 'team_name',
            'region', 'region_name', 'primary_location', 'primary_location_name', 'locations',
            'is_active', 'is_staff', 'is_superuser', 'last_login', 'created_at', 'updated_at'
        ]
        read_only_fields = ['username', 'is_superuser', 'last_login', 'created_at', 'updated_at']

    def validate_email(self, value):
        value = value.strip().lower()
        queryset = User.objects.filter(email__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("User with this email already exists")
        return value


class UserCreateSerializer(serializers.ModelSerializer):
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=255)
    password = serializers.CharField(write_only=True, validators=[validate_password])
    role = serializers.PrimaryKeyRelatedField(
        queryset=Role.objects.all(), error_messages={'does_not_exist': 'Invalid role ID'}
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'password', 'phone', 'role', 'team', 'region', 'primary_location', 'locations']
        extra_kwargs = {
            'team': {'error_messages': {'does_not_exist': 'Invalid team ID'}},
            'region': {'error_messages': {'does_not_exist': 'Invalid region ID'}},
        }

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("User with this email already exists")
        return value

    def create(self, validated_data):
        locations = validated_data.pop('locations', [])
        password = validated_data.pop('password')
        # Email doubles as the login name
        user = User(username=validated_data['email'], is_active=True, **validated_data)
        user.set_password(password)
        user.save()
        if locations:
            user.locations.set(locations)
        return user


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(required=False, allow_blank=True)
    new_password = serializers.CharField(validators=[validate_password])


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']


class UserSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserSetting
        fields = [
            'id', 'email_notifications', 'sms_notifications', 'default_dashboard_view',
            'preferred_chart_type', 'default_date_range', 'custom_settings', 'created_at', 'updated_at'
        ]
        read_only_fields = ['custom_settings', 'created_at', 'updated_at']


class StructuredSettingsSerializer(serializers.Serializer):
    email_notifications = serializers.BooleanField(required=False)
    sms_notifications = serializers.BooleanField(required=False)
    default_dashboard_view = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=100)
    preferred_chart_type = serializers.ChoiceField(choices=UserSetting.CHART_CHOICES, required=False, allow_null=True)
    default_date_range = serializers.IntegerField(required=False, min_value=1, max_value=365)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one setting must be provided")
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.display_name', read_only=True)
    user_email = serializers.CharField(source='user.email', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'user_name', 'user_email', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
