"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login, current user)
- Permissions catalog
- Roles
- Team member permissions and overrides
"""
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from apps.rbac.models import Permission, Role, User, UserPermission


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(serializers.Serializer):
    """Serializer for venue registration (owner account + venue)."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32, default='')
    venue_name = serializers.CharField(required=True, max_length=255)

    def validate_email(self, value):
        """Normalize email to lowercase and check uniqueness."""
        value = value.lower()
        if User.objects_with_deleted.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already registered")
        return value

    def validate_password(self, value):
        """Validate password strength."""
        validate_password(value)
        return value

    def validate_venue_name(self, value):
        """Validate venue name is not empty."""
        if not value.strip():
            raise serializers.ValidationError("Venue name cannot be empty.")
        return value.strip()


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.lower()


# ===== PERMISSION SERIALIZERS =====

class PermissionSerializer(serializers.ModelSerializer):
    """Serializer for catalog permissions."""

    class Meta:
        model = Permission
        fields = ['id', 'name', 'display_name', 'description', 'module', 'action', 'scope']
        read_only_fields = fields


# ===== ROLE SERIALIZERS =====

class RoleSerializer(serializers.ModelSerializer):
    """Serializer for roles, with permissions and bound user count."""

    permissions = PermissionSerializer(many=True, read_only=True)
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'description', 'level', 'is_system', 'is_active',
            'permissions', 'user_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_user_count(self, obj):
        count = getattr(obj, 'user_count', None)
        if count is None:
            count = obj.users.count()
        return count


class RoleSummarySerializer(serializers.ModelSerializer):
    """Compact role representation for user payloads."""

    class Meta:
        model = Role
        fields = ['id', 'name', 'level', 'is_system']
        read_only_fields = fields


class RoleWriteSerializer(serializers.Serializer):
    """
    Input for creating and updating roles.

    Permissions are given as ids or names; resolution and catalog checks
    happen in RoleService so unknown refs surface as INVALID_PERMISSION.
    """

    name = serializers.CharField(max_length=50)
    description = serializers.CharField(max_length=200, required=False, allow_blank=True)
    permissions = serializers.ListField(
        child=serializers.CharField(),
        required=False
    )
    level = serializers.IntegerField(min_value=0, max_value=100, required=False)
    is_active = serializers.BooleanField(required=False)


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """Serializer for user identity with venue role."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    role = RoleSummarySerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'phone',
            'venue', 'role', 'role_type', 'is_active', 'last_login_at', 'created_at',
        ]
        read_only_fields = fields


class UserPermissionSerializer(serializers.ModelSerializer):
    """Serializer for a single permission override."""

    permission = serializers.CharField(source='permission.name', read_only=True)
    granted_by = serializers.EmailField(source='granted_by.email', read_only=True, default=None)

    class Meta:
        model = UserPermission
        fields = ['id', 'permission', 'effect', 'reason', 'granted_by', 'created_at']
        read_only_fields = fields


class UserPermissionCreateSerializer(serializers.Serializer):
    """Input for adding a grant or revoke override."""

    permission = serializers.CharField()
    effect = serializers.ChoiceField(choices=UserPermission.EFFECT_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class UserPermissionRemoveSerializer(serializers.Serializer):
    """Input for removing a grant or revoke override."""

    permission = serializers.CharField()
    effect = serializers.ChoiceField(choices=UserPermission.EFFECT_CHOICES)


class CustomPermissionsSerializer(serializers.Serializer):
    granted = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    revoked = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class TeamMemberUpdateSerializer(serializers.Serializer):
    """Input for PUT /v1/team/{user_id}."""

    role_id = serializers.UUIDField(required=False)
    is_active = serializers.BooleanField(required=False)
    custom_permissions = CustomPermissionsSerializer(required=False)


class TeamMemberFilterSerializer(serializers.Serializer):
    """Query parameters for GET /v1/team."""

    status = serializers.ChoiceField(choices=['active', 'inactive'], required=False)
    role_id = serializers.UUIDField(required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)
