"""
User Serializers.

Login, PMU user administration, the current-user profile with its
permission map, and the role/menu permission matrix.
"""

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from application.services.permissions import PermissionService
from infrastructure.persistence.models import MenuKeys, Role, RoleMenuPermission, UserRole
from .base import BaseModelSerializer

User = get_user_model()

PASSWORD_MISMATCH = 'Пароли не совпадают.'


def password_field(validate=False, **kwargs):
    return serializers.CharField(
        write_only=True,
        validators=[validate_password] if validate else [],
        style={'input_type': 'password'},
        **kwargs,
    )


def role_ids_field(**kwargs):
    return serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False, **kwargs)


def assign_roles(user, role_ids, assigned_by):
    """Make `role_ids` the user's active roles; other assignments are switched off, not deleted."""
    user.user_roles.exclude(role_id__in=role_ids).update(is_active=False)
    for role_id in role_ids:
        UserRole.objects.update_or_create(
            user=user,
            role_id=role_id,
            defaults={'is_active': True, 'assigned_by': assigned_by},
        )
    # role_codes is cached per instance
    if hasattr(user, '_role_codes'):
        del user._role_codes


class PasswordConfirmationMixin:
    """Checks that `password_field_name` equals its `_confirm` twin."""

    password_field_name = 'password'

    def validate(self, attrs):
        attrs = super().validate(attrs)
        confirm_name = f'{self.password_field_name}_confirm'
        if attrs[self.password_field_name] != attrs.pop(confirm_name):
            raise serializers.ValidationError({confirm_name: PASSWORD_MISMATCH})
        return attrs


# =============================================================================
# ROLES
# =============================================================================

class RoleMenuPermissionSerializer(serializers.ModelSerializer):
    menu_key_display = serializers.CharField(source='get_menu_key_display', read_only=True)

    class Meta:
        model = RoleMenuPermission
        fields = [
            'id', 'menu_key', 'menu_key_display',
            'can_view', 'can_view_all', 'can_create', 'can_edit', 'can_delete',
        ]
        read_only_fields = ['id']


class PermissionMatrixSerializer(serializers.Serializer):
    """Payload of POST roles/{id}/permissions."""

    permissions = RoleMenuPermissionSerializer(many=True)

    def validate_permissions(self, value):
        keys = [row['menu_key'] for row in value]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError('Раздел меню указан несколько раз.')
        unknown = set(keys) - set(MenuKeys.values)
        if unknown:
            raise serializers.ValidationError(f"Неизвестные разделы: {', '.join(sorted(unknown))}")
        return value


class RoleSerializer(BaseModelSerializer):
    active_users = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'code', 'name', 'description', 'description_tj', 'description_en',
            'sort_order', 'is_system', 'is_active', 'active_users',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_system', 'created_at', 'updated_at']

    def get_active_users(self, obj):
        return obj.user_roles.filter(is_active=True, user__is_active=True).count()


class RoleMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'code', 'name']


class UserRoleSerializer(BaseModelSerializer):
    role_detail = RoleMinimalSerializer(source='role', read_only=True)

    class Meta:
        model = UserRole
        fields = ['id', 'role', 'role_detail', 'is_active', 'assigned_by', 'created_at']
        read_only_fields = ['id', 'assigned_by', 'created_at']


# =============================================================================
# USERS
# =============================================================================

class UserListSerializer(BaseModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)
    role_names = serializers.SerializerMethodField()
    supervisor_name = serializers.CharField(source='supervisor.get_full_name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'full_name', 'first_name', 'last_name', 'email',
            'position', 'supervisor', 'supervisor_name', 'contractor',
            'role_names', 'is_active', 'last_login',
        ]

    def get_role_names(self, obj):
        # user_roles is prefetched by the viewset
        return [assignment.role.name for assignment in obj.user_roles.all() if assignment.is_active]


class UserDetailSerializer(BaseModelSerializer):
    """
    Full user card. Writing `role_ids` replaces the active role set;
    a user cannot be their own supervisor.
    """

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    user_roles = UserRoleSerializer(many=True, read_only=True)
    role_ids = role_ids_field()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'full_name', 'last_name', 'first_name', 'middle_name',
            'email', 'phone', 'gender', 'birth_date', 'photo', 'contract_scan',
            'position', 'supervisor', 'contractor', 'preferred_language',
            'user_roles', 'role_ids',
            'is_active', 'is_staff', 'is_superuser', 'date_joined', 'last_login',
        ]
        read_only_fields = ['id', 'date_joined', 'last_login']

    def validate_supervisor(self, value):
        if value is not None and self.instance is not None and value.pk == self.instance.pk:
            raise serializers.ValidationError('Пользователь не может быть своим руководителем.')
        return value

    def update(self, instance, validated_data):
        role_ids = validated_data.pop('role_ids', None)
        user = super().update(instance, validated_data)
        if role_ids is not None:
            assign_roles(user, role_ids, self.context['request'].user)
        return user


class UserCreateSerializer(PasswordConfirmationMixin, BaseModelSerializer):
    password = password_field(validate=True)
    password_confirm = password_field()
    role_ids = role_ids_field(default=list)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'password', 'password_confirm',
            'last_name', 'first_name', 'middle_name', 'email', 'phone',
            'gender', 'birth_date', 'position', 'supervisor', 'contractor',
            'preferred_language', 'role_ids', 'is_active',
        ]
        read_only_fields = ['id']

    def create(self, validated_data):
        role_ids = validated_data.pop('role_ids', [])
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()

        request = self.context.get('request')
        assign_roles(user, role_ids, getattr(request, 'user', None))
        return user


class UserProfileSerializer(serializers.ModelSerializer):
    """Current user with roles, menu keys and the merged permission map."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    roles = serializers.SerializerMethodField()
    is_pmu_admin = serializers.BooleanField(read_only=True)
    allowed_menu_keys = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'full_name', 'last_name', 'first_name', 'middle_name',
            'email', 'phone', 'position', 'photo', 'preferred_language',
            'supervisor', 'contractor',
            'roles', 'is_pmu_admin', 'is_superuser',
            'allowed_menu_keys', 'permissions', 'last_login',
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(obj.role_codes)

    def get_allowed_menu_keys(self, obj):
        return PermissionService.allowed_menu_keys(obj)

    def get_permissions(self, obj):
        return PermissionService.get_permission_map(obj)


# =============================================================================
# AUTH
# =============================================================================

class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = password_field()

    def validate(self, attrs):
        user = authenticate(request=self.context.get('request'), **attrs)
        if user is None:
            raise serializers.ValidationError('Неверный логин или пароль.')
        if not user.is_active:
            raise serializers.ValidationError('Учётная запись отключена.')
        attrs['user'] = user
        return attrs


class ChangePasswordSerializer(PasswordConfirmationMixin, serializers.Serializer):
    password_field_name = 'new_password'

    old_password = password_field()
    new_password = password_field(validate=True)
    new_password_confirm = password_field()

    def validate_old_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError('Неверный текущий пароль.')
        return value
