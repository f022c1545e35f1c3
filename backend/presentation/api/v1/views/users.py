"""
User Views.

Login/logout for the SPA, PMU user administration and the role/menu
permission matrix.
"""

import logging
import secrets

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from application.services.hierarchy import UserHierarchyService
from application.services.permissions import PermissionService
from domain.shared.exceptions import AuthorizationException, InvalidOperationException
from infrastructure.persistence.models import AuditLog, MenuKeys, Role, RoleMenuPermission
from ..serializers.users import (
    ChangePasswordSerializer,
    LoginSerializer,
    PermissionMatrixSerializer,
    RoleMenuPermissionSerializer,
    RoleSerializer,
    UserCreateSerializer,
    UserDetailSerializer,
    UserListSerializer,
    UserProfileSerializer,
    assign_roles,
)
from .base import BaseModelViewSet

logger = logging.getLogger(__name__)

User = get_user_model()

PROFILE_FIELDS = ('first_name', 'last_name', 'middle_name', 'phone', 'email', 'preferred_language')


def issue_tokens(user):
    """Access/refresh pair plus the profile the SPA keeps in its store."""
    refresh = RefreshToken.for_user(user)
    return {
        'access': str(refresh.access_token),
        'refresh': str(refresh),
        'user': UserProfileSerializer(user).data,
    }


class AuthViewSet(viewsets.GenericViewSet):
    """
    Endpoints:
    - POST /auth/login/ - {username, password} -> {access, refresh, user}
    - POST /auth/refresh/ - {refresh} -> new access token
    - POST /auth/logout/ - {refresh} is blacklisted
    - GET /auth/me/ - profile, roles, menu keys and permission map
    - PUT/PATCH /auth/update_profile/
    - POST /auth/change_password/
    """

    permission_classes = [AllowAny]

    @action(detail=False, methods=['post'])
    def login(self, request):
        serializer = LoginSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']

        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])
        AuditLog.record('login', user=user, obj=user, request=request)
        logger.info(f"User {user.username} logged in")
        return Response(issue_tokens(user))

    @action(detail=False, methods=['post'])
    def refresh(self, request):
        serializer = TokenRefreshSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            return Response({'code': 'token_not_valid', 'detail': str(e)}, status=status.HTTP_401_UNAUTHORIZED)
        return Response(serializer.validated_data)

    @action(detail=False, methods=['post'], permission_classes=[IsAuthenticated])
    def logout(self, request):
        token = request.data.get('refresh')
        if token:
            try:
                RefreshToken(token).blacklist()
            except TokenError as e:
                return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        AuditLog.record('logout', user=request.user, obj=request.user, request=request)
        return Response({'message': 'Выход выполнен успешно'})

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def me(self, request):
        return Response(UserProfileSerializer(request.user).data)

    @action(detail=False, methods=['put', 'patch'], permission_classes=[IsAuthenticated])
    def update_profile(self, request):
        """Own contact details and interface language; roles stay with the admin."""
        data = {key: value for key, value in request.data.items() if key in PROFILE_FIELDS}
        serializer = UserDetailSerializer(request.user, data=data, partial=True, context={'request': request})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(UserProfileSerializer(request.user).data)

    @action(detail=False, methods=['post'], permission_classes=[IsAuthenticated])
    def change_password(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save(update_fields=['password'])
        AuditLog.record('update', user=request.user, obj=request.user, request=request,
                        changes={'password': 'changed'})
        return Response({'message': 'Пароль успешно изменен'})


class UserViewSet(BaseModelViewSet):
    """
    PMU user administration.

    Users are never deleted: DELETE and /deactivate/ switch is_active off,
    and nobody can switch off their own account.

    Extra endpoints:
    - POST /users/{id}/activate/, /users/{id}/deactivate/
    - POST /users/{id}/reset_password/ - {new_password} or a generated one
    - POST /users/{id}/set_roles/ - {role_ids: [...]}
    - GET /users/{id}/subordinates/ - {direct, all}
    - GET /users/{id}/hierarchy/ - managers upwards
    """

    menu_key = MenuKeys.USERS
    queryset = User.objects.select_related('supervisor', 'contractor').prefetch_related('user_roles__role')
    serializer_classes = {
        'list': UserListSerializer,
        'create': UserCreateSerializer,
        'default': UserDetailSerializer,
    }
    search_fields = ['username', 'email', 'first_name', 'last_name', 'middle_name', 'position']
    filterset_fields = ['is_active', 'supervisor', 'contractor']
    ordering_fields = ['username', 'last_name', 'date_joined', 'last_login']
    ordering = ['last_name', 'first_name']

    def _set_active(self, user, active):
        if not active and user.pk == self.request.user.pk:
            raise InvalidOperationException("Нельзя деактивировать собственную учётную запись")
        if user.is_active != active:
            user.is_active = active
            user.save(update_fields=['is_active'])
            AuditLog.record('update', user=self.request.user, obj=user, request=self.request,
                            changes={'is_active': active})
            logger.info(f"User {user.username} {'activated' if active else 'deactivated'} by {self.request.user}")

    def destroy(self, request, *args, **kwargs):
        self._set_active(self.get_object(), False)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], permission_action='edit')
    def activate(self, request, pk=None):
        self._set_active(self.get_object(), True)
        return Response({'message': 'Пользователь активирован'})

    @action(detail=True, methods=['post'], permission_action='edit')
    def deactivate(self, request, pk=None):
        self._set_active(self.get_object(), False)
        return Response({'message': 'Пользователь деактивирован'})

    @action(detail=True, methods=['post'], permission_action='edit')
    def reset_password(self, request, pk=None):
        user = self.get_object()
        new_password = request.data.get('new_password') or None
        generated = new_password is None
        if generated:
            new_password = secrets.token_urlsafe(12)
        user.set_password(new_password)
        user.save(update_fields=['password'])
        AuditLog.record('update', user=request.user, obj=user, request=request, changes={'password': 'reset'})

        payload = {'message': 'Пароль успешно сброшен'}
        if generated:
            payload['new_password'] = new_password
        return Response(payload)

    @action(detail=True, methods=['post'], permission_action='edit')
    def set_roles(self, request, pk=None):
        user = self.get_object()
        role_ids = request.data.get('role_ids', [])
        if not isinstance(role_ids, list):
            return Response({'error': 'role_ids должен быть списком'}, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            assign_roles(user, role_ids, request.user)
        return Response(UserDetailSerializer(user, context={'request': request}).data)

    @action(detail=True, methods=['get'])
    def subordinates(self, request, pk=None):
        user = self.get_object()
        return Response({
            'direct': UserListSerializer(UserHierarchyService.get_direct_subordinates(user), many=True).data,
            'all': UserListSerializer(UserHierarchyService.get_all_subordinates(user), many=True).data,
        })

    @action(detail=True, methods=['get'])
    def hierarchy(self, request, pk=None):
        chain = UserHierarchyService.get_management_chain(self.get_object())
        return Response(UserListSerializer(chain, many=True).data)


class RoleViewSet(BaseModelViewSet):
    """
    Roles and their menu permission matrix.

    System roles (PMU_ADMIN, PMU_STAFF, ...) can be edited but not deleted.
    GET /roles/{id}/permissions/ reads the matrix, POST replaces it with
    {permissions: [{menu_key, can_view, can_view_all, ...}]}.
    """

    menu_key = MenuKeys.ROLES
    queryset = Role.objects.all()
    serializer_class = RoleSerializer
    search_fields = ['code', 'name']
    filterset_fields = ['is_active', 'is_system']
    ordering = ['sort_order', 'name']

    def destroy(self, request, *args, **kwargs):
        role = self.get_object()
        if role.is_system:
            raise InvalidOperationException("Системную роль нельзя удалить", current_state=role.code)
        return super().destroy(request, *args, **kwargs)

    @action(detail=True, methods=['get', 'post'], permission_action='view')
    def permissions(self, request, pk=None):
        role = self.get_object()
        if request.method == 'POST':
            if not PermissionService.has_permission(request.user, MenuKeys.ROLES, 'edit'):
                raise AuthorizationException('edit', resource=role.code)
            serializer = PermissionMatrixSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            rows = serializer.validated_data['permissions']
            with transaction.atomic():
                role.menu_permissions.all().delete()
                RoleMenuPermission.objects.bulk_create([RoleMenuPermission(role=role, **row) for row in rows])
            AuditLog.record('update', user=request.user, obj=role, request=request,
                            changes={'menu_keys': sorted(row['menu_key'] for row in rows)})

        return Response(RoleMenuPermissionSerializer(role.menu_permissions.all(), many=True).data)

    @action(detail=True, methods=['get'])
    def users(self, request, pk=None):
        users = User.objects.filter(
            user_roles__role=self.get_object(), user_roles__is_active=True
        ).prefetch_related('user_roles__role').distinct()
        return Response(UserListSerializer(users, many=True).data)
