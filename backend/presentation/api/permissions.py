"""
API Permission Classes.

Gate viewsets by the role/menu permission matrix.
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

from application.services.permissions import PermissionService


METHOD_ACTIONS = {
    'POST': 'create',
    'PUT': 'edit',
    'PATCH': 'edit',
    'DELETE': 'delete',
}


class MenuPermission(BasePermission):
    """
    Checks the viewset's `menu_key` against the user's role permissions.

    Safe methods need `view`, POST `create`, PUT/PATCH `edit` and DELETE
    `delete`. A custom action overrides this with
    `@action(..., permission_action='edit')`; the viewset must declare a
    `permission_action` class attribute for DRF to accept it. Viewsets
    without a `menu_key` only require authentication.
    """

    message = 'Недостаточно прав для этого раздела.'

    def required_action(self, request, view):
        override = getattr(view, 'permission_action', None)
        if override:
            return override
        if request.method in SAFE_METHODS:
            return 'view'
        return METHOD_ACTIONS.get(request.method, 'view')

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        menu_key = getattr(view, 'menu_key', None)
        if menu_key is None:
            return True
        return PermissionService.has_permission(
            request.user, menu_key, self.required_action(request, view)
        )


class IsPmuAdmin(BasePermission):
    """PMU administrators and superusers only."""

    message = 'Действие доступно только администратору ГРП.'

    def has_permission(self, request, view):
        return PermissionService.is_admin(request.user)
