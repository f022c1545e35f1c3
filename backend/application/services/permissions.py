"""
Permission Services.

Role/menu permission matrix checks and the "own contracts" data scope.
"""

import logging

from django.db.models import Q

from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import Contract, MenuKeys, RoleMenuPermission
from .hierarchy import UserHierarchyService

logger = logging.getLogger(__name__)


class PermissionService:
    """Checks against RoleMenuPermission rows of the user's active roles."""

    ACTION_FLAGS = {
        'view': 'can_view',
        'view_all': 'can_view_all',
        'create': 'can_create',
        'edit': 'can_edit',
        'delete': 'can_delete',
    }

    @staticmethod
    def is_admin(user):
        return bool(user and user.is_authenticated and user.is_pmu_admin)

    @staticmethod
    def _user_permissions(user):
        return RoleMenuPermission.objects.filter(
            role__user_roles__user=user,
            role__user_roles__is_active=True,
            role__is_active=True,
        )

    @classmethod
    def has_permission(cls, user, menu_key, action='view'):
        if not user or not user.is_authenticated:
            return False
        if cls.is_admin(user):
            return True
        flag = cls.ACTION_FLAGS.get(action)
        if flag is None:
            raise ValueError(f"Unknown permission action: {action}")
        if menu_key == MenuKeys.HOME and action == 'view':
            return True
        return cls._user_permissions(user).filter(menu_key=menu_key, **{flag: True}).exists()

    @classmethod
    def allowed_menu_keys(cls, user):
        if cls.is_admin(user):
            return list(MenuKeys.values)
        keys = set(
            cls._user_permissions(user).filter(can_view=True).values_list('menu_key', flat=True)
        )
        keys.add(MenuKeys.HOME)
        return [key for key in MenuKeys.values if key in keys]

    @classmethod
    def get_permission_map(cls, user):
        """
        Merged flags per menu key, e.g. {'contracts': {'view': True, ...}}.

        Flags from several roles are OR-ed.
        """
        if cls.is_admin(user):
            return {key: {action: True for action in cls.ACTION_FLAGS} for key in MenuKeys.values}

        result = {}
        for perm in cls._user_permissions(user):
            flags = result.setdefault(perm.menu_key, {action: False for action in cls.ACTION_FLAGS})
            for action, field in cls.ACTION_FLAGS.items():
                flags[action] = flags[action] or getattr(perm, field)
        return result


class DataAccessService:
    """
    Row-level scope for contract-bound data.

    Users without can_view_all on a menu section only see contracts they
    (or their subordinates) curate or manage, plus contracts of the
    contractor company they belong to.
    """

    @staticmethod
    def can_view_all(user, menu_key):
        return PermissionService.has_permission(user, menu_key, 'view_all')

    @staticmethod
    def user_contract_ids(user):
        people = [user.pk, *UserHierarchyService.get_all_subordinate_ids(user)]
        condition = Q(curator_id__in=people) | Q(project_manager_id__in=people)
        if user.contractor_id:
            condition |= Q(contractor_id=user.contractor_id)
        return list(Contract.objects.filter(condition).values_list('id', flat=True))

    @classmethod
    def scope_queryset(cls, queryset, user, menu_key, contract_field='id'):
        """
        Restrict `queryset` to the user's contracts.

        `contract_field` is the lookup pointing at the contract id
        ('id' for contracts, 'contract_id' for payments and AVRs).
        """
        if cls.can_view_all(user, menu_key):
            return queryset
        if user.has_role(RoleCode.CONTRACTOR) and not user.contractor_id:
            logger.warning(f"Contractor user {user.username} has no linked contractor")
        return queryset.filter(**{f'{contract_field}__in': cls.user_contract_ids(user)})

    @classmethod
    def can_access_contract(cls, user, contract, menu_key=MenuKeys.CONTRACTS):
        if cls.can_view_all(user, menu_key):
            return True
        return contract.pk in cls.user_contract_ids(user)
