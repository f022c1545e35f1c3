"""
Role/menu permission matrix, user hierarchy and contract data scope.
"""

import pytest

from application.services.hierarchy import UserHierarchyService
from application.services.permissions import DataAccessService, PermissionService
from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import Contract, MenuKeys, User
from tests.conftest import (
    ContractFactory,
    ContractorFactory,
    RoleFactory,
    UserFactory,
    UserRoleFactory,
    grant,
    make_user,
)


# ============================================================================
# PERMISSION MATRIX
# ============================================================================

@pytest.mark.django_db
class TestPermissionService:

    def test_admin_role_has_everything(self, admin_user):
        assert PermissionService.has_permission(admin_user, MenuKeys.ROLES, 'delete')
        assert PermissionService.allowed_menu_keys(admin_user) == list(MenuKeys.values)

    def test_superuser_is_admin(self, db):
        root = UserFactory(is_superuser=True)
        assert PermissionService.is_admin(root)

    def test_flags_are_checked_per_action(self, staff_user):
        assert PermissionService.has_permission(staff_user, MenuKeys.CONTRACTS, 'edit')
        assert not PermissionService.has_permission(staff_user, MenuKeys.CONTRACTS, 'delete')
        assert not PermissionService.has_permission(staff_user, MenuKeys.USERS, 'view')
        assert PermissionService.has_permission(staff_user, MenuKeys.PROCUREMENT, 'view')
        assert not PermissionService.has_permission(staff_user, MenuKeys.PROCUREMENT, 'create')

    def test_unknown_action_is_an_error(self, staff_user):
        with pytest.raises(ValueError):
            PermissionService.has_permission(staff_user, MenuKeys.CONTRACTS, 'approve')

    def test_inactive_user_role_grants_nothing(self, staff_role):
        user = UserFactory()
        UserRoleFactory(user=user, role=staff_role, is_active=False)
        assert not PermissionService.has_permission(user, MenuKeys.CONTRACTS, 'view')

    def test_menu_keys_include_home(self, staff_user):
        keys = PermissionService.allowed_menu_keys(staff_user)
        assert keys[0] == MenuKeys.HOME
        assert MenuKeys.TASKS in keys
        assert MenuKeys.USERS not in keys

    def test_flags_of_several_roles_are_merged(self, staff_user):
        auditor = RoleFactory(code='AUDITOR')
        grant(auditor, MenuKeys.CONTRACTS, 'view', 'view_all')
        UserRoleFactory(user=staff_user, role=auditor)

        permission_map = PermissionService.get_permission_map(staff_user)
        assert permission_map[MenuKeys.CONTRACTS] == {
            'view': True, 'view_all': True, 'create': True, 'edit': True, 'delete': False,
        }


# ============================================================================
# HIERARCHY
# ============================================================================

@pytest.mark.django_db
class TestUserHierarchy:

    def test_all_subordinates_walks_the_tree(self, db):
        head = UserFactory()
        deputy = UserFactory(supervisor=head)
        engineer = UserFactory(supervisor=deputy)
        UserFactory(supervisor=engineer, is_active=False)

        assert set(UserHierarchyService.get_all_subordinate_ids(head)) == {deputy.pk, engineer.pk}
        assert list(UserHierarchyService.get_direct_subordinates(head)) == [deputy]
        assert UserHierarchyService.is_subordinate(head, engineer)
        assert not UserHierarchyService.is_subordinate(engineer, head)

    def test_cycles_terminate(self, db):
        first = UserFactory()
        second = UserFactory(supervisor=first)
        User.objects.filter(pk=first.pk).update(supervisor=second)
        first.refresh_from_db()

        assert UserHierarchyService.get_all_subordinate_ids(first) == [second.pk]
        assert UserHierarchyService.get_management_chain(first) == [second]

    def test_management_chain(self, db):
        director = UserFactory()
        head = UserFactory(supervisor=director)
        engineer = UserFactory(supervisor=head)

        assert UserHierarchyService.get_management_chain(engineer) == [head, director]


# ============================================================================
# DATA SCOPE
# ============================================================================

@pytest.mark.django_db
class TestDataAccessService:

    def test_curator_and_manager_see_own_contracts(self, staff_user):
        curated = ContractFactory(curator=staff_user)
        managed = ContractFactory(project_manager=staff_user)
        ContractFactory()

        scoped = DataAccessService.scope_queryset(Contract.objects.all(), staff_user, MenuKeys.CONTRACTS)
        assert set(scoped) == {curated, managed}

    def test_supervisor_sees_subordinate_contracts(self, staff_role):
        head = UserFactory()
        UserRoleFactory(user=head, role=staff_role)
        engineer = UserFactory(supervisor=head)
        contract = ContractFactory(curator=engineer)

        assert DataAccessService.can_access_contract(head, contract)
        assert not DataAccessService.can_access_contract(engineer, ContractFactory())

    def test_contractor_sees_company_contracts(self, db):
        company = ContractorFactory()
        own = ContractFactory(contractor=company)
        ContractFactory()
        user = make_user(RoleCode.CONTRACTOR, contractor=company)

        assert DataAccessService.user_contract_ids(user) == [own.pk]

    def test_view_all_lifts_the_scope(self, staff_user, staff_role):
        grant(staff_role, MenuKeys.PAYMENTS, 'view', 'view_all')
        ContractFactory()
        ContractFactory()

        assert DataAccessService.scope_queryset(
            Contract.objects.all(), staff_user, MenuKeys.PAYMENTS
        ).count() == 2
        assert DataAccessService.scope_queryset(
            Contract.objects.all(), staff_user, MenuKeys.CONTRACTS
        ).count() == 0


# ============================================================================
# API
# ============================================================================

@pytest.mark.django_db
class TestMenuPermissionAPI:

    def test_unauthenticated_is_rejected(self, api_client):
        response = api_client.get('/api/v1/contracts/')
        assert response.status_code == 401

    def test_section_without_view_is_forbidden(self, staff_client):
        response = staff_client.get('/api/v1/users/')
        assert response.status_code == 403

    def test_delete_requires_delete_flag(self, staff_client, contract):
        response = staff_client.delete(f'/api/v1/contracts/{contract.pk}/')
        assert response.status_code == 403

    def test_contract_list_is_scoped(self, staff_client, contract):
        ContractFactory()
        response = staff_client.get('/api/v1/contracts/')
        assert response.status_code == 200
        assert [c['id'] for c in response.data['results']] == [contract.pk]

    def test_foreign_contract_detail_is_hidden(self, staff_client, db):
        other = ContractFactory()
        response = staff_client.get(f'/api/v1/contracts/{other.pk}/')
        assert response.status_code == 404

    def test_me_returns_permission_map(self, staff_client):
        response = staff_client.get('/api/v1/auth/me/')
        assert response.status_code == 200
        assert response.data['roles'] == [RoleCode.PMU_STAFF]
        assert response.data['permissions'][MenuKeys.CONTRACTS]['create'] is True
        assert response.data['is_pmu_admin'] is False

    def test_system_role_cannot_be_deleted(self, admin_client, staff_role):
        response = admin_client.delete(f'/api/v1/roles/{staff_role.pk}/')
        assert response.status_code == 400

    def test_role_matrix_replaced(self, admin_client):
        role = RoleFactory(code='INSPECTOR')
        response = admin_client.post(f'/api/v1/roles/{role.pk}/permissions/', {
            'permissions': [
                {'menu_key': MenuKeys.CONTRACTS, 'can_view': True, 'can_view_all': True},
                {'menu_key': MenuKeys.REPORTS, 'can_view': True},
            ],
        }, format='json')
        assert response.status_code == 200, response.data
        assert {p['menu_key'] for p in response.data} == {MenuKeys.CONTRACTS, MenuKeys.REPORTS}

    def test_admin_cannot_deactivate_self(self, admin_client, admin_user):
        response = admin_client.post(f'/api/v1/users/{admin_user.pk}/deactivate/')
        assert response.status_code == 400

    def test_user_delete_deactivates(self, admin_client, staff_user):
        response = admin_client.delete(f'/api/v1/users/{staff_user.pk}/')
        assert response.status_code == 204
        staff_user.refresh_from_db()
        assert staff_user.is_active is False

    def test_admin_cannot_delete_self(self, admin_client, admin_user):
        response = admin_client.delete(f'/api/v1/users/{admin_user.pk}/')
        assert response.status_code == 400
        admin_user.refresh_from_db()
        assert admin_user.is_active is True
