"""
Tests for the init_system management command.
"""

from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from domain.tasks.rules import RoleCode
from infrastructure.persistence.management.commands.init_system import DEFAULT_PERMISSIONS
from infrastructure.persistence.models import MenuKeys, Role, RoleMenuPermission


def run(*args):
    out = StringIO()
    call_command('init_system', *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestInitSystem:

    def test_creates_system_roles_and_admin(self):
        run('--admin-password', 'S3cure!pass')

        assert set(Role.objects.filter(is_system=True).values_list('code', flat=True)) == {
            RoleCode.PMU_ADMIN, RoleCode.PMU_STAFF, RoleCode.ACCOUNTANT,
            RoleCode.WORLD_BANK, RoleCode.CONTRACTOR,
        }
        admin = get_user_model().objects.get(username='admin')
        assert admin.check_password('S3cure!pass')
        assert admin.is_pmu_admin

    def test_is_idempotent(self):
        run('--skip-admin')
        count = RoleMenuPermission.objects.count()
        output = run('--skip-admin')

        assert RoleMenuPermission.objects.count() == count
        assert 'Menu permissions: 0 created, 0 reset' in output
        assert not get_user_model().objects.filter(username='admin').exists()

    def test_reset_restores_edited_permissions(self):
        run('--skip-admin')
        menu_key = next(iter(DEFAULT_PERMISSIONS[RoleCode.PMU_STAFF]))
        row = RoleMenuPermission.objects.get(role__code=RoleCode.PMU_STAFF, menu_key=menu_key)
        row.can_view = False
        row.save()

        run('--skip-admin')
        row.refresh_from_db()
        assert row.can_view is False

        run('--skip-admin', '--reset-permissions')
        row.refresh_from_db()
        assert row.can_view is True

    def test_default_matrix_uses_known_menu_keys(self):
        for matrix in DEFAULT_PERMISSIONS.values():
            assert set(matrix) <= set(MenuKeys.values)
