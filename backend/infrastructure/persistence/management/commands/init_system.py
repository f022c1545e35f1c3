"""
Initialize System Command.

Creates the system roles, their default menu permissions and the admin user.
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import Role, RoleMenuPermission, UserRole


# menu_key -> (view, view_all, create, edit, delete)
FULL = (True, True, True, True, True)
READ_ALL = (True, True, False, False, False)
READ_OWN = (True, False, False, False, False)
EDIT_OWN = (True, False, True, True, False)

DEFAULT_PERMISSIONS = {
    RoleCode.PMU_STAFF: {
        'home': READ_ALL,
        'contracts': EDIT_OWN,
        'contractors': (True, True, True, True, False),
        'projects': READ_ALL,
        'procurement': (True, True, True, True, False),
        'payments': READ_OWN,
        'work_progress': EDIT_OWN,
        'work_progress_reports': EDIT_OWN,
        'geography': READ_ALL,
        'indicators': READ_ALL,
        'reference_data': READ_ALL,
        'reports': READ_ALL,
        'documents': EDIT_OWN,
        'tasks': (True, False, True, True, True),
        'notifications': READ_OWN,
        'currency_rates': READ_ALL,
        'contract_amendments': EDIT_OWN,
    },
    RoleCode.ACCOUNTANT: {
        'home': READ_ALL,
        'contracts': READ_ALL,
        'contractors': READ_ALL,
        'projects': READ_ALL,
        'payments': (True, True, True, True, False),
        'work_progress': READ_ALL,
        'work_progress_reports': READ_ALL,
        'reports': READ_ALL,
        'documents': READ_ALL,
        'tasks': (True, False, True, True, False),
        'notifications': READ_OWN,
        'currency_rates': READ_ALL,
        'contract_amendments': READ_ALL,
    },
    RoleCode.WORLD_BANK: {
        'home': READ_ALL,
        'contracts': READ_ALL,
        'contractors': READ_ALL,
        'projects': READ_ALL,
        'procurement': READ_ALL,
        'payments': READ_ALL,
        'work_progress': READ_ALL,
        'work_progress_reports': READ_ALL,
        'geography': READ_ALL,
        'indicators': READ_ALL,
        'reports': READ_ALL,
        'documents': READ_ALL,
        'tasks': READ_OWN,
        'notifications': READ_OWN,
        'currency_rates': READ_ALL,
    },
    RoleCode.CONTRACTOR: {
        'home': READ_OWN,
        'contracts': READ_OWN,
        'payments': READ_OWN,
        'work_progress': EDIT_OWN,
        'work_progress_reports': EDIT_OWN,
        'documents': EDIT_OWN,
        'tasks': (True, False, False, True, False),
        'notifications': READ_OWN,
    },
}


# code, name (ru), tj, en
SYSTEM_ROLES = [
    (RoleCode.PMU_ADMIN, 'Администратор PMU', 'Маъмури PMU', 'PMU Administrator'),
    (RoleCode.PMU_STAFF, 'Сотрудник PMU', 'Кормандони PMU', 'PMU Staff'),
    (RoleCode.ACCOUNTANT, 'Бухгалтер', 'Муҳосиб', 'Accountant'),
    (RoleCode.WORLD_BANK, 'Всемирный банк', 'Бонки Ҷаҳонӣ', 'World Bank'),
    (RoleCode.CONTRACTOR, 'Подрядчик', 'Пудратчӣ', 'Contractor'),
]

PERMISSION_FLAGS = ('can_view', 'can_view_all', 'can_create', 'can_edit', 'can_delete')


class Command(BaseCommand):
    help = 'Create system roles, their default menu permissions and the PMU admin account'

    def add_arguments(self, parser):
        parser.add_argument('--admin-username', default='admin')
        parser.add_argument('--admin-password', default='admin123')
        parser.add_argument('--skip-admin', action='store_true', help='Do not create the admin account')
        parser.add_argument(
            '--reset-permissions', action='store_true',
            help='Overwrite edited menu permissions with the defaults',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        roles = self.sync_roles()
        created, updated = self.sync_permissions(roles, options['reset_permissions'])
        self.stdout.write(f'Menu permissions: {created} created, {updated} reset')

        if not options['skip_admin']:
            self.ensure_admin(options['admin_username'], options['admin_password'], roles[RoleCode.PMU_ADMIN])

        self.stdout.write(self.style.SUCCESS('PMMIS initialized'))

    def sync_roles(self):
        roles = {}
        for sort_order, (code, name, name_tj, name_en) in enumerate(SYSTEM_ROLES, start=1):
            role, created = Role.objects.update_or_create(code=code, defaults={
                'name': name,
                'description': name,
                'description_tj': name_tj,
                'description_en': name_en,
                'sort_order': sort_order,
                'is_system': True,
            })
            roles[code] = role
            self.stdout.write(f"{'Created' if created else 'Updated'} role {code}")
        return roles

    def sync_permissions(self, roles, reset):
        """Missing rows are always added; existing ones are only touched with --reset-permissions."""
        created = updated = 0
        for code, matrix in DEFAULT_PERMISSIONS.items():
            for menu_key, flags in matrix.items():
                values = dict(zip(PERMISSION_FLAGS, flags))
                if reset:
                    _, was_created = RoleMenuPermission.objects.update_or_create(
                        role=roles[code], menu_key=menu_key, defaults=values,
                    )
                    updated += not was_created
                else:
                    _, was_created = RoleMenuPermission.objects.get_or_create(
                        role=roles[code], menu_key=menu_key, defaults=values,
                    )
                created += was_created
        return created, updated

    def ensure_admin(self, username, password, admin_role):
        User = get_user_model()
        admin, created = User.objects.get_or_create(username=username, defaults={
            'email': f'{username}@pmmis.tj',
            'last_name': 'Администратор',
            'first_name': 'PMU',
            'is_staff': True,
            'is_superuser': True,
        })
        UserRole.objects.update_or_create(user=admin, role=admin_role, defaults={'is_active': True})

        if created:
            admin.set_password(password)
            admin.save(update_fields=['password'])
            self.stdout.write(self.style.WARNING(f'Created {username}; change the initial password after first login'))
        else:
            self.stdout.write(f'Admin account {username} already exists')
