"""
PMMIS Test Configuration - pytest fixtures and factories

This module provides:
- factory_boy factories for users, roles, projects, contracts and the
  records hanging off them
- API client fixtures authenticated as an administrator, PMU staff or a
  contractor

RUNNING TESTS:
# Run all tests
pytest -v

# Run by marker
pytest -m workflow -v
"""

from datetime import timedelta
from decimal import Decimal

import factory
import pytest
from django.utils import timezone
from factory.django import DjangoModelFactory
from rest_framework.test import APIClient

from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import MenuKeys


# ============================================================================
# USER & ROLE FACTORIES
# ============================================================================

class UserFactory(DjangoModelFactory):
    """Factory for the custom User model."""

    class Meta:
        model = 'persistence.User'
        django_get_or_create = ('username',)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@pmmis.test")
    first_name = factory.Sequence(lambda n: f"Имя{n}")
    last_name = factory.Sequence(lambda n: f"Фамилия{n}")
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        password = kwargs.pop('password', 'testpass123')
        user = super()._create(model_class, *args, **kwargs)
        user.set_password(password)
        user.save()
        return user


class RoleFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Role'
        django_get_or_create = ('code',)

    code = factory.Sequence(lambda n: f"ROLE_{n}")
    name = factory.LazyAttribute(lambda o: o.code.title())
    is_system = False


class UserRoleFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.UserRole'

    user = factory.SubFactory(UserFactory)
    role = factory.SubFactory(RoleFactory)


class RoleMenuPermissionFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.RoleMenuPermission'
        django_get_or_create = ('role', 'menu_key')

    role = factory.SubFactory(RoleFactory)
    menu_key = MenuKeys.CONTRACTS
    can_view = True


def grant(role, menu_key, *actions):
    """Give `role` the listed actions ('view', 'view_all', 'create', 'edit', 'delete') on a section."""
    flags = {f'can_{action}': True for action in actions}
    flags.setdefault('can_view', True)
    perm = RoleMenuPermissionFactory(role=role, menu_key=menu_key)
    for field, value in flags.items():
        setattr(perm, field, value)
    perm.save()
    return perm


def make_user(role_code=None, **kwargs):
    """User with an active role; the role is created on first use."""
    user = UserFactory(**kwargs)
    if role_code:
        role = RoleFactory(code=role_code, is_system=True)
        UserRoleFactory(user=user, role=role)
    return user


# ============================================================================
# PROJECT & CONTRACT FACTORIES
# ============================================================================

class ProjectFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Project'
        django_get_or_create = ('code',)

    code = factory.Sequence(lambda n: f"P{170000 + n}")
    name_ru = factory.Sequence(lambda n: f"Проект водоснабжения {n}")
    total_budget = Decimal('10000000.00')
    start_date = factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=365))
    end_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=3 * 365))
    status = 'active'


class ComponentFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Component'

    project = factory.SubFactory(ProjectFactory)
    number = factory.Sequence(lambda n: n + 1)
    name_ru = factory.Sequence(lambda n: f"Компонент {n}")
    allocated_budget = Decimal('1000000.00')


class SubComponentFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.SubComponent'

    component = factory.SubFactory(ComponentFactory)
    code = factory.LazyAttribute(lambda o: f"{o.component.number}.1")
    name_ru = factory.Sequence(lambda n: f"Подкомпонент {n}")


class ContractorFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Contractor'

    name = factory.Sequence(lambda n: f"ООО Строй-{n}")
    country = 'Таджикистан'


class ContractFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Contract'

    contract_number = factory.Sequence(lambda n: f"TJ-WS-{n:04d}")
    scope_of_work = "Строительство системы водоснабжения"
    project = factory.SubFactory(ProjectFactory)
    contractor = factory.SubFactory(ContractorFactory)
    signing_date = factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=100))
    contract_end_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=200))
    contract_amount = Decimal('100000.00')


class WorkProgressFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.WorkProgress'

    contract = factory.SubFactory(ContractFactory)
    report_date = factory.LazyFunction(timezone.localdate)
    completed_percent = Decimal('25.00')
    description = "Уложено 2 км трубопровода"


class PaymentFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Payment'

    contract = factory.SubFactory(ContractFactory)
    payment_date = factory.LazyFunction(timezone.localdate)
    amount = Decimal('10000.00')
    type = 'interim'


class ContractMilestoneFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.ContractMilestone'

    contract = factory.SubFactory(ContractFactory)
    title = factory.Sequence(lambda n: f"Этап {n}")
    due_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=30))


class ProcurementPlanFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.ProcurementPlan'

    project = factory.SubFactory(ProjectFactory)
    reference_no = factory.Sequence(lambda n: f"TJ-PMU-{n:03d}-CW-RFB")
    description = "Реконструкция водозабора"
    method = 'ncb'
    type = 'works'
    estimated_amount = Decimal('250000.00')


# ============================================================================
# GEOGRAPHY & INDICATOR FACTORIES
# ============================================================================

class DistrictFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.District'
        django_get_or_create = ('code',)

    code = factory.Sequence(lambda n: f"D{n:02d}")
    name_ru = factory.Sequence(lambda n: f"Район {n}")


class JamoatFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Jamoat'

    district = factory.SubFactory(DistrictFactory)
    code = factory.Sequence(lambda n: f"J{n:02d}")
    name_ru = factory.Sequence(lambda n: f"Джамоат {n}")


class VillageFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Village'

    jamoat = factory.SubFactory(JamoatFactory)
    name_ru = factory.Sequence(lambda n: f"Село {n:03d}")
    population_current = 1200
    female_population = 600
    households_current = 180


class SchoolFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.School'

    village = factory.SubFactory(VillageFactory)
    number = factory.Sequence(lambda n: n + 1)
    total_students = 300
    female_students = 140


class HealthFacilityFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.HealthFacility'

    village = factory.SubFactory(VillageFactory)
    name = factory.Sequence(lambda n: f"Медпункт {n}")
    total_staff = 5


class IndicatorFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.Indicator'
        django_get_or_create = ('code',)

    code = factory.Sequence(lambda n: f"IND-{n}")
    name_ru = factory.Sequence(lambda n: f"Индикатор {n}")
    unit = 'чел.'
    geo_data_source = 0


class ContractIndicatorFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.ContractIndicator'

    contract = factory.SubFactory(ContractFactory)
    indicator = factory.SubFactory(IndicatorFactory)
    target_value = Decimal('1000.00')


# ============================================================================
# TASK FACTORIES
# ============================================================================

class ProjectTaskFactory(DjangoModelFactory):

    class Meta:
        model = 'persistence.ProjectTask'

    title = factory.Sequence(lambda n: f"Задача {n}")
    due_date = factory.LazyFunction(lambda: timezone.now() + timedelta(days=5))
    assignee = factory.SubFactory(UserFactory)
    assigned_by = factory.SubFactory(UserFactory)


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest.fixture
def api_client():
    """Provide a DRF API test client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    """PMU administrator: every permission, every contract."""
    return make_user(RoleCode.PMU_ADMIN, username='pmu_admin')


@pytest.fixture
def staff_role(db):
    """PMU_STAFF role seeded with own-contract access to the main sections."""
    role = RoleFactory(code=RoleCode.PMU_STAFF, name='Сотрудник ГРП', is_system=True)
    for key in (MenuKeys.CONTRACTS, MenuKeys.PAYMENTS, MenuKeys.WORK_PROGRESS, MenuKeys.DOCUMENTS):
        grant(role, key, 'view', 'create', 'edit')
    grant(role, MenuKeys.TASKS, 'view', 'create', 'edit')
    grant(role, MenuKeys.PROCUREMENT, 'view')
    return role


@pytest.fixture
def staff_user(staff_role):
    user = UserFactory(username='pmu_staff')
    UserRoleFactory(user=user, role=staff_role)
    return user


@pytest.fixture
def contract(db, staff_user):
    return ContractFactory(curator=staff_user)


def client_for(user):
    """A separate APIClient authenticated as `user`."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def staff_client(staff_user):
    return client_for(staff_user)
