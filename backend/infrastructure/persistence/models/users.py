"""
User Models.

PMU staff, World Bank observers and contractor representatives share one
user table. Access is granted through roles, and each role carries a
row per menu section in the permission matrix.
"""

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from domain.shared.value_objects import localized
from domain.tasks.rules import RoleCode
from .base import TimeStampedMixin


class Gender(models.TextChoices):
    MALE = 'male', 'Мужской'
    FEMALE = 'female', 'Женский'


class User(AbstractUser):
    """
    PMMIS user.

    `supervisor` builds the PMU reporting line used for task delegation;
    `contractor` ties an external user to the company whose contracts they
    may see.
    """

    username = models.CharField(
        max_length=150, unique=True,
        validators=[AbstractUser.username_validator], verbose_name="Логин",
    )
    email = models.EmailField(blank=True, verbose_name="Email")
    last_name = models.CharField(max_length=150, blank=True, verbose_name="Фамилия")
    first_name = models.CharField(max_length=150, blank=True, verbose_name="Имя")
    middle_name = models.CharField(max_length=150, blank=True, verbose_name="Отчество")
    gender = models.CharField(max_length=10, choices=Gender.choices, blank=True, verbose_name="Пол")
    birth_date = models.DateField(null=True, blank=True, verbose_name="Дата рождения")
    phone = models.CharField(max_length=20, blank=True, verbose_name="Телефон")
    photo = models.FileField(upload_to='users/photos/', null=True, blank=True, verbose_name="Фото")
    contract_scan = models.FileField(
        upload_to='users/contracts/', null=True, blank=True, verbose_name="Скан трудового договора",
    )

    position = models.CharField(max_length=200, blank=True, verbose_name="Должность")
    supervisor = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='subordinates', verbose_name="Руководитель",
    )
    contractor = models.ForeignKey(
        'persistence.Contractor', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='users', verbose_name="Подрядчик",
    )
    preferred_language = models.CharField(
        max_length=5, choices=settings.LANGUAGES, default=settings.LANGUAGE_CODE,
        verbose_name="Язык интерфейса",
    )

    class Meta:
        db_table = 'users'
        verbose_name = 'Пользователь'
        verbose_name_plural = 'Пользователи'
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return self.get_full_name() or self.username

    def get_full_name(self):
        # Tajik/Russian order: Фамилия Имя Отчество
        return ' '.join(filter(None, [self.last_name, self.first_name, self.middle_name]))

    @property
    def full_name(self):
        return self.get_full_name()

    @property
    def role_codes(self):
        """Active role codes; cached per instance, reset by assign_roles()."""
        if not hasattr(self, '_role_codes'):
            self._role_codes = set(
                self.user_roles.filter(is_active=True, role__is_active=True)
                .values_list('role__code', flat=True)
            )
        return self._role_codes

    def has_role(self, code):
        return code in self.role_codes

    @property
    def is_pmu_admin(self):
        return self.is_superuser or self.has_role(RoleCode.PMU_ADMIN)


class Role(TimeStampedMixin, models.Model):
    """
    System roles (PMU_ADMIN, PMU_STAFF, ACCOUNTANT, WORLD_BANK, CONTRACTOR)
    come from init_system and cannot be deleted; custom ones can.
    """

    code = models.CharField(max_length=50, unique=True, verbose_name="Код роли")
    name = models.CharField(max_length=100, verbose_name="Название роли")
    description = models.TextField(blank=True, verbose_name="Описание")
    description_tj = models.TextField(blank=True, verbose_name="Описание (тадж)")
    description_en = models.TextField(blank=True, verbose_name="Описание (англ)")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    is_system = models.BooleanField(default=False, verbose_name="Системная роль")
    is_active = models.BooleanField(default=True, verbose_name="Активна")

    class Meta:
        db_table = 'roles'
        verbose_name = 'Роль'
        verbose_name_plural = 'Роли'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name

    def get_description(self, lang=None):
        return localized(lang, self.description, self.description_tj, self.description_en)


class UserRole(TimeStampedMixin, models.Model):
    """Revoked assignments stay with is_active=False."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='user_roles', verbose_name="Пользователь")
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='user_roles', verbose_name="Роль")
    is_active = models.BooleanField(default=True, verbose_name="Активна")
    assigned_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='role_assignments_made', verbose_name="Назначено пользователем",
    )

    class Meta:
        db_table = 'user_roles'
        verbose_name = 'Назначение роли'
        verbose_name_plural = 'Назначения ролей'
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_user_role'),
        ]

    def __str__(self):
        return f"{self.user}: {self.role}"


class MenuKeys(models.TextChoices):
    HOME = 'home', 'Главная'
    CONTRACTS = 'contracts', 'Контракты'
    CONTRACTORS = 'contractors', 'Подрядчики'
    PROJECTS = 'projects', 'Проекты'
    PROCUREMENT = 'procurement', 'План закупок'
    PAYMENTS = 'payments', 'Платежи'
    WORK_PROGRESS = 'work_progress', 'Прогресс работ (АВР)'
    WORK_PROGRESS_REPORTS = 'work_progress_reports', 'Отчёты по АВР'
    GEOGRAPHY = 'geography', 'География'
    INDICATORS = 'indicators', 'Индикаторы'
    REFERENCE_DATA = 'reference_data', 'Справочники'
    IMPORT = 'import', 'Импорт данных'
    REPORTS = 'reports', 'Отчёты'
    DOCUMENTS = 'documents', 'Документы'
    USERS = 'users', 'Пользователи'
    ROLES = 'roles', 'Роли'
    SETTINGS = 'settings', 'Настройки'
    TASKS = 'tasks', 'Задачи'
    NOTIFICATIONS = 'notifications', 'Уведомления'
    CURRENCY_RATES = 'currency_rates', 'Курсы валют'
    CONTRACT_AMENDMENTS = 'contract_amendments', 'Дополнительные соглашения'


class RoleMenuPermission(TimeStampedMixin, models.Model):
    """
    One row of the role/menu matrix. `can_view_all` lifts the
    "own contracts only" scope for the section.
    """

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='menu_permissions', verbose_name="Роль")
    menu_key = models.CharField(max_length=50, choices=MenuKeys.choices, verbose_name="Раздел меню")
    can_view = models.BooleanField(default=False, verbose_name="Просмотр")
    can_view_all = models.BooleanField(default=False, verbose_name="Просмотр всех записей")
    can_create = models.BooleanField(default=False, verbose_name="Создание")
    can_edit = models.BooleanField(default=False, verbose_name="Редактирование")
    can_delete = models.BooleanField(default=False, verbose_name="Удаление")

    class Meta:
        db_table = 'role_menu_permissions'
        verbose_name = 'Права роли на раздел'
        verbose_name_plural = 'Права ролей на разделы'
        ordering = ['role', 'menu_key']
        constraints = [
            models.UniqueConstraint(fields=['role', 'menu_key'], name='unique_role_menu_key'),
        ]

    def __str__(self):
        return f"{self.role}: {self.get_menu_key_display()}"
