"""
Project ORM Models.

Project → Component → SubComponent hierarchy of a donor-funded project.
"""

from decimal import Decimal

from django.db import models
from django.db.models import Sum

from .base import BaseModel, BaseModelWithHistory, LocalizedNameMixin


class ProjectStatusChoices(models.TextChoices):
    PLANNING = 'planning', 'Планирование'
    ACTIVE = 'active', 'Активный'
    ON_HOLD = 'on_hold', 'Приостановлен'
    COMPLETED = 'completed', 'Завершён'
    CANCELLED = 'cancelled', 'Отменён'


class Project(LocalizedNameMixin, BaseModelWithHistory):
    """
    Donor-funded project (e.g. a World Bank credit).
    """

    code = models.CharField(
        max_length=50,
        unique=True,
        verbose_name="Код проекта"
    )
    description = models.TextField(blank=True, verbose_name="Описание")
    total_budget = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Общий бюджет (USD)"
    )
    start_date = models.DateField(verbose_name="Дата начала")
    end_date = models.DateField(verbose_name="Дата окончания")
    status = models.CharField(
        max_length=20,
        choices=ProjectStatusChoices.choices,
        default=ProjectStatusChoices.PLANNING,
        db_index=True,
        verbose_name="Статус"
    )

    class Meta:
        db_table = 'projects'
        verbose_name = 'Проект'
        verbose_name_plural = 'Проекты'
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.name_ru}"

    @property
    def allocated_to_components(self):
        return self.components.aggregate(total=Sum('allocated_budget'))['total'] or Decimal('0')


class Component(LocalizedNameMixin, BaseModel):
    """Project component (1, 2, 3 ...)."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='components',
        verbose_name="Проект"
    )
    number = models.PositiveIntegerField(verbose_name="Номер")
    allocated_budget = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Выделенный бюджет"
    )

    class Meta:
        db_table = 'project_components'
        verbose_name = 'Компонент'
        verbose_name_plural = 'Компоненты'
        ordering = ['project', 'number']
        unique_together = [['project', 'number']]

    def __str__(self):
        return f"{self.number}. {self.name_ru}"


class SubComponent(LocalizedNameMixin, BaseModel):
    """Sub-component ("1.1", "1.2" ...)."""

    component = models.ForeignKey(
        Component,
        on_delete=models.CASCADE,
        related_name='sub_components',
        verbose_name="Компонент"
    )
    code = models.CharField(max_length=20, verbose_name="Код")
    allocated_budget = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Выделенный бюджет"
    )

    class Meta:
        db_table = 'project_sub_components'
        verbose_name = 'Подкомпонент'
        verbose_name_plural = 'Подкомпоненты'
        ordering = ['component', 'code']

    def __str__(self):
        return f"{self.code} {self.name_ru}"
