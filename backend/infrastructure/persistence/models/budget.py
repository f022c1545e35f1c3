"""
Budget ORM Models.

PMU operating budget lines and their expenses.
"""

from decimal import Decimal

from django.db import models
from django.db.models import Sum

from .base import BaseModel, LocalizedNameMixin


class BudgetCategoryChoices(models.TextChoices):
    SALARIES = 'salaries', 'Зарплата персонала'
    SOCIAL_TAXES = 'social_taxes', 'Социальные налоги'
    TRAVEL = 'travel', 'Командировки'
    UTILITIES = 'utilities', 'Коммунальные услуги'
    FUEL = 'fuel', 'ГСМ'
    VEHICLE_MAINTENANCE = 'vehicle_maintenance', 'Обслуживание транспорта'
    COMMUNICATIONS = 'communications', 'Связь и интернет'
    OFFICE_SUPPLIES = 'office_supplies', 'Офисные расходы'
    OFFICE_REPAIRS = 'office_repairs', 'Ремонт офиса'
    BANKING = 'banking', 'Банковское обслуживание'
    INSURANCE = 'insurance', 'Страхование'
    EXPERTISE = 'expertise', 'Экспертиза'
    OTHER = 'other', 'Прочее'


class BudgetItem(LocalizedNameMixin, BaseModel):
    project = models.ForeignKey(
        'persistence.Project',
        on_delete=models.CASCADE,
        related_name='budget_items',
        verbose_name="Проект"
    )
    number = models.PositiveIntegerField(verbose_name="№")
    allocated_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Выделено (USD)"
    )
    calculation_notes = models.TextField(blank=True, verbose_name="Расчёт")
    category = models.CharField(
        max_length=30,
        choices=BudgetCategoryChoices.choices,
        default=BudgetCategoryChoices.OTHER,
        verbose_name="Категория"
    )

    class Meta:
        db_table = 'budget_items'
        verbose_name = 'Статья бюджета'
        verbose_name_plural = 'Статьи бюджета'
        ordering = ['project', 'number']

    @property
    def spent_amount(self):
        return self.expenses.aggregate(total=Sum('amount'))['total'] or Decimal('0')

    @property
    def remaining_amount(self):
        return self.allocated_amount - self.spent_amount


class BudgetExpense(BaseModel):
    budget_item = models.ForeignKey(
        BudgetItem,
        on_delete=models.CASCADE,
        related_name='expenses',
        verbose_name="Статья бюджета"
    )
    expense_date = models.DateField(verbose_name="Дата расхода")
    amount = models.DecimalField(max_digits=18, decimal_places=2, verbose_name="Сумма (USD)")
    description = models.TextField(blank=True, verbose_name="Описание")
    document_reference = models.CharField(max_length=255, blank=True, verbose_name="Документ-основание")

    class Meta:
        db_table = 'budget_expenses'
        verbose_name = 'Расход'
        verbose_name_plural = 'Расходы'
        ordering = ['-expense_date']

    def __str__(self):
        return f"{self.budget_item} / {self.amount} ({self.expense_date})"
