"""
Procurement ORM Models.

Procurement plan positions (World Bank procurement methods).
"""

from decimal import Decimal

from django.db import models
from django.utils import timezone

from domain.shared.exceptions import StatusTransitionException, ValidationException
from domain.shared.value_objects import localized
from .base import BaseModelWithHistory


class ProcurementMethodChoices(models.TextChoices):
    NCB = 'ncb', 'NCB - Национальные конкурсные торги'
    ICB = 'icb', 'ICB - Международные конкурсные торги'
    SHOPPING = 'shopping', 'Shopping - Запрос котировок'
    DIRECT_CONTRACTING = 'direct', 'Прямое заключение контракта'
    CQS = 'cqs', 'CQS - Отбор по квалификации консультанта'
    QCBS = 'qcbs', 'QCBS - Отбор по качеству и стоимости'
    LCS = 'lcs', 'LCS - Отбор по наименьшей стоимости'
    FBS = 'fbs', 'FBS - Отбор при фиксированном бюджете'


class ProcurementTypeChoices(models.TextChoices):
    GOODS = 'goods', 'Товары'
    WORKS = 'works', 'Работы'
    CONSULTING_SERVICES = 'consulting', 'Консультационные услуги'
    NON_CONSULTING_SERVICES = 'non_consulting', 'Неконсультационные услуги'


class ProcurementStatusChoices(models.TextChoices):
    PLANNED = 'planned', 'Запланировано'
    IN_PROGRESS = 'in_progress', 'Тендер объявлен'
    EVALUATION = 'evaluation', 'Оценка предложений'
    AWARDED = 'awarded', 'Контракт присуждён'
    COMPLETED = 'completed', 'Завершено'
    CANCELLED = 'cancelled', 'Отменено'


class ProcurementPlan(BaseModelWithHistory):
    """
    Position of the project procurement plan.

    A position may end up as one contract (Contract.procurement_plan).
    """

    CLOSED_STATUSES = (ProcurementStatusChoices.COMPLETED, ProcurementStatusChoices.CANCELLED)

    project = models.ForeignKey(
        'persistence.Project',
        on_delete=models.CASCADE,
        related_name='procurement_plans',
        verbose_name="Проект"
    )
    component = models.ForeignKey(
        'persistence.Component',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='procurement_plans',
        verbose_name="Компонент"
    )
    sub_component = models.ForeignKey(
        'persistence.SubComponent',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='procurement_plans',
        verbose_name="Подкомпонент"
    )

    reference_no = models.CharField(max_length=100, db_index=True, verbose_name="Референс №")
    description = models.TextField(verbose_name="Описание")
    description_tj = models.TextField(blank=True, verbose_name="Описание (тадж)")
    description_en = models.TextField(blank=True, verbose_name="Описание (англ)")
    method = models.CharField(
        max_length=20,
        choices=ProcurementMethodChoices.choices,
        default=ProcurementMethodChoices.NCB,
        verbose_name="Метод закупки"
    )
    type = models.CharField(
        max_length=20,
        choices=ProcurementTypeChoices.choices,
        default=ProcurementTypeChoices.WORKS,
        verbose_name="Тип закупки"
    )
    estimated_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Оценочная стоимость (USD)"
    )

    planned_bid_opening_date = models.DateField(null=True, blank=True, verbose_name="Вскрытие (план)")
    planned_contract_signing_date = models.DateField(null=True, blank=True, verbose_name="Подписание (план)")
    planned_completion_date = models.DateField(null=True, blank=True, verbose_name="Завершение (план)")
    advertisement_date = models.DateField(null=True, blank=True, verbose_name="Дата объявления")
    actual_bid_opening_date = models.DateField(null=True, blank=True, verbose_name="Вскрытие (факт)")
    actual_contract_signing_date = models.DateField(null=True, blank=True, verbose_name="Подписание (факт)")
    actual_completion_date = models.DateField(null=True, blank=True, verbose_name="Завершение (факт)")

    status = models.CharField(
        max_length=20,
        choices=ProcurementStatusChoices.choices,
        default=ProcurementStatusChoices.PLANNED,
        db_index=True,
        verbose_name="Статус"
    )
    comments = models.TextField(blank=True, verbose_name="Комментарии")

    class Meta:
        db_table = 'procurement_plans'
        verbose_name = 'Позиция плана закупок'
        verbose_name_plural = 'План закупок'
        ordering = ['project', 'reference_no']
        indexes = [
            models.Index(fields=['project', 'status']),
        ]

    def __str__(self):
        return f"{self.reference_no} - {self.description[:80]}"

    def get_description(self, lang=None):
        return localized(lang, self.description, self.description_tj, self.description_en)

    @property
    def is_closed(self):
        return self.status in self.CLOSED_STATUSES

    @property
    def is_delayed(self):
        """Planned signing date passed and no contract awarded yet."""
        return (
            self.planned_contract_signing_date is not None
            and self.planned_contract_signing_date < timezone.localdate()
            and self.status in (
                ProcurementStatusChoices.PLANNED,
                ProcurementStatusChoices.IN_PROGRESS,
                ProcurementStatusChoices.EVALUATION,
            )
        )

    def change_status(self, new_status, user=None):
        """
        Move the position to another status.

        Completed and cancelled positions are closed. Actual dates are
        stamped on the first transition that reaches them.
        """
        if new_status not in ProcurementStatusChoices.values:
            raise ValidationException(f"Неизвестный статус: {new_status}", field="status", value=new_status)
        if self.is_closed and new_status != self.status:
            raise StatusTransitionException(
                entity_type='ProcurementPlan',
                current_status=self.status,
                target_status=new_status,
            )

        today = timezone.localdate()
        if new_status == ProcurementStatusChoices.IN_PROGRESS and not self.advertisement_date:
            self.advertisement_date = today
        elif new_status == ProcurementStatusChoices.AWARDED and not self.actual_contract_signing_date:
            self.actual_contract_signing_date = today
        elif new_status == ProcurementStatusChoices.COMPLETED and not self.actual_completion_date:
            self.actual_completion_date = today

        self.status = new_status
        self.updated_by = user
        self.save()
        return self
