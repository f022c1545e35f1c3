"""
Contract ORM Models.

Contractors, contracts, amendments and milestones.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.db.models import Sum
from django.utils import timezone

from domain.contracts.rules import (
    AmendmentEffect,
    AmendmentType,
    ContractTerms,
    PaymentStatus,
    apply_amendment,
    final_amount,
    paid_percent,
    remaining_days,
    revert_amendment,
)
from domain.shared.exceptions import InvalidOperationException
from domain.shared.value_objects import localized
from .base import BaseModel, BaseModelWithHistory


class Contractor(BaseModel):
    """Contractor company (works, goods or consulting)."""

    name = models.CharField(max_length=500, verbose_name="Наименование")
    country = models.CharField(max_length=100, blank=True, verbose_name="Страна")
    contact_person = models.CharField(max_length=255, blank=True, verbose_name="Контактное лицо")
    email = models.EmailField(blank=True, verbose_name="Email")
    phone = models.CharField(max_length=50, blank=True, verbose_name="Телефон")
    address = models.TextField(blank=True, verbose_name="Адрес")

    class Meta:
        db_table = 'contractors'
        verbose_name = 'Подрядчик'
        verbose_name_plural = 'Подрядчики'
        ordering = ['name']

    def __str__(self):
        return self.name


class ContractTypeChoices(models.TextChoices):
    WORKS = 'works', 'Строительные работы'
    CONSULTING = 'consulting', 'Консультационные услуги'
    GOODS = 'goods', 'Товары'


class CurrencyChoices(models.TextChoices):
    USD = 'USD', 'Доллар США'
    TJS = 'TJS', 'Сомони'


class Contract(BaseModelWithHistory):
    """
    Contract with a contractor.

    Amounts are kept in USD; TJS contracts also store the original amount
    and the exchange rate used. Paid figures are derived from payments
    with status Paid.
    """

    contract_number = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Номер контракта"
    )
    scope_of_work = models.TextField(verbose_name="Предмет контракта")
    scope_of_work_tj = models.TextField(blank=True, verbose_name="Предмет контракта (тадж)")
    scope_of_work_en = models.TextField(blank=True, verbose_name="Предмет контракта (англ)")
    type = models.CharField(
        max_length=20,
        choices=ContractTypeChoices.choices,
        default=ContractTypeChoices.WORKS,
        verbose_name="Тип контракта"
    )

    project = models.ForeignKey(
        'persistence.Project',
        on_delete=models.PROTECT,
        related_name='contracts',
        verbose_name="Проект"
    )
    sub_component = models.ForeignKey(
        'persistence.SubComponent',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='contracts',
        verbose_name="Подкомпонент"
    )
    contractor = models.ForeignKey(
        Contractor,
        on_delete=models.PROTECT,
        related_name='contracts',
        verbose_name="Подрядчик"
    )
    procurement_plan = models.OneToOneField(
        'persistence.ProcurementPlan',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='contract',
        verbose_name="Позиция плана закупок"
    )
    curator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='curated_contracts',
        verbose_name="Куратор"
    )
    project_manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_contracts',
        verbose_name="Менеджер проекта"
    )

    # Dates
    signing_date = models.DateField(verbose_name="Дата подписания")
    contract_end_date = models.DateField(verbose_name="Дата окончания")
    extended_to_date = models.DateField(
        null=True,
        blank=True,
        verbose_name="Продлён до"
    )

    # Money
    currency = models.CharField(
        max_length=3,
        choices=CurrencyChoices.choices,
        default=CurrencyChoices.USD,
        verbose_name="Валюта"
    )
    contract_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Сумма контракта (USD)"
    )
    additional_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Дополнительная сумма (USD)"
    )
    saved_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Экономия (USD)"
    )
    amount_tjs = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True,
        verbose_name="Сумма контракта (TJS)"
    )
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True,
        verbose_name="Курс TJS/USD"
    )

    work_completed_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'),
        verbose_name="Выполнено работ, %"
    )

    class Meta:
        db_table = 'contracts'
        verbose_name = 'Контракт'
        verbose_name_plural = 'Контракты'
        ordering = ['-signing_date', 'contract_number']
        indexes = [
            models.Index(fields=['project', 'contract_end_date']),
        ]

    def __str__(self):
        return self.contract_number

    def get_scope_of_work(self, lang=None):
        return localized(lang, self.scope_of_work, self.scope_of_work_tj, self.scope_of_work_en)

    # ------------------------------------------------------------------
    # Financials
    # ------------------------------------------------------------------

    @property
    def final_amount(self):
        return final_amount(self.contract_amount, self.additional_amount, self.saved_amount)

    def _payments_total(self, statuses):
        return self.payments.filter(status__in=statuses).aggregate(
            total=Sum('amount')
        )['total'] or Decimal('0')

    @property
    def paid_amount(self):
        return self._payments_total([PaymentStatus.PAID])

    @property
    def pipeline_amount(self):
        """Pending + approved payments not yet paid."""
        return self._payments_total([PaymentStatus.PENDING, PaymentStatus.APPROVED])

    @property
    def paid_percent(self):
        return paid_percent(self.paid_amount, self.final_amount)

    @property
    def remaining_amount(self):
        return self.final_amount - self.paid_amount

    @property
    def available_limit(self):
        return self.final_amount - self.paid_amount - self.pipeline_amount

    @property
    def effective_end_date(self):
        return self.extended_to_date or self.contract_end_date

    @property
    def remaining_days(self):
        return remaining_days(self.contract_end_date, self.extended_to_date, timezone.localdate())

    def recalculate_work_completed(self):
        """Take work_completed_percent from the latest AVR by report date."""
        latest = self.work_progresses.order_by('-report_date', '-created_at').first()
        self.work_completed_percent = latest.completed_percent if latest else Decimal('0')
        self.save(update_fields=['work_completed_percent', 'updated_at'])
        return self.work_completed_percent

    def get_terms(self):
        return ContractTerms(
            additional_amount=self.additional_amount,
            contract_end_date=self.contract_end_date,
            extended_to_date=self.extended_to_date,
            scope_of_work=self.scope_of_work,
        )

    def set_terms(self, terms):
        self.additional_amount = terms.additional_amount
        self.extended_to_date = terms.extended_to_date
        self.scope_of_work = terms.scope_of_work
        self.save(update_fields=['additional_amount', 'extended_to_date', 'scope_of_work', 'updated_at'])


class ContractAmendment(BaseModel):
    """
    Additional agreement to a contract.

    Saving a new amendment applies it to the contract; deleting it
    reverts the amount and deadline changes.
    """

    TYPE_CHOICES = [
        (AmendmentType.AMOUNT_CHANGE.value, 'Изменение суммы'),
        (AmendmentType.DEADLINE_EXTENSION.value, 'Продление срока'),
        (AmendmentType.SCOPE_CHANGE.value, 'Изменение объёма работ'),
    ]

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name='amendments',
        verbose_name="Контракт"
    )
    type = models.PositiveSmallIntegerField(
        choices=TYPE_CHOICES,
        verbose_name="Тип"
    )
    amendment_date = models.DateField(verbose_name="Дата соглашения")
    description = models.TextField(blank=True, verbose_name="Описание")
    amount_change_tjs = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True,
        verbose_name="Изменение суммы (TJS)"
    )
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True,
        verbose_name="Курс"
    )
    amount_change_usd = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True,
        verbose_name="Изменение суммы (USD)"
    )
    previous_end_date = models.DateField(null=True, blank=True, verbose_name="Прежний срок")
    new_end_date = models.DateField(null=True, blank=True, verbose_name="Новый срок")
    new_scope_of_work = models.TextField(blank=True, verbose_name="Новый объём работ")

    class Meta:
        db_table = 'contract_amendments'
        verbose_name = 'Дополнительное соглашение'
        verbose_name_plural = 'Дополнительные соглашения'
        ordering = ['contract', 'amendment_date', 'id']

    def __str__(self):
        return f"{self.contract} / {self.get_type_display()} от {self.amendment_date:%d.%m.%Y}"

    def _effect(self):
        return AmendmentEffect(
            amendment_type=AmendmentType(self.type),
            amount_change_usd=self.amount_change_usd or Decimal('0'),
            new_end_date=self.new_end_date,
            new_scope_of_work=self.new_scope_of_work or '',
            previous_end_date=self.previous_end_date,
        )

    def apply_to_contract(self):
        """Persist the amendment and update the contract terms."""
        with transaction.atomic():
            contract = Contract.objects.select_for_update().get(pk=self.contract_id)
            terms = contract.get_terms()
            effect = apply_amendment(terms, self._effect())
            self.previous_end_date = effect.previous_end_date
            self.save()
            contract.set_terms(terms)
        return self

    def revert_and_delete(self):
        with transaction.atomic():
            contract = Contract.objects.select_for_update().get(pk=self.contract_id)
            terms = contract.get_terms()
            revert_amendment(terms, self._effect())
            contract.set_terms(terms)
            self.delete()


class ContractMilestone(BaseModel):
    """Contract milestone (deliverable or recurring report)."""

    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_OVERDUE = 'overdue'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Ожидает'),
        (STATUS_IN_PROGRESS, 'В работе'),
        (STATUS_COMPLETED, 'Выполнен'),
        (STATUS_OVERDUE, 'Просрочен'),
    ]

    FREQUENCY_CHOICES = [
        ('one_time', 'Однократно'),
        ('monthly', 'Ежемесячно'),
        ('quarterly', 'Ежеквартально'),
    ]

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name='milestones',
        verbose_name="Контракт"
    )
    title = models.CharField(max_length=500, verbose_name="Название")
    title_tj = models.CharField(max_length=500, blank=True, verbose_name="Название (тадж)")
    title_en = models.CharField(max_length=500, blank=True, verbose_name="Название (англ)")
    description = models.TextField(blank=True, verbose_name="Описание")
    due_date = models.DateField(verbose_name="Срок")
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата выполнения")
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        verbose_name="Статус"
    )
    frequency = models.CharField(
        max_length=20,
        choices=FREQUENCY_CHOICES,
        default='one_time',
        verbose_name="Периодичность"
    )
    work_progress = models.ForeignKey(
        'persistence.WorkProgress',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='milestones',
        verbose_name="АВР"
    )
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")

    class Meta:
        db_table = 'contract_milestones'
        verbose_name = 'Этап контракта'
        verbose_name_plural = 'Этапы контракта'
        ordering = ['contract', 'sort_order', 'due_date']

    def __str__(self):
        return self.title

    def get_title(self, lang=None):
        return localized(lang, self.title, self.title_tj, self.title_en)

    @property
    def is_overdue(self):
        return self.status != self.STATUS_COMPLETED and self.due_date < timezone.localdate()

    def complete(self, work_progress=None):
        if self.status == self.STATUS_COMPLETED:
            raise InvalidOperationException("Этап уже выполнен", current_state=self.get_status_display())
        self.status = self.STATUS_COMPLETED
        self.completed_at = timezone.now()
        if work_progress is not None:
            self.work_progress = work_progress
        self.save(update_fields=['status', 'completed_at', 'work_progress', 'updated_at'])
        return self

    @classmethod
    def mark_overdue(cls):
        """Flag open milestones past their due date. Returns the count."""
        return cls.objects.filter(
            due_date__lt=timezone.localdate(),
            status__in=[cls.STATUS_PENDING, cls.STATUS_IN_PROGRESS],
        ).update(status=cls.STATUS_OVERDUE, updated_at=timezone.now())
