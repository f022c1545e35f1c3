"""
Payment ORM Models.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from domain.contracts.rules import PaymentStatus, ensure_payment_transition
from domain.shared.exceptions import InvalidOperationException, ValidationException
from .base import BaseModelWithHistory


class PaymentStatusChoices(models.IntegerChoices):
    PENDING = PaymentStatus.PENDING.value, 'Ожидает'
    APPROVED = PaymentStatus.APPROVED.value, 'Одобрен'
    PAID = PaymentStatus.PAID.value, 'Оплачен'
    REJECTED = PaymentStatus.REJECTED.value, 'Отклонён'


class PaymentTypeChoices(models.TextChoices):
    ADVANCE = 'advance', 'Аванс'
    INTERIM = 'interim', 'Промежуточный'
    FINAL = 'final', 'Окончательный'
    RETENTION = 'retention', 'Удержание'


class Payment(BaseModelWithHistory):
    """
    Payment under a contract.

    `amount` is always USD. For TJS contracts the original amount and
    the exchange rate are kept alongside.
    """

    contract = models.ForeignKey(
        'persistence.Contract',
        on_delete=models.CASCADE,
        related_name='payments',
        verbose_name="Контракт"
    )
    work_progress = models.ForeignKey(
        'persistence.WorkProgress',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments',
        verbose_name="АВР"
    )
    payment_date = models.DateField(verbose_name="Дата платежа")
    amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        verbose_name="Сумма (USD)"
    )
    amount_tjs = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True,
        verbose_name="Сумма (TJS)"
    )
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True,
        verbose_name="Курс"
    )
    type = models.CharField(
        max_length=20,
        choices=PaymentTypeChoices.choices,
        default=PaymentTypeChoices.INTERIM,
        verbose_name="Тип платежа"
    )
    status = models.PositiveSmallIntegerField(
        choices=PaymentStatusChoices.choices,
        default=PaymentStatusChoices.PENDING,
        db_index=True,
        verbose_name="Статус"
    )
    description = models.TextField(blank=True, verbose_name="Описание")
    invoice_number = models.CharField(max_length=100, blank=True, verbose_name="Номер счёта")

    approved_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата одобрения")
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_payments',
        verbose_name="Одобрил"
    )
    rejection_reason = models.TextField(blank=True, verbose_name="Причина отклонения")
    rejected_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата отклонения")
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rejected_payments',
        verbose_name="Отклонил"
    )
    paid_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата оплаты")

    class Meta:
        db_table = 'payments'
        verbose_name = 'Платёж'
        verbose_name_plural = 'Платежи'
        ordering = ['-payment_date', '-created_at']
        indexes = [
            models.Index(fields=['contract', 'status']),
        ]

    def __str__(self):
        return f"{self.contract} / {self.amount} USD от {self.payment_date:%d.%m.%Y}"

    def approve(self, user):
        if self.status != PaymentStatusChoices.PENDING:
            raise InvalidOperationException(
                "Одобрить можно только ожидающий платёж",
                current_state=self.get_status_display(),
            )
        with transaction.atomic():
            self.status = PaymentStatusChoices.APPROVED
            self.approved_by = user
            self.approved_at = timezone.now()
            self.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])
        return self

    def reject(self, user, reason):
        if self.status == PaymentStatusChoices.PAID:
            raise InvalidOperationException(
                "Нельзя отклонить оплаченный платёж",
                current_state=self.get_status_display(),
            )
        if not reason or not reason.strip():
            raise ValidationException("Укажите причину отклонения", field='reason')
        ensure_payment_transition(self.status, PaymentStatusChoices.REJECTED)
        with transaction.atomic():
            self.status = PaymentStatusChoices.REJECTED
            self.rejection_reason = reason.strip()
            self.rejected_by = user
            self.rejected_at = timezone.now()
            self.save(update_fields=[
                'status', 'rejection_reason', 'rejected_by', 'rejected_at', 'updated_at'
            ])
        return self

    def mark_as_paid(self, user=None):
        if self.status != PaymentStatusChoices.APPROVED:
            raise InvalidOperationException(
                "Отметить оплаченным можно только одобренный платёж",
                current_state=self.get_status_display(),
            )
        with transaction.atomic():
            self.status = PaymentStatusChoices.PAID
            self.paid_at = timezone.now()
            self.updated_by = user
            self.save(update_fields=['status', 'paid_at', 'updated_by', 'updated_at'])
        return self

    @property
    def amount_decimal(self):
        return Decimal(self.amount)
