"""
Work Progress ORM Models.

AVR (акт выполненных работ) with its multi-level approval workflow:
Draft → SubmittedForReview → ManagerApproved → DirectorApproved, or Rejected.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.utils import timezone

from domain.contracts.rules import ApprovalStatus, ensure_approval_transition
from domain.shared.exceptions import ValidationException
from .base import BaseModelWithHistory


class ApprovalStatusChoices(models.IntegerChoices):
    DRAFT = ApprovalStatus.DRAFT.value, 'Черновик'
    SUBMITTED_FOR_REVIEW = ApprovalStatus.SUBMITTED_FOR_REVIEW.value, 'На проверке'
    MANAGER_APPROVED = ApprovalStatus.MANAGER_APPROVED.value, 'Одобрен менеджером'
    DIRECTOR_APPROVED = ApprovalStatus.DIRECTOR_APPROVED.value, 'Утверждён директором'
    REJECTED = ApprovalStatus.REJECTED.value, 'Отклонён'


class WorkProgress(BaseModelWithHistory):
    """
    Work-progress report (AVR) for a contract.

    Status changes go through the transition methods below; each one
    stamps the actor, the time and the comment of that stage.
    """

    contract = models.ForeignKey(
        'persistence.Contract',
        on_delete=models.CASCADE,
        related_name='work_progresses',
        verbose_name="Контракт"
    )
    report_date = models.DateField(verbose_name="Дата отчёта")
    completed_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        verbose_name="Выполнено, %"
    )
    description = models.TextField(blank=True, verbose_name="Описание выполненных работ")
    issues = models.TextField(blank=True, verbose_name="Проблемы")

    approval_status = models.PositiveSmallIntegerField(
        choices=ApprovalStatusChoices.choices,
        default=ApprovalStatusChoices.DRAFT,
        db_index=True,
        verbose_name="Статус согласования"
    )

    # Submission
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submitted_work_progresses',
        verbose_name="Отправил"
    )
    submitted_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата отправки")

    # Manager review
    manager_reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='manager_reviewed_work_progresses',
        verbose_name="Проверил менеджер"
    )
    manager_reviewed_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата проверки менеджером")
    manager_comment = models.TextField(blank=True, verbose_name="Комментарий менеджера")

    # Director approval
    director_approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='director_approved_work_progresses',
        verbose_name="Утвердил директор"
    )
    director_approved_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата утверждения")
    director_comment = models.TextField(blank=True, verbose_name="Комментарий директора")

    # Rejection
    rejection_reason = models.TextField(blank=True, verbose_name="Причина отклонения")
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rejected_work_progresses',
        verbose_name="Отклонил"
    )
    rejected_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата отклонения")

    class Meta:
        db_table = 'work_progress'
        verbose_name = 'Акт выполненных работ'
        verbose_name_plural = 'Акты выполненных работ'
        ordering = ['-report_date', '-created_at']
        indexes = [
            models.Index(fields=['contract', 'report_date']),
        ]

    def __str__(self):
        return f"АВР #{self.pk} от {self.report_date:%d.%m.%Y}"

    @property
    def is_editable(self):
        return ApprovalStatus(self.approval_status).is_editable

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    def _transition(self, target, **stamps):
        ensure_approval_transition(self.approval_status, target)
        for field, value in stamps.items():
            setattr(self, field, value)
        self.approval_status = target
        with transaction.atomic():
            self.save(update_fields=['approval_status', 'updated_at', *stamps])
        return self

    def submit_for_review(self, user):
        """Draft/Rejected → SubmittedForReview."""
        return self._transition(
            ApprovalStatusChoices.SUBMITTED_FOR_REVIEW,
            submitted_by=user,
            submitted_at=timezone.now(),
        )

    def manager_approve(self, user, comment=''):
        """SubmittedForReview → ManagerApproved."""
        return self._transition(
            ApprovalStatusChoices.MANAGER_APPROVED,
            manager_reviewed_by=user,
            manager_reviewed_at=timezone.now(),
            manager_comment=comment or '',
        )

    def director_approve(self, user, comment=''):
        """ManagerApproved → DirectorApproved."""
        return self._transition(
            ApprovalStatusChoices.DIRECTOR_APPROVED,
            director_approved_by=user,
            director_approved_at=timezone.now(),
            director_comment=comment or '',
        )

    def reject(self, user, reason):
        """Any non-terminal status → Rejected. A reason is required."""
        if not reason or not reason.strip():
            raise ValidationException("Укажите причину отклонения", field='reason')
        return self._transition(
            ApprovalStatusChoices.REJECTED,
            rejection_reason=reason.strip(),
            rejected_by=user,
            rejected_at=timezone.now(),
        )
