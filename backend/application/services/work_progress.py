"""
Work Progress (AVR) Services.

Workflow side effects around the WorkProgress transition methods:
indicator rollup, follow-up tasks for the next approver and the
automatic interim payment on director approval.
"""

import logging
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from domain.contracts.rules import auto_payment_amount
from domain.shared.exceptions import AuthorizationException, InvalidOperationException
from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import (
    ApprovalStatusChoices,
    NotificationTypeChoices,
    Payment,
    PaymentStatusChoices,
    PaymentTypeChoices,
    TaskPriorityChoices,
    WorkProgress,
)
from .indicators import IndicatorService
from .notifications import NotificationService
from .tasks import TaskService

logger = logging.getLogger(__name__)


def first_active_user_with_role(role_code):
    User = get_user_model()
    return (
        User.objects
        .filter(is_active=True, user_roles__role__code=role_code, user_roles__is_active=True)
        .order_by('id')
        .first()
    )


class WorkProgressService:
    """AVR create/update/delete and approval steps."""

    EDITABLE_FIELDS = ('report_date', 'completed_percent', 'description', 'issues')

    @staticmethod
    def _ensure_editable(work_progress):
        if not work_progress.is_editable:
            raise InvalidOperationException(
                "АВР можно изменять только в статусе «Черновик» или «Отклонён»",
                current_state=work_progress.get_approval_status_display(),
            )

    @staticmethod
    def _refresh_contract(contract):
        IndicatorService.recalculate_achieved_values(contract)
        contract.recalculate_work_completed()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, contract, user, indicator_entries: Optional[Iterable[dict]] = None, **fields) -> WorkProgress:
        with transaction.atomic():
            work_progress = WorkProgress.objects.create(
                contract=contract,
                approval_status=ApprovalStatusChoices.DRAFT,
                created_by=user,
                **fields,
            )
            IndicatorService.save_indicator_progress(work_progress, indicator_entries or [], user)
            cls._refresh_contract(contract)

            reviewer = contract.curator or contract.project_manager or user
            TaskService.create_system_task(
                reviewer,
                f"Проверить АВР по контракту {contract.contract_number}",
                description=(
                    f"Подрядчик: {contract.contractor.name}\n"
                    f"Дата отчёта: {work_progress.report_date:%d.%m.%Y}\n"
                    f"Прогресс: {work_progress.completed_percent}%\n"
                    f"{work_progress.description}"
                ),
                priority=TaskPriorityChoices.HIGH,
                due_in_days=3,
                creator=user,
                contract=contract,
                work_progress=work_progress,
                project_id=contract.project_id,
            )

        logger.info(f"AVR {work_progress.pk} created for contract {contract.contract_number}")
        return work_progress

    @classmethod
    def update(cls, work_progress, user, indicator_entries: Optional[Iterable[dict]] = None, **fields) -> WorkProgress:
        cls._ensure_editable(work_progress)
        with transaction.atomic():
            for field in cls.EDITABLE_FIELDS:
                if field in fields:
                    setattr(work_progress, field, fields[field])
            work_progress.updated_by = user
            work_progress.save()
            if indicator_entries is not None:
                IndicatorService.save_indicator_progress(work_progress, indicator_entries, user)
            cls._refresh_contract(work_progress.contract)
        return work_progress

    @classmethod
    def delete(cls, work_progress) -> None:
        cls._ensure_editable(work_progress)
        contract = work_progress.contract
        with transaction.atomic():
            work_progress.delete()
            cls._refresh_contract(contract)
        logger.info(f"AVR deleted from contract {contract.contract_number}")

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    @classmethod
    def submit_for_review(cls, work_progress, user) -> WorkProgress:
        contract = work_progress.contract
        with transaction.atomic():
            work_progress.submit_for_review(user)
            TaskService.complete_related_tasks(user, work_progress=work_progress)
            TaskService.create_system_task(
                contract.project_manager,
                f"Проверить АВР #{work_progress.pk} ({contract.contract_number})",
                description=(
                    "АВР отправлен на проверку.\n"
                    f"Подрядчик: {contract.contractor.name}\n"
                    f"Прогресс: {work_progress.completed_percent}%"
                ),
                priority=TaskPriorityChoices.HIGH,
                due_in_days=3,
                creator=user,
                contract=contract,
                work_progress=work_progress,
                project_id=contract.project_id,
            )
        logger.info(f"AVR {work_progress.pk} submitted for review by {user.username}")
        return work_progress

    @classmethod
    def manager_approve(cls, work_progress, user, comment='') -> WorkProgress:
        contract = work_progress.contract
        with transaction.atomic():
            work_progress.manager_approve(user, comment)
            TaskService.complete_related_tasks(user, work_progress=work_progress)
            description = (
                "АВР одобрен менеджером проекта.\n"
                f"Подрядчик: {contract.contractor.name}\n"
                f"Прогресс: {work_progress.completed_percent}%"
            )
            if comment:
                description += f"\nКомментарий менеджера: {comment}"
            TaskService.create_system_task(
                first_active_user_with_role(RoleCode.PMU_ADMIN),
                f"Утвердить АВР #{work_progress.pk} ({contract.contract_number})",
                description=description,
                priority=TaskPriorityChoices.HIGH,
                due_in_days=2,
                creator=user,
                contract=contract,
                work_progress=work_progress,
                project_id=contract.project_id,
            )
        logger.info(f"AVR {work_progress.pk} approved by manager {user.username}")
        return work_progress

    @classmethod
    def director_approve(cls, work_progress, user, comment=''):
        """
        Final approval. Only PMU administrators may approve.

        Creates a pending interim payment for the approved share of the
        contract amount. Returns (work_progress, payment).
        """
        if not (user.is_superuser or user.is_pmu_admin):
            raise AuthorizationException('director_approve', f"АВР #{work_progress.pk}")

        contract = work_progress.contract
        with transaction.atomic():
            work_progress.director_approve(user, comment)
            TaskService.complete_related_tasks(user, work_progress=work_progress)

            amount = auto_payment_amount(contract.contract_amount, work_progress.completed_percent)
            payment = Payment.objects.create(
                contract=contract,
                work_progress=work_progress,
                payment_date=timezone.localdate(),
                amount=amount,
                type=PaymentTypeChoices.INTERIM,
                status=PaymentStatusChoices.PENDING,
                description=f"Автоплатёж по АВР #{work_progress.pk} от {work_progress.report_date:%d.%m.%Y}",
                created_by=user,
            )

            TaskService.create_system_task(
                first_active_user_with_role(RoleCode.PMU_STAFF),
                f"Подготовить платёжку #{payment.pk} ({contract.contract_number})",
                description=(
                    "АВР утверждён директором.\n"
                    f"Сумма: {amount:,.2f}\n"
                    f"Подрядчик: {contract.contractor.name}\n"
                    "Проверьте и подтвердите платёжку."
                ),
                priority=TaskPriorityChoices.HIGH,
                due_in_days=5,
                creator=user,
                contract=contract,
                payment=payment,
                project_id=contract.project_id,
            )

        logger.info(
            f"AVR {work_progress.pk} approved by director {user.username}, "
            f"payment {payment.pk} for {amount} USD created"
        )
        return work_progress, payment

    @classmethod
    def reject(cls, work_progress, user, reason) -> WorkProgress:
        contract = work_progress.contract
        with transaction.atomic():
            work_progress.reject(user, reason)
            TaskService.complete_related_tasks(user, work_progress=work_progress)
            task = TaskService.create_system_task(
                contract.curator,
                f"АВР #{work_progress.pk} отклонён ({contract.contract_number})",
                description=f"Причина: {work_progress.rejection_reason}\nИсправьте и отправьте повторно.",
                priority=TaskPriorityChoices.HIGH,
                due_in_days=3,
                creator=user,
                contract=contract,
                work_progress=work_progress,
                project_id=contract.project_id,
            )
            if task is None and work_progress.submitted_by:
                NotificationService.send_to_user(
                    work_progress.submitted_by,
                    "АВР отклонён",
                    f"АВР #{work_progress.pk} по контракту {contract.contract_number} отклонён: "
                    f"{work_progress.rejection_reason}",
                    NotificationTypeChoices.NEW_WORK_ACT,
                    reference_type='WorkProgress',
                    reference_id=work_progress.pk,
                    action_url=f"/work-progress/{work_progress.pk}",
                )
        logger.info(f"AVR {work_progress.pk} rejected by {user.username}")
        return work_progress
