"""
Dashboard Services.

Project summary figures and management alerts (red flags).
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from django.db.models import Avg, Q, Sum
from django.utils import timezone

from domain.shared.value_objects import Percent
from infrastructure.persistence.models import (
    Contract,
    ContractMilestone,
    Payment,
    PaymentStatusChoices,
    ProcurementPlan,
    ProcurementStatusChoices,
    ProjectTask,
)
from .tasks import OPEN_STATUSES

logger = logging.getLogger(__name__)


class AlertSeverity:
    WARNING = 'warning'
    CRITICAL = 'critical'

    ORDER = {CRITICAL: 2, WARNING: 1}


class AlertType:
    CONTRACT_AT_RISK = 'contract_at_risk'
    TASK_OVERDUE = 'task_overdue'
    PAYMENT_DELAY = 'payment_delay'
    PROCUREMENT_DELAY = 'procurement_delay'
    MILESTONE_OVERDUE = 'milestone_overdue'


@dataclass
class ManagementAlert:
    type: str
    severity: str
    title: str
    description: str
    link_url: str
    contract_id: Optional[int] = None
    project_id: Optional[int] = None
    detected_at: Optional[datetime] = None

    def as_dict(self):
        return asdict(self)


class ManagementAlertService:
    """Detects contracts, tasks, payments and procurements that need attention."""

    DEADLINE_WARNING_DAYS = 30
    DEADLINE_CRITICAL_DAYS = 14
    PROGRESS_CRITICAL = Decimal('30')
    PROGRESS_GAP_WARNING = Decimal('20')
    PAYMENT_DELAY_CRITICAL_DAYS = 14
    TASK_OVERDUE_CRITICAL_DAYS = 7
    PROCUREMENT_DELAY_CRITICAL_DAYS = 30
    MILESTONE_OVERDUE_CRITICAL_DAYS = 30
    LIMIT = 10

    @classmethod
    def get_active_alerts(cls, project=None) -> List[ManagementAlert]:
        now = timezone.now()
        alerts = [
            *cls.contract_risk_alerts(project),
            *cls.overdue_task_alerts(project),
            *cls.payment_delay_alerts(project),
            *cls.procurement_delay_alerts(project),
            *cls.overdue_milestone_alerts(project),
        ]
        for alert in alerts:
            alert.detected_at = now
        alerts.sort(key=lambda a: AlertSeverity.ORDER[a.severity], reverse=True)
        return alerts

    @classmethod
    def contract_risk_alerts(cls, project=None):
        today = timezone.localdate()
        contracts = Contract.objects.select_related('contractor').filter(
            Q(extended_to_date__gt=today) | Q(extended_to_date__isnull=True, contract_end_date__gt=today)
        )
        if project is not None:
            contracts = contracts.filter(project=project)

        alerts = []
        for contract in contracts:
            end = contract.effective_end_date
            days_remaining = (end - today).days
            progress = contract.work_completed_percent
            total_days = (end - contract.signing_date).days
            elapsed = (today - contract.signing_date).days
            expected = Percent.ratio(Decimal(elapsed), Decimal(total_days)) if total_days > 0 else Decimal('0')

            if days_remaining < cls.DEADLINE_CRITICAL_DAYS and progress < cls.PROGRESS_CRITICAL:
                alerts.append(ManagementAlert(
                    type=AlertType.CONTRACT_AT_RISK,
                    severity=AlertSeverity.CRITICAL,
                    title=f"Контракт {contract.contract_number} в критическом состоянии",
                    description=(
                        f"Прогресс: {progress}%, до окончания: {days_remaining} дн. "
                        f"Подрядчик: {contract.contractor.name}"
                    ),
                    link_url=f"/contracts/{contract.pk}",
                    contract_id=contract.pk,
                    project_id=contract.project_id,
                ))
            elif days_remaining < cls.DEADLINE_WARNING_DAYS and expected - progress > cls.PROGRESS_GAP_WARNING:
                alerts.append(ManagementAlert(
                    type=AlertType.CONTRACT_AT_RISK,
                    severity=AlertSeverity.WARNING,
                    title=f"Контракт {contract.contract_number} отстаёт от графика",
                    description=(
                        f"Прогресс: {progress}% (ожидалось: {expected:.0f}%), "
                        f"до окончания: {days_remaining} дн."
                    ),
                    link_url=f"/contracts/{contract.pk}",
                    contract_id=contract.pk,
                    project_id=contract.project_id,
                ))
        return alerts

    @classmethod
    def overdue_task_alerts(cls, project=None):
        now = timezone.now()
        tasks = ProjectTask.objects.select_related('assignee').filter(
            status__in=OPEN_STATUSES, due_date__lt=now
        )
        if project is not None:
            tasks = tasks.filter(Q(project=project) | Q(contract__project=project))

        alerts = []
        for task in tasks.order_by('due_date')[:cls.LIMIT]:
            days = (now - task.due_date).days
            critical = days > cls.TASK_OVERDUE_CRITICAL_DAYS
            description = f"Просрочено: {days} дн."
            if task.assignee:
                description += f" Исполнитель: {task.assignee.full_name}"
            alerts.append(ManagementAlert(
                type=AlertType.TASK_OVERDUE,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title=f"Задача просрочена: {task.title}",
                description=description,
                link_url=f"/tasks/{task.pk}",
                contract_id=task.contract_id,
                project_id=task.project_id,
            ))
        return alerts

    @classmethod
    def payment_delay_alerts(cls, project=None):
        today = timezone.localdate()
        payments = Payment.objects.select_related('contract__contractor').filter(
            status=PaymentStatusChoices.APPROVED, payment_date__lt=today
        )
        if project is not None:
            payments = payments.filter(contract__project=project)

        alerts = []
        for payment in payments:
            days = (today - payment.payment_date).days
            critical = days > cls.PAYMENT_DELAY_CRITICAL_DAYS
            alerts.append(ManagementAlert(
                type=AlertType.PAYMENT_DELAY,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title="Критическая задержка платежа" if critical else "Задержка платежа",
                description=(
                    f"Контракт: {payment.contract.contract_number}, сумма: ${payment.amount:,.0f}, "
                    f"задержка: {days} дн. Подрядчик: {payment.contract.contractor.name}"
                ),
                link_url=f"/payments?contract={payment.contract_id}",
                contract_id=payment.contract_id,
                project_id=payment.contract.project_id,
            ))
        return alerts

    @classmethod
    def procurement_delay_alerts(cls, project=None):
        today = timezone.localdate()
        plans = ProcurementPlan.objects.filter(
            planned_bid_opening_date__lt=today,
        ).exclude(
            status__in=[ProcurementStatusChoices.COMPLETED, ProcurementStatusChoices.CANCELLED]
        )
        if project is not None:
            plans = plans.filter(project=project)

        alerts = []
        for plan in plans.order_by('planned_bid_opening_date')[:cls.LIMIT]:
            days = (today - plan.planned_bid_opening_date).days
            critical = days > cls.PROCUREMENT_DELAY_CRITICAL_DAYS
            alerts.append(ManagementAlert(
                type=AlertType.PROCUREMENT_DELAY,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title="Критическая задержка закупки" if critical else "Закупка отстаёт от плана",
                description=f"{plan.reference_no}: {plan.description[:50]}... Задержка: {days} дн.",
                link_url=f"/procurement/{plan.pk}",
                project_id=plan.project_id,
            ))
        return alerts

    @classmethod
    def overdue_milestone_alerts(cls, project=None):
        today = timezone.localdate()
        milestones = ContractMilestone.objects.select_related('contract').filter(
            due_date__lt=today
        ).exclude(status=ContractMilestone.STATUS_COMPLETED)
        if project is not None:
            milestones = milestones.filter(contract__project=project)

        alerts = []
        for milestone in milestones.order_by('due_date')[:cls.LIMIT]:
            days = (today - milestone.due_date).days
            critical = days > cls.MILESTONE_OVERDUE_CRITICAL_DAYS
            alerts.append(ManagementAlert(
                type=AlertType.MILESTONE_OVERDUE,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title=f"Этап «{milestone.title}» просрочен на {days} дн.",
                description=f"Контракт: {milestone.contract.contract_number}",
                link_url=f"/contracts/{milestone.contract_id}",
                contract_id=milestone.contract_id,
                project_id=milestone.contract.project_id,
            ))
        return alerts


class DashboardService:

    @staticmethod
    def project_summary(project) -> dict:
        today = timezone.localdate()
        contracts = list(project.contracts.select_related('contractor').annotate(
            paid=Sum('payments__amount', filter=Q(payments__status=PaymentStatusChoices.PAID)),
        ))

        total_value = sum((c.final_amount for c in contracts), Decimal('0'))
        total_paid = sum((c.paid or Decimal('0') for c in contracts), Decimal('0'))
        pending = Payment.objects.filter(
            contract__project=project,
            status__in=[PaymentStatusChoices.PENDING, PaymentStatusChoices.APPROVED],
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0')
        average_progress = project.contracts.aggregate(avg=Avg('work_completed_percent'))['avg'] or Decimal('0')

        plans = ProcurementPlan.objects.filter(project=project)
        procurement = {
            'count': plans.count(),
            'total_estimated': plans.aggregate(total=Sum('estimated_amount'))['total'] or Decimal('0'),
            'planned': plans.filter(status=ProcurementStatusChoices.PLANNED).count(),
            'in_progress': plans.filter(
                status__in=[ProcurementStatusChoices.IN_PROGRESS, ProcurementStatusChoices.EVALUATION]
            ).count(),
            'completed': plans.filter(
                status__in=[ProcurementStatusChoices.COMPLETED, ProcurementStatusChoices.AWARDED]
            ).count(),
        }

        def brief(contract):
            return {
                'id': contract.pk,
                'contract_number': contract.contract_number,
                'contractor_name': contract.contractor.name,
                'end_date': contract.effective_end_date,
                'work_completed_percent': contract.work_completed_percent,
            }

        upcoming = sorted(
            (c for c in contracts if 0 <= (c.effective_end_date - today).days <= 30),
            key=lambda c: c.effective_end_date,
        )[:5]
        overdue = [
            c for c in contracts
            if c.effective_end_date < today and c.work_completed_percent < 100
        ]
        recent = sorted(contracts, key=lambda c: c.created_at, reverse=True)[:5]

        alerts = ManagementAlertService.get_active_alerts(project)

        return {
            'project_id': project.pk,
            'total_budget': project.total_budget,
            'total_contracts': len(contracts),
            'active_contracts': sum(1 for c in contracts if c.effective_end_date > today),
            'total_contract_value': total_value,
            'total_paid': total_paid,
            'pending_payments': pending,
            'disbursement_rate': Percent.ratio(total_paid, total_value),
            'average_progress': Decimal(average_progress).quantize(Decimal('0.01')),
            'procurement': procurement,
            'upcoming_deadlines': [brief(c) for c in upcoming],
            'overdue_contracts': [brief(c) for c in overdue],
            'recent_contracts': [brief(c) for c in recent],
            'critical_alerts_count': sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL),
            'warning_alerts_count': sum(1 for a in alerts if a.severity == AlertSeverity.WARNING),
            'alerts': [a.as_dict() for a in alerts[:10]],
        }
