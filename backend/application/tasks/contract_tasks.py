"""
Contract Tasks.

Celery tasks for contract deadlines and milestones.
"""

from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


@shared_task
def check_contract_expiry():
    """
    Warn curators and project managers about contracts ending soon
    and flag overdue milestones.

    Runs daily.
    """
    from infrastructure.persistence.models import (
        Contract,
        ContractMilestone,
        Notification,
        NotificationChannelChoices,
        NotificationPriorityChoices,
        NotificationTypeChoices,
    )
    from application.services.notifications import NotificationService

    today = timezone.localdate()
    horizon = today + timedelta(days=settings.PMMIS['CONTRACT_EXPIRY_WARNING_DAYS'])

    contracts = Contract.objects.filter(
        Q(extended_to_date__range=(today, horizon))
        | Q(extended_to_date__isnull=True, contract_end_date__range=(today, horizon))
    ).filter(work_completed_percent__lt=100).select_related('curator', 'project_manager')

    sent = 0
    for contract in contracts:
        days = contract.remaining_days
        recipients = {u for u in (contract.curator, contract.project_manager) if u is not None}
        for user in recipients:
            if Notification.objects.filter(
                user=user,
                type=NotificationTypeChoices.CONTRACT_EXPIRING,
                reference_type='Contract',
                reference_id=contract.pk,
                created_at__date=today,
            ).exists():
                continue
            NotificationService.send_to_user(
                user,
                "Истекает срок контракта",
                f"Контракт {contract.contract_number} заканчивается через {days} дн. "
                f"({contract.effective_end_date:%d.%m.%Y}), выполнено {contract.work_completed_percent}%",
                NotificationTypeChoices.CONTRACT_EXPIRING,
                priority=(
                    NotificationPriorityChoices.URGENT if days <= 7
                    else NotificationPriorityChoices.HIGH
                ),
                channel=NotificationChannelChoices.ALL,
                reference_type='Contract',
                reference_id=contract.pk,
                action_url=f"/contracts/{contract.pk}",
            )
            sent += 1

    overdue_milestones = ContractMilestone.mark_overdue()

    logger.info(f"Contract expiry check: {sent} notifications, {overdue_milestones} milestones overdue")
    return {'notifications_sent': sent, 'milestones_overdue': overdue_milestones}
