"""
Notification Tasks.

Celery tasks for delivering notifications and deadline reminders.
"""

from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


def _max_retries():
    return settings.PMMIS['NOTIFICATION_MAX_RETRIES']


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_notification_email(self, notification_id: int):
    """Deliver one notification by e-mail, retrying on failure."""
    from infrastructure.persistence.models import Notification
    from application.services.notifications import NotificationService

    try:
        notification = Notification.objects.select_related('user').get(id=notification_id)
    except Notification.DoesNotExist:
        return {'error': 'Notification not found'}

    sent = NotificationService.deliver_email(notification)
    if not sent and notification.last_error and notification.retry_count < _max_retries():
        raise self.retry(countdown=60 * notification.retry_count)
    return {'notification_id': notification_id, 'sent': sent}


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_notification_telegram(self, notification_id: int):
    """Deliver one notification to Telegram, retrying on failure."""
    from infrastructure.persistence.models import Notification
    from application.services.notifications import NotificationService

    try:
        notification = Notification.objects.select_related('user').get(id=notification_id)
    except Notification.DoesNotExist:
        return {'error': 'Notification not found'}

    sent = NotificationService.deliver_telegram(notification)
    if not sent and notification.last_error and notification.retry_count < _max_retries():
        raise self.retry(countdown=60 * notification.retry_count)
    return {'notification_id': notification_id, 'sent': sent}


@shared_task
def deliver_scheduled_notifications():
    """
    Deliver notifications postponed by quiet hours.

    Runs every 15 minutes.
    """
    from infrastructure.persistence.models import Notification
    from application.services.notifications import NotificationService

    due = Notification.objects.filter(
        scheduled_at__isnull=False,
        scheduled_at__lte=timezone.now(),
    ).select_related('user')

    delivered = 0
    for notification in due:
        NotificationService.schedule_delivery(notification)
        notification.scheduled_at = None
        notification.save(update_fields=['scheduled_at'])
        delivered += 1

    if delivered:
        logger.info(f"Released {delivered} scheduled notifications")
    return {'delivered': delivered}


@shared_task
def check_task_deadlines():
    """
    Remind assignees of approaching and missed task deadlines.

    Runs hourly; each (user, task, type) gets at most one reminder a day.
    """
    from infrastructure.persistence.models import (
        Notification,
        NotificationChannelChoices,
        NotificationPriorityChoices,
        NotificationTypeChoices,
        ProjectTask,
    )
    from application.services.notifications import NotificationService
    from application.services.tasks import OPEN_STATUSES

    now = timezone.now()
    today = timezone.localdate()
    default_days = settings.PMMIS['DEADLINE_WARNING_DAYS']

    def already_sent(task, notification_type):
        return Notification.objects.filter(
            user_id=task.assignee_id,
            type=notification_type,
            reference_type='Task',
            reference_id=task.pk,
            created_at__date=today,
        ).exists()

    tasks = ProjectTask.objects.filter(
        status__in=OPEN_STATUSES,
        assignee__isnull=False,
        assignee__is_active=True,
    ).select_related('assignee', 'assignee__notification_settings')

    approaching = 0
    overdue = 0
    for task in tasks:
        user_settings = getattr(task.assignee, 'notification_settings', None)
        warning_days = user_settings.deadline_warning_days if user_settings else default_days

        if task.due_date < now:
            notification_type = NotificationTypeChoices.DEADLINE_OVERDUE
            if already_sent(task, notification_type):
                continue
            days = (now - task.due_date).days
            NotificationService.send_to_user(
                task.assignee,
                "Срок задачи истёк",
                f"Задача «{task.title}» просрочена на {days} дн.",
                notification_type,
                priority=NotificationPriorityChoices.URGENT,
                channel=NotificationChannelChoices.ALL,
                reference_type='Task',
                reference_id=task.pk,
                action_url=f"/tasks/{task.pk}",
            )
            overdue += 1
        elif task.due_date <= now + timedelta(days=warning_days):
            notification_type = NotificationTypeChoices.DEADLINE_APPROACHING
            if already_sent(task, notification_type):
                continue
            NotificationService.send_to_user(
                task.assignee,
                "Приближается срок задачи",
                f"Срок задачи «{task.title}»: {timezone.localtime(task.due_date):%d.%m.%Y %H:%M}",
                notification_type,
                priority=NotificationPriorityChoices.HIGH,
                channel=NotificationChannelChoices.ALL,
                reference_type='Task',
                reference_id=task.pk,
                action_url=f"/tasks/{task.pk}",
            )
            approaching += 1

    logger.info(f"Deadline check: {approaching} approaching, {overdue} overdue reminders sent")
    return {'approaching': approaching, 'overdue': overdue}
