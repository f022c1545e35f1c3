"""
Periodic Celery job tests.

Tasks are called directly; Celery runs eagerly in test settings.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
import requests
from django.core import mail
from django.core.cache import cache
from django.utils import timezone

from application.services.notifications import NotificationService
from application.tasks.contract_tasks import check_contract_expiry
from application.tasks.currency_tasks import fetch_currency_rates
from application.tasks.notification_tasks import (
    check_task_deadlines,
    deliver_scheduled_notifications,
    send_notification_email,
)
from infrastructure.persistence.models import (
    ContractMilestone,
    CurrencyRate,
    Notification,
    NotificationChannelChoices,
    NotificationTypeChoices,
    TaskStatusChoices,
)
from tests.conftest import ContractFactory, ContractMilestoneFactory, ProjectTaskFactory, UserFactory
from tests.test_currency import NBT_GET, nbt_response


@pytest.mark.django_db
class TestCheckTaskDeadlines:

    def test_reminders_sent_once_a_day(self):
        now = timezone.now()
        soon = ProjectTaskFactory(due_date=now + timedelta(days=1))
        late = ProjectTaskFactory(due_date=now - timedelta(days=2))
        ProjectTaskFactory(due_date=now + timedelta(days=10))
        ProjectTaskFactory(due_date=now - timedelta(days=2), status=TaskStatusChoices.COMPLETED)

        assert check_task_deadlines() == {'approaching': 1, 'overdue': 1}
        assert check_task_deadlines() == {'approaching': 0, 'overdue': 0}

        assert Notification.objects.get(type=NotificationTypeChoices.DEADLINE_APPROACHING).user == soon.assignee
        overdue = Notification.objects.get(type=NotificationTypeChoices.DEADLINE_OVERDUE)
        assert overdue.user == late.assignee
        assert overdue.reference_id == late.pk

    def test_personal_warning_window(self):
        task = ProjectTaskFactory(due_date=timezone.now() + timedelta(days=5))
        user_settings = NotificationService.get_settings(task.assignee)
        user_settings.deadline_warning_days = 7
        user_settings.save()

        assert check_task_deadlines() == {'approaching': 1, 'overdue': 0}

    def test_inactive_assignee_skipped(self):
        ProjectTaskFactory(
            due_date=timezone.now() - timedelta(days=1),
            assignee=UserFactory(is_active=False),
        )
        assert check_task_deadlines() == {'approaching': 0, 'overdue': 0}


@pytest.mark.django_db
class TestCheckContractExpiry:

    def test_curator_and_manager_warned(self, staff_user):
        manager = UserFactory()
        contract = ContractFactory(
            curator=staff_user,
            project_manager=manager,
            contract_end_date=timezone.localdate() + timedelta(days=10),
        )
        ContractFactory(curator=staff_user)

        assert check_contract_expiry()['notifications_sent'] == 2
        assert check_contract_expiry()['notifications_sent'] == 0
        assert set(
            Notification.objects.filter(
                type=NotificationTypeChoices.CONTRACT_EXPIRING, reference_id=contract.pk,
            ).values_list('user', flat=True)
        ) == {staff_user.pk, manager.pk}

    def test_overdue_milestones_flagged(self):
        milestone = ContractMilestoneFactory(due_date=timezone.localdate() - timedelta(days=1))
        ContractMilestoneFactory()

        assert check_contract_expiry()['milestones_overdue'] == 1
        milestone.refresh_from_db()
        assert milestone.status == ContractMilestone.STATUS_OVERDUE


@pytest.mark.django_db
class TestFetchCurrencyRates:

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        cache.clear()
        yield
        cache.clear()

    def test_rates_stored(self):
        with patch(NBT_GET, return_value=nbt_response()):
            result = fetch_currency_rates('2026-03-02')

        assert result == {'date': '2026-03-02', 'rates': 2}
        assert CurrencyRate.objects.filter(char_code='USD').exists()

    def test_failure_propagates_when_called_directly(self):
        with patch(NBT_GET, side_effect=requests.ConnectionError("NBT down")):
            with pytest.raises(requests.ConnectionError):
                fetch_currency_rates('2026-03-02')


@pytest.mark.django_db
class TestNotificationDelivery:

    def test_scheduled_notifications_released(self, django_capture_on_commit_callbacks):
        user = UserFactory(email='night@pmmis.test')
        Notification.objects.create(
            user=user, title="Отложено", message="Тихие часы закончились",
            type=NotificationTypeChoices.SYSTEM_MESSAGE, channel=NotificationChannelChoices.EMAIL,
            scheduled_at=timezone.now() - timedelta(minutes=5),
        )
        Notification.objects.create(
            user=user, title="Позже", message="...",
            type=NotificationTypeChoices.SYSTEM_MESSAGE, channel=NotificationChannelChoices.EMAIL,
            scheduled_at=timezone.now() + timedelta(hours=2),
        )

        with django_capture_on_commit_callbacks(execute=True):
            assert deliver_scheduled_notifications() == {'delivered': 1}

        assert [m.subject for m in mail.outbox] == ["Отложено"]
        assert Notification.objects.filter(scheduled_at__isnull=True).count() == 1

    def test_missing_notification(self):
        assert send_notification_email(999999) == {'error': 'Notification not found'}
