"""
Notification tests.

Per-type toggles, quiet hours, e-mail and Telegram delivery and the
notification API.
"""

from datetime import time, timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests
from django.core import mail
from django.utils import timezone

from application.services.notifications import NotificationService, TelegramSender
from infrastructure.persistence.models import (
    Notification,
    NotificationChannelChoices,
    NotificationTypeChoices,
    UserNotificationSettings,
)
from tests.conftest import UserFactory


@pytest.fixture
def recipient(db):
    return UserFactory(username='recipient', email='recipient@pmmis.test')


@pytest.fixture
def telegram_settings(settings):
    settings.PMMIS = {**settings.PMMIS, 'TELEGRAM_BOT_TOKEN': 'test-token'}
    return settings


def quiet_window_around_now():
    now = timezone.localtime()
    return (now - timedelta(hours=1)).time(), (now + timedelta(hours=1)).time()


# ============================================================================
# SENDING
# ============================================================================

@pytest.mark.django_db
class TestSendToUser:

    def test_in_app_only_creates_row(self, recipient, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            notification = NotificationService.send_to_user(
                recipient, "Новая задача", "Проверить АВР", NotificationTypeChoices.TASK_ASSIGNED,
            )
        assert notification.channel == NotificationChannelChoices.IN_APP
        assert callbacks == []

    def test_disabled_type_is_dropped(self, recipient):
        user_settings = NotificationService.get_settings(recipient)
        user_settings.payment_notifications = False
        user_settings.save()

        assert NotificationService.send_to_user(
            recipient, "АВР", "Новый АВР", NotificationTypeChoices.NEW_WORK_ACT,
        ) is None
        assert NotificationService.send_to_user(
            recipient, "Задача", "Новая задача", NotificationTypeChoices.TASK_ASSIGNED,
        ) is not None

    def test_in_app_switched_off(self, recipient, django_capture_on_commit_callbacks):
        user_settings = NotificationService.get_settings(recipient)
        user_settings.in_app_enabled = False
        user_settings.save()

        assert NotificationService.send_to_user(
            recipient, "Задача", "Новая задача", NotificationTypeChoices.TASK_ASSIGNED,
        ) is None

        with django_capture_on_commit_callbacks(execute=True):
            notification = NotificationService.send_to_user(
                recipient, "Платёж", "Платёж утверждён", NotificationTypeChoices.PAYMENT_APPROVED,
                channel=NotificationChannelChoices.EMAIL,
            )
        assert notification.is_read is True
        assert len(mail.outbox) == 1
        assert not Notification.objects.filter(user=recipient, is_read=False).exists()

    def test_inactive_user_is_skipped(self, db):
        assert NotificationService.send_to_user(
            UserFactory(is_active=False), "x", "y", NotificationTypeChoices.SYSTEM_MESSAGE,
        ) is None

    def test_email_delivered_after_commit(self, recipient, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            notification = NotificationService.send_to_user(
                recipient, "Платёж одобрен", "Платёж #12 одобрен",
                NotificationTypeChoices.PAYMENT_APPROVED,
                channel=NotificationChannelChoices.EMAIL,
                action_url='/payments/12',
            )

        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == "Платёж одобрен"
        assert '/payments/12' in mail.outbox[0].alternatives[0][0]
        notification.refresh_from_db()
        assert notification.email_sent is True

    def test_email_switched_off(self, recipient, django_capture_on_commit_callbacks):
        user_settings = NotificationService.get_settings(recipient)
        user_settings.email_enabled = False
        user_settings.save()

        with django_capture_on_commit_callbacks(execute=True):
            NotificationService.send_to_user(
                recipient, "x", "y", NotificationTypeChoices.SYSTEM_MESSAGE,
                channel=NotificationChannelChoices.EMAIL,
            )
        assert mail.outbox == []

    def test_quiet_hours_postpone_delivery(self, recipient, django_capture_on_commit_callbacks):
        start, end = quiet_window_around_now()
        user_settings = NotificationService.get_settings(recipient)
        user_settings.quiet_hours_enabled = True
        user_settings.quiet_hours_start = start
        user_settings.quiet_hours_end = end
        user_settings.save()

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            notification = NotificationService.send_to_user(
                recipient, "x", "y", NotificationTypeChoices.SYSTEM_MESSAGE,
                channel=NotificationChannelChoices.ALL,
            )

        assert callbacks == []
        assert mail.outbox == []
        assert notification.scheduled_at > timezone.now()

    def test_send_to_role(self, staff_user, admin_user):
        sent = NotificationService.send_to_role(
            'PMU_STAFF', "Совещание", "В 10:00", NotificationTypeChoices.SYSTEM_MESSAGE,
        )
        assert [n.user for n in sent] == [staff_user]


# ============================================================================
# QUIET HOURS
# ============================================================================

class TestQuietHours:

    def _settings(self, start, end):
        return UserNotificationSettings(quiet_hours_enabled=True, quiet_hours_start=start, quiet_hours_end=end)

    def test_window_crossing_midnight(self):
        night = self._settings(time(22, 0), time(7, 0))
        assert night.is_quiet_at(time(23, 30))
        assert night.is_quiet_at(time(6, 59))
        assert not night.is_quiet_at(time(12, 0))

    def test_next_active_time_rolls_over(self):
        night = self._settings(time(22, 0), time(7, 0))
        now = timezone.localtime().replace(hour=23, minute=0)
        resume = night.next_active_time(now)
        assert resume.date() == (now + timedelta(days=1)).date()
        assert (resume.hour, resume.minute) == (7, 0)


# ============================================================================
# TELEGRAM
# ============================================================================

@pytest.mark.django_db
class TestTelegramDelivery:

    def _notification(self, user):
        user_settings = NotificationService.get_settings(user)
        user_settings.telegram_enabled = True
        user_settings.telegram_chat_id = '123456'
        user_settings.save()
        return Notification.objects.create(
            user=user, title="Срок <задачи>", message="Истёк",
            type=NotificationTypeChoices.DEADLINE_OVERDUE, channel=NotificationChannelChoices.TELEGRAM,
        )

    def test_sender_not_configured(self):
        assert TelegramSender(token='').send('1', 'x') is False

    def test_sent(self, recipient, telegram_settings):
        notification = self._notification(recipient)
        response = MagicMock()
        response.json.return_value = {'ok': True}

        with patch('application.services.notifications.requests.post', return_value=response) as post:
            assert NotificationService.deliver_telegram(notification) is True

        payload = post.call_args.kwargs['json']
        assert payload['chat_id'] == '123456'
        assert '&lt;задачи&gt;' in payload['text']
        assert notification.telegram_sent is True

    def test_failure_recorded(self, recipient, telegram_settings):
        notification = self._notification(recipient)

        with patch('application.services.notifications.requests.post',
                   side_effect=requests.ConnectionError("timeout")):
            assert NotificationService.deliver_telegram(notification) is False

        notification.refresh_from_db()
        assert notification.retry_count == 1
        assert 'timeout' in notification.last_error


# ============================================================================
# API
# ============================================================================

@pytest.mark.django_db
class TestNotificationAPI:

    def test_unread_count_and_mark_all_read(self, staff_client, staff_user, admin_user):
        for title in ("Первое", "Второе"):
            NotificationService.send_to_user(staff_user, title, "...", NotificationTypeChoices.SYSTEM_MESSAGE)
        NotificationService.send_to_user(admin_user, "Чужое", "...", NotificationTypeChoices.SYSTEM_MESSAGE)

        response = staff_client.get('/api/v1/notifications/unread_count/')
        assert response.data == {'count': 2}

        response = staff_client.post('/api/v1/notifications/mark_all_read/')
        assert response.data == {'updated': 2}
        assert NotificationService.unread_count(staff_user) == 0
        assert NotificationService.unread_count(admin_user) == 1

    def test_other_users_notification_hidden(self, staff_client, admin_user):
        foreign = NotificationService.send_to_user(
            admin_user, "Чужое", "...", NotificationTypeChoices.SYSTEM_MESSAGE
        )
        response = staff_client.post(f'/api/v1/notifications/{foreign.pk}/mark_read/')
        assert response.status_code == 404

    def test_settings_update(self, staff_client, staff_user):
        response = staff_client.patch('/api/v1/notifications/settings/', {
            'email_enabled': False,
            'deadline_warning_days': 5,
        }, format='json')
        assert response.status_code == 200, response.data

        user_settings = NotificationService.get_settings(staff_user)
        assert user_settings.email_enabled is False
        assert user_settings.deadline_warning_days == 5
