"""
Notification Services.

In-app notifications with optional e-mail and Telegram delivery,
per-user channel/type toggles and quiet hours.
"""

import logging
from typing import Iterable, Optional

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone
from django.utils.html import escape

from infrastructure.persistence.models import (
    Notification,
    NotificationChannelChoices,
    NotificationPriorityChoices,
    UserNotificationSettings,
)

logger = logging.getLogger(__name__)


class TelegramSender:
    """Thin client for the Telegram Bot API sendMessage method."""

    def __init__(self, token: Optional[str] = None, api_url: Optional[str] = None, timeout: int = 10):
        self.token = settings.PMMIS['TELEGRAM_BOT_TOKEN'] if token is None else token
        self.api_url = api_url or settings.PMMIS['TELEGRAM_API_URL']
        self.timeout = timeout

    @property
    def is_configured(self):
        return bool(self.token)

    def send(self, chat_id: str, text: str) -> bool:
        if not self.is_configured:
            logger.debug("Telegram bot token is not configured, message skipped")
            return False
        response = requests.post(
            f"{self.api_url}/bot{self.token}/sendMessage",
            json={'chat_id': chat_id, 'text': text, 'parse_mode': 'HTML'},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return bool(response.json().get('ok'))


class NotificationService:
    """Create and deliver notifications."""

    telegram_sender_class = TelegramSender

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @staticmethod
    def get_settings(user) -> UserNotificationSettings:
        user_settings, _ = UserNotificationSettings.objects.get_or_create(user=user)
        return user_settings

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    @classmethod
    def send_to_user(
        cls,
        user,
        title: str,
        message: str,
        notification_type: str,
        priority: int = NotificationPriorityChoices.NORMAL,
        channel: str = NotificationChannelChoices.IN_APP,
        reference_type: str = '',
        reference_id: Optional[int] = None,
        action_url: str = '',
    ) -> Optional[Notification]:
        """
        Persist a notification and dispatch it to external channels.

        Returns None when the user has switched this notification type off,
        or in-app notifications off for an in-app only message. With in-app
        switched off, external-channel notifications are stored as read.
        During quiet hours the external delivery is postponed via
        `scheduled_at`.
        """
        if user is None or not user.is_active:
            return None

        user_settings = cls.get_settings(user)
        if not user_settings.accepts(notification_type):
            logger.debug(f"Notification '{notification_type}' disabled by {user.username}")
            return None
        if channel == NotificationChannelChoices.IN_APP and not user_settings.in_app_enabled:
            logger.debug(f"In-app notifications disabled by {user.username}")
            return None

        notification = Notification.objects.create(
            user=user,
            title=title,
            message=message,
            type=notification_type,
            priority=priority,
            channel=channel,
            reference_type=reference_type,
            reference_id=reference_id,
            action_url=action_url,
        )
        if not user_settings.in_app_enabled:
            # kept for external delivery only, never shown as unread
            notification.mark_read()

        if channel == NotificationChannelChoices.IN_APP:
            return notification

        now = timezone.localtime()
        if user_settings.is_quiet_at(now.time()):
            notification.scheduled_at = user_settings.next_active_time(now)
            notification.save(update_fields=['scheduled_at'])
            logger.info(
                f"Notification {notification.id} for {user.username} postponed "
                f"until {notification.scheduled_at:%H:%M} (quiet hours)"
            )
            return notification

        cls.schedule_delivery(notification)
        return notification

    @classmethod
    def send_to_users(
        cls,
        users: Iterable,
        title: str,
        message: str,
        notification_type: str,
        priority: int = NotificationPriorityChoices.NORMAL,
        **kwargs,
    ):
        sent = []
        for user in users:
            notification = cls.send_to_user(user, title, message, notification_type, priority, **kwargs)
            if notification is not None:
                sent.append(notification)
        logger.info(f"Sent {len(sent)} notifications of type {notification_type}")
        return sent

    @classmethod
    def send_to_role(
        cls,
        role_code: str,
        title: str,
        message: str,
        notification_type: str,
        priority: int = NotificationPriorityChoices.NORMAL,
        **kwargs,
    ):
        User = get_user_model()
        users = User.objects.filter(
            is_active=True,
            user_roles__role__code=role_code,
            user_roles__is_active=True,
        ).distinct()
        return cls.send_to_users(users, title, message, notification_type, priority, **kwargs)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    @staticmethod
    def schedule_delivery(notification: Notification):
        """Hand external delivery to Celery once the transaction commits."""
        from application.tasks.notification_tasks import (
            send_notification_email,
            send_notification_telegram,
        )

        if notification.wants_email:
            transaction.on_commit(lambda: send_notification_email.delay(notification.id))
        if notification.wants_telegram:
            transaction.on_commit(lambda: send_notification_telegram.delay(notification.id))

    @staticmethod
    def _record_failure(notification: Notification, error: Exception):
        notification.retry_count += 1
        notification.last_error = str(error)[:2000]
        notification.save(update_fields=['retry_count', 'last_error'])

    @classmethod
    def deliver_email(cls, notification: Notification) -> bool:
        user_settings = cls.get_settings(notification.user)
        if not user_settings.email_enabled or not notification.user.email:
            return False
        if notification.email_sent:
            return True

        try:
            send_mail(
                subject=notification.title,
                message=notification.message,
                html_message=cls.build_email_body(notification),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[notification.user.email],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Failed to send email notification {notification.id}: {e}")
            cls._record_failure(notification, e)
            return False

        notification.email_sent = True
        notification.email_sent_at = timezone.now()
        notification.save(update_fields=['email_sent', 'email_sent_at'])
        logger.info(f"Email notification {notification.id} sent to {notification.user.email}")
        return True

    @classmethod
    def deliver_telegram(cls, notification: Notification) -> bool:
        user_settings = cls.get_settings(notification.user)
        if not user_settings.telegram_enabled or not user_settings.telegram_chat_id:
            return False
        if notification.telegram_sent:
            return True

        text = f"📢 <b>{escape(notification.title)}</b>\n\n{escape(notification.message)}"
        try:
            sent = cls.telegram_sender_class().send(user_settings.telegram_chat_id, text)
        except requests.RequestException as e:
            logger.error(f"Failed to send Telegram notification {notification.id}: {e}")
            cls._record_failure(notification, e)
            return False

        if sent:
            notification.telegram_sent = True
            notification.telegram_sent_at = timezone.now()
            notification.save(update_fields=['telegram_sent', 'telegram_sent_at'])
        return sent

    @classmethod
    def deliver(cls, notification: Notification):
        """Synchronous delivery to every requested external channel."""
        results = {}
        if notification.wants_email:
            results['email'] = cls.deliver_email(notification)
        if notification.wants_telegram:
            results['telegram'] = cls.deliver_telegram(notification)
        return results

    @staticmethod
    def build_email_body(notification: Notification) -> str:
        action = ''
        if notification.action_url:
            url = f"{settings.PMMIS['FRONTEND_URL'].rstrip('/')}/{notification.action_url.lstrip('/')}"
            action = f'<p><a href="{escape(url)}">Открыть в системе</a></p>'
        return (
            f"<h2>{escape(notification.title)}</h2>"
            f"<p>{escape(notification.message)}</p>"
            f"{action}"
            "<p style=\"font-size:12px;color:#666\">PMMIS - Система управления проектами</p>"
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @staticmethod
    def unread_count(user) -> int:
        return Notification.objects.filter(user=user, is_read=False).count()

    @staticmethod
    def mark_all_read(user) -> int:
        return Notification.objects.filter(user=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
