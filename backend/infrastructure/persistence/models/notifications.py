"""
Notification ORM Models.
"""

from datetime import datetime, time, timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from domain.shared.value_objects import localized


class NotificationTypeChoices(models.TextChoices):
    TASK_ASSIGNED = 'task_assigned', 'Назначена задача'
    TASK_STATUS_CHANGED = 'task_status_changed', 'Изменён статус задачи'
    TASK_COMMENTED = 'task_commented', 'Новый комментарий'
    TASK_EXTENSION_REQUESTED = 'task_extension_requested', 'Запрошено продление срока'
    TASK_EXTENSION_APPROVED = 'task_extension_approved', 'Продление одобрено'
    TASK_EXTENSION_REJECTED = 'task_extension_rejected', 'Продление отклонено'
    DEADLINE_APPROACHING = 'deadline_approaching', 'Приближается срок'
    DEADLINE_OVERDUE = 'deadline_overdue', 'Срок просрочен'
    NEW_WORK_ACT = 'new_work_act', 'Новый АВР'
    PAYMENT_PENDING = 'payment_pending', 'Ожидающий платёж'
    PAYMENT_APPROVED = 'payment_approved', 'Платёж одобрен'
    CONTRACT_EXPIRING = 'contract_expiring', 'Контракт истекает'
    PROGRESS_UPDATE = 'progress_update', 'Обновление прогресса'
    SYSTEM_MESSAGE = 'system_message', 'Системное сообщение'
    MENTION = 'mention', 'Упоминание'


class NotificationPriorityChoices(models.IntegerChoices):
    LOW = 0, 'Низкий'
    NORMAL = 1, 'Обычный'
    HIGH = 2, 'Высокий'
    URGENT = 3, 'Срочный'


class NotificationChannelChoices(models.TextChoices):
    IN_APP = 'in_app', 'В системе'
    EMAIL = 'email', 'Email'
    TELEGRAM = 'telegram', 'Telegram'
    ALL = 'all', 'Все каналы'


# Which per-user toggle governs which notification types.
TASK_TYPES = {
    NotificationTypeChoices.TASK_ASSIGNED,
    NotificationTypeChoices.TASK_STATUS_CHANGED,
    NotificationTypeChoices.TASK_COMMENTED,
    NotificationTypeChoices.TASK_EXTENSION_REQUESTED,
    NotificationTypeChoices.TASK_EXTENSION_APPROVED,
    NotificationTypeChoices.TASK_EXTENSION_REJECTED,
    NotificationTypeChoices.MENTION,
}
DEADLINE_TYPES = {
    NotificationTypeChoices.DEADLINE_APPROACHING,
    NotificationTypeChoices.DEADLINE_OVERDUE,
    NotificationTypeChoices.CONTRACT_EXPIRING,
}
PAYMENT_TYPES = {
    NotificationTypeChoices.PAYMENT_PENDING,
    NotificationTypeChoices.PAYMENT_APPROVED,
    NotificationTypeChoices.NEW_WORK_ACT,
}


class Notification(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name="Получатель"
    )
    title = models.CharField(max_length=255, verbose_name="Заголовок")
    title_tj = models.CharField(max_length=255, blank=True, verbose_name="Заголовок (тадж)")
    title_en = models.CharField(max_length=255, blank=True, verbose_name="Заголовок (англ)")
    message = models.TextField(verbose_name="Сообщение")
    message_tj = models.TextField(blank=True, verbose_name="Сообщение (тадж)")
    message_en = models.TextField(blank=True, verbose_name="Сообщение (англ)")
    type = models.CharField(
        max_length=40,
        choices=NotificationTypeChoices.choices,
        default=NotificationTypeChoices.SYSTEM_MESSAGE,
        verbose_name="Тип"
    )
    priority = models.PositiveSmallIntegerField(
        choices=NotificationPriorityChoices.choices,
        default=NotificationPriorityChoices.NORMAL,
        verbose_name="Приоритет"
    )
    channel = models.CharField(
        max_length=20,
        choices=NotificationChannelChoices.choices,
        default=NotificationChannelChoices.IN_APP,
        verbose_name="Канал"
    )
    is_read = models.BooleanField(default=False, verbose_name="Прочитано")
    read_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата прочтения")

    reference_type = models.CharField(max_length=50, blank=True, verbose_name="Тип объекта")
    reference_id = models.PositiveIntegerField(null=True, blank=True, verbose_name="ID объекта")
    action_url = models.CharField(max_length=500, blank=True, verbose_name="Ссылка")

    email_sent = models.BooleanField(default=False, verbose_name="Email отправлен")
    email_sent_at = models.DateTimeField(null=True, blank=True)
    telegram_sent = models.BooleanField(default=False, verbose_name="Telegram отправлен")
    telegram_sent_at = models.DateTimeField(null=True, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True, db_index=True, verbose_name="Отложено до")
    retry_count = models.PositiveIntegerField(default=0, verbose_name="Попыток")
    last_error = models.TextField(blank=True, verbose_name="Последняя ошибка")

    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата создания")

    class Meta:
        db_table = 'notifications'
        verbose_name = 'Уведомление'
        verbose_name_plural = 'Уведомления'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read']),
        ]

    def __str__(self):
        return f"{self.user}: {self.title}"

    def get_title(self, lang=None):
        return localized(lang, self.title, self.title_tj, self.title_en)

    def get_message(self, lang=None):
        return localized(lang, self.message, self.message_tj, self.message_en)

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])
        return self

    @property
    def wants_email(self):
        return self.channel in (NotificationChannelChoices.EMAIL, NotificationChannelChoices.ALL)

    @property
    def wants_telegram(self):
        return self.channel in (NotificationChannelChoices.TELEGRAM, NotificationChannelChoices.ALL)


class UserNotificationSettings(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notification_settings',
        verbose_name="Пользователь"
    )
    in_app_enabled = models.BooleanField(default=True, verbose_name="В системе")
    email_enabled = models.BooleanField(default=True, verbose_name="Email")
    telegram_enabled = models.BooleanField(default=False, verbose_name="Telegram")
    telegram_chat_id = models.CharField(max_length=64, blank=True, verbose_name="Telegram chat ID")

    task_notifications = models.BooleanField(default=True, verbose_name="Задачи")
    deadline_notifications = models.BooleanField(default=True, verbose_name="Сроки")
    payment_notifications = models.BooleanField(default=True, verbose_name="Платежи")
    system_notifications = models.BooleanField(default=True, verbose_name="Системные")

    daily_digest = models.BooleanField(default=False, verbose_name="Ежедневный дайджест")
    digest_time = models.TimeField(null=True, blank=True, verbose_name="Время дайджеста")

    quiet_hours_enabled = models.BooleanField(default=False, verbose_name="Тихие часы")
    quiet_hours_start = models.TimeField(null=True, blank=True, verbose_name="Начало тихих часов")
    quiet_hours_end = models.TimeField(null=True, blank=True, verbose_name="Конец тихих часов")

    deadline_warning_days = models.PositiveSmallIntegerField(default=3, verbose_name="Предупреждать за, дней")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_notification_settings'
        verbose_name = 'Настройки уведомлений'
        verbose_name_plural = 'Настройки уведомлений'

    def __str__(self):
        return f"Настройки уведомлений: {self.user}"

    def accepts(self, notification_type):
        """Per-type toggle check."""
        if notification_type in TASK_TYPES:
            return self.task_notifications
        if notification_type in DEADLINE_TYPES:
            return self.deadline_notifications
        if notification_type in PAYMENT_TYPES:
            return self.payment_notifications
        return self.system_notifications

    def is_quiet_at(self, moment: time) -> bool:
        if not self.quiet_hours_enabled or self.quiet_hours_start is None or self.quiet_hours_end is None:
            return False
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start <= end:
            return start <= moment <= end
        # Window crosses midnight
        return moment >= start or moment <= end

    def next_active_time(self, now: datetime) -> datetime:
        end = self.quiet_hours_end or time(8, 0)
        candidate = now.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate
