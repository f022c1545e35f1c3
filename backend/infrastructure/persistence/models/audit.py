"""
Audit ORM Models.

Logins, logouts and significant changes: who did what, when, from which
address and on which object.
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class AuditAction(models.TextChoices):
    CREATE = 'create', 'Создание'
    UPDATE = 'update', 'Изменение'
    DELETE = 'delete', 'Удаление'
    LOGIN = 'login', 'Вход в систему'
    LOGOUT = 'logout', 'Выход из системы'
    APPROVE = 'approve', 'Утверждение'
    REJECT = 'reject', 'Отклонение'
    EXPORT = 'export', 'Экспорт'
    IMPORT = 'import', 'Импорт'


class AuditLog(models.Model):
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Время")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='audit_logs', verbose_name="Пользователь",
    )
    action = models.CharField(max_length=20, choices=AuditAction.choices, db_index=True, verbose_name="Действие")
    user_ip = models.GenericIPAddressField(null=True, blank=True, verbose_name="IP адрес")
    user_agent = models.CharField(max_length=500, blank=True, verbose_name="User Agent")

    # Target object; object_repr survives deletion of the object itself
    content_type = models.ForeignKey(
        ContentType, on_delete=models.SET_NULL, null=True, blank=True, verbose_name="Тип объекта",
    )
    object_id = models.CharField(max_length=100, blank=True, db_index=True, verbose_name="ID объекта")
    content_object = GenericForeignKey('content_type', 'object_id')
    object_repr = models.CharField(max_length=500, blank=True, verbose_name="Объект")
    changes = models.JSONField(default=dict, blank=True, verbose_name="Изменения")

    class Meta:
        db_table = 'audit_log'
        verbose_name = 'Запись журнала аудита'
        verbose_name_plural = 'Журнал аудита'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['content_type', 'object_id']),
            models.Index(fields=['user', 'timestamp']),
        ]

    def __str__(self):
        return f"{self.timestamp:%Y-%m-%d %H:%M} {self.user} {self.get_action_display()} {self.object_repr}"

    @classmethod
    def record(cls, action, user=None, obj=None, request=None, changes=None):
        """Write one entry; `changes` must be JSON-serializable."""
        entry = cls(action=action, user=user, changes=changes or {})
        if obj is not None:
            entry.content_type = ContentType.objects.get_for_model(obj)
            entry.object_id = str(obj.pk)
            entry.object_repr = str(obj)[:500]
        if request is not None:
            meta = request.META
            forwarded = meta.get('HTTP_X_FORWARDED_FOR', '')
            entry.user_ip = forwarded.split(',')[0].strip() or meta.get('REMOTE_ADDR')
            entry.user_agent = meta.get('HTTP_USER_AGENT', '')[:500]
        entry.save()
        return entry
