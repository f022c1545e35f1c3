"""
Project Task ORM Models.

Tasks with checklists, comments, attachments, deadline extension
requests and a change history.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models
from django.utils import timezone

from domain.shared.value_objects import localized
from domain.tasks.rules import TaskStatus, is_overdue
from .base import BaseModel


class TaskStatusChoices(models.IntegerChoices):
    NEW = TaskStatus.NEW.value, 'Новая'
    IN_PROGRESS = TaskStatus.IN_PROGRESS.value, 'В работе'
    ON_HOLD = TaskStatus.ON_HOLD.value, 'На паузе'
    UNDER_REVIEW = TaskStatus.UNDER_REVIEW.value, 'На проверке'
    COMPLETED = TaskStatus.COMPLETED.value, 'Завершена'
    CANCELLED = TaskStatus.CANCELLED.value, 'Отменена'


class TaskPriorityChoices(models.IntegerChoices):
    LOW = 0, 'Низкий'
    NORMAL = 1, 'Обычный'
    HIGH = 2, 'Высокий'
    CRITICAL = 3, 'Критический'


class ExtensionStatusChoices(models.IntegerChoices):
    PENDING = 0, 'На рассмотрении'
    APPROVED = 1, 'Одобрено'
    REJECTED = 2, 'Отклонено'


class TaskChangeTypeChoices(models.TextChoices):
    CREATED = 'created', 'Создание'
    STATUS_CHANGED = 'status_changed', 'Изменение статуса'
    ASSIGNED = 'assigned', 'Назначение'
    REASSIGNED = 'reassigned', 'Переназначение'
    DUE_DATE_CHANGED = 'due_date_changed', 'Изменение срока'
    PRIORITY_CHANGED = 'priority_changed', 'Изменение приоритета'
    PROGRESS_UPDATED = 'progress_updated', 'Обновление прогресса'
    COMMENT_ADDED = 'comment_added', 'Комментарий'
    ATTACHMENT_ADDED = 'attachment_added', 'Вложение'
    EXTENSION_REQUESTED = 'extension_requested', 'Запрос продления'
    EXTENSION_APPROVED = 'extension_approved', 'Продление одобрено'
    EXTENSION_REJECTED = 'extension_rejected', 'Продление отклонено'
    TITLE_CHANGED = 'title_changed', 'Изменение названия'
    SUB_TASK_COMPLETED = 'sub_task_completed', 'Подзадача завершена'


class ProjectTask(BaseModel):
    """Task assigned to a PMU member or contractor."""

    title = models.CharField(max_length=500, verbose_name="Название")
    title_tj = models.CharField(max_length=500, blank=True, verbose_name="Название (тадж)")
    title_en = models.CharField(max_length=500, blank=True, verbose_name="Название (англ)")
    description = models.TextField(blank=True, verbose_name="Описание")
    description_tj = models.TextField(blank=True, verbose_name="Описание (тадж)")
    description_en = models.TextField(blank=True, verbose_name="Описание (англ)")

    status = models.PositiveSmallIntegerField(
        choices=TaskStatusChoices.choices,
        default=TaskStatusChoices.NEW,
        db_index=True,
        verbose_name="Статус"
    )
    priority = models.PositiveSmallIntegerField(
        choices=TaskPriorityChoices.choices,
        default=TaskPriorityChoices.NORMAL,
        verbose_name="Приоритет"
    )

    start_date = models.DateTimeField(null=True, blank=True, verbose_name="Дата начала")
    due_date = models.DateTimeField(db_index=True, verbose_name="Срок")
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата завершения")

    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tasks',
        verbose_name="Исполнитель"
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_tasks',
        verbose_name="Постановщик"
    )
    parent_task = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='sub_tasks',
        verbose_name="Родительская задача"
    )

    contract = models.ForeignKey(
        'persistence.Contract', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="Контракт"
    )
    procurement_plan = models.ForeignKey(
        'persistence.ProcurementPlan', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="Позиция плана закупок"
    )
    work_progress = models.ForeignKey(
        'persistence.WorkProgress', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="АВР"
    )
    project = models.ForeignKey(
        'persistence.Project', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="Проект"
    )
    milestone = models.ForeignKey(
        'persistence.ContractMilestone', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="Этап контракта"
    )
    payment = models.ForeignKey(
        'persistence.Payment', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tasks', verbose_name="Платёж"
    )

    estimated_hours = models.PositiveIntegerField(default=0, verbose_name="Оценка, ч")
    actual_hours = models.PositiveIntegerField(default=0, verbose_name="Факт, ч")
    completion_percent = models.PositiveSmallIntegerField(default=0, verbose_name="Выполнено, %")

    class Meta:
        db_table = 'project_tasks'
        verbose_name = 'Задача'
        verbose_name_plural = 'Задачи'
        ordering = ['due_date', '-priority']
        indexes = [
            models.Index(fields=['assignee', 'status']),
            models.Index(fields=['status', 'due_date']),
        ]

    def __str__(self):
        return self.title

    def get_title(self, lang=None):
        return localized(lang, self.title, self.title_tj, self.title_en)

    def get_description(self, lang=None):
        return localized(lang, self.description, self.description_tj, self.description_en)

    @property
    def is_closed(self):
        return TaskStatus(self.status).is_closed

    @property
    def is_overdue(self):
        return is_overdue(self.status, self.due_date, timezone.now())

    @property
    def days_until_due(self):
        if self.due_date is None:
            return None
        return (timezone.localtime(self.due_date).date() - timezone.localdate()).days

    @property
    def sub_tasks_completed_count(self):
        return self.sub_tasks.filter(status=TaskStatusChoices.COMPLETED).count()


class TaskChecklist(models.Model):
    task = models.ForeignKey(
        ProjectTask,
        on_delete=models.CASCADE,
        related_name='checklists',
        verbose_name="Задача"
    )
    name = models.CharField(max_length=200, default='Чек-лист', verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    is_expanded = models.BooleanField(default=True, verbose_name="Развёрнут")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'task_checklists'
        verbose_name = 'Чек-лист'
        verbose_name_plural = 'Чек-листы'
        ordering = ['task', 'sort_order', 'id']

    def __str__(self):
        return self.name

    @property
    def total_count(self):
        return self.items.count()

    @property
    def completed_count(self):
        return self.items.filter(is_completed=True).count()

    @property
    def progress(self):
        total = self.total_count
        if not total:
            return 0
        return int((Decimal(self.completed_count) * 100 / total).quantize(Decimal('1')))


class TaskChecklistItem(models.Model):
    checklist = models.ForeignKey(
        TaskChecklist,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name="Чек-лист"
    )
    text = models.CharField(max_length=500, verbose_name="Текст")
    is_completed = models.BooleanField(default=False, verbose_name="Выполнено")
    is_important = models.BooleanField(default=False, verbose_name="Важно")
    is_indented = models.BooleanField(default=False, verbose_name="С отступом")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    co_executor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='checklist_items',
        verbose_name="Соисполнитель"
    )

    class Meta:
        db_table = 'task_checklist_items'
        verbose_name = 'Пункт чек-листа'
        verbose_name_plural = 'Пункты чек-листа'
        ordering = ['checklist', 'sort_order', 'id']

    def __str__(self):
        return self.text


class TaskComment(models.Model):
    task = models.ForeignKey(
        ProjectTask,
        on_delete=models.CASCADE,
        related_name='comments',
        verbose_name="Задача"
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='task_comments',
        verbose_name="Автор"
    )
    content = models.TextField(verbose_name="Текст")
    is_system_generated = models.BooleanField(default=False, verbose_name="Системный")
    parent_comment = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
        verbose_name="Ответ на"
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата")

    class Meta:
        db_table = 'task_comments'
        verbose_name = 'Комментарий к задаче'
        verbose_name_plural = 'Комментарии к задачам'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.author}: {self.content[:50]}"


def task_attachment_path(instance, filename):
    return f'tasks/{instance.task_id}/{filename}'


class TaskAttachment(models.Model):
    task = models.ForeignKey(
        ProjectTask,
        on_delete=models.CASCADE,
        related_name='attachments',
        verbose_name="Задача"
    )
    file = models.FileField(upload_to=task_attachment_path, verbose_name="Файл")
    original_file_name = models.CharField(max_length=255, verbose_name="Исходное имя файла")
    content_type = models.CharField(max_length=100, blank=True, verbose_name="MIME-тип")
    file_size = models.PositiveBigIntegerField(default=0, verbose_name="Размер, байт")
    description = models.TextField(blank=True, verbose_name="Описание")
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='task_attachments',
        verbose_name="Загрузил"
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата загрузки")

    class Meta:
        db_table = 'task_attachments'
        verbose_name = 'Вложение задачи'
        verbose_name_plural = 'Вложения задач'
        ordering = ['-created_at']

    def __str__(self):
        return self.original_file_name

    @property
    def file_size_display(self):
        size = self.file_size
        if size < 1024:
            return f"{size} B"
        if size < 1024 ** 2:
            return f"{size / 1024:.1f} KB"
        if size < 1024 ** 3:
            return f"{size / 1024 ** 2:.1f} MB"
        return f"{size / 1024 ** 3:.1f} GB"

    @property
    def is_image(self):
        return (self.content_type or '').startswith('image/')

    @property
    def is_pdf(self):
        return self.content_type == 'application/pdf'


class TaskExtensionRequest(models.Model):
    task = models.ForeignKey(
        ProjectTask,
        on_delete=models.CASCADE,
        related_name='extension_requests',
        verbose_name="Задача"
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='task_extension_requests',
        verbose_name="Запросил"
    )
    reason = models.TextField(validators=[MinLengthValidator(10)], verbose_name="Причина")
    original_due_date = models.DateTimeField(verbose_name="Исходный срок")
    new_due_date = models.DateTimeField(verbose_name="Новый срок")
    status = models.PositiveSmallIntegerField(
        choices=ExtensionStatusChoices.choices,
        default=ExtensionStatusChoices.PENDING,
        verbose_name="Статус"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_extension_requests',
        verbose_name="Рассмотрел"
    )
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name="Дата рассмотрения")
    rejection_reason = models.TextField(blank=True, verbose_name="Причина отказа")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'task_extension_requests'
        verbose_name = 'Запрос продления срока'
        verbose_name_plural = 'Запросы продления срока'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.task}: до {self.new_due_date:%d.%m.%Y}"

    @property
    def requested_days(self):
        return (self.new_due_date.date() - self.original_due_date.date()).days


class TaskHistory(models.Model):
    task = models.ForeignKey(
        ProjectTask,
        on_delete=models.CASCADE,
        related_name='history',
        verbose_name="Задача"
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='task_changes',
        verbose_name="Изменил"
    )
    change_type = models.CharField(
        max_length=30,
        choices=TaskChangeTypeChoices.choices,
        verbose_name="Тип изменения"
    )
    field_name = models.CharField(max_length=100, blank=True, verbose_name="Поле")
    old_value = models.TextField(blank=True, verbose_name="Было")
    new_value = models.TextField(blank=True, verbose_name="Стало")
    description = models.TextField(blank=True, verbose_name="Описание")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'task_history'
        verbose_name = 'История задачи'
        verbose_name_plural = 'История задач'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.task}: {self.get_change_type_display()}"
