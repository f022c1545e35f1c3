"""
Task Services.

Task lifecycle with change history, assignment rights, deadline
extensions, auto-completion by related entity, KPI and Excel export.
"""

import io
import logging
from datetime import timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from domain.shared.exceptions import (
    AuthorizationException,
    InvalidOperationException,
    ValidationException,
)
from domain.tasks.rules import can_assign_to, clamp_progress, compute_kpi
from infrastructure.persistence.models import (
    ExtensionStatusChoices,
    NotificationChannelChoices,
    NotificationPriorityChoices,
    NotificationTypeChoices,
    ProjectTask,
    TaskAttachment,
    TaskChangeTypeChoices,
    TaskChecklist,
    TaskChecklistItem,
    TaskComment,
    TaskExtensionRequest,
    TaskHistory,
    TaskPriorityChoices,
    TaskStatusChoices,
)
from .notifications import NotificationService

logger = logging.getLogger(__name__)

OPEN_STATUSES = [
    TaskStatusChoices.NEW,
    TaskStatusChoices.IN_PROGRESS,
    TaskStatusChoices.ON_HOLD,
    TaskStatusChoices.UNDER_REVIEW,
]


def _task_url(task):
    return f"/tasks/{task.pk}"


class TaskService:
    """Operations on ProjectTask that record history and notify people."""

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @staticmethod
    def add_history(task, user, change_type, field_name='', old_value='', new_value='', description=''):
        return TaskHistory.objects.create(
            task=task,
            changed_by=user,
            change_type=change_type,
            field_name=field_name,
            old_value='' if old_value is None else str(old_value),
            new_value='' if new_value is None else str(new_value),
            description=description,
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, creator, **fields) -> ProjectTask:
        """
        Create a task assigned by `creator`.

        Used both by the API and by workflow side effects (AVR review,
        payment preparation).
        """
        with transaction.atomic():
            task = ProjectTask.objects.create(assigned_by=creator, created_by=creator, **fields)
            cls.add_history(task, creator, TaskChangeTypeChoices.CREATED, description="Задача создана")

        if task.assignee_id and task.assignee_id != getattr(creator, 'pk', None):
            NotificationService.send_to_user(
                task.assignee,
                "Новая задача",
                f"Вам назначена задача: {task.title}",
                NotificationTypeChoices.TASK_ASSIGNED,
                priority=(
                    NotificationPriorityChoices.URGENT
                    if task.priority == TaskPriorityChoices.CRITICAL
                    else NotificationPriorityChoices.NORMAL
                ),
                channel=NotificationChannelChoices.ALL,
                reference_type='Task',
                reference_id=task.pk,
                action_url=_task_url(task),
            )

        logger.info(f"Task {task.pk} created by {getattr(creator, 'username', 'system')}")
        return task

    @classmethod
    def create_system_task(cls, assignee, title, description='', priority=TaskPriorityChoices.NORMAL,
                           due_in_days=3, creator=None, **links) -> Optional[ProjectTask]:
        """Workflow-generated task due `due_in_days` from now."""
        if assignee is None:
            logger.warning(f"No assignee for system task '{title}', skipped")
            return None
        return cls.create(
            creator,
            title=title,
            description=description,
            priority=priority,
            assignee=assignee,
            due_date=timezone.now() + timedelta(days=due_in_days),
            **links,
        )

    TRACKED_FIELDS = {
        'title': TaskChangeTypeChoices.TITLE_CHANGED,
        'due_date': TaskChangeTypeChoices.DUE_DATE_CHANGED,
        'priority': TaskChangeTypeChoices.PRIORITY_CHANGED,
    }

    @classmethod
    def update(cls, task, user, **fields) -> ProjectTask:
        with transaction.atomic():
            for field, change_type in cls.TRACKED_FIELDS.items():
                if field in fields and fields[field] != getattr(task, field):
                    cls.add_history(task, user, change_type, field, getattr(task, field), fields[field])
            for field, value in fields.items():
                setattr(task, field, value)
            task.updated_by = user
            task.save()
        return task

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    @staticmethod
    def can_assign_to(assigner, assignee) -> bool:
        if assigner.is_superuser:
            return True
        return can_assign_to(assigner.role_codes, assignee.role_codes, assigner.pk == assignee.pk)

    @classmethod
    def assign(cls, task, assignee, assigner) -> ProjectTask:
        if not cls.can_assign_to(assigner, assignee):
            raise AuthorizationException('assign_task', str(assignee))

        old_assignee = task.assignee
        with transaction.atomic():
            task.assignee = assignee
            task.updated_by = assigner
            task.save(update_fields=['assignee', 'updated_by', 'updated_at'])
            cls.add_history(
                task, assigner,
                TaskChangeTypeChoices.REASSIGNED if old_assignee else TaskChangeTypeChoices.ASSIGNED,
                'assignee', old_assignee or '', assignee,
            )

        if assignee.pk != assigner.pk:
            NotificationService.send_to_user(
                assignee,
                "Задача назначена",
                f"Вам назначена задача: {task.title}",
                NotificationTypeChoices.TASK_ASSIGNED,
                channel=NotificationChannelChoices.ALL,
                reference_type='Task',
                reference_id=task.pk,
                action_url=_task_url(task),
            )
        return task

    # ------------------------------------------------------------------
    # Status & progress
    # ------------------------------------------------------------------

    @classmethod
    def change_status(cls, task, new_status, user) -> ProjectTask:
        if new_status not in TaskStatusChoices.values:
            raise ValidationException("Неизвестный статус задачи", field='status', value=new_status)

        old_display = task.get_status_display()
        with transaction.atomic():
            task.status = new_status
            if new_status == TaskStatusChoices.COMPLETED:
                task.completed_at = timezone.now()
                task.completion_percent = 100
            task.updated_by = user
            task.save()
            cls.add_history(
                task, user, TaskChangeTypeChoices.STATUS_CHANGED,
                'status', old_display, task.get_status_display(),
            )
            if new_status == TaskStatusChoices.COMPLETED and task.parent_task_id:
                cls.add_history(
                    task.parent_task, user, TaskChangeTypeChoices.SUB_TASK_COMPLETED,
                    description=f"Подзадача «{task.title}» завершена",
                )

        if task.assigned_by_id and task.assigned_by_id != user.pk:
            NotificationService.send_to_user(
                task.assigned_by,
                "Статус задачи изменён",
                f"Задача «{task.title}» изменила статус на «{task.get_status_display()}»",
                NotificationTypeChoices.TASK_STATUS_CHANGED,
                reference_type='Task',
                reference_id=task.pk,
                action_url=_task_url(task),
            )
        return task

    @classmethod
    def update_progress(cls, task, percent, user) -> ProjectTask:
        new_value = clamp_progress(percent)
        old_value = task.completion_percent
        task.completion_percent = new_value
        task.updated_by = user
        task.save(update_fields=['completion_percent', 'updated_by', 'updated_at'])
        if old_value != new_value:
            cls.add_history(task, user, TaskChangeTypeChoices.PROGRESS_UPDATED, 'completion_percent', old_value, new_value)
        return task

    @classmethod
    def complete_related_tasks(cls, user=None, contract=None, work_progress=None, payment=None) -> int:
        """
        Close open tasks bound to the entity whose action was just done.

        The most specific link wins: payment, then work progress, then contract.
        """
        tasks = ProjectTask.objects.filter(status__in=OPEN_STATUSES)
        if payment is not None:
            tasks = tasks.filter(payment=payment)
        elif work_progress is not None:
            tasks = tasks.filter(work_progress=work_progress)
        elif contract is not None:
            tasks = tasks.filter(contract=contract)
        else:
            return 0

        now = timezone.now()
        count = 0
        with transaction.atomic():
            for task in tasks:
                old_display = task.get_status_display()
                task.status = TaskStatusChoices.COMPLETED
                task.completed_at = now
                task.completion_percent = 100
                task.save(update_fields=['status', 'completed_at', 'completion_percent', 'updated_at'])
                cls.add_history(
                    task, user, TaskChangeTypeChoices.STATUS_CHANGED, 'status',
                    old_display, task.get_status_display(),
                    "Автозавершение: действие выполнено в системе",
                )
                count += 1

        if count:
            logger.info(
                f"Auto-completed {count} tasks (contract={getattr(contract, 'pk', None)}, "
                f"work_progress={getattr(work_progress, 'pk', None)}, payment={getattr(payment, 'pk', None)})"
            )
        return count

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @classmethod
    def add_comment(cls, task, author, content, parent_comment=None) -> TaskComment:
        if not content or not content.strip():
            raise ValidationException("Комментарий не может быть пустым", field='content')
        comment = TaskComment.objects.create(
            task=task, author=author, content=content.strip(), parent_comment=parent_comment
        )
        cls.add_history(task, author, TaskChangeTypeChoices.COMMENT_ADDED, description=content[:200])

        recipients = {u for u in (task.assignee, task.assigned_by) if u is not None and u.pk != author.pk}
        NotificationService.send_to_users(
            recipients,
            "Новый комментарий",
            f"{author.full_name or author.username} прокомментировал задачу «{task.title}»",
            NotificationTypeChoices.TASK_COMMENTED,
            reference_type='Task',
            reference_id=task.pk,
            action_url=_task_url(task),
        )
        return comment

    # ------------------------------------------------------------------
    # Attachments & checklists
    # ------------------------------------------------------------------

    @classmethod
    def add_attachment(cls, task, uploaded_file, user, description='') -> TaskAttachment:
        attachment = TaskAttachment.objects.create(
            task=task,
            file=uploaded_file,
            original_file_name=uploaded_file.name,
            content_type=getattr(uploaded_file, 'content_type', '') or '',
            file_size=uploaded_file.size or 0,
            description=description,
            uploaded_by=user,
        )
        cls.add_history(
            task, user, TaskChangeTypeChoices.ATTACHMENT_ADDED,
            new_value=attachment.original_file_name,
        )
        return attachment

    @staticmethod
    def add_checklist(task, name='') -> TaskChecklist:
        next_order = task.checklists.count()
        return TaskChecklist.objects.create(task=task, name=name or 'Чек-лист', sort_order=next_order)

    @staticmethod
    def add_checklist_item(checklist, text, **fields) -> TaskChecklistItem:
        if not text or not text.strip():
            raise ValidationException("Текст пункта не может быть пустым", field='text')
        fields.setdefault('sort_order', checklist.items.count())
        return TaskChecklistItem.objects.create(checklist=checklist, text=text.strip(), **fields)

    @staticmethod
    def toggle_checklist_item(item) -> TaskChecklistItem:
        item.is_completed = not item.is_completed
        item.save(update_fields=['is_completed'])
        return item

    # ------------------------------------------------------------------
    # Extension requests
    # ------------------------------------------------------------------

    @classmethod
    def request_extension(cls, task, user, reason, new_due_date) -> TaskExtensionRequest:
        if not reason or len(reason.strip()) < 10:
            raise ValidationException("Причина должна содержать не менее 10 символов", field='reason')
        if new_due_date <= task.due_date:
            raise ValidationException("Новый срок должен быть позже текущего", field='new_due_date')
        if task.extension_requests.filter(status=ExtensionStatusChoices.PENDING).exists():
            raise InvalidOperationException("По задаче уже есть запрос на продление")

        with transaction.atomic():
            request = TaskExtensionRequest.objects.create(
                task=task,
                requested_by=user,
                reason=reason.strip(),
                original_due_date=task.due_date,
                new_due_date=new_due_date,
            )
            cls.add_history(
                task, user, TaskChangeTypeChoices.EXTENSION_REQUESTED,
                description=f"Запрос продления до {timezone.localtime(new_due_date):%d.%m.%Y}",
            )

        if task.assigned_by_id:
            NotificationService.send_to_user(
                task.assigned_by,
                "Запрос на продление срока",
                f"Запрошено продление срока задачи «{task.title}» до "
                f"{timezone.localtime(new_due_date):%d.%m.%Y}",
                NotificationTypeChoices.TASK_EXTENSION_REQUESTED,
                priority=NotificationPriorityChoices.HIGH,
                channel=NotificationChannelChoices.ALL,
                reference_type='TaskExtension',
                reference_id=request.pk,
                action_url=_task_url(task),
            )
        return request

    @staticmethod
    def _ensure_pending(request):
        if request.status != ExtensionStatusChoices.PENDING:
            raise InvalidOperationException(
                "Запрос уже рассмотрен", current_state=request.get_status_display()
            )

    @classmethod
    def approve_extension(cls, request, approver) -> TaskExtensionRequest:
        cls._ensure_pending(request)
        task = request.task
        with transaction.atomic():
            request.status = ExtensionStatusChoices.APPROVED
            request.approved_by = approver
            request.approved_at = timezone.now()
            request.save(update_fields=['status', 'approved_by', 'approved_at'])

            old_due = task.due_date
            task.due_date = request.new_due_date
            task.save(update_fields=['due_date', 'updated_at'])
            cls.add_history(
                task, approver, TaskChangeTypeChoices.EXTENSION_APPROVED, 'due_date',
                old_due, task.due_date,
                f"Продление одобрено до {timezone.localtime(task.due_date):%d.%m.%Y}",
            )

        NotificationService.send_to_user(
            request.requested_by,
            "Продление одобрено",
            f"Запрос на продление задачи одобрен. Новый срок: "
            f"{timezone.localtime(request.new_due_date):%d.%m.%Y}",
            NotificationTypeChoices.TASK_EXTENSION_APPROVED,
            channel=NotificationChannelChoices.ALL,
            reference_type='Task',
            reference_id=task.pk,
            action_url=_task_url(task),
        )
        return request

    @classmethod
    def reject_extension(cls, request, approver, reason='') -> TaskExtensionRequest:
        cls._ensure_pending(request)
        with transaction.atomic():
            request.status = ExtensionStatusChoices.REJECTED
            request.approved_by = approver
            request.approved_at = timezone.now()
            request.rejection_reason = reason or ''
            request.save(update_fields=['status', 'approved_by', 'approved_at', 'rejection_reason'])
            cls.add_history(
                request.task, approver, TaskChangeTypeChoices.EXTENSION_REJECTED,
                description=reason or "Продление отклонено",
            )

        NotificationService.send_to_user(
            request.requested_by,
            "Продление отклонено",
            f"Запрос на продление задачи «{request.task.title}» отклонён"
            + (f": {reason}" if reason else ""),
            NotificationTypeChoices.TASK_EXTENSION_REJECTED,
            channel=NotificationChannelChoices.ALL,
            reference_type='Task',
            reference_id=request.task_id,
            action_url=_task_url(request.task),
        )
        return request

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def overdue(queryset=None):
        queryset = ProjectTask.objects.all() if queryset is None else queryset
        return queryset.filter(status__in=OPEN_STATUSES, due_date__lt=timezone.now())

    @staticmethod
    def upcoming(days_ahead=3, queryset=None):
        queryset = ProjectTask.objects.all() if queryset is None else queryset
        now = timezone.now()
        return queryset.filter(
            status__in=OPEN_STATUSES,
            due_date__gte=now,
            due_date__lte=now + timedelta(days=days_ahead),
        )

    @staticmethod
    def kpi(queryset):
        pending = TaskExtensionRequest.objects.filter(
            task__in=queryset, status=ExtensionStatusChoices.PENDING
        ).count()
        return compute_kpi(queryset, timezone.now(), pending_extensions=pending)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    EXPORT_HEADERS = [
        '№', 'Задача', 'Статус', 'Приоритет', 'Исполнитель', 'Постановщик',
        'Срок', 'Завершена', 'Выполнено, %', 'Контракт', 'Просрочена',
    ]

    @classmethod
    def export_to_excel(cls, queryset) -> bytes:
        """Workbook with a task list sheet and a KPI sheet."""
        wb = Workbook()
        ws = wb.active
        ws.title = "Задачи"

        header_font = Font(bold=True, color='FFFFFF')
        header_fill = PatternFill('solid', fgColor='1A5F7A')
        for col, header in enumerate(cls.EXPORT_HEADERS, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

        tasks = list(queryset.select_related('assignee', 'assigned_by', 'contract'))
        for row, task in enumerate(tasks, 2):
            ws.cell(row=row, column=1, value=task.pk)
            ws.cell(row=row, column=2, value=task.title)
            ws.cell(row=row, column=3, value=task.get_status_display())
            ws.cell(row=row, column=4, value=task.get_priority_display())
            ws.cell(row=row, column=5, value=str(task.assignee) if task.assignee else '')
            ws.cell(row=row, column=6, value=str(task.assigned_by) if task.assigned_by else '')
            ws.cell(row=row, column=7, value=timezone.localtime(task.due_date).strftime('%d.%m.%Y') if task.due_date else '')
            ws.cell(row=row, column=8, value=timezone.localtime(task.completed_at).strftime('%d.%m.%Y') if task.completed_at else '')
            ws.cell(row=row, column=9, value=task.completion_percent)
            ws.cell(row=row, column=10, value=task.contract.contract_number if task.contract else '')
            ws.cell(row=row, column=11, value='Да' if task.is_overdue else 'Нет')

        for column in ws.columns:
            width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
            ws.column_dimensions[column[0].column_letter].width = min(width + 2, 60)

        kpi = compute_kpi(tasks, timezone.now())
        ws_kpi = wb.create_sheet("KPI")
        rows = [
            ('Всего задач', kpi.total),
            ('Завершено', kpi.completed),
            ('Завершено в срок', kpi.completed_on_time),
            ('Завершено с опозданием', kpi.completed_late),
            ('В работе', kpi.active),
            ('Просрочено', kpi.overdue),
            ('Процент выполнения', float(kpi.completion_rate)),
            ('Процент в срок', float(kpi.on_time_rate)),
        ]
        for row, (label, value) in enumerate(rows, 1):
            ws_kpi.cell(row=row, column=1, value=label).font = Font(bold=True)
            ws_kpi.cell(row=row, column=2, value=value)
        ws_kpi.column_dimensions['A'].width = 28

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
