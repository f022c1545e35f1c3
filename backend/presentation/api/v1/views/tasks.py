"""
Task Views.

Project tasks with comments, attachments, checklists, deadline extension
requests, KPI and Excel export.
"""

from django.db.models import Q
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from application.services.hierarchy import UserHierarchyService
from application.services.permissions import DataAccessService, PermissionService
from application.services.tasks import TaskService
from domain.shared.exceptions import AuthorizationException
from infrastructure.persistence.models import (
    ExtensionStatusChoices,
    MenuKeys,
    ProjectTask,
    TaskChecklist,
    TaskChecklistItem,
    TaskComment,
    TaskExtensionRequest,
)
from ..serializers.tasks import (
    ExtensionRejectSerializer,
    ExtensionRequestCreateSerializer,
    ProjectTaskDetailSerializer,
    ProjectTaskListSerializer,
    ProjectTaskWriteSerializer,
    TaskAssignSerializer,
    TaskAttachmentCreateSerializer,
    TaskAttachmentSerializer,
    TaskChecklistCreateSerializer,
    TaskChecklistItemSerializer,
    TaskChecklistSerializer,
    TaskCommentCreateSerializer,
    TaskCommentSerializer,
    TaskExtensionRequestSerializer,
    TaskHistorySerializer,
    TaskProgressSerializer,
    TaskStatusSerializer,
)
from .base import BaseModelViewSet, ReadOnlyModelViewSet

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def visible_tasks(queryset, user):
    """Tasks the user (or a subordinate) is assigned, set or co-executes."""
    if DataAccessService.can_view_all(user, MenuKeys.TASKS):
        return queryset
    people = [user.pk, *UserHierarchyService.get_all_subordinate_ids(user)]
    return queryset.filter(
        Q(assignee_id__in=people)
        | Q(assigned_by_id__in=people)
        | Q(checklists__items__co_executor=user)
    ).distinct()


class ProjectTaskViewSet(BaseModelViewSet):
    """
    ViewSet for project tasks.

    Endpoints:
    - POST /tasks/{id}/assign/ - {assignee}
    - POST /tasks/{id}/change_status/ - {status}
    - POST /tasks/{id}/update_progress/ - {completion_percent}
    - GET|POST /tasks/{id}/comments/
    - GET|POST /tasks/{id}/attachments/ - multipart upload
    - GET|POST /tasks/{id}/checklists/
    - POST /tasks/{id}/request_extension/ - {reason, new_due_date}
    - GET /tasks/{id}/history/
    - GET /tasks/my/, /tasks/overdue/, /tasks/upcoming/?days=3
    - GET /tasks/kpi/, /tasks/export/
    """

    menu_key = MenuKeys.TASKS
    queryset = ProjectTask.objects.select_related('assignee', 'assigned_by', 'contract')
    serializer_classes = {
        'list': ProjectTaskListSerializer,
        'my': ProjectTaskListSerializer,
        'overdue': ProjectTaskListSerializer,
        'upcoming': ProjectTaskListSerializer,
        'create': ProjectTaskWriteSerializer,
        'update': ProjectTaskWriteSerializer,
        'partial_update': ProjectTaskWriteSerializer,
        'default': ProjectTaskDetailSerializer,
    }
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    filterset_fields = {
        'status': ['exact', 'in'],
        'priority': ['exact', 'in'],
        'assignee': ['exact'],
        'assigned_by': ['exact'],
        'contract': ['exact'],
        'project': ['exact'],
        'work_progress': ['exact'],
        'payment': ['exact'],
        'parent_task': ['exact', 'isnull'],
        'due_date': ['gte', 'lte'],
    }
    search_fields = ['title', 'description']
    ordering_fields = ['due_date', 'priority', 'status', 'created_at', 'completion_percent']
    ordering = ['due_date', '-priority']

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, 'swagger_fake_view', False):
            return queryset.none()
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related(
                'checklists__items', 'attachments__uploaded_by',
                'extension_requests__requested_by', 'sub_tasks',
            )
        return visible_tasks(queryset, self.request.user)

    def _detail(self, task):
        return ProjectTaskDetailSerializer(task, context=self.get_serializer_context()).data

    def _ensure_can_assign(self, assignee):
        if assignee is not None and not TaskService.can_assign_to(self.request.user, assignee):
            raise AuthorizationException('assign_task', str(assignee))

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        self._ensure_can_assign(fields.get('assignee'))
        task = TaskService.create(request.user, **fields)
        return Response(self._detail(task), status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        task = self.get_object()
        serializer = self.get_serializer(task, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        assignee = fields.pop('assignee', task.assignee)
        TaskService.update(task, request.user, **fields)
        if assignee is not None and assignee.pk != task.assignee_id:
            TaskService.assign(task, assignee, request.user)
        return Response(self._detail(task))

    @action(detail=True, methods=['post'], permission_action='edit')
    def assign(self, request, pk=None):
        serializer = TaskAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = TaskService.assign(self.get_object(), serializer.validated_data['assignee'], request.user)
        return Response(self._detail(task))

    @action(detail=True, methods=['post'], permission_action='view')
    def change_status(self, request, pk=None):
        serializer = TaskStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = TaskService.change_status(self.get_object(), serializer.validated_data['status'], request.user)
        return Response(self._detail(task))

    @action(detail=True, methods=['post'], permission_action='view')
    def update_progress(self, request, pk=None):
        serializer = TaskProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = TaskService.update_progress(
            self.get_object(), serializer.validated_data['completion_percent'], request.user
        )
        return Response(self._detail(task))

    @action(detail=True, methods=['get', 'post'], permission_action='view')
    def comments(self, request, pk=None):
        task = self.get_object()
        if request.method == 'GET':
            comments = task.comments.select_related('author')
            return Response(TaskCommentSerializer(comments, many=True).data)

        serializer = TaskCommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        parent = None
        parent_id = serializer.validated_data.get('parent_comment')
        if parent_id:
            parent = TaskComment.objects.filter(pk=parent_id, task=task).first()
            if parent is None:
                return Response(
                    {'error': 'Комментарий не найден в этой задаче'},
                    status=status.HTTP_400_BAD_REQUEST
                )
        comment = TaskService.add_comment(task, request.user, serializer.validated_data['content'], parent)
        return Response(TaskCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'], permission_action='view')
    def attachments(self, request, pk=None):
        task = self.get_object()
        if request.method == 'GET':
            attachments = task.attachments.select_related('uploaded_by')
            return Response(TaskAttachmentSerializer(attachments, many=True).data)

        serializer = TaskAttachmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attachment = TaskService.add_attachment(
            task, serializer.validated_data['file'], request.user,
            serializer.validated_data['description'],
        )
        return Response(TaskAttachmentSerializer(attachment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'], permission_action='view')
    def checklists(self, request, pk=None):
        task = self.get_object()
        if request.method == 'GET':
            return Response(TaskChecklistSerializer(task.checklists.prefetch_related('items'), many=True).data)

        serializer = TaskChecklistCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        checklist = TaskService.add_checklist(task, serializer.validated_data['name'])
        for text in serializer.validated_data['items']:
            TaskService.add_checklist_item(checklist, text)
        return Response(TaskChecklistSerializer(checklist).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_action='view')
    def request_extension(self, request, pk=None):
        serializer = ExtensionRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        extension = TaskService.request_extension(
            self.get_object(), request.user,
            serializer.validated_data['reason'], serializer.validated_data['new_due_date'],
        )
        return Response(TaskExtensionRequestSerializer(extension).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        task = self.get_object()
        entries = task.history.select_related('changed_by')
        return Response(TaskHistorySerializer(entries, many=True).data)

    @action(detail=False, methods=['get'])
    def my(self, request):
        queryset = self.filter_queryset(self.get_queryset()).filter(assignee=request.user)
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page if page is not None else queryset, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def overdue(self, request):
        queryset = TaskService.overdue(self.filter_queryset(self.get_queryset()))
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        try:
            days = int(request.query_params.get('days', 3))
        except ValueError:
            return Response({'error': 'Некорректное число дней'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = TaskService.upcoming(days, self.filter_queryset(self.get_queryset()))
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def kpi(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        return Response(TaskService.kpi(queryset).as_dict())

    @action(detail=False, methods=['get'])
    def export(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        content = TaskService.export_to_excel(queryset)
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        filename = f"tasks_{timezone.localdate():%Y%m%d}.xlsx"
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response


class TaskChecklistItemViewSet(BaseModelViewSet):
    """
    Checklist items of visible tasks.

    Endpoints:
    - POST /task-checklist-items/ - {checklist, text, ...}
    - POST /task-checklist-items/{id}/toggle/
    """

    menu_key = MenuKeys.TASKS
    queryset = TaskChecklistItem.objects.select_related('checklist__task', 'co_executor')
    serializer_class = TaskChecklistItemSerializer
    filterset_fields = ['checklist', 'checklist__task', 'is_completed']
    ordering = ['checklist', 'sort_order', 'id']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return TaskChecklistItem.objects.none()
        tasks = visible_tasks(ProjectTask.objects.all(), self.request.user)
        return super().get_queryset().filter(checklist__task__in=tasks)

    def create(self, request, *args, **kwargs):
        tasks = visible_tasks(ProjectTask.objects.all(), request.user)
        checklist = TaskChecklist.objects.filter(
            pk=request.data.get('checklist'), task__in=tasks
        ).first()
        if checklist is None:
            return Response({'checklist': ['Чек-лист не найден']}, status=status.HTTP_400_BAD_REQUEST)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        item = TaskService.add_checklist_item(checklist, fields.pop('text'), **fields)
        return Response(self.get_serializer(item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_action='view')
    def toggle(self, request, pk=None):
        item = TaskService.toggle_checklist_item(self.get_object())
        return Response(self.get_serializer(item).data)


class TaskExtensionRequestViewSet(ReadOnlyModelViewSet):
    """
    Deadline extension requests.

    Requests are reviewed by the task's author, a manager of the requester
    or a PMU administrator.

    Endpoints:
    - GET /task-extension-requests/pending/
    - POST /task-extension-requests/{id}/approve/
    - POST /task-extension-requests/{id}/reject/ - {reason}
    """

    menu_key = MenuKeys.TASKS
    queryset = TaskExtensionRequest.objects.select_related('task', 'requested_by', 'approved_by')
    serializer_class = TaskExtensionRequestSerializer
    filterset_fields = ['status', 'task', 'requested_by']
    ordering = ['-created_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return TaskExtensionRequest.objects.none()
        tasks = visible_tasks(ProjectTask.objects.all(), self.request.user)
        return super().get_queryset().filter(task__in=tasks)

    def _ensure_reviewer(self, extension):
        user = self.request.user
        allowed = (
            PermissionService.is_admin(user)
            or extension.task.assigned_by_id == user.pk
            or UserHierarchyService.is_subordinate(user, extension.requested_by)
        )
        if not allowed:
            raise AuthorizationException('review_extension', resource=str(extension.task))

    @action(detail=False, methods=['get'])
    def pending(self, request):
        queryset = self.filter_queryset(self.get_queryset()).filter(status=ExtensionStatusChoices.PENDING)
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=True, methods=['post'], permission_action='view')
    def approve(self, request, pk=None):
        extension = self.get_object()
        self._ensure_reviewer(extension)
        extension = TaskService.approve_extension(extension, request.user)
        return Response(self.get_serializer(extension).data)

    @action(detail=True, methods=['post'], permission_action='view')
    def reject(self, request, pk=None):
        extension = self.get_object()
        self._ensure_reviewer(extension)
        serializer = ExtensionRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        extension = TaskService.reject_extension(extension, request.user, serializer.validated_data['reason'])
        return Response(self.get_serializer(extension).data)
