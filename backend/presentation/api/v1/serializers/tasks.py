"""
Task Serializers.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from infrastructure.persistence.models import (
    ProjectTask,
    TaskAttachment,
    TaskChecklist,
    TaskChecklistItem,
    TaskComment,
    TaskExtensionRequest,
    TaskHistory,
    TaskStatusChoices,
)
from .base import BaseModelSerializer, UserMinimalSerializer, request_language

User = get_user_model()


class TaskChecklistItemSerializer(serializers.ModelSerializer):
    co_executor_name = serializers.CharField(source='co_executor.get_full_name', read_only=True, default=None)

    class Meta:
        model = TaskChecklistItem
        fields = [
            'id', 'checklist', 'text', 'is_completed', 'is_important', 'is_indented',
            'sort_order', 'co_executor', 'co_executor_name',
        ]
        read_only_fields = ['id', 'checklist', 'is_completed']


class TaskChecklistSerializer(serializers.ModelSerializer):
    items = TaskChecklistItemSerializer(many=True, read_only=True)
    total_count = serializers.IntegerField(read_only=True)
    completed_count = serializers.IntegerField(read_only=True)
    progress = serializers.IntegerField(read_only=True)

    class Meta:
        model = TaskChecklist
        fields = [
            'id', 'task', 'name', 'sort_order', 'is_expanded',
            'items', 'total_count', 'completed_count', 'progress', 'created_at',
        ]
        read_only_fields = ['id', 'task', 'created_at']


class TaskCommentSerializer(serializers.ModelSerializer):
    author = UserMinimalSerializer(read_only=True)

    class Meta:
        model = TaskComment
        fields = ['id', 'task', 'author', 'content', 'is_system_generated', 'parent_comment', 'created_at']
        read_only_fields = ['id', 'task', 'author', 'is_system_generated', 'created_at']


class TaskAttachmentSerializer(serializers.ModelSerializer):
    uploaded_by = UserMinimalSerializer(read_only=True)
    file_size_display = serializers.CharField(read_only=True)
    is_image = serializers.BooleanField(read_only=True)
    is_pdf = serializers.BooleanField(read_only=True)

    class Meta:
        model = TaskAttachment
        fields = [
            'id', 'task', 'file', 'original_file_name', 'content_type', 'file_size',
            'file_size_display', 'is_image', 'is_pdf', 'description', 'uploaded_by', 'created_at',
        ]
        read_only_fields = [
            'id', 'task', 'original_file_name', 'content_type', 'file_size', 'uploaded_by', 'created_at',
        ]


class TaskExtensionRequestSerializer(serializers.ModelSerializer):
    task_title = serializers.CharField(source='task.title', read_only=True)
    requested_by = UserMinimalSerializer(read_only=True)
    approved_by = UserMinimalSerializer(read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    requested_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = TaskExtensionRequest
        fields = [
            'id', 'task', 'task_title', 'requested_by', 'reason',
            'original_due_date', 'new_due_date', 'requested_days',
            'status', 'status_display', 'approved_by', 'approved_at', 'rejection_reason',
            'created_at',
        ]
        read_only_fields = fields


class TaskHistorySerializer(serializers.ModelSerializer):
    changed_by = UserMinimalSerializer(read_only=True)
    change_type_display = serializers.CharField(source='get_change_type_display', read_only=True)

    class Meta:
        model = TaskHistory
        fields = [
            'id', 'changed_by', 'change_type', 'change_type_display',
            'field_name', 'old_value', 'new_value', 'description', 'created_at',
        ]
        read_only_fields = fields


class ProjectTaskListSerializer(BaseModelSerializer):
    display_title = serializers.SerializerMethodField()
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)
    assignee = UserMinimalSerializer(read_only=True)
    assigned_by = UserMinimalSerializer(read_only=True)
    contract_number = serializers.CharField(source='contract.contract_number', read_only=True, default=None)
    is_overdue = serializers.BooleanField(read_only=True)
    days_until_due = serializers.IntegerField(read_only=True)

    class Meta:
        model = ProjectTask
        fields = [
            'id', 'title', 'display_title', 'status', 'status_display',
            'priority', 'priority_display', 'start_date', 'due_date', 'completed_at',
            'assignee', 'assigned_by', 'parent_task',
            'contract', 'contract_number', 'procurement_plan', 'work_progress',
            'project', 'milestone', 'payment',
            'completion_percent', 'is_overdue', 'days_until_due', 'created_at',
        ]

    def get_display_title(self, obj):
        return obj.get_title(request_language(self.context))


class ProjectTaskDetailSerializer(ProjectTaskListSerializer):
    checklists = TaskChecklistSerializer(many=True, read_only=True)
    comments = serializers.SerializerMethodField()
    attachments = TaskAttachmentSerializer(many=True, read_only=True)
    extension_requests = TaskExtensionRequestSerializer(many=True, read_only=True)
    sub_tasks = ProjectTaskListSerializer(many=True, read_only=True)
    sub_tasks_completed_count = serializers.IntegerField(read_only=True)

    class Meta(ProjectTaskListSerializer.Meta):
        fields = ProjectTaskListSerializer.Meta.fields + [
            'title_tj', 'title_en', 'description', 'description_tj', 'description_en',
            'estimated_hours', 'actual_hours',
            'checklists', 'comments', 'attachments', 'extension_requests',
            'sub_tasks', 'sub_tasks_completed_count', 'updated_at',
        ]

    def get_comments(self, obj):
        top_level = obj.comments.filter(parent_comment__isnull=True).select_related('author')
        data = []
        for comment in top_level:
            item = TaskCommentSerializer(comment).data
            item['replies'] = TaskCommentSerializer(
                comment.replies.select_related('author'), many=True
            ).data
            data.append(item)
        return data


class ProjectTaskWriteSerializer(serializers.ModelSerializer):
    """
    Create/update payload.

    Status and assignee changes after creation go through the
    change_status and assign actions.
    """

    class Meta:
        model = ProjectTask
        fields = [
            'id', 'title', 'title_tj', 'title_en', 'description', 'description_tj', 'description_en',
            'priority', 'start_date', 'due_date', 'assignee', 'parent_task',
            'contract', 'procurement_plan', 'work_progress', 'project', 'milestone', 'payment',
            'estimated_hours', 'actual_hours',
        ]
        read_only_fields = ['id']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        due = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if start and due and due < start:
            raise serializers.ValidationError({'due_date': 'Срок раньше даты начала.'})
        parent = attrs.get('parent_task')
        if parent is not None and self.instance is not None and parent.pk == self.instance.pk:
            raise serializers.ValidationError({'parent_task': 'Задача не может быть подзадачей самой себя.'})
        return attrs


class TaskAssignSerializer(serializers.Serializer):
    assignee = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatusChoices.choices)


class TaskProgressSerializer(serializers.Serializer):
    completion_percent = serializers.IntegerField()


class TaskCommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField()
    parent_comment = serializers.IntegerField(required=False, allow_null=True)


class TaskAttachmentCreateSerializer(serializers.Serializer):
    file = serializers.FileField()
    description = serializers.CharField(required=False, allow_blank=True, default='')


class TaskChecklistCreateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, default='')
    items = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ExtensionRequestCreateSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=10)
    new_due_date = serializers.DateTimeField()


class ExtensionRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
