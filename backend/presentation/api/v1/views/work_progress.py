"""
Work Progress (AVR) Views.

CRUD for AVRs plus the approval workflow:
Draft → SubmittedForReview → ManagerApproved → DirectorApproved, or Rejected.
"""

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.work_progress import WorkProgressService
from infrastructure.persistence.models import MenuKeys, WorkProgress
from ..serializers.payments import PaymentSerializer
from ..serializers.work_progress import (
    RejectSerializer,
    WorkflowCommentSerializer,
    WorkProgressDetailSerializer,
    WorkProgressListSerializer,
    WorkProgressWriteSerializer,
)
from .base import BaseModelViewSet, ContractScopeMixin


class WorkProgressViewSet(ContractScopeMixin, BaseModelViewSet):
    """
    ViewSet for AVRs.

    Endpoints:
    - POST /work-progress/{id}/submit_for_review/
    - POST /work-progress/{id}/manager_approve/ - {comment}
    - POST /work-progress/{id}/director_approve/ - {comment}, creates a payment
    - POST /work-progress/{id}/reject/ - {reason}
    """

    menu_key = MenuKeys.WORK_PROGRESS
    queryset = WorkProgress.objects.select_related(
        'contract', 'contract__contractor',
        'submitted_by', 'manager_reviewed_by', 'director_approved_by', 'rejected_by',
    )
    serializer_classes = {
        'list': WorkProgressListSerializer,
        'create': WorkProgressWriteSerializer,
        'update': WorkProgressWriteSerializer,
        'partial_update': WorkProgressWriteSerializer,
        'default': WorkProgressDetailSerializer,
    }
    filterset_fields = {
        'contract': ['exact'],
        'contract__project': ['exact'],
        'approval_status': ['exact', 'in'],
        'report_date': ['gte', 'lte'],
    }
    search_fields = ['description', 'contract__contract_number']
    ordering_fields = ['report_date', 'completed_percent', 'created_at']
    ordering = ['-report_date', '-created_at']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related(
                'indicator_progresses__contract_indicator__indicator',
                'indicator_progresses__items',
                'payments',
            )
        return queryset

    def _detail(self, work_progress):
        work_progress = self.get_queryset().get(pk=work_progress.pk)
        return WorkProgressDetailSerializer(work_progress, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        contract = fields.pop('contract')
        self.ensure_contract_access(contract)
        entries = fields.pop('indicator_entries', None)
        work_progress = WorkProgressService.create(contract, request.user, indicator_entries=entries, **fields)
        return Response(self._detail(work_progress), status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        work_progress = self.get_object()
        serializer = self.get_serializer(work_progress, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        fields.pop('contract', None)
        entries = fields.pop('indicator_entries', None)
        WorkProgressService.update(work_progress, request.user, indicator_entries=entries, **fields)
        return Response(self._detail(work_progress))

    def destroy(self, request, *args, **kwargs):
        WorkProgressService.delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], permission_action='edit')
    def submit_for_review(self, request, pk=None):
        work_progress = WorkProgressService.submit_for_review(self.get_object(), request.user)
        return Response(self._detail(work_progress))

    @action(detail=True, methods=['post'], permission_action='edit')
    def manager_approve(self, request, pk=None):
        serializer = WorkflowCommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        work_progress = WorkProgressService.manager_approve(
            self.get_object(), request.user, serializer.validated_data['comment']
        )
        return Response(self._detail(work_progress))

    @action(detail=True, methods=['post'], permission_action='edit')
    def director_approve(self, request, pk=None):
        serializer = WorkflowCommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        work_progress, payment = WorkProgressService.director_approve(
            self.get_object(), request.user, serializer.validated_data['comment']
        )
        return Response({
            'work_progress': self._detail(work_progress),
            'payment': PaymentSerializer(payment).data,
        })

    @action(detail=True, methods=['post'], permission_action='edit')
    def reject(self, request, pk=None):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        work_progress = WorkProgressService.reject(
            self.get_object(), request.user, serializer.validated_data['reason']
        )
        return Response(self._detail(work_progress))
