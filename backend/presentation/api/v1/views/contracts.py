"""
Contract Views.

Contractors, contracts, amendments and milestones.
"""

from django.db.models import Count, Q, Sum
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.amendments import AmendmentService
from infrastructure.persistence.models import (
    ApprovalStatusChoices,
    Contract,
    ContractAmendment,
    ContractMilestone,
    Contractor,
    MenuKeys,
    PaymentStatusChoices,
    WorkProgress,
)
from ..serializers.contracts import (
    ContractAmendmentSerializer,
    ContractDetailSerializer,
    ContractListSerializer,
    ContractMilestoneSerializer,
    ContractorSerializer,
)
from .base import BaseModelViewSet, ContractScopeMixin


class ContractorViewSet(BaseModelViewSet):
    menu_key = MenuKeys.CONTRACTORS
    queryset = Contractor.objects.all()
    serializer_class = ContractorSerializer
    search_fields = ['name', 'contact_person', 'email']
    filterset_fields = ['country']
    ordering = ['name']


class ContractViewSet(ContractScopeMixin, BaseModelViewSet):
    """
    ViewSet for contracts.

    Users without "view all" see only the contracts they (or their
    subordinates) curate or manage, or that belong to their contractor.

    Endpoints:
    - GET /contracts/{id}/summary/ - financials, indicators, milestones
    """

    menu_key = MenuKeys.CONTRACTS
    contract_field = 'id'
    queryset = Contract.objects.select_related(
        'project', 'contractor', 'curator', 'project_manager'
    )
    serializer_classes = {
        'list': ContractListSerializer,
        'default': ContractDetailSerializer,
    }
    search_fields = ['contract_number', 'scope_of_work', 'contractor__name']
    filterset_fields = {
        'project': ['exact'],
        'sub_component': ['exact'],
        'contractor': ['exact'],
        'type': ['exact'],
        'currency': ['exact'],
        'curator': ['exact'],
        'project_manager': ['exact'],
        'contract_end_date': ['gte', 'lte'],
    }
    ordering_fields = ['contract_number', 'signing_date', 'contract_end_date', 'contract_amount', 'work_completed_percent']
    ordering = ['-signing_date', 'contract_number']

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        contract = self.get_object()

        payments = contract.payments.aggregate(
            count=Count('id'),
            paid=Sum('amount', filter=Q(status=PaymentStatusChoices.PAID)),
            pending=Sum('amount', filter=Q(status=PaymentStatusChoices.PENDING)),
            approved=Sum('amount', filter=Q(status=PaymentStatusChoices.APPROVED)),
        )
        indicators = [
            {
                'id': ci.pk,
                'indicator_id': ci.indicator_id,
                'indicator_code': ci.indicator.code,
                'indicator_name': ci.indicator.name_ru,
                'unit': ci.indicator.unit,
                'target_value': ci.target_value,
                'achieved_value': ci.achieved_value,
                'progress_percent': ci.progress_percent,
            }
            for ci in contract.contract_indicators.select_related('indicator')
        ]
        milestones = contract.milestones.all()
        avr_counts = {
            row['approval_status']: row['count']
            for row in contract.work_progresses.order_by().values('approval_status').annotate(count=Count('id'))
        }

        return Response({
            'contract': ContractDetailSerializer(contract, context={'request': request}).data,
            'financials': {
                'contract_amount': contract.contract_amount,
                'additional_amount': contract.additional_amount,
                'saved_amount': contract.saved_amount,
                'final_amount': contract.final_amount,
                'paid_amount': payments['paid'] or 0,
                'pending_amount': payments['pending'] or 0,
                'approved_amount': payments['approved'] or 0,
                'available_limit': contract.available_limit,
                'paid_percent': contract.paid_percent,
                'payments_count': payments['count'],
            },
            'progress': {
                'work_completed_percent': contract.work_completed_percent,
                'remaining_days': contract.remaining_days,
                'work_progress_by_status': {
                    label: avr_counts.get(value, 0)
                    for value, label in ApprovalStatusChoices.choices
                },
            },
            'indicators': indicators,
            'milestones': ContractMilestoneSerializer(milestones, many=True).data,
            'amendments_count': contract.amendments.count(),
        })


class ContractAmendmentViewSet(ContractScopeMixin, BaseModelViewSet):
    """
    Amendments are immutable: creating one applies it to the contract,
    deleting it reverts its effect.
    """

    menu_key = MenuKeys.CONTRACT_AMENDMENTS
    queryset = ContractAmendment.objects.select_related('contract', 'created_by')
    serializer_class = ContractAmendmentSerializer
    filterset_fields = ['contract', 'type']
    ordering = ['contract', 'amendment_date', 'id']
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        contract = fields.pop('contract')
        self.ensure_contract_access(contract)
        amendment = AmendmentService.create(contract, request.user, request=request, **fields)
        return Response(self.get_serializer(amendment).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        AmendmentService.delete(self.get_object(), request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ContractMilestoneViewSet(ContractScopeMixin, BaseModelViewSet):
    menu_key = MenuKeys.CONTRACTS
    queryset = ContractMilestone.objects.select_related('contract')
    serializer_class = ContractMilestoneSerializer
    filterset_fields = {
        'contract': ['exact'],
        'status': ['exact', 'in'],
        'due_date': ['gte', 'lte'],
    }
    ordering = ['contract', 'sort_order', 'due_date']

    @action(detail=True, methods=['post'], permission_action='edit')
    def complete(self, request, pk=None):
        milestone = self.get_object()
        work_progress = None
        work_progress_id = request.data.get('work_progress')
        if work_progress_id:
            work_progress = WorkProgress.objects.filter(
                pk=work_progress_id, contract_id=milestone.contract_id
            ).first()
            if work_progress is None:
                return Response(
                    {'error': 'АВР не найден в этом контракте'},
                    status=status.HTTP_400_BAD_REQUEST
                )
        milestone.complete(work_progress=work_progress)
        return Response(self.get_serializer(milestone).data)
