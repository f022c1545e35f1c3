"""
Payment Views.

Payments under contracts with limit validation and the approval cycle.
"""

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.payments import PaymentService
from application.services.permissions import DataAccessService
from domain.shared.exceptions import InvalidOperationException
from infrastructure.persistence.models import Contract, MenuKeys, Payment, PaymentStatusChoices
from ..serializers.payments import PaymentRejectSerializer, PaymentSerializer
from ..serializers.work_progress import WorkProgressListSerializer
from .base import BaseModelViewSet, ContractScopeMixin


class PaymentViewSet(ContractScopeMixin, BaseModelViewSet):
    """
    ViewSet for payments.

    Endpoints:
    - POST /payments/ - create; the response carries `warnings`
    - POST /payments/{id}/approve/
    - POST /payments/{id}/reject/ - {reason}
    - POST /payments/{id}/mark_paid/
    - GET /payments/approved_avrs/?contract=<id> - AVRs awaiting payment
    - GET /payments/report/ - totals per contract, status and type
    """

    menu_key = MenuKeys.PAYMENTS
    queryset = Payment.objects.select_related(
        'contract', 'contract__contractor', 'approved_by', 'rejected_by'
    )
    serializer_class = PaymentSerializer
    filterset_fields = {
        'contract': ['exact'],
        'contract__project': ['exact'],
        'status': ['exact', 'in'],
        'type': ['exact'],
        'payment_date': ['gte', 'lte'],
    }
    search_fields = ['description', 'invoice_number', 'contract__contract_number']
    ordering_fields = ['payment_date', 'amount', 'created_at']
    ordering = ['-payment_date', '-created_at']

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        contract = fields.pop('contract')
        self.ensure_contract_access(contract)
        payment, warnings = PaymentService.create_payment(contract, request.user, **fields)
        data = self.get_serializer(payment).data
        data['warnings'] = warnings
        return Response(data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        if serializer.instance.status != PaymentStatusChoices.PENDING:
            raise InvalidOperationException(
                "Изменять можно только ожидающий платёж",
                current_state=serializer.instance.get_status_display(),
            )
        super().perform_update(serializer)

    def perform_destroy(self, instance):
        if instance.status == PaymentStatusChoices.PAID:
            raise InvalidOperationException(
                "Нельзя удалить оплаченный платёж",
                current_state=instance.get_status_display(),
            )
        instance.delete()

    @action(detail=True, methods=['post'], permission_action='edit')
    def approve(self, request, pk=None):
        payment = PaymentService.approve(self.get_object(), request.user)
        return Response(self.get_serializer(payment).data)

    @action(detail=True, methods=['post'], permission_action='edit')
    def reject(self, request, pk=None):
        serializer = PaymentRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = PaymentService.reject(self.get_object(), request.user, serializer.validated_data['reason'])
        return Response(self.get_serializer(payment).data)

    @action(detail=True, methods=['post'], permission_action='edit')
    def mark_paid(self, request, pk=None):
        payment = PaymentService.mark_paid(self.get_object(), request.user)
        return Response(self.get_serializer(payment).data)

    @action(detail=False, methods=['get'])
    def approved_avrs(self, request):
        contract_id = request.query_params.get('contract')
        if not contract_id:
            return Response({'error': 'Укажите контракт'}, status=status.HTTP_400_BAD_REQUEST)
        contracts = DataAccessService.scope_queryset(
            Contract.objects.all(), request.user, self.menu_key, 'id'
        )
        contract = contracts.filter(pk=contract_id).first()
        if contract is None:
            return Response({'error': 'Контракт не найден'}, status=status.HTTP_404_NOT_FOUND)

        avrs = PaymentService.approved_avrs(contract).select_related('contract__contractor')
        return Response({
            'available_limit': PaymentService.available_limit(contract),
            'work_progress': WorkProgressListSerializer(avrs, many=True).data,
        })

    @action(detail=False, methods=['get'])
    def report(self, request):
        contracts = DataAccessService.scope_queryset(
            Contract.objects.all(), request.user, self.menu_key, 'id'
        )
        project = request.query_params.get('project')
        if project:
            contracts = contracts.filter(project_id=project)
        return Response(PaymentService.payment_report(contracts))
