"""
Indicator Views.

Indicator catalogue, measured values and contract targets with the
geo checklist used when filling an AVR.
"""

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.indicators import IndicatorService
from application.services.permissions import DataAccessService
from infrastructure.persistence.models import (
    Contract,
    ContractIndicator,
    Indicator,
    IndicatorCategory,
    IndicatorValue,
    MenuKeys,
    WorkProgress,
)
from ..serializers.indicators import (
    ContractIndicatorSerializer,
    IndicatorCategorySerializer,
    IndicatorSerializer,
    IndicatorValueSerializer,
)
from .base import BaseModelViewSet, ContractScopeMixin


class IndicatorCategoryViewSet(BaseModelViewSet):
    menu_key = MenuKeys.INDICATORS
    queryset = IndicatorCategory.objects.all()
    serializer_class = IndicatorCategorySerializer
    filterset_fields = ['is_active']
    ordering = ['sort_order', 'name']


class IndicatorViewSet(BaseModelViewSet):
    """
    ViewSet for project indicators.

    Endpoints:
    - GET /indicators/report/?contracts=1,2 - target vs. achieved over
      the contracts visible to the user
    """

    menu_key = MenuKeys.INDICATORS
    queryset = Indicator.objects.select_related('category', 'parent_indicator')
    serializer_class = IndicatorSerializer
    filterset_fields = ['category', 'measurement_type', 'geo_data_source', 'parent_indicator']
    search_fields = ['code', 'name_ru', 'name_tj', 'name_en']
    ordering_fields = ['code', 'sort_order']
    ordering = ['sort_order', 'code']

    @action(detail=False, methods=['get'])
    def report(self, request):
        contracts = DataAccessService.scope_queryset(
            Contract.objects.all(), request.user, MenuKeys.CONTRACTS, 'id'
        )
        project = request.query_params.get('project')
        if project:
            contracts = contracts.filter(project_id=project)
        requested = request.query_params.get('contracts')
        if requested:
            try:
                ids = [int(value) for value in requested.split(',') if value.strip()]
            except ValueError:
                return Response(
                    {'error': 'Некорректный список контрактов'},
                    status=status.HTTP_400_BAD_REQUEST
                )
            contracts = contracts.filter(pk__in=ids)
        contract_ids = list(contracts.values_list('pk', flat=True))
        return Response(IndicatorService.indicator_report(contract_ids))


class IndicatorValueViewSet(BaseModelViewSet):
    menu_key = MenuKeys.INDICATORS
    queryset = IndicatorValue.objects.select_related('indicator', 'village', 'district')
    serializer_class = IndicatorValueSerializer
    filterset_fields = {
        'indicator': ['exact'],
        'village': ['exact'],
        'district': ['exact'],
        'measurement_date': ['gte', 'lte'],
    }
    ordering = ['-measurement_date']


class ContractIndicatorViewSet(ContractScopeMixin, BaseModelViewSet):
    """
    Indicator targets of contracts.

    Endpoints:
    - GET /contract-indicators/{id}/geo_checklist/?exclude_work_progress=<id>
    - POST /contract-indicators/{id}/recalculate/
    """

    menu_key = MenuKeys.CONTRACTS
    queryset = ContractIndicator.objects.select_related('contract', 'indicator')
    serializer_class = ContractIndicatorSerializer
    filterset_fields = ['contract', 'indicator', 'contract__project']
    ordering = ['contract', 'indicator__sort_order']

    def perform_create(self, serializer):
        self.ensure_contract_access(serializer.validated_data['contract'])
        super().perform_create(serializer)

    @action(detail=True, methods=['get'])
    def geo_checklist(self, request, pk=None):
        contract_indicator = self.get_object()
        exclude = None
        exclude_id = request.query_params.get('exclude_work_progress')
        if exclude_id:
            exclude = WorkProgress.objects.filter(
                pk=exclude_id, contract_id=contract_indicator.contract_id
            ).first()
        items = IndicatorService.build_geo_checklist(contract_indicator, exclude_work_progress=exclude)
        return Response({
            'contract_indicator': contract_indicator.pk,
            'geo_data_source': contract_indicator.indicator.geo_data_source,
            'items': items,
        })

    @action(detail=True, methods=['post'], permission_action='edit')
    def recalculate(self, request, pk=None):
        contract_indicator = self.get_object()
        contract_indicator.recalculate_achieved()
        return Response(self.get_serializer(contract_indicator).data)
