"""
Procurement Views.

Procurement plan positions of a project.
"""

import logging

from django.db.models import Count, Sum
from rest_framework.decorators import action
from rest_framework.response import Response

from infrastructure.persistence.models import MenuKeys, ProcurementPlan
from ..serializers.procurement import ProcurementPlanSerializer, ProcurementStatusSerializer
from .base import BaseModelViewSet

logger = logging.getLogger(__name__)


class ProcurementPlanViewSet(BaseModelViewSet):
    """
    ViewSet for procurement plan positions.

    Endpoints:
    - POST /procurement-plans/{id}/change_status/ - {status}
    - GET /procurement-plans/delayed/ - positions past planned signing
    - GET /procurement-plans/statistics/?project=<id>
    """

    menu_key = MenuKeys.PROCUREMENT
    queryset = ProcurementPlan.objects.select_related('project', 'component', 'sub_component')
    serializer_class = ProcurementPlanSerializer
    filterset_fields = {
        'project': ['exact'],
        'component': ['exact'],
        'sub_component': ['exact'],
        'status': ['exact', 'in'],
        'method': ['exact'],
        'type': ['exact'],
        'planned_contract_signing_date': ['gte', 'lte'],
    }
    search_fields = ['reference_no', 'description', 'description_en', 'comments']
    ordering_fields = ['reference_no', 'estimated_amount', 'planned_contract_signing_date', 'status']
    ordering = ['project', 'reference_no']

    @action(detail=True, methods=['post'], permission_action='edit')
    def change_status(self, request, pk=None):
        plan = self.get_object()
        serializer = ProcurementStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        old_status = plan.status
        plan.change_status(serializer.validated_data['status'], request.user)
        logger.info(
            "Procurement plan %s status %s -> %s by %s",
            plan.reference_no, old_status, plan.status, request.user
        )
        return Response(self.get_serializer(plan).data)

    @action(detail=False, methods=['get'])
    def delayed(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        delayed = [plan for plan in queryset if plan.is_delayed]
        return Response(self.get_serializer(delayed, many=True).data)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        queryset = self.filter_queryset(self.get_queryset()).order_by()
        by_status = {
            row['status']: {'count': row['count'], 'amount': row['amount'] or 0}
            for row in queryset.values('status').annotate(count=Count('id'), amount=Sum('estimated_amount'))
        }
        by_method = {
            row['method']: row['count']
            for row in queryset.values('method').annotate(count=Count('id'))
        }
        totals = queryset.aggregate(count=Count('id'), amount=Sum('estimated_amount'))
        return Response({
            'total_count': totals['count'],
            'total_amount': totals['amount'] or 0,
            'by_status': by_status,
            'by_method': by_method,
        })
