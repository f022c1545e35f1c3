"""
Project Views.

Projects, their component structure and the PMU operating budget.
"""

from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.dashboard import DashboardService
from infrastructure.persistence.models import (
    BudgetExpense,
    BudgetItem,
    Component,
    MenuKeys,
    Project,
    SubComponent,
)
from ..serializers.project import (
    BudgetExpenseSerializer,
    BudgetItemSerializer,
    ComponentSerializer,
    ProjectDetailSerializer,
    ProjectListSerializer,
    SubComponentSerializer,
)
from .base import BaseModelViewSet


class ProjectViewSet(BaseModelViewSet):
    """
    ViewSet for projects.

    Endpoints:
    - GET /projects/{id}/summary/ - dashboard figures and management alerts
    """

    menu_key = MenuKeys.PROJECTS
    queryset = Project.objects.all()
    serializer_classes = {
        'list': ProjectListSerializer,
        'default': ProjectDetailSerializer,
    }
    search_fields = ['code', 'name_ru', 'name_en']
    filterset_fields = ['status']
    ordering_fields = ['code', 'start_date', 'end_date', 'total_budget']
    ordering = ['code']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('components__sub_components')
        return queryset

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        project = self.get_object()
        return Response(DashboardService.project_summary(project))


class ComponentViewSet(BaseModelViewSet):
    menu_key = MenuKeys.PROJECTS
    queryset = Component.objects.prefetch_related('sub_components')
    serializer_class = ComponentSerializer
    filterset_fields = ['project']
    search_fields = ['name_ru']
    ordering = ['project', 'number']


class SubComponentViewSet(BaseModelViewSet):
    menu_key = MenuKeys.PROJECTS
    queryset = SubComponent.objects.select_related('component')
    serializer_class = SubComponentSerializer
    filterset_fields = ['component', 'component__project']
    search_fields = ['code', 'name_ru']
    ordering = ['component', 'code']


class BudgetItemViewSet(BaseModelViewSet):
    menu_key = MenuKeys.PROJECTS
    queryset = BudgetItem.objects.all()
    serializer_class = BudgetItemSerializer
    filterset_fields = ['project', 'category']
    search_fields = ['name_ru', 'calculation_notes']
    ordering = ['project', 'number']


class BudgetExpenseViewSet(BaseModelViewSet):
    menu_key = MenuKeys.PROJECTS
    queryset = BudgetExpense.objects.select_related('budget_item')
    serializer_class = BudgetExpenseSerializer
    filterset_fields = {
        'budget_item': ['exact'],
        'budget_item__project': ['exact'],
        'expense_date': ['gte', 'lte'],
    }
    search_fields = ['description', 'document_reference']
    ordering = ['-expense_date']
