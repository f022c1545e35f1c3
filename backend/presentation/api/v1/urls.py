"""
API v1 URL Configuration.

All API endpoints for version 1.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views.users import (
    AuthViewSet,
    UserViewSet,
    RoleViewSet,
)
from .views.project import (
    ProjectViewSet,
    ComponentViewSet,
    SubComponentViewSet,
    BudgetItemViewSet,
    BudgetExpenseViewSet,
)
from .views.contracts import (
    ContractorViewSet,
    ContractViewSet,
    ContractAmendmentViewSet,
    ContractMilestoneViewSet,
)
from .views.work_progress import WorkProgressViewSet
from .views.payments import PaymentViewSet
from .views.procurement import ProcurementPlanViewSet
from .views.geography import (
    DistrictViewSet,
    JamoatViewSet,
    VillageViewSet,
    SchoolViewSet,
    HealthFacilityViewSet,
    EducationInstitutionTypeViewSet,
    HealthFacilityTypeViewSet,
)
from .views.indicators import (
    IndicatorCategoryViewSet,
    IndicatorViewSet,
    IndicatorValueViewSet,
    ContractIndicatorViewSet,
)
from .views.documents import DocumentViewSet
from .views.tasks import (
    ProjectTaskViewSet,
    TaskChecklistItemViewSet,
    TaskExtensionRequestViewSet,
)
from .views.notifications import NotificationViewSet
from .views.currency import CurrencyRateViewSet
from .views.dashboard import DashboardViewSet
from .views.imports import GeographyImportViewSet

# Create router
router = DefaultRouter()

# Auth & Users
router.register(r'auth', AuthViewSet, basename='auth')
router.register(r'users', UserViewSet, basename='users')
router.register(r'roles', RoleViewSet, basename='roles')

# Projects & budget
router.register(r'projects', ProjectViewSet, basename='projects')
router.register(r'components', ComponentViewSet, basename='components')
router.register(r'sub-components', SubComponentViewSet, basename='sub-components')
router.register(r'budget-items', BudgetItemViewSet, basename='budget-items')
router.register(r'budget-expenses', BudgetExpenseViewSet, basename='budget-expenses')

# Contracts
router.register(r'contractors', ContractorViewSet, basename='contractors')
router.register(r'contracts', ContractViewSet, basename='contracts')
router.register(r'contract-amendments', ContractAmendmentViewSet, basename='contract-amendments')
router.register(r'contract-milestones', ContractMilestoneViewSet, basename='contract-milestones')
router.register(r'contract-indicators', ContractIndicatorViewSet, basename='contract-indicators')

# Work progress (AVR) & payments
router.register(r'work-progress', WorkProgressViewSet, basename='work-progress')
router.register(r'payments', PaymentViewSet, basename='payments')

# Procurement
router.register(r'procurement-plans', ProcurementPlanViewSet, basename='procurement-plans')

# Geography & facilities
router.register(r'districts', DistrictViewSet, basename='districts')
router.register(r'jamoats', JamoatViewSet, basename='jamoats')
router.register(r'villages', VillageViewSet, basename='villages')
router.register(r'schools', SchoolViewSet, basename='schools')
router.register(r'health-facilities', HealthFacilityViewSet, basename='health-facilities')
router.register(r'education-institution-types', EducationInstitutionTypeViewSet,
                basename='education-institution-types')
router.register(r'health-facility-types', HealthFacilityTypeViewSet, basename='health-facility-types')

# Indicators
router.register(r'indicator-categories', IndicatorCategoryViewSet, basename='indicator-categories')
router.register(r'indicators', IndicatorViewSet, basename='indicators')
router.register(r'indicator-values', IndicatorValueViewSet, basename='indicator-values')

# Documents
router.register(r'documents', DocumentViewSet, basename='documents')

# Tasks
router.register(r'tasks', ProjectTaskViewSet, basename='tasks')
router.register(r'task-checklist-items', TaskChecklistItemViewSet, basename='task-checklist-items')
router.register(r'task-extension-requests', TaskExtensionRequestViewSet, basename='task-extension-requests')

# Notifications
router.register(r'notifications', NotificationViewSet, basename='notifications')

# Currency rates
router.register(r'currency-rates', CurrencyRateViewSet, basename='currency-rates')

# Dashboard (management alerts)
router.register(r'dashboard', DashboardViewSet, basename='dashboard')

# Import
router.register(r'import/geography', GeographyImportViewSet, basename='import-geography')

app_name = 'api_v1'

urlpatterns = [
    path('', include(router.urls)),
]
