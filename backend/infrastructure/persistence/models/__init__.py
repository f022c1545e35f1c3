"""
Persistence Models Package.

All Django ORM models for PMMIS.
"""

# Base mixins
from .base import (
    TimeStampedMixin,
    AuditMixin,
    LocalizedNameMixin,
    BaseModel,
    BaseModelWithHistory,
)

# User models
from .users import (
    User,
    Role,
    UserRole,
    MenuKeys,
    RoleMenuPermission,
)

# Project structure
from .project import (
    ProjectStatusChoices,
    Project,
    Component,
    SubComponent,
)

# Contracts
from .contracts import (
    Contractor,
    ContractTypeChoices,
    CurrencyChoices,
    Contract,
    ContractAmendment,
    ContractMilestone,
)

# Work progress (AVR)
from .work_progress import (
    ApprovalStatusChoices,
    WorkProgress,
)

# Payments
from .payments import (
    PaymentStatusChoices,
    PaymentTypeChoices,
    Payment,
)

# Geography & facilities
from .geography import (
    District,
    Jamoat,
    Village,
    EducationInstitutionType,
    HealthFacilityType,
    School,
    HealthFacility,
)

# Indicators
from .indicators import (
    MeasurementTypeChoices,
    GeoDataSourceChoices,
    GeoItemTypeChoices,
    IndicatorCategory,
    Indicator,
    IndicatorValue,
    ContractIndicator,
    ContractIndicatorProgress,
    ContractIndicatorVillage,
    IndicatorProgressItem,
)

# Procurement
from .procurement import (
    ProcurementMethodChoices,
    ProcurementTypeChoices,
    ProcurementStatusChoices,
    ProcurementPlan,
)

# Documents
from .documents import (
    DocumentTypeChoices,
    Document,
)

# Budget
from .budget import (
    BudgetCategoryChoices,
    BudgetItem,
    BudgetExpense,
)

# Currency
from .currency import CurrencyRate

# Notifications
from .notifications import (
    NotificationTypeChoices,
    NotificationPriorityChoices,
    NotificationChannelChoices,
    Notification,
    UserNotificationSettings,
)

# Tasks
from .tasks import (
    TaskStatusChoices,
    TaskPriorityChoices,
    ExtensionStatusChoices,
    TaskChangeTypeChoices,
    ProjectTask,
    TaskChecklist,
    TaskChecklistItem,
    TaskComment,
    TaskAttachment,
    TaskExtensionRequest,
    TaskHistory,
)

# Audit
from .audit import AuditAction, AuditLog


__all__ = [
    # Base
    'TimeStampedMixin',
    'AuditMixin',
    'LocalizedNameMixin',
    'BaseModel',
    'BaseModelWithHistory',
    # Users
    'User',
    'Role',
    'UserRole',
    'MenuKeys',
    'RoleMenuPermission',
    # Project
    'ProjectStatusChoices',
    'Project',
    'Component',
    'SubComponent',
    # Contracts
    'Contractor',
    'ContractTypeChoices',
    'CurrencyChoices',
    'Contract',
    'ContractAmendment',
    'ContractMilestone',
    # Work progress
    'ApprovalStatusChoices',
    'WorkProgress',
    # Payments
    'PaymentStatusChoices',
    'PaymentTypeChoices',
    'Payment',
    # Geography
    'District',
    'Jamoat',
    'Village',
    'EducationInstitutionType',
    'HealthFacilityType',
    'School',
    'HealthFacility',
    # Indicators
    'MeasurementTypeChoices',
    'GeoDataSourceChoices',
    'GeoItemTypeChoices',
    'IndicatorCategory',
    'Indicator',
    'IndicatorValue',
    'ContractIndicator',
    'ContractIndicatorProgress',
    'ContractIndicatorVillage',
    'IndicatorProgressItem',
    # Procurement
    'ProcurementMethodChoices',
    'ProcurementTypeChoices',
    'ProcurementStatusChoices',
    'ProcurementPlan',
    # Documents
    'DocumentTypeChoices',
    'Document',
    # Budget
    'BudgetCategoryChoices',
    'BudgetItem',
    'BudgetExpense',
    # Currency
    'CurrencyRate',
    # Notifications
    'NotificationTypeChoices',
    'NotificationPriorityChoices',
    'NotificationChannelChoices',
    'Notification',
    'UserNotificationSettings',
    # Tasks
    'TaskStatusChoices',
    'TaskPriorityChoices',
    'ExtensionStatusChoices',
    'TaskChangeTypeChoices',
    'ProjectTask',
    'TaskChecklist',
    'TaskChecklistItem',
    'TaskComment',
    'TaskAttachment',
    'TaskExtensionRequest',
    'TaskHistory',
    # Audit
    'AuditAction',
    'AuditLog',
]
