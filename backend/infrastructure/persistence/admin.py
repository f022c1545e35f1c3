"""
Django admin registration.

History-tracked models use SimpleHistoryAdmin so the change log is
browsable from the admin.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from simple_history.admin import SimpleHistoryAdmin

from .models import (
    AuditLog,
    Component,
    Contract,
    ContractAmendment,
    ContractIndicator,
    ContractMilestone,
    Contractor,
    CurrencyRate,
    District,
    Document,
    HealthFacility,
    Indicator,
    IndicatorCategory,
    Jamoat,
    Notification,
    Payment,
    ProcurementPlan,
    Project,
    ProjectTask,
    Role,
    RoleMenuPermission,
    School,
    SubComponent,
    User,
    UserRole,
    Village,
    WorkProgress,
)


# ============================================================================
# USERS & ROLES
# ============================================================================

class UserRoleInline(admin.TabularInline):
    model = UserRole
    fk_name = 'user'
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'full_name', 'email', 'position', 'supervisor', 'is_active']
    list_filter = ['is_active', 'is_superuser', 'preferred_language']
    search_fields = ['username', 'first_name', 'last_name', 'email']
    inlines = [UserRoleInline]
    fieldsets = BaseUserAdmin.fieldsets + (
        ('PMMIS', {
            'fields': ('middle_name', 'phone', 'position', 'supervisor', 'contractor', 'preferred_language')
        }),
    )


class RoleMenuPermissionInline(admin.TabularInline):
    model = RoleMenuPermission
    extra = 0


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_system', 'is_active', 'sort_order']
    list_filter = ['is_system', 'is_active']
    search_fields = ['code', 'name']
    inlines = [RoleMenuPermissionInline]


# ============================================================================
# PROJECTS & CONTRACTS
# ============================================================================

class ComponentInline(admin.TabularInline):
    model = Component
    extra = 0
    fields = ['number', 'name_ru', 'allocated_budget']


@admin.register(Project)
class ProjectAdmin(SimpleHistoryAdmin):
    list_display = ['code', 'name_ru', 'status', 'total_budget']
    search_fields = ['code', 'name_ru', 'name_en']
    inlines = [ComponentInline]


@admin.register(SubComponent)
class SubComponentAdmin(admin.ModelAdmin):
    list_display = ['code', 'name_ru', 'component', 'allocated_budget']
    list_filter = ['component__project']


@admin.register(Contractor)
class ContractorAdmin(admin.ModelAdmin):
    list_display = ['name', 'country', 'contact_person', 'email', 'phone']
    search_fields = ['name', 'contact_person']


class ContractMilestoneInline(admin.TabularInline):
    model = ContractMilestone
    extra = 0
    fields = ['title', 'due_date', 'status', 'completed_at']


@admin.register(Contract)
class ContractAdmin(SimpleHistoryAdmin):
    list_display = [
        'contract_number', 'contractor', 'project', 'contract_amount',
        'contract_end_date', 'work_completed_percent',
    ]
    list_filter = ['project', 'type', 'currency']
    search_fields = ['contract_number', 'contractor__name', 'scope_of_work']
    raw_id_fields = ['curator', 'project_manager', 'procurement_plan']
    inlines = [ContractMilestoneInline]


@admin.register(ContractAmendment)
class ContractAmendmentAdmin(admin.ModelAdmin):
    list_display = ['contract', 'type', 'amendment_date', 'amount_change_usd', 'new_end_date']
    list_filter = ['type']
    # Amendments change contract totals on save/delete through the API only.
    readonly_fields = ['previous_end_date']


@admin.register(WorkProgress)
class WorkProgressAdmin(SimpleHistoryAdmin):
    list_display = ['contract', 'report_date', 'completed_percent', 'approval_status']
    list_filter = ['approval_status']
    search_fields = ['contract__contract_number', 'description']
    date_hierarchy = 'report_date'


@admin.register(Payment)
class PaymentAdmin(SimpleHistoryAdmin):
    list_display = ['contract', 'payment_date', 'amount', 'type', 'status']
    list_filter = ['status', 'type']
    search_fields = ['contract__contract_number', 'invoice_number']
    date_hierarchy = 'payment_date'


@admin.register(ProcurementPlan)
class ProcurementPlanAdmin(SimpleHistoryAdmin):
    list_display = ['reference_no', 'project', 'method', 'type', 'estimated_amount', 'status']
    list_filter = ['project', 'method', 'type', 'status']
    search_fields = ['reference_no', 'description']


# ============================================================================
# GEOGRAPHY & INDICATORS
# ============================================================================

@admin.register(District)
class DistrictAdmin(admin.ModelAdmin):
    list_display = ['code', 'name_ru', 'sort_order']
    search_fields = ['code', 'name_ru']


@admin.register(Jamoat)
class JamoatAdmin(admin.ModelAdmin):
    list_display = ['code', 'name_ru', 'district']
    list_filter = ['district']
    search_fields = ['code', 'name_ru']


@admin.register(Village)
class VillageAdmin(admin.ModelAdmin):
    list_display = ['name_ru', 'jamoat', 'population_current', 'is_covered_by_project']
    list_filter = ['jamoat__district', 'is_covered_by_project']
    search_fields = ['name_ru']


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ['number', 'name', 'village', 'total_students']
    search_fields = ['name', 'village__name_ru']


@admin.register(HealthFacility)
class HealthFacilityAdmin(admin.ModelAdmin):
    list_display = ['name', 'village', 'type', 'total_staff']
    search_fields = ['name', 'village__name_ru']


@admin.register(IndicatorCategory)
class IndicatorCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'sort_order', 'is_active']


@admin.register(Indicator)
class IndicatorAdmin(admin.ModelAdmin):
    list_display = ['code', 'name_ru', 'unit', 'measurement_type', 'geo_data_source', 'category']
    list_filter = ['category', 'geo_data_source']
    search_fields = ['code', 'name_ru']


@admin.register(ContractIndicator)
class ContractIndicatorAdmin(admin.ModelAdmin):
    list_display = ['contract', 'indicator', 'target_value', 'achieved_value']
    readonly_fields = ['achieved_value']


# ============================================================================
# TASKS, NOTIFICATIONS, DOCUMENTS, AUDIT
# ============================================================================

@admin.register(ProjectTask)
class ProjectTaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'assignee', 'status', 'priority', 'due_date', 'completion_percent']
    list_filter = ['status', 'priority']
    search_fields = ['title']
    raw_id_fields = ['assignee', 'assigned_by', 'parent_task', 'contract', 'work_progress', 'payment']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'title', 'type', 'priority', 'is_read', 'email_sent', 'telegram_sent', 'created_at']
    list_filter = ['type', 'priority', 'is_read']
    search_fields = ['title', 'user__username']


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ['original_file_name', 'type', 'contract', 'uploaded_by', 'created_at']
    list_filter = ['type']


@admin.register(CurrencyRate)
class CurrencyRateAdmin(admin.ModelAdmin):
    list_display = ['date', 'char_code', 'nominal', 'value']
    list_filter = ['char_code']
    date_hierarchy = 'date'


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'user', 'action', 'object_repr', 'user_ip']
    list_filter = ['action']
    search_fields = ['object_repr', 'user__username']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
