"""
Project Serializers.

Projects, components, sub-components and the PMU operating budget.
"""

from rest_framework import serializers

from infrastructure.persistence.models import (
    BudgetExpense,
    BudgetItem,
    Component,
    Project,
    SubComponent,
)
from .base import BaseModelSerializer, LocalizedNameMixin


class SubComponentSerializer(LocalizedNameMixin, BaseModelSerializer):
    contracts_count = serializers.IntegerField(source='contracts.count', read_only=True)

    class Meta:
        model = SubComponent
        fields = [
            'id', 'component', 'code',
            'name_ru', 'name_tj', 'name_en', 'display_name',
            'allocated_budget', 'contracts_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ComponentSerializer(LocalizedNameMixin, BaseModelSerializer):
    sub_components = SubComponentSerializer(many=True, read_only=True)

    class Meta:
        model = Component
        fields = [
            'id', 'project', 'number',
            'name_ru', 'name_tj', 'name_en', 'display_name',
            'allocated_budget', 'sub_components',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ProjectListSerializer(LocalizedNameMixin, BaseModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'code', 'name_ru', 'name_tj', 'name_en', 'display_name',
            'total_budget', 'start_date', 'end_date',
            'status', 'status_display',
        ]


class ProjectDetailSerializer(ProjectListSerializer):
    components = ComponentSerializer(many=True, read_only=True)
    allocated_to_components = serializers.DecimalField(
        max_digits=18, decimal_places=2, read_only=True
    )

    class Meta(ProjectListSerializer.Meta):
        fields = ProjectListSerializer.Meta.fields + [
            'description', 'allocated_to_components', 'components',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'Дата окончания раньше даты начала.'})
        return attrs


class BudgetExpenseSerializer(BaseModelSerializer):

    class Meta:
        model = BudgetExpense
        fields = [
            'id', 'budget_item', 'expense_date', 'amount',
            'description', 'document_reference',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Сумма должна быть больше нуля.')
        return value


class BudgetItemSerializer(LocalizedNameMixin, BaseModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    spent_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    remaining_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)

    class Meta:
        model = BudgetItem
        fields = [
            'id', 'project', 'number',
            'name_ru', 'name_tj', 'name_en', 'display_name',
            'category', 'category_display',
            'allocated_amount', 'spent_amount', 'remaining_amount',
            'calculation_notes',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
