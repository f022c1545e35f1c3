"""
Contract Serializers.

Contractors, contracts, amendments and milestones.
"""

from rest_framework import serializers

from domain.contracts.rules import AmendmentType
from infrastructure.persistence.models import (
    Contract,
    ContractAmendment,
    ContractMilestone,
    Contractor,
)
from .base import BaseModelSerializer, UserMinimalSerializer


class ContractorSerializer(BaseModelSerializer):
    contracts_count = serializers.IntegerField(source='contracts.count', read_only=True)

    class Meta:
        model = Contractor
        fields = [
            'id', 'name', 'country', 'contact_person', 'email', 'phone', 'address',
            'contracts_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ContractListSerializer(BaseModelSerializer):
    contractor_name = serializers.CharField(source='contractor.name', read_only=True)
    project_code = serializers.CharField(source='project.code', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    final_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    effective_end_date = serializers.DateField(read_only=True)
    remaining_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Contract
        fields = [
            'id', 'contract_number', 'scope_of_work', 'type', 'type_display',
            'project', 'project_code', 'contractor', 'contractor_name',
            'curator', 'project_manager',
            'signing_date', 'contract_end_date', 'extended_to_date', 'effective_end_date',
            'remaining_days', 'currency', 'contract_amount', 'final_amount',
            'work_completed_percent',
        ]


class ContractDetailSerializer(ContractListSerializer):
    curator_detail = UserMinimalSerializer(source='curator', read_only=True)
    project_manager_detail = UserMinimalSerializer(source='project_manager', read_only=True)
    paid_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    paid_percent = serializers.DecimalField(max_digits=7, decimal_places=2, read_only=True)
    remaining_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    available_limit = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)

    class Meta(ContractListSerializer.Meta):
        fields = ContractListSerializer.Meta.fields + [
            'scope_of_work_tj', 'scope_of_work_en',
            'sub_component', 'procurement_plan',
            'curator_detail', 'project_manager_detail',
            'additional_amount', 'saved_amount', 'amount_tjs', 'exchange_rate',
            'paid_amount', 'paid_percent', 'remaining_amount', 'available_limit',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'additional_amount', 'extended_to_date', 'work_completed_percent',
            'created_at', 'updated_at',
        ]

    def validate(self, attrs):
        signing = attrs.get('signing_date', getattr(self.instance, 'signing_date', None))
        end = attrs.get('contract_end_date', getattr(self.instance, 'contract_end_date', None))
        if signing and end and end < signing:
            raise serializers.ValidationError({'contract_end_date': 'Дата окончания раньше даты подписания.'})
        amount = attrs.get('contract_amount')
        if amount is not None and amount < 0:
            raise serializers.ValidationError({'contract_amount': 'Сумма не может быть отрицательной.'})
        return attrs


class ContractAmendmentSerializer(BaseModelSerializer):
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = ContractAmendment
        fields = [
            'id', 'contract', 'type', 'type_display', 'amendment_date', 'description',
            'amount_change_tjs', 'exchange_rate', 'amount_change_usd',
            'previous_end_date', 'new_end_date', 'new_scope_of_work',
            'created_by_name', 'created_at',
        ]
        read_only_fields = ['id', 'previous_end_date', 'created_at']

    def validate_type(self, value):
        if value not in {t.value for t in AmendmentType}:
            raise serializers.ValidationError('Неизвестный тип соглашения.')
        return value


class ContractMilestoneSerializer(BaseModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    frequency_display = serializers.CharField(source='get_frequency_display', read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = ContractMilestone
        fields = [
            'id', 'contract', 'title', 'title_tj', 'title_en', 'description',
            'due_date', 'completed_at', 'status', 'status_display', 'is_overdue',
            'frequency', 'frequency_display', 'work_progress', 'sort_order',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'completed_at', 'created_at', 'updated_at']
