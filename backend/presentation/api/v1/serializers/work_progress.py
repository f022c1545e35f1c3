"""
Work Progress (AVR) Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import (
    ContractIndicatorProgress,
    GeoItemTypeChoices,
    IndicatorProgressItem,
    WorkProgress,
)
from .base import BaseModelSerializer, UserMinimalSerializer


class IndicatorProgressItemSerializer(serializers.ModelSerializer):
    item_type_display = serializers.CharField(source='get_item_type_display', read_only=True)
    item_id = serializers.SerializerMethodField()
    name = serializers.SerializerMethodField()

    class Meta:
        model = IndicatorProgressItem
        fields = ['id', 'item_type', 'item_type_display', 'item_id', 'name', 'numeric_value', 'is_completed', 'notes']

    def get_item_id(self, obj):
        return obj.village_id or obj.school_id or obj.health_facility_id

    def get_name(self, obj):
        target = obj.target
        return str(target) if target is not None else None


class ContractIndicatorProgressSerializer(serializers.ModelSerializer):
    indicator_code = serializers.CharField(source='contract_indicator.indicator.code', read_only=True)
    indicator_name = serializers.CharField(source='contract_indicator.indicator.name_ru', read_only=True)
    unit = serializers.CharField(source='contract_indicator.indicator.unit', read_only=True)
    items = IndicatorProgressItemSerializer(many=True, read_only=True)

    class Meta:
        model = ContractIndicatorProgress
        fields = [
            'id', 'contract_indicator', 'indicator_code', 'indicator_name', 'unit',
            'value', 'notes', 'items',
        ]


class IndicatorEntryItemSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=GeoItemTypeChoices.choices)
    item_id = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class IndicatorEntrySerializer(serializers.Serializer):
    """One indicator row of an AVR: a plain value or checked geo items."""

    contract_indicator = serializers.IntegerField()
    value = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, allow_null=True)
    items = IndicatorEntryItemSerializer(many=True, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class WorkProgressListSerializer(BaseModelSerializer):
    contract_number = serializers.CharField(source='contract.contract_number', read_only=True)
    contractor_name = serializers.CharField(source='contract.contractor.name', read_only=True)
    approval_status_display = serializers.CharField(source='get_approval_status_display', read_only=True)
    is_editable = serializers.BooleanField(read_only=True)

    class Meta:
        model = WorkProgress
        fields = [
            'id', 'contract', 'contract_number', 'contractor_name',
            'report_date', 'completed_percent', 'description',
            'approval_status', 'approval_status_display', 'is_editable',
            'created_at',
        ]


class WorkProgressDetailSerializer(WorkProgressListSerializer):
    indicator_progresses = ContractIndicatorProgressSerializer(many=True, read_only=True)
    submitted_by = UserMinimalSerializer(read_only=True)
    manager_reviewed_by = UserMinimalSerializer(read_only=True)
    director_approved_by = UserMinimalSerializer(read_only=True)
    rejected_by = UserMinimalSerializer(read_only=True)
    payment_ids = serializers.SerializerMethodField()

    class Meta(WorkProgressListSerializer.Meta):
        fields = WorkProgressListSerializer.Meta.fields + [
            'issues',
            'submitted_by', 'submitted_at',
            'manager_reviewed_by', 'manager_reviewed_at', 'manager_comment',
            'director_approved_by', 'director_approved_at', 'director_comment',
            'rejected_by', 'rejected_at', 'rejection_reason',
            'indicator_progresses', 'payment_ids', 'updated_at',
        ]

    def get_payment_ids(self, obj):
        return [p.pk for p in obj.payments.all()]


class WorkProgressWriteSerializer(serializers.ModelSerializer):
    """Create/update payload. Status fields are changed by workflow actions only."""

    indicator_entries = IndicatorEntrySerializer(many=True, required=False)

    class Meta:
        model = WorkProgress
        fields = ['contract', 'report_date', 'completed_percent', 'description', 'issues', 'indicator_entries']

    def validate(self, attrs):
        if self.instance is not None and 'contract' in attrs and attrs['contract'].pk != self.instance.contract_id:
            raise serializers.ValidationError({'contract': 'Контракт АВР изменить нельзя.'})
        return attrs


class WorkflowCommentSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField()
