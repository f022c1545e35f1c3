"""
Procurement Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import ProcurementPlan, ProcurementStatusChoices
from .base import BaseModelSerializer, request_language


class ProcurementPlanSerializer(BaseModelSerializer):
    project_code = serializers.CharField(source='project.code', read_only=True)
    component_number = serializers.IntegerField(source='component.number', read_only=True, default=None)
    sub_component_name = serializers.CharField(source='sub_component.name_ru', read_only=True, default=None)
    method_display = serializers.CharField(source='get_method_display', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    is_delayed = serializers.BooleanField(read_only=True)
    is_closed = serializers.BooleanField(read_only=True)
    display_description = serializers.SerializerMethodField()

    class Meta:
        model = ProcurementPlan
        fields = [
            'id', 'project', 'project_code',
            'component', 'component_number', 'sub_component', 'sub_component_name',
            'reference_no', 'description', 'description_tj', 'description_en', 'display_description',
            'method', 'method_display', 'type', 'type_display', 'estimated_amount',
            'planned_bid_opening_date', 'planned_contract_signing_date', 'planned_completion_date',
            'advertisement_date', 'actual_bid_opening_date',
            'actual_contract_signing_date', 'actual_completion_date',
            'status', 'status_display', 'is_delayed', 'is_closed', 'comments',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'status', 'created_at', 'updated_at']

    def get_display_description(self, obj):
        return obj.get_description(request_language(self.context))

    def validate(self, attrs):
        project = attrs.get('project', getattr(self.instance, 'project', None))
        component = attrs.get('component', getattr(self.instance, 'component', None))
        sub_component = attrs.get('sub_component', getattr(self.instance, 'sub_component', None))
        if component is not None and project is not None and component.project_id != project.pk:
            raise serializers.ValidationError({'component': 'Компонент относится к другому проекту.'})
        if sub_component is not None and component is not None and sub_component.component_id != component.pk:
            raise serializers.ValidationError({'sub_component': 'Подкомпонент относится к другому компоненту.'})
        if attrs.get('estimated_amount') is not None and attrs['estimated_amount'] < 0:
            raise serializers.ValidationError({'estimated_amount': 'Сумма не может быть отрицательной.'})
        return attrs


class ProcurementStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ProcurementStatusChoices.choices)
