"""
Indicator Serializers.
"""

from django.db import transaction
from rest_framework import serializers

from infrastructure.persistence.models import (
    ContractIndicator,
    ContractIndicatorVillage,
    Indicator,
    IndicatorCategory,
    IndicatorValue,
    Village,
)
from .base import BaseModelSerializer, LocalizedNameMixin


class IndicatorCategorySerializer(serializers.ModelSerializer):
    indicators_count = serializers.IntegerField(source='indicators.count', read_only=True)

    class Meta:
        model = IndicatorCategory
        fields = ['id', 'name', 'sort_order', 'is_active', 'indicators_count']


class IndicatorSerializer(LocalizedNameMixin, BaseModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    measurement_type_display = serializers.CharField(source='get_measurement_type_display', read_only=True)
    geo_data_source_display = serializers.CharField(source='get_geo_data_source_display', read_only=True)
    is_geo_linked = serializers.BooleanField(read_only=True)

    class Meta:
        model = Indicator
        fields = [
            'id', 'code', 'name_ru', 'name_tj', 'name_en', 'display_name',
            'unit', 'target_value', 'sort_order',
            'measurement_type', 'measurement_type_display',
            'geo_data_source', 'geo_data_source_display', 'is_geo_linked',
            'category', 'category_name', 'parent_indicator',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_parent_indicator(self, value):
        if value is not None and self.instance is not None:
            node = value
            while node is not None:
                if node.pk == self.instance.pk:
                    raise serializers.ValidationError('Индикатор не может быть вложен сам в себя.')
                node = node.parent_indicator
        return value


class IndicatorValueSerializer(BaseModelSerializer):
    indicator_code = serializers.CharField(source='indicator.code', read_only=True)

    class Meta:
        model = IndicatorValue
        fields = [
            'id', 'indicator', 'indicator_code', 'value', 'bool_value',
            'measurement_date', 'notes', 'village', 'district',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ContractIndicatorSerializer(BaseModelSerializer):
    """
    Contract target for an indicator.

    `village_ids` replaces the set of villages the target covers.
    """

    indicator_code = serializers.CharField(source='indicator.code', read_only=True)
    indicator_name = serializers.CharField(source='indicator.name_ru', read_only=True)
    unit = serializers.CharField(source='indicator.unit', read_only=True)
    geo_data_source = serializers.IntegerField(source='indicator.geo_data_source', read_only=True)
    progress_percent = serializers.DecimalField(max_digits=7, decimal_places=2, read_only=True)
    village_ids = serializers.ListField(
        child=serializers.IntegerField(), write_only=True, required=False
    )
    villages = serializers.SerializerMethodField()

    class Meta:
        model = ContractIndicator
        fields = [
            'id', 'contract', 'indicator', 'indicator_code', 'indicator_name', 'unit',
            'geo_data_source', 'target_value', 'achieved_value', 'progress_percent',
            'notes', 'village_ids', 'villages', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'achieved_value', 'created_at', 'updated_at']

    def get_villages(self, obj):
        return [
            {'id': link.village_id, 'name': link.village.name_ru}
            for link in obj.villages.select_related('village')
        ]

    def validate_target_value(self, value):
        if value < 0:
            raise serializers.ValidationError('Целевое значение не может быть отрицательным.')
        return value

    def validate_village_ids(self, value):
        ids = set(value)
        found = set(Village.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = ids - found
        if missing:
            raise serializers.ValidationError(f"Сёла не найдены: {sorted(missing)}")
        return sorted(ids)

    def validate(self, attrs):
        if self.instance is not None:
            for field in ('contract', 'indicator'):
                if field in attrs and attrs[field].pk != getattr(self.instance, f'{field}_id'):
                    raise serializers.ValidationError({field: 'Поле нельзя изменить.'})
        return attrs

    def _set_villages(self, contract_indicator, village_ids):
        contract_indicator.villages.exclude(village_id__in=village_ids).delete()
        existing = set(contract_indicator.villages.values_list('village_id', flat=True))
        ContractIndicatorVillage.objects.bulk_create([
            ContractIndicatorVillage(contract_indicator=contract_indicator, village_id=village_id)
            for village_id in village_ids if village_id not in existing
        ])

    @transaction.atomic
    def create(self, validated_data):
        village_ids = validated_data.pop('village_ids', None)
        contract_indicator = super().create(validated_data)
        if village_ids is not None:
            self._set_villages(contract_indicator, village_ids)
        return contract_indicator

    @transaction.atomic
    def update(self, instance, validated_data):
        village_ids = validated_data.pop('village_ids', None)
        instance = super().update(instance, validated_data)
        if village_ids is not None:
            self._set_villages(instance, village_ids)
        return instance
