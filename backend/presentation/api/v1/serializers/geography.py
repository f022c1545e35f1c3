"""
Geography Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import (
    District,
    EducationInstitutionType,
    HealthFacility,
    HealthFacilityType,
    Jamoat,
    School,
    Village,
)
from .base import BaseModelSerializer, LocalizedNameMixin

LOCALIZED_NAME_FIELDS = ['name_ru', 'name_tj', 'name_en', 'display_name']


class DistrictSerializer(LocalizedNameMixin, BaseModelSerializer):
    jamoats_count = serializers.IntegerField(source='jamoats.count', read_only=True)

    class Meta:
        model = District
        fields = ['id', 'code', *LOCALIZED_NAME_FIELDS, 'sort_order', 'jamoats_count']


class JamoatSerializer(LocalizedNameMixin, BaseModelSerializer):
    district_name = serializers.CharField(source='district.name_ru', read_only=True)

    class Meta:
        model = Jamoat
        fields = ['id', 'district', 'district_name', 'code', *LOCALIZED_NAME_FIELDS, 'sort_order']


class VillageSerializer(LocalizedNameMixin, BaseModelSerializer):
    jamoat_name = serializers.CharField(source='jamoat.name_ru', read_only=True)
    district = serializers.IntegerField(source='jamoat.district_id', read_only=True)

    class Meta:
        model = Village
        fields = [
            'id', 'jamoat', 'jamoat_name', 'district', 'zone', 'number',
            *LOCALIZED_NAME_FIELDS, 'sort_order',
            'households_2020', 'population_2020',
            'households_current', 'population_current', 'female_population',
            'is_covered_by_project',
        ]

    def validate(self, attrs):
        population = attrs.get('population_current', getattr(self.instance, 'population_current', 0))
        female = attrs.get('female_population', getattr(self.instance, 'female_population', 0))
        if female > population:
            raise serializers.ValidationError(
                {'female_population': 'Женщин не может быть больше общего населения.'}
            )
        return attrs


class EducationInstitutionTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = EducationInstitutionType
        fields = ['id', 'name', 'sort_order', 'is_active']


class HealthFacilityTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = HealthFacilityType
        fields = ['id', 'name', 'sort_order', 'is_active']


class SchoolSerializer(BaseModelSerializer):
    village_name = serializers.CharField(source='village.name_ru', read_only=True)
    type_name = serializers.CharField(source='type.name', read_only=True, default=None)

    class Meta:
        model = School
        fields = [
            'id', 'village', 'village_name', 'type', 'type_name', 'number', 'name', 'sort_order',
            'total_students', 'female_students', 'teachers_count', 'female_teachers_count',
            'has_water_supply', 'has_sanitation', 'notes',
        ]

    def validate(self, attrs):
        def current(name):
            return attrs.get(name, getattr(self.instance, name, 0))

        if current('female_students') > current('total_students'):
            raise serializers.ValidationError({'female_students': 'Девочек больше, чем учащихся.'})
        if current('female_teachers_count') > current('teachers_count'):
            raise serializers.ValidationError({'female_teachers_count': 'Женщин больше, чем учителей.'})
        return attrs


class HealthFacilitySerializer(BaseModelSerializer):
    village_name = serializers.CharField(source='village.name_ru', read_only=True)
    type_name = serializers.CharField(source='type.name', read_only=True, default=None)

    class Meta:
        model = HealthFacility
        fields = [
            'id', 'village', 'village_name', 'type', 'type_name', 'name', 'sort_order',
            'total_staff', 'female_staff', 'patients_per_day',
            'has_water_supply', 'has_sanitation', 'notes',
        ]

    def validate(self, attrs):
        total = attrs.get('total_staff', getattr(self.instance, 'total_staff', 0))
        female = attrs.get('female_staff', getattr(self.instance, 'female_staff', 0))
        if female > total:
            raise serializers.ValidationError({'female_staff': 'Женщин больше, чем персонала.'})
        return attrs
