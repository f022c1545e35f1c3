"""
Geography Views.

District → Jamoat → Village reference data with schools and health
facilities.
"""

from django.db.models import Count, Prefetch, Sum
from rest_framework.decorators import action
from rest_framework.response import Response

from infrastructure.persistence.models import (
    District,
    EducationInstitutionType,
    HealthFacility,
    HealthFacilityType,
    Jamoat,
    MenuKeys,
    School,
    Village,
)
from presentation.api.pagination import LargeResultsSetPagination
from ..serializers.base import request_language
from ..serializers.geography import (
    DistrictSerializer,
    EducationInstitutionTypeSerializer,
    HealthFacilitySerializer,
    HealthFacilityTypeSerializer,
    JamoatSerializer,
    SchoolSerializer,
    VillageSerializer,
)
from .base import BaseModelViewSet


class DistrictViewSet(BaseModelViewSet):
    """
    ViewSet for districts.

    Endpoints:
    - GET /districts/tree/ - districts with jamoats and villages
    """

    menu_key = MenuKeys.GEOGRAPHY
    queryset = District.objects.all()
    serializer_class = DistrictSerializer
    search_fields = ['code', 'name_ru', 'name_tj', 'name_en']
    ordering = ['sort_order', 'name_ru']

    @action(detail=False, methods=['get'])
    def tree(self, request):
        lang = request_language({'request': request})
        districts = District.objects.prefetch_related(
            Prefetch(
                'jamoats__villages',
                queryset=Village.objects.annotate(
                    schools_count=Count('schools', distinct=True),
                    facilities_count=Count('health_facilities', distinct=True),
                ),
            )
        )
        data = []
        for district in districts:
            jamoats = []
            for jamoat in district.jamoats.all():
                villages = [
                    {
                        'id': village.pk,
                        'name': village.get_name(lang),
                        'population': village.population_current,
                        'is_covered_by_project': village.is_covered_by_project,
                        'schools_count': village.schools_count,
                        'facilities_count': village.facilities_count,
                    }
                    for village in jamoat.villages.all()
                ]
                jamoats.append({
                    'id': jamoat.pk,
                    'name': jamoat.get_name(lang),
                    'villages': villages,
                })
            data.append({
                'id': district.pk,
                'code': district.code,
                'name': district.get_name(lang),
                'jamoats': jamoats,
            })
        return Response(data)


class JamoatViewSet(BaseModelViewSet):
    menu_key = MenuKeys.GEOGRAPHY
    queryset = Jamoat.objects.select_related('district')
    serializer_class = JamoatSerializer
    filterset_fields = ['district']
    search_fields = ['code', 'name_ru', 'name_tj', 'name_en']
    ordering = ['district', 'sort_order', 'name_ru']


class VillageViewSet(BaseModelViewSet):
    """
    ViewSet for villages.

    Endpoints:
    - GET /villages/statistics/ - population totals for the filtered set
    """

    menu_key = MenuKeys.GEOGRAPHY
    queryset = Village.objects.select_related('jamoat')
    serializer_class = VillageSerializer
    pagination_class = LargeResultsSetPagination
    filterset_fields = {
        'jamoat': ['exact'],
        'jamoat__district': ['exact'],
        'zone': ['exact'],
        'is_covered_by_project': ['exact'],
    }
    search_fields = ['name_ru', 'name_tj', 'name_en', 'zone']
    ordering_fields = ['name_ru', 'population_current', 'sort_order']
    ordering = ['jamoat', 'sort_order', 'name_ru']

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        queryset = self.filter_queryset(self.get_queryset()).order_by()
        totals = queryset.aggregate(
            villages=Count('id'),
            households=Sum('households_current'),
            population=Sum('population_current'),
            female_population=Sum('female_population'),
        )
        covered = queryset.filter(is_covered_by_project=True).aggregate(
            villages=Count('id'),
            population=Sum('population_current'),
        )
        return Response({
            'villages': totals['villages'],
            'households': totals['households'] or 0,
            'population': totals['population'] or 0,
            'female_population': totals['female_population'] or 0,
            'covered_villages': covered['villages'],
            'covered_population': covered['population'] or 0,
        })


class EducationInstitutionTypeViewSet(BaseModelViewSet):
    menu_key = MenuKeys.REFERENCE_DATA
    queryset = EducationInstitutionType.objects.all()
    serializer_class = EducationInstitutionTypeSerializer
    filterset_fields = ['is_active']
    ordering = ['sort_order', 'name']


class HealthFacilityTypeViewSet(BaseModelViewSet):
    menu_key = MenuKeys.REFERENCE_DATA
    queryset = HealthFacilityType.objects.all()
    serializer_class = HealthFacilityTypeSerializer
    filterset_fields = ['is_active']
    ordering = ['sort_order', 'name']


class SchoolViewSet(BaseModelViewSet):
    menu_key = MenuKeys.GEOGRAPHY
    queryset = School.objects.select_related('village', 'type')
    serializer_class = SchoolSerializer
    pagination_class = LargeResultsSetPagination
    filterset_fields = {
        'village': ['exact'],
        'village__jamoat': ['exact'],
        'village__jamoat__district': ['exact'],
        'type': ['exact'],
        'has_water_supply': ['exact'],
        'has_sanitation': ['exact'],
    }
    search_fields = ['name', 'village__name_ru']
    ordering = ['village', 'sort_order', 'number']


class HealthFacilityViewSet(BaseModelViewSet):
    menu_key = MenuKeys.GEOGRAPHY
    queryset = HealthFacility.objects.select_related('village', 'type')
    serializer_class = HealthFacilitySerializer
    pagination_class = LargeResultsSetPagination
    filterset_fields = {
        'village': ['exact'],
        'village__jamoat': ['exact'],
        'village__jamoat__district': ['exact'],
        'type': ['exact'],
        'has_water_supply': ['exact'],
        'has_sanitation': ['exact'],
    }
    search_fields = ['name', 'village__name_ru']
    ordering = ['village', 'sort_order', 'name']
