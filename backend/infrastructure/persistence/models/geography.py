"""
Geography & Facilities ORM Models.

District → Jamoat → Village tree and the schools / health facilities
located in villages.
"""

from django.db import models

from .base import BaseModel, LocalizedNameMixin


class District(LocalizedNameMixin, BaseModel):
    """Район."""

    code = models.CharField(max_length=20, unique=True, verbose_name="Код")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="№ сортировки")

    class Meta:
        db_table = 'geo_districts'
        verbose_name = 'Район'
        verbose_name_plural = 'Районы'
        ordering = ['sort_order', 'name_ru']


class Jamoat(LocalizedNameMixin, BaseModel):
    """Джамоат (rural municipality)."""

    district = models.ForeignKey(
        District,
        on_delete=models.CASCADE,
        related_name='jamoats',
        verbose_name="Район"
    )
    code = models.CharField(max_length=20, verbose_name="Код")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="№ сортировки")

    class Meta:
        db_table = 'geo_jamoats'
        verbose_name = 'Джамоат'
        verbose_name_plural = 'Джамоаты'
        ordering = ['district', 'sort_order', 'name_ru']


class Village(LocalizedNameMixin, BaseModel):
    """Село with its demographic data."""

    jamoat = models.ForeignKey(
        Jamoat,
        on_delete=models.CASCADE,
        related_name='villages',
        verbose_name="Джамоат"
    )
    zone = models.CharField(max_length=50, blank=True, verbose_name="Зона")
    number = models.PositiveIntegerField(null=True, blank=True, verbose_name="№ п/п")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="№ сортировки")

    households_2020 = models.PositiveIntegerField(default=0, verbose_name="Домохозяйств (2020)")
    population_2020 = models.PositiveIntegerField(default=0, verbose_name="Население (2020)")
    households_current = models.PositiveIntegerField(default=0, verbose_name="Домохозяйств (текущее)")
    population_current = models.PositiveIntegerField(default=0, verbose_name="Население (текущее)")
    female_population = models.PositiveIntegerField(default=0, verbose_name="Женщин")
    is_covered_by_project = models.BooleanField(default=False, verbose_name="В охвате проекта")

    class Meta:
        db_table = 'geo_villages'
        verbose_name = 'Село'
        verbose_name_plural = 'Сёла'
        ordering = ['jamoat', 'sort_order', 'name_ru']


class EducationInstitutionType(models.Model):
    name = models.CharField(max_length=200, verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    is_active = models.BooleanField(default=True, verbose_name="Активен")

    class Meta:
        db_table = 'education_institution_types'
        verbose_name = 'Тип учебного заведения'
        verbose_name_plural = 'Типы учебных заведений'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name


class HealthFacilityType(models.Model):
    name = models.CharField(max_length=200, verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    is_active = models.BooleanField(default=True, verbose_name="Активен")

    class Meta:
        db_table = 'health_facility_types'
        verbose_name = 'Тип медучреждения'
        verbose_name_plural = 'Типы медучреждений'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name


class School(BaseModel):
    village = models.ForeignKey(
        Village,
        on_delete=models.CASCADE,
        related_name='schools',
        verbose_name="Село"
    )
    type = models.ForeignKey(
        EducationInstitutionType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='schools',
        verbose_name="Тип учреждения"
    )
    number = models.PositiveIntegerField(null=True, blank=True, verbose_name="№")
    name = models.CharField(max_length=300, blank=True, verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="№ сортировки")
    total_students = models.PositiveIntegerField(default=0, verbose_name="Учащихся всего")
    female_students = models.PositiveIntegerField(default=0, verbose_name="Девочек")
    teachers_count = models.PositiveIntegerField(default=0, verbose_name="Учителей всего")
    female_teachers_count = models.PositiveIntegerField(default=0, verbose_name="Женщин-учителей")
    has_water_supply = models.BooleanField(default=False, verbose_name="Водоснабжение")
    has_sanitation = models.BooleanField(default=False, verbose_name="Санитария")
    notes = models.TextField(blank=True, verbose_name="Примечания")

    class Meta:
        db_table = 'schools'
        verbose_name = 'Школа'
        verbose_name_plural = 'Школы'
        ordering = ['village', 'sort_order', 'number']

    def __str__(self):
        return self.name or f"Школа №{self.number}"


class HealthFacility(BaseModel):
    village = models.ForeignKey(
        Village,
        on_delete=models.CASCADE,
        related_name='health_facilities',
        verbose_name="Село"
    )
    type = models.ForeignKey(
        HealthFacilityType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='facilities',
        verbose_name="Тип учреждения"
    )
    name = models.CharField(max_length=300, verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="№ сортировки")
    total_staff = models.PositiveIntegerField(default=0, verbose_name="Персонал всего")
    female_staff = models.PositiveIntegerField(default=0, verbose_name="Из них женщин")
    patients_per_day = models.PositiveIntegerField(default=0, verbose_name="Пациентов в день")
    has_water_supply = models.BooleanField(default=False, verbose_name="Водоснабжение")
    has_sanitation = models.BooleanField(default=False, verbose_name="Санитария")
    notes = models.TextField(blank=True, verbose_name="Примечания")

    class Meta:
        db_table = 'health_facilities'
        verbose_name = 'Медучреждение'
        verbose_name_plural = 'Медучреждения'
        ordering = ['village', 'sort_order', 'name']

    def __str__(self):
        return self.name
