"""
Indicator ORM Models.

KPI indicators (PDO / IR), their measured values, per-contract targets
and the progress rows that roll up into contract achievements.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum

from domain.shared.value_objects import Percent
from .base import BaseModel, LocalizedNameMixin


class MeasurementTypeChoices(models.IntegerChoices):
    NUMBER = 0, 'Число'
    PERCENTAGE = 1, 'Процент'
    YES_NO = 2, 'Да/Нет'


class GeoDataSourceChoices(models.IntegerChoices):
    NONE = 0, 'Не связан с географией'
    POPULATION = 1, 'Население села'
    FEMALE_POPULATION = 2, 'Женское население'
    HOUSEHOLDS = 3, 'Домохозяйства'
    SCHOOL_COUNT = 4, 'Количество школ'
    HEALTH_FACILITY_COUNT = 5, 'Количество медучреждений'
    SCHOOL_STUDENTS = 6, 'Учащиеся школ'


class GeoItemTypeChoices(models.IntegerChoices):
    VILLAGE = 0, 'Село'
    SCHOOL = 1, 'Школа'
    HEALTH_FACILITY = 2, 'Медучреждение'


class IndicatorCategory(models.Model):
    name = models.CharField(max_length=200, verbose_name="Название")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    is_active = models.BooleanField(default=True, verbose_name="Активна")

    class Meta:
        db_table = 'indicator_categories'
        verbose_name = 'Категория индикаторов'
        verbose_name_plural = 'Категории индикаторов'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name


class Indicator(LocalizedNameMixin, BaseModel):
    """Project indicator with an optional link to village/facility data."""

    code = models.CharField(max_length=50, unique=True, verbose_name="Код")
    unit = models.CharField(max_length=50, blank=True, verbose_name="Единица измерения")
    target_value = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True,
        verbose_name="Целевое значение"
    )
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")
    measurement_type = models.PositiveSmallIntegerField(
        choices=MeasurementTypeChoices.choices,
        default=MeasurementTypeChoices.NUMBER,
        verbose_name="Тип измерения"
    )
    geo_data_source = models.PositiveSmallIntegerField(
        choices=GeoDataSourceChoices.choices,
        default=GeoDataSourceChoices.NONE,
        verbose_name="Источник гео-данных"
    )
    category = models.ForeignKey(
        IndicatorCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='indicators',
        verbose_name="Категория"
    )
    parent_indicator = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sub_indicators',
        verbose_name="Родительский индикатор"
    )

    class Meta:
        db_table = 'indicators'
        verbose_name = 'Индикатор'
        verbose_name_plural = 'Индикаторы'
        ordering = ['sort_order', 'code']

    def __str__(self):
        return f"{self.code} {self.name_ru}"

    @property
    def is_geo_linked(self):
        return self.geo_data_source != GeoDataSourceChoices.NONE


class IndicatorValue(BaseModel):
    indicator = models.ForeignKey(
        Indicator,
        on_delete=models.CASCADE,
        related_name='values',
        verbose_name="Индикатор"
    )
    value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Значение"
    )
    bool_value = models.BooleanField(null=True, blank=True, verbose_name="Да/Нет")
    measurement_date = models.DateField(verbose_name="Дата измерения")
    notes = models.TextField(blank=True, verbose_name="Примечания")
    village = models.ForeignKey(
        'persistence.Village',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='indicator_values',
        verbose_name="Село"
    )
    district = models.ForeignKey(
        'persistence.District',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='indicator_values',
        verbose_name="Район"
    )

    class Meta:
        db_table = 'indicator_values'
        verbose_name = 'Значение индикатора'
        verbose_name_plural = 'Значения индикаторов'
        ordering = ['-measurement_date']

    def __str__(self):
        return f"{self.indicator.code}: {self.value} ({self.measurement_date})"


class ContractIndicator(BaseModel):
    """Indicator target for a single contract."""

    contract = models.ForeignKey(
        'persistence.Contract',
        on_delete=models.CASCADE,
        related_name='contract_indicators',
        verbose_name="Контракт"
    )
    indicator = models.ForeignKey(
        Indicator,
        on_delete=models.PROTECT,
        related_name='contract_indicators',
        verbose_name="Индикатор"
    )
    target_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Целевое значение"
    )
    achieved_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Достигнуто"
    )
    notes = models.TextField(blank=True, verbose_name="Примечания")

    class Meta:
        db_table = 'contract_indicators'
        verbose_name = 'Индикатор контракта'
        verbose_name_plural = 'Индикаторы контракта'
        ordering = ['contract', 'indicator__sort_order']
        unique_together = [['contract', 'indicator']]

    def __str__(self):
        return f"{self.contract} / {self.indicator.code}"

    @property
    def progress_percent(self):
        return Percent.ratio(self.achieved_value, self.target_value)

    def recalculate_achieved(self):
        self.achieved_value = self.progresses.aggregate(
            total=Sum('value')
        )['total'] or Decimal('0')
        self.save(update_fields=['achieved_value', 'updated_at'])
        return self.achieved_value


class ContractIndicatorProgress(BaseModel):
    """Indicator contribution reported in one AVR."""

    contract_indicator = models.ForeignKey(
        ContractIndicator,
        on_delete=models.CASCADE,
        related_name='progresses',
        verbose_name="Индикатор контракта"
    )
    work_progress = models.ForeignKey(
        'persistence.WorkProgress',
        on_delete=models.CASCADE,
        related_name='indicator_progresses',
        verbose_name="АВР"
    )
    value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Значение"
    )
    notes = models.TextField(blank=True, verbose_name="Примечания")

    class Meta:
        db_table = 'contract_indicator_progress'
        verbose_name = 'Прогресс индикатора'
        verbose_name_plural = 'Прогресс индикаторов'
        ordering = ['work_progress__report_date', 'id']

    def __str__(self):
        return f"{self.contract_indicator} +{self.value}"


class ContractIndicatorVillage(models.Model):
    """Village covered by a contract indicator."""

    contract_indicator = models.ForeignKey(
        ContractIndicator,
        on_delete=models.CASCADE,
        related_name='villages',
        verbose_name="Индикатор контракта"
    )
    village = models.ForeignKey(
        'persistence.Village',
        on_delete=models.PROTECT,
        related_name='contract_indicator_links',
        verbose_name="Село"
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата создания")

    class Meta:
        db_table = 'contract_indicator_villages'
        verbose_name = 'Село индикатора контракта'
        verbose_name_plural = 'Сёла индикаторов контракта'
        unique_together = [['contract_indicator', 'village']]

    def __str__(self):
        return f"{self.contract_indicator} / {self.village}"


class IndicatorProgressItem(models.Model):
    """
    Checklist entry of a geo-linked indicator progress.

    Exactly one of village / school / health_facility is set,
    matching item_type.
    """

    TARGET_FIELDS = {
        GeoItemTypeChoices.VILLAGE: 'village',
        GeoItemTypeChoices.SCHOOL: 'school',
        GeoItemTypeChoices.HEALTH_FACILITY: 'health_facility',
    }

    progress = models.ForeignKey(
        ContractIndicatorProgress,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name="Прогресс индикатора"
    )
    item_type = models.PositiveSmallIntegerField(
        choices=GeoItemTypeChoices.choices,
        verbose_name="Тип объекта"
    )
    village = models.ForeignKey(
        'persistence.Village',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='progress_items',
        verbose_name="Село"
    )
    school = models.ForeignKey(
        'persistence.School',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='progress_items',
        verbose_name="Школа"
    )
    health_facility = models.ForeignKey(
        'persistence.HealthFacility',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='progress_items',
        verbose_name="Медучреждение"
    )
    is_completed = models.BooleanField(default=False, verbose_name="Выполнено")
    numeric_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name="Значение"
    )
    notes = models.TextField(blank=True, verbose_name="Примечания")

    class Meta:
        db_table = 'indicator_progress_items'
        verbose_name = 'Элемент чек-листа индикатора'
        verbose_name_plural = 'Элементы чек-листа индикатора'
        ordering = ['progress', 'item_type', 'id']

    def __str__(self):
        return f"{self.get_item_type_display()}: {self.target}"

    @property
    def target(self):
        return getattr(self, self.TARGET_FIELDS[self.item_type])

    def clean(self):
        expected = self.TARGET_FIELDS.get(self.item_type)
        if expected is None:
            raise ValidationError({'item_type': "Неизвестный тип объекта"})
        set_fields = [
            name for name in self.TARGET_FIELDS.values()
            if getattr(self, f'{name}_id') is not None
        ]
        if set_fields != [expected]:
            raise ValidationError(
                f"Для типа «{self.get_item_type_display()}» должно быть заполнено только поле {expected}"
            )

    def save(self, *args, **kwargs):
        self.full_clean(exclude=['progress'])
        super().save(*args, **kwargs)
