"""
Indicator Services.

Rollup of AVR indicator progress into contract indicator achievements,
geo checklists for geo-linked indicators and the indicator report.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, List

from django.db import transaction
from django.db.models import Prefetch, Sum

from domain.shared.exceptions import ValidationException
from domain.shared.value_objects import Percent
from infrastructure.persistence.models import (
    ContractIndicator,
    ContractIndicatorProgress,
    GeoDataSourceChoices,
    GeoItemTypeChoices,
    Indicator,
    IndicatorProgressItem,
)

logger = logging.getLogger(__name__)


VILLAGE_SOURCES = {
    GeoDataSourceChoices.POPULATION: ('population_current', "{:,} чел."),
    GeoDataSourceChoices.FEMALE_POPULATION: ('female_population', "{:,} женщин"),
    GeoDataSourceChoices.HOUSEHOLDS: ('households_current', "{:,} домохозяйств"),
}


def _to_decimal(value, field='value'):
    if value in (None, ''):
        return Decimal('0')
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationException("Некорректное числовое значение", field=field, value=value)


def _village_location(village):
    jamoat = village.jamoat
    return f"{village.name_ru}, {jamoat.name_ru}, {jamoat.district.name_ru}"


class IndicatorService:

    @staticmethod
    def recalculate_achieved_values(contract) -> None:
        """achieved_value of every contract indicator = sum of its progress rows."""
        totals = dict(
            ContractIndicatorProgress.objects
            .filter(contract_indicator__contract=contract)
            .values_list('contract_indicator_id')
            .annotate(total=Sum('value'))
        )
        for ci in ContractIndicator.objects.filter(contract=contract):
            achieved = totals.get(ci.pk) or Decimal('0')
            if ci.achieved_value != achieved:
                ci.achieved_value = achieved
                ci.save(update_fields=['achieved_value', 'updated_at'])

    @classmethod
    def save_indicator_progress(cls, work_progress, entries: Iterable[dict], user=None) -> List[ContractIndicatorProgress]:
        """
        Replace the indicator progress rows of an AVR.

        Each entry carries `contract_indicator` (id) and either `value` or
        `items`, the checked geo items ({item_type, item_id, notes}).
        For checklists the value is the sum of the checklist values of the
        checked items. Entries whose value is not positive are skipped.
        """
        contract_indicators = {
            ci.pk: ci for ci in ContractIndicator.objects.filter(contract_id=work_progress.contract_id)
        }

        saved = []
        with transaction.atomic():
            work_progress.indicator_progresses.all().delete()

            for entry in entries or []:
                ci_id = entry.get('contract_indicator')
                ci = contract_indicators.get(int(ci_id)) if ci_id is not None else None
                if ci is None:
                    raise ValidationException(
                        "Индикатор не относится к контракту АВР",
                        field='contract_indicator', value=ci_id,
                    )

                items = entry.get('items') or []
                if items:
                    items = cls._checked_items(ci, items, work_progress)
                    value = sum((item['numeric_value'] for item in items), Decimal('0'))
                else:
                    value = _to_decimal(entry.get('value'))

                if value <= 0:
                    continue

                progress = ContractIndicatorProgress.objects.create(
                    contract_indicator=ci,
                    work_progress=work_progress,
                    value=value,
                    notes=entry.get('notes') or '',
                    created_by=user,
                )
                for item in items:
                    target_field = IndicatorProgressItem.TARGET_FIELDS[item['item_type']]
                    IndicatorProgressItem.objects.create(
                        progress=progress,
                        item_type=item['item_type'],
                        is_completed=True,
                        numeric_value=item['numeric_value'],
                        notes=item['notes'],
                        **{f'{target_field}_id': item['item_id']},
                    )
                saved.append(progress)

            cls.recalculate_achieved_values(work_progress.contract)

        logger.debug(f"Saved {len(saved)} indicator progress rows for AVR {work_progress.pk}")
        return saved

    @classmethod
    def _checked_items(cls, contract_indicator, items, work_progress) -> List[dict]:
        """
        Match submitted geo items against the indicator's checklist.

        Only items offered by the checklist are accepted, each once, and not
        ones already completed by another AVR. numeric_value always comes
        from the checklist.
        """
        checklist = {
            (entry['item_type'], entry['item_id']): entry
            for entry in cls.build_geo_checklist(contract_indicator, exclude_work_progress=work_progress)
        }
        checked = []
        seen = set()
        for item in items:
            try:
                key = (int(item['item_type']), int(item['item_id']))
            except (KeyError, TypeError, ValueError):
                raise ValidationException("Некорректный объект чек-листа", field='items', value=item)
            offered = checklist.get(key)
            if offered is None:
                raise ValidationException(
                    "Объект не входит в чек-лист индикатора", field='items', value=list(key),
                )
            if key in seen:
                raise ValidationException("Объект отмечен повторно", field='items', value=list(key))
            if offered['already_completed']:
                raise ValidationException(
                    "Объект уже засчитан в другом АВР", field='items', value=list(key),
                )
            seen.add(key)
            checked.append({
                'item_type': key[0],
                'item_id': key[1],
                'numeric_value': offered['numeric_value'],
                'notes': item.get('notes') or '',
            })
        return checked

    @staticmethod
    def completed_item_keys(contract_indicator, exclude_work_progress=None):
        """(item_type, item_id) pairs already completed in earlier AVRs."""
        items = IndicatorProgressItem.objects.filter(
            progress__contract_indicator=contract_indicator,
            is_completed=True,
        )
        if exclude_work_progress is not None:
            items = items.exclude(progress__work_progress=exclude_work_progress)

        keys = set()
        for item_type, village_id, school_id, facility_id in items.values_list(
            'item_type', 'village_id', 'school_id', 'health_facility_id'
        ):
            keys.add((item_type, village_id or school_id or facility_id))
        return keys

    @classmethod
    def build_geo_checklist(cls, contract_indicator, exclude_work_progress=None) -> List[dict]:
        """
        Checklist of villages, schools or facilities for a geo-linked indicator.

        Which objects and values are listed depends on the indicator's
        geo_data_source. Items completed in earlier AVRs come back with
        `already_completed=True`.
        """
        source = contract_indicator.indicator.geo_data_source
        if source == GeoDataSourceChoices.NONE:
            return []

        villages = sorted(
            (
                link.village for link in contract_indicator.villages
                .select_related('village__jamoat__district')
                .prefetch_related('village__schools', 'village__health_facilities')
            ),
            key=lambda v: v.name_ru,
        )
        done = cls.completed_item_keys(contract_indicator, exclude_work_progress)
        items = []

        if source in VILLAGE_SOURCES:
            field, label = VILLAGE_SOURCES[source]
            for village in villages:
                value = getattr(village, field)
                items.append({
                    'item_type': GeoItemTypeChoices.VILLAGE,
                    'item_id': village.pk,
                    'name': village.name_ru,
                    'description': f"{label.format(value)} - {village.jamoat.district.name_ru}, {village.jamoat.name_ru}",
                    'numeric_value': Decimal(value),
                })

        elif source in (GeoDataSourceChoices.SCHOOL_COUNT, GeoDataSourceChoices.SCHOOL_STUDENTS):
            by_students = source == GeoDataSourceChoices.SCHOOL_STUDENTS
            for village in villages:
                for school in village.schools.all():
                    name = f"Школа №{school.number or ''}"
                    if school.name:
                        name += f" «{school.name}»"
                    location = _village_location(village)
                    items.append({
                        'item_type': GeoItemTypeChoices.SCHOOL,
                        'item_id': school.pk,
                        'name': name,
                        'description': f"{school.total_students:,} учеников - {location}" if by_students else location,
                        'numeric_value': Decimal(school.total_students if by_students else 1),
                    })

        elif source == GeoDataSourceChoices.HEALTH_FACILITY_COUNT:
            for village in villages:
                for facility in village.health_facilities.all():
                    items.append({
                        'item_type': GeoItemTypeChoices.HEALTH_FACILITY,
                        'item_id': facility.pk,
                        'name': facility.name or "Медучреждение",
                        'description': f"{facility.total_staff} персонала - {_village_location(village)}",
                        'numeric_value': Decimal(1),
                    })

        for item in items:
            item['already_completed'] = (item['item_type'], item['item_id']) in done
        return items

    @staticmethod
    def indicator_report(contract_ids=None) -> dict:
        """Target vs. achieved per indicator, summed over contracts."""
        links = ContractIndicator.objects.select_related('contract__contractor')
        if contract_ids is not None:
            links = links.filter(contract_id__in=contract_ids)

        indicators = (
            Indicator.objects
            .select_related('category')
            .prefetch_related(Prefetch('contract_indicators', queryset=links, to_attr='contract_links'))
            .order_by('sort_order', 'code')
        )

        rows = []
        for indicator in indicators:
            total_target = sum((ci.target_value for ci in indicator.contract_links), Decimal('0'))
            total_achieved = sum((ci.achieved_value for ci in indicator.contract_links), Decimal('0'))
            rows.append({
                'indicator_id': indicator.pk,
                'code': indicator.code,
                'name': indicator.name_ru,
                'unit': indicator.unit,
                'category': indicator.category.name if indicator.category else None,
                'total_target': total_target,
                'total_achieved': total_achieved,
                'achieved_percent': Percent.ratio(total_achieved, total_target),
                'remaining': max(Decimal('0'), total_target - total_achieved),
                'contracts': [
                    {
                        'contract_id': ci.contract_id,
                        'contract_number': ci.contract.contract_number,
                        'contractor_name': ci.contract.contractor.name,
                        'target_value': ci.target_value,
                        'achieved_value': ci.achieved_value,
                        'percent': ci.progress_percent,
                    }
                    for ci in indicator.contract_links
                ],
            })

        capped = [min(row['achieved_percent'], Decimal('100')) for row in rows]
        return {
            'indicators': rows,
            'total_indicators': len(rows),
            'completed_indicators': sum(1 for row in rows if row['achieved_percent'] >= 100),
            'in_progress_indicators': sum(1 for row in rows if 0 < row['achieved_percent'] < 100),
            'not_started_indicators': sum(1 for row in rows if row['achieved_percent'] == 0),
            'overall_progress': (
                (sum(capped, Decimal('0')) / len(capped)).quantize(Decimal('0.01')) if capped else Decimal('0')
            ),
        }
