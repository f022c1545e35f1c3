"""
Indicator tests.

AVR indicator progress rolling up into contract achievements, geo
checklists and the indicator report.
"""

from decimal import Decimal

import pytest

from application.services.indicators import IndicatorService
from domain.shared.exceptions import ValidationException
from infrastructure.persistence.models import (
    ContractIndicatorProgress,
    ContractIndicatorVillage,
    GeoDataSourceChoices,
    GeoItemTypeChoices,
    IndicatorProgressItem,
)
from tests.conftest import (
    ContractFactory,
    ContractIndicatorFactory,
    IndicatorFactory,
    SchoolFactory,
    VillageFactory,
    WorkProgressFactory,
)


def link_villages(contract_indicator, *villages):
    for village in villages:
        ContractIndicatorVillage.objects.create(contract_indicator=contract_indicator, village=village)


# ============================================================================
# PROGRESS ROLLUP
# ============================================================================

@pytest.mark.django_db
class TestIndicatorProgress:

    def test_values_roll_up_across_avrs(self, contract, staff_user):
        ci = ContractIndicatorFactory(contract=contract)
        first = WorkProgressFactory(contract=contract)
        second = WorkProgressFactory(contract=contract)

        IndicatorService.save_indicator_progress(first, [{'contract_indicator': ci.pk, 'value': '250'}], staff_user)
        IndicatorService.save_indicator_progress(second, [{'contract_indicator': ci.pk, 'value': 150}], staff_user)

        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('400')
        assert ci.progress_percent == Decimal('40.00')

    def test_resaving_replaces_rows(self, contract):
        ci = ContractIndicatorFactory(contract=contract)
        avr = WorkProgressFactory(contract=contract)

        IndicatorService.save_indicator_progress(avr, [{'contract_indicator': ci.pk, 'value': '300'}])
        IndicatorService.save_indicator_progress(avr, [{'contract_indicator': ci.pk, 'value': '120'}])

        assert ContractIndicatorProgress.objects.filter(work_progress=avr).count() == 1
        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('120')

    def test_non_positive_values_skipped(self, contract):
        ci = ContractIndicatorFactory(contract=contract)
        other = ContractIndicatorFactory(contract=contract)
        avr = WorkProgressFactory(contract=contract)

        saved = IndicatorService.save_indicator_progress(avr, [
            {'contract_indicator': ci.pk, 'value': '0'},
            {'contract_indicator': other.pk, 'value': ''},
        ])
        assert saved == []

    def test_indicator_of_other_contract_rejected(self, contract):
        foreign = ContractIndicatorFactory(contract=ContractFactory())
        avr = WorkProgressFactory(contract=contract)

        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(avr, [{'contract_indicator': foreign.pk, 'value': '10'}])

    def test_malformed_value_rejected(self, contract):
        ci = ContractIndicatorFactory(contract=contract)
        avr = WorkProgressFactory(contract=contract)
        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(avr, [{'contract_indicator': ci.pk, 'value': 'много'}])

    def test_checklist_items_sum_into_value(self, contract):
        indicator = IndicatorFactory(geo_data_source=GeoDataSourceChoices.POPULATION)
        ci = ContractIndicatorFactory(contract=contract, indicator=indicator, target_value=Decimal('5000'))
        north = VillageFactory(population_current=1200)
        south = VillageFactory(population_current=800)
        link_villages(ci, north, south)
        avr = WorkProgressFactory(contract=contract)

        IndicatorService.save_indicator_progress(avr, [{
            'contract_indicator': ci.pk,
            'items': [
                {'item_type': GeoItemTypeChoices.VILLAGE, 'item_id': north.pk},
                {'item_type': GeoItemTypeChoices.VILLAGE, 'item_id': south.pk},
            ],
        }])

        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('2000')
        assert IndicatorProgressItem.objects.filter(progress__work_progress=avr, is_completed=True).count() == 2

    @pytest.fixture
    def population_ci(self, contract):
        indicator = IndicatorFactory(geo_data_source=GeoDataSourceChoices.POPULATION)
        ci = ContractIndicatorFactory(contract=contract, indicator=indicator, target_value=Decimal('5000'))
        ci.linked_village = VillageFactory(population_current=1200)
        link_villages(ci, ci.linked_village)
        return ci

    def village_entry(self, ci, *village_ids, **extra):
        return [{
            'contract_indicator': ci.pk,
            'items': [
                {'item_type': GeoItemTypeChoices.VILLAGE, 'item_id': pk, **extra} for pk in village_ids
            ],
        }]

    def test_item_value_taken_from_checklist(self, contract, population_ci):
        avr = WorkProgressFactory(contract=contract)
        IndicatorService.save_indicator_progress(
            avr, self.village_entry(population_ci, population_ci.linked_village.pk, numeric_value=999999),
        )
        population_ci.refresh_from_db()
        assert population_ci.achieved_value == Decimal('1200')

    def test_repeated_item_rejected(self, contract, population_ci):
        avr = WorkProgressFactory(contract=contract)
        village_id = population_ci.linked_village.pk
        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(
                avr, self.village_entry(population_ci, village_id, village_id, village_id),
            )
        population_ci.refresh_from_db()
        assert population_ci.achieved_value == Decimal('0')

    def test_unlinked_village_rejected(self, contract, population_ci):
        avr = WorkProgressFactory(contract=contract)
        stranger = VillageFactory(population_current=999999)
        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(avr, self.village_entry(population_ci, stranger.pk))
        assert not ContractIndicatorProgress.objects.filter(work_progress=avr).exists()

    def test_item_type_must_match_data_source(self, contract, population_ci):
        avr = WorkProgressFactory(contract=contract)
        school = SchoolFactory(village=population_ci.linked_village)
        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(avr, [{
                'contract_indicator': population_ci.pk,
                'items': [{'item_type': GeoItemTypeChoices.SCHOOL, 'item_id': school.pk}],
            }])

    def test_item_completed_in_other_avr_rejected(self, contract, population_ci):
        village_id = population_ci.linked_village.pk
        IndicatorService.save_indicator_progress(
            WorkProgressFactory(contract=contract), self.village_entry(population_ci, village_id),
        )
        with pytest.raises(ValidationException):
            IndicatorService.save_indicator_progress(
                WorkProgressFactory(contract=contract), self.village_entry(population_ci, village_id),
            )
        population_ci.refresh_from_db()
        assert population_ci.achieved_value == Decimal('1200')

    def test_avr_service_saves_indicator_entries(self, contract, staff_user):
        from application.services.work_progress import WorkProgressService

        ci = ContractIndicatorFactory(contract=contract)
        WorkProgressService.create(
            contract, staff_user,
            indicator_entries=[{'contract_indicator': ci.pk, 'value': '75'}],
            report_date=contract.signing_date, completed_percent=Decimal('10'),
        )
        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('75')


# ============================================================================
# GEO CHECKLIST
# ============================================================================

@pytest.mark.django_db
class TestGeoChecklist:

    def test_not_geo_linked_is_empty(self, contract):
        ci = ContractIndicatorFactory(contract=contract)
        link_villages(ci, VillageFactory())
        assert IndicatorService.build_geo_checklist(ci) == []

    def test_population_checklist_marks_completed_villages(self, contract):
        indicator = IndicatorFactory(geo_data_source=GeoDataSourceChoices.POPULATION)
        ci = ContractIndicatorFactory(contract=contract, indicator=indicator)
        done = VillageFactory(name_ru="Акташ", population_current=900)
        pending = VillageFactory(name_ru="Боло", population_current=400)
        link_villages(ci, pending, done)
        avr = WorkProgressFactory(contract=contract)
        IndicatorService.save_indicator_progress(avr, [{
            'contract_indicator': ci.pk,
            'items': [{'item_type': GeoItemTypeChoices.VILLAGE, 'item_id': done.pk, 'numeric_value': 900}],
        }])

        items = IndicatorService.build_geo_checklist(ci)

        assert [i['name'] for i in items] == ["Акташ", "Боло"]
        assert items[0]['already_completed'] is True
        assert items[0]['numeric_value'] == Decimal('900')
        assert items[1]['already_completed'] is False

        # Editing the same AVR should not lock its own items.
        items = IndicatorService.build_geo_checklist(ci, exclude_work_progress=avr)
        assert not any(i['already_completed'] for i in items)

    def test_school_students_checklist(self, contract):
        indicator = IndicatorFactory(geo_data_source=GeoDataSourceChoices.SCHOOL_STUDENTS)
        ci = ContractIndicatorFactory(contract=contract, indicator=indicator)
        village = VillageFactory()
        school = SchoolFactory(village=village, number=12, total_students=340)
        link_villages(ci, village)

        items = IndicatorService.build_geo_checklist(ci)

        assert len(items) == 1
        assert items[0]['item_type'] == GeoItemTypeChoices.SCHOOL
        assert items[0]['item_id'] == school.pk
        assert items[0]['name'] == "Школа №12"
        assert items[0]['numeric_value'] == Decimal('340')

    def test_school_count_counts_each_school_once(self, contract):
        indicator = IndicatorFactory(geo_data_source=GeoDataSourceChoices.SCHOOL_COUNT)
        ci = ContractIndicatorFactory(contract=contract, indicator=indicator)
        village = VillageFactory()
        SchoolFactory(village=village)
        SchoolFactory(village=village)
        link_villages(ci, village)

        assert [i['numeric_value'] for i in IndicatorService.build_geo_checklist(ci)] == [1, 1]


# ============================================================================
# REPORT
# ============================================================================

@pytest.mark.django_db
class TestIndicatorReport:

    def test_report_sums_over_contracts(self, contract):
        indicator = IndicatorFactory(code='PDO-1')
        ContractIndicatorFactory(contract=contract, indicator=indicator,
                                 target_value=Decimal('1000'), achieved_value=Decimal('600'))
        other = ContractFactory()
        ContractIndicatorFactory(contract=other, indicator=indicator,
                                 target_value=Decimal('1000'), achieved_value=Decimal('400'))
        IndicatorFactory(code='PDO-2')

        report = IndicatorService.indicator_report()

        row = next(r for r in report['indicators'] if r['code'] == 'PDO-1')
        assert row['total_target'] == Decimal('2000')
        assert row['total_achieved'] == Decimal('1000')
        assert row['achieved_percent'] == Decimal('50.00')
        assert len(row['contracts']) == 2
        assert report['total_indicators'] == 2
        assert report['in_progress_indicators'] == 1
        assert report['not_started_indicators'] == 1
        assert report['overall_progress'] == Decimal('25.00')

    def test_report_scoped_to_contracts(self, contract):
        indicator = IndicatorFactory(code='IR-3')
        ContractIndicatorFactory(contract=contract, indicator=indicator, achieved_value=Decimal('1000'))
        ContractIndicatorFactory(contract=ContractFactory(), indicator=indicator)

        report = IndicatorService.indicator_report(contract_ids=[contract.pk])

        row = report['indicators'][0]
        assert [c['contract_id'] for c in row['contracts']] == [contract.pk]
        assert report['completed_indicators'] == 1

    def test_report_endpoint(self, admin_client, contract):
        ContractIndicatorFactory(contract=contract)
        response = admin_client.get('/api/v1/indicators/report/')
        assert response.status_code == 200
        assert response.data['total_indicators'] == 1
