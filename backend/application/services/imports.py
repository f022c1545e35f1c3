"""
Geography Import Services.

Excel import of districts, jamoats, villages, schools and health
facilities, one sheet each, plus the matching blank template.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import List

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

from infrastructure.persistence.models import (
    District,
    EducationInstitutionType,
    HealthFacility,
    HealthFacilityType,
    Jamoat,
    School,
    Village,
)

logger = logging.getLogger(__name__)


SHEETS = {
    'districts': ("Районы", [
        "Код", "№ сортировки", "Название (рус)*", "Название (тадж)", "Название (англ)",
    ]),
    'jamoats': ("Джамоаты", [
        "Код района*", "Код", "№ сортировки", "Название (рус)*", "Название (тадж)", "Название (англ)",
    ]),
    'villages': ("Сёла", [
        "Код джамоата*", "Зона", "№ п/п", "№ сортировки", "Название (рус)*", "Название (тадж)",
        "Название (англ)", "Население 2020", "Население текущее", "Женщин",
        "Домохозяйств 2020", "Домохозяйств текущее", "В охвате (1/0)",
    ]),
    'schools': ("Школы", [
        "Название села (рус)*", "Тип учреждения", "№", "№ сортировки", "Название",
        "Учащихся всего", "Девочек", "Учителей всего", "Женщин-учителей",
        "Водоснабжение (1/0)", "Санитария (1/0)", "Примечания",
    ]),
    'health_facilities': ("Медучреждения", [
        "Название села (рус)*", "Тип учреждения", "№ сортировки", "Название",
        "Персонал всего", "Из них женщин", "Пациентов/день",
        "Водоснабжение (1/0)", "Санитария (1/0)", "Примечания",
    ]),
}


def _text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _int(value):
    if value in (None, ''):
        return 0
    return int(float(value))


def _flag(value):
    return _text(value) in ('1', 'да', 'Да', 'true', 'True')


def _cells(row, count):
    row = list(row or ())
    return row + [None] * (count - len(row))


@dataclass
class ImportResult:
    districts: int = 0
    jamoats: int = 0
    villages: int = 0
    schools: int = 0
    health_facilities: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self):
        return {
            'districts': self.districts,
            'jamoats': self.jamoats,
            'villages': self.villages,
            'schools': self.schools,
            'health_facilities': self.health_facilities,
            'errors': self.errors,
        }


class GeographyImportService:
    """Upserts geography rows sheet by sheet, collecting per-row errors."""

    ROW_ERRORS = (ValueError, TypeError, ValidationError, DatabaseError)

    @classmethod
    def import_workbook(cls, file_obj) -> ImportResult:
        wb = load_workbook(filename=file_obj, read_only=True, data_only=True)
        result = ImportResult()
        handlers = [
            ('districts', cls._import_district),
            ('jamoats', cls._import_jamoat),
            ('villages', cls._import_village),
            ('schools', cls._import_school),
            ('health_facilities', cls._import_health_facility),
        ]
        for key, handler in handlers:
            title, headers = SHEETS[key]
            if title not in wb.sheetnames:
                continue
            ws = wb[title]
            for row_number, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
                cells = _cells(row, len(headers))
                if not any(_text(c) for c in cells):
                    continue
                try:
                    with transaction.atomic():
                        imported = handler(cells)
                except cls.ROW_ERRORS as e:
                    result.errors.append(f"{title}, строка {row_number}: {e}")
                    continue
                if imported is True:
                    setattr(result, key, getattr(result, key) + 1)
                elif imported:
                    result.errors.append(f"{title}, строка {row_number}: {imported}")
        wb.close()

        logger.info(
            f"Geography import: {result.districts} districts, {result.jamoats} jamoats, "
            f"{result.villages} villages, {result.schools} schools, "
            f"{result.health_facilities} health facilities, {len(result.errors)} errors"
        )
        return result

    # Each handler returns True when a row was upserted, False when it was
    # skipped as empty, or an error message.

    @staticmethod
    def _import_district(cells):
        code, sort_order, name_ru, name_tj, name_en = cells[:5]
        name_ru = _text(name_ru)
        if not name_ru:
            return False
        code = _text(code)
        lookup = {'code': code} if code else {'name_ru': name_ru}
        District.objects.update_or_create(
            **lookup,
            defaults={
                'code': code or name_ru[:20],
                'sort_order': _int(sort_order),
                'name_ru': name_ru,
                'name_tj': _text(name_tj),
                'name_en': _text(name_en),
            },
        )
        return True

    @staticmethod
    def _import_jamoat(cells):
        district_ref, code, sort_order, name_ru, name_tj, name_en = cells[:6]
        district_ref, name_ru = _text(district_ref), _text(name_ru)
        if not name_ru or not district_ref:
            return False
        district = District.objects.filter(code=district_ref).first() \
            or District.objects.filter(name_ru=district_ref).first()
        if district is None:
            return f"Район '{district_ref}' не найден"

        code = _text(code) or f"JAM{district.jamoats.count() + 1:02d}"
        Jamoat.objects.update_or_create(
            district=district,
            name_ru=name_ru,
            defaults={
                'code': code,
                'sort_order': _int(sort_order),
                'name_tj': _text(name_tj),
                'name_en': _text(name_en),
            },
        )
        return True

    @staticmethod
    def _import_village(cells):
        (jamoat_ref, zone, number, sort_order, name_ru, name_tj, name_en,
         population_2020, population_current, female, households_2020,
         households_current, covered) = cells[:13]
        jamoat_ref, name_ru = _text(jamoat_ref), _text(name_ru)
        if not name_ru or not jamoat_ref:
            return False
        jamoat = Jamoat.objects.filter(code=jamoat_ref).first() \
            or Jamoat.objects.filter(name_ru=jamoat_ref).first()
        if jamoat is None:
            return f"Джамоат '{jamoat_ref}' не найден"

        Village.objects.update_or_create(
            jamoat=jamoat,
            name_ru=name_ru,
            defaults={
                'zone': _text(zone),
                'number': _int(number) or None,
                'sort_order': _int(sort_order),
                'name_tj': _text(name_tj),
                'name_en': _text(name_en),
                'population_2020': _int(population_2020),
                'population_current': _int(population_current),
                'female_population': _int(female),
                'households_2020': _int(households_2020),
                'households_current': _int(households_current),
                'is_covered_by_project': _flag(covered),
            },
        )
        return True

    @staticmethod
    def _find_village(name):
        villages = list(Village.objects.filter(name_ru=name)[:2])
        if not villages:
            return None, f"Село '{name}' не найдено"
        if len(villages) > 1:
            return None, f"Найдено несколько сёл с названием '{name}'"
        return villages[0], None

    @classmethod
    def _import_school(cls, cells):
        (village_name, type_name, number, sort_order, name, students, girls,
         teachers, female_teachers, water, sanitation, notes) = cells[:12]
        village_name = _text(village_name)
        if not village_name:
            return False
        village, error = cls._find_village(village_name)
        if error:
            return error

        school_type = None
        if _text(type_name):
            school_type, _ = EducationInstitutionType.objects.get_or_create(name=_text(type_name))

        School.objects.update_or_create(
            village=village,
            number=_int(number) or None,
            name=_text(name),
            defaults={
                'type': school_type,
                'sort_order': _int(sort_order),
                'total_students': _int(students),
                'female_students': _int(girls),
                'teachers_count': _int(teachers),
                'female_teachers_count': _int(female_teachers),
                'has_water_supply': _flag(water),
                'has_sanitation': _flag(sanitation),
                'notes': _text(notes),
            },
        )
        return True

    @classmethod
    def _import_health_facility(cls, cells):
        (village_name, type_name, sort_order, name, staff, female_staff,
         patients, water, sanitation, notes) = cells[:10]
        village_name = _text(village_name)
        if not village_name:
            return False
        village, error = cls._find_village(village_name)
        if error:
            return error

        facility_type = None
        if _text(type_name):
            facility_type, _ = HealthFacilityType.objects.get_or_create(name=_text(type_name))

        HealthFacility.objects.update_or_create(
            village=village,
            name=_text(name) or "Медучреждение",
            defaults={
                'type': facility_type,
                'sort_order': _int(sort_order),
                'total_staff': _int(staff),
                'female_staff': _int(female_staff),
                'patients_per_day': _int(patients),
                'has_water_supply': _flag(water),
                'has_sanitation': _flag(sanitation),
                'notes': _text(notes),
            },
        )
        return True

    @staticmethod
    def build_template() -> bytes:
        wb = Workbook()
        wb.remove(wb.active)

        header_font = Font(bold=True)
        header_fill = PatternFill('solid', fgColor='ADD8E6')
        for title, headers in SHEETS.values():
            ws = wb.create_sheet(title)
            for col, header in enumerate(headers, 1):
                cell = ws.cell(row=1, column=col, value=header)
                cell.font = header_font
                cell.fill = header_fill
                ws.column_dimensions[cell.column_letter].width = max(len(header) + 2, 12)

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
