"""
Geography Excel import tests.
"""

import io

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from openpyxl import Workbook, load_workbook

from application.services.imports import SHEETS, GeographyImportService
from infrastructure.persistence.models import District, HealthFacility, Jamoat, School, Village
from tests.conftest import VillageFactory


def build_workbook(**rows):
    """Workbook with one sheet per keyword (districts=[...], villages=[...])."""
    wb = Workbook()
    wb.remove(wb.active)
    for key, data in rows.items():
        title, headers = SHEETS[key]
        ws = wb.create_sheet(title)
        ws.append(headers)
        for row in data:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


@pytest.mark.django_db
class TestGeographyImport:

    def test_full_hierarchy(self):
        workbook = build_workbook(
            districts=[['D01', 1, 'Хуросон', 'Хуросон', 'Khuroson']],
            jamoats=[['D01', 'J01', 1, 'Обикиик', '', '']],
            villages=[
                ['J01', 'А', 1, 1, 'Навобод', '', '', 1100, 1250, 610, 170, 185, 1],
                ['Обикиик', 'А', 2, 2, 'Гулистон', '', '', 800, 820, 400, 120, 125, 0],
            ],
            schools=[['Навобод', 'Средняя школа', 14, 1, '', 420, 200, 25, 15, 1, 0, '']],
            health_facilities=[['Гулистон', 'СВА', 1, 'СВА Гулистон', 6, 4, 30, 1, 1, '']],
        )

        result = GeographyImportService.import_workbook(workbook)

        assert result.as_dict() == {
            'districts': 1, 'jamoats': 1, 'villages': 2,
            'schools': 1, 'health_facilities': 1, 'errors': [],
        }
        village = Village.objects.get(name_ru='Навобод')
        assert village.jamoat == Jamoat.objects.get(code='J01')
        assert village.population_current == 1250
        assert village.is_covered_by_project is True
        assert School.objects.get(village=village).total_students == 420
        assert HealthFacility.objects.get(name='СВА Гулистон').type.name == 'СВА'

    def test_reimport_updates_in_place(self):
        GeographyImportService.import_workbook(build_workbook(districts=[['D01', 1, 'Хуросон', '', '']]))
        GeographyImportService.import_workbook(build_workbook(districts=[['D01', 2, 'Хуросон', 'Хуросон', '']]))

        district = District.objects.get(code='D01')
        assert district.sort_order == 2
        assert district.name_tj == 'Хуросон'
        assert District.objects.count() == 1

    def test_row_errors_are_collected(self):
        VillageFactory(name_ru='Дубль')
        VillageFactory(name_ru='Дубль')
        workbook = build_workbook(
            jamoats=[['D99', 'J01', 1, 'Сомон', '', '']],
            schools=[
                ['Нет такого', '', 1, 1, '', 100, 50, 5, 3, 0, 0, ''],
                ['Дубль', '', 2, 1, '', 100, 50, 5, 3, 0, 0, ''],
                [None, None, None],
            ],
        )

        result = GeographyImportService.import_workbook(workbook)

        assert result.jamoats == 0
        assert result.schools == 0
        assert len(result.errors) == 3
        assert result.errors[0].startswith("Джамоаты, строка 2")
        assert "не найдено" in result.errors[1]
        assert "несколько" in result.errors[2]

    def test_template_has_every_sheet(self):
        wb = load_workbook(io.BytesIO(GeographyImportService.build_template()))

        assert wb.sheetnames == [title for title, _ in SHEETS.values()]
        assert wb["Сёла"].cell(row=1, column=5).value == "Название (рус)*"


@pytest.mark.django_db
class TestGeographyImportAPI:

    def _upload(self, client, name, content):
        return client.post(
            '/api/v1/import/geography/upload/',
            {'file': SimpleUploadedFile(name, content)},
            format='multipart',
        )

    def test_admin_upload(self, admin_client):
        content = build_workbook(districts=[['D05', 1, 'Вахш', '', '']]).getvalue()
        response = self._upload(admin_client, 'geo.xlsx', content)

        assert response.status_code == 200
        assert response.data['districts'] == 1

    def test_staff_forbidden(self, staff_client):
        content = build_workbook(districts=[['D05', 1, 'Вахш', '', '']]).getvalue()
        assert self._upload(staff_client, 'geo.xlsx', content).status_code == 403

    def test_non_xlsx_rejected(self, admin_client):
        response = self._upload(admin_client, 'geo.csv', b'code;name\n')
        assert response.status_code == 400

    def test_template_download(self, admin_client):
        response = admin_client.get('/api/v1/import/geography/template/')
        assert response.status_code == 200
        assert response['Content-Disposition'].endswith('geography_template.xlsx"')
