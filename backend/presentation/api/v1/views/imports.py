"""
Import Views.

Excel import of geography reference data. PMU administrators only.
"""

import logging

from django.http import HttpResponse
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.imports import GeographyImportService
from infrastructure.persistence.models import AuditLog
from ...permissions import IsPmuAdmin
from .tasks import XLSX_CONTENT_TYPE

logger = logging.getLogger(__name__)


class GeographyImportViewSet(viewsets.ViewSet):
    """
    Endpoints:
    - GET /import/geography/template/ - empty workbook with the sheets
    - POST /import/geography/upload/ - multipart `file`
    """

    permission_classes = [IsAuthenticated, IsPmuAdmin]
    parser_classes = [MultiPartParser]

    @action(detail=False, methods=['get'])
    def template(self, request):
        response = HttpResponse(GeographyImportService.build_template(), content_type=XLSX_CONTENT_TYPE)
        response['Content-Disposition'] = 'attachment; filename="geography_template.xlsx"'
        return response

    @action(detail=False, methods=['post'])
    def upload(self, request):
        upload = request.FILES.get('file')
        if upload is None:
            return Response({'error': 'Файл не передан'}, status=status.HTTP_400_BAD_REQUEST)
        if not upload.name.lower().endswith('.xlsx'):
            return Response({'error': 'Ожидается файл .xlsx'}, status=status.HTTP_400_BAD_REQUEST)

        result = GeographyImportService.import_workbook(upload).as_dict()
        AuditLog.record(
            'import', user=request.user, request=request,
            changes={key: value for key, value in result.items() if key != 'errors'},
        )
        logger.info(f"Geography import by {request.user}: {result}")
        return Response(result)
