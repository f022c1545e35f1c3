"""
Document Views.
"""

import logging

from django.db.models import Q
from django.http import FileResponse
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser

from application.services.permissions import DataAccessService
from domain.shared.exceptions import AuthorizationException
from infrastructure.persistence.models import Document, MenuKeys
from ..serializers.documents import DocumentSerializer
from .base import BaseModelViewSet

logger = logging.getLogger(__name__)


class DocumentViewSet(BaseModelViewSet):
    """
    ViewSet for uploaded documents.

    Contract documents follow the contract scope of the user; documents
    without a contract are visible to everyone with access to the section.

    Endpoints:
    - POST /documents/ - multipart: file, type, contract|work_progress|...
    - GET /documents/{id}/download/
    """

    menu_key = MenuKeys.DOCUMENTS
    queryset = Document.objects.select_related('uploaded_by', 'contract')
    serializer_class = DocumentSerializer
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    filterset_fields = ['type', 'contract', 'work_progress', 'payment', 'contractor', 'amendment']
    search_fields = ['original_file_name', 'description']
    ordering_fields = ['created_at', 'sort_order', 'file_size']
    ordering = ['sort_order', '-created_at']
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, 'swagger_fake_view', False):
            return queryset.none()
        user = self.request.user
        if DataAccessService.can_view_all(user, self.menu_key):
            return queryset
        return queryset.filter(
            Q(contract__isnull=True) | Q(contract_id__in=DataAccessService.user_contract_ids(user))
        )

    def perform_create(self, serializer):
        contract = serializer.validated_data.get('contract')
        if contract is not None and not DataAccessService.can_access_contract(
            self.request.user, contract, self.menu_key
        ):
            raise AuthorizationException('create', resource=str(contract))
        document = serializer.save(uploaded_by=self.request.user)
        logger.info(f"Document {document.original_file_name} uploaded by {self.request.user}")

    def perform_destroy(self, instance):
        instance.file.delete(save=False)
        instance.delete()

    @action(detail=True, methods=['get'])
    def download(self, request, pk=None):
        document = self.get_object()
        return FileResponse(
            document.file.open('rb'),
            as_attachment=True,
            filename=document.original_file_name,
            content_type=document.content_type or None,
        )
