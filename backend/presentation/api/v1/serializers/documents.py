"""
Document Serializers.
"""

import mimetypes

from django.conf import settings
from rest_framework import serializers

from infrastructure.persistence.models import Document
from .base import UserMinimalSerializer

OWNER_FIELDS = ('contract', 'work_progress', 'payment', 'contractor', 'amendment')


class DocumentSerializer(serializers.ModelSerializer):
    """
    Multipart upload of a document.

    File name, MIME type and size are taken from the uploaded file.
    """

    type_display = serializers.CharField(source='get_type_display', read_only=True)
    extension = serializers.CharField(read_only=True)
    uploaded_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Document
        fields = [
            'id', 'file', 'original_file_name', 'content_type', 'file_size', 'extension',
            'type', 'type_display', 'description', 'sort_order',
            'contract', 'work_progress', 'payment', 'contractor', 'amendment',
            'uploaded_by', 'created_at',
        ]
        read_only_fields = ['id', 'original_file_name', 'content_type', 'file_size', 'created_at']

    def validate_file(self, value):
        limit = settings.PMMIS['DOCUMENT_MAX_SIZE']
        if value.size > limit:
            raise serializers.ValidationError(f"Файл больше допустимого размера ({limit // (1024 * 1024)} МБ).")
        return value

    def validate(self, attrs):
        if self.instance is None and not any(attrs.get(field) for field in OWNER_FIELDS):
            raise serializers.ValidationError('Документ должен быть привязан к объекту.')

        work_progress = attrs.get('work_progress')
        payment = attrs.get('payment')
        amendment = attrs.get('amendment')
        contract = attrs.get('contract')
        for owner in (work_progress, payment, amendment):
            if owner is None:
                continue
            if contract is None:
                attrs['contract'] = contract = owner.contract
            elif owner.contract_id != contract.pk:
                raise serializers.ValidationError('Объекты относятся к разным контрактам.')

        upload = attrs.get('file')
        if upload is not None:
            attrs['original_file_name'] = upload.name
            attrs['file_size'] = upload.size
            attrs['content_type'] = (
                getattr(upload, 'content_type', None)
                or mimetypes.guess_type(upload.name)[0]
                or 'application/octet-stream'
            )
        return attrs
