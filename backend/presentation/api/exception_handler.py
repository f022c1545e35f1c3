"""
API exception handler.

Every error that is not DRF's own is answered as
{'detail': ..., 'error': <code>, 'details': {...}}.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models.deletion import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from domain.shared.exceptions import DomainException

logger = logging.getLogger(__name__)


def _error(detail, code, details=None, status_code=status.HTTP_400_BAD_REQUEST):
    return Response({'detail': detail, 'error': code, 'details': details or {}}, status=status_code)


def custom_exception_handler(exc, context):
    if isinstance(exc, DomainException):
        view = context.get('view')
        logger.info(f"{exc.code} in {view.__class__.__name__ if view else 'view'}: {exc.message}")
        return _error(exc.message, exc.code.lower(), exc.details, exc.status_code)

    if isinstance(exc, ProtectedError):
        return _error(
            'Нельзя удалить объект: на него есть ссылки в других документах.',
            'protected_error',
            {'protected_objects_sample': [str(o) for o in list(exc.protected_objects)[:5]]},
            status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error: {exc}")
        return _error(
            'Нарушение целостности данных (возможны связанные записи).',
            'integrity_error',
            status_code=status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, DjangoValidationError):
        return _error(
            '; '.join(exc.messages),
            'validation_error',
            getattr(exc, 'message_dict', None),
        )

    return exception_handler(exc, context)
