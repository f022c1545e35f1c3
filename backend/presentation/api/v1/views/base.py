"""
Base Views.

Viewset bases shared by every PMMIS section: menu permissions, audit
fields, change history and contract scoping.
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.permissions import DataAccessService
from domain.shared.exceptions import AuthorizationException
from ...permissions import MenuPermission

HISTORY_LIMIT = 50


def _field_names(model):
    return {f.name for f in model._meta.get_fields()}


class AuditViewMixin:
    """Stamps created_by/updated_by with request.user where the model has them."""

    def _audit_kwargs(self, serializer, *fields):
        names = _field_names(serializer.Meta.model)
        return {field: self.request.user for field in fields if field in names}

    def perform_create(self, serializer):
        serializer.save(**self._audit_kwargs(serializer, 'created_by', 'updated_by'))

    def perform_update(self, serializer):
        serializer.save(**self._audit_kwargs(serializer, 'updated_by'))


class HistoryViewMixin:
    """GET {id}/history/ for models tracked by django-simple-history."""

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        obj = self.get_object()
        if not hasattr(getattr(obj, 'history', None), 'as_of'):
            return Response({'error': 'История не доступна для этого объекта'},
                            status=status.HTTP_400_BAD_REQUEST)

        records = list(obj.history.select_related('history_user')[:HISTORY_LIMIT + 1])
        data = []
        for record, previous in zip(records, records[1:] + [None]):
            changed = []
            if previous is not None:
                changed = [
                    {'field': change.field, 'old': str(change.old), 'new': str(change.new)}
                    for change in record.diff_against(previous).changes
                ]
            data.append({
                'id': record.history_id,
                'date': record.history_date,
                'user': str(record.history_user) if record.history_user else None,
                'type': record.history_type,
                'reason': record.history_change_reason,
                'changes': changed,
            })
        return Response(data[:HISTORY_LIMIT])


class ContractScopeMixin:
    """
    Restricts the queryset to the user's contracts unless the role
    grants "view all" on the viewset's menu section.

    `contract_field` points at the contract id on the model.
    """

    contract_field = 'contract_id'

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, 'swagger_fake_view', False):
            return queryset.none()
        return DataAccessService.scope_queryset(
            queryset, self.request.user, self.menu_key, self.contract_field
        )

    def ensure_contract_access(self, contract):
        if not DataAccessService.can_access_contract(self.request.user, contract, self.menu_key):
            raise AuthorizationException('create', resource=str(contract))


class MenuSectionMixin:
    """
    `menu_key` names the section checked by MenuPermission; an @action may
    pass permission_action='view'|'create'|'edit'|'delete' to override the
    one derived from the HTTP method.
    """

    permission_classes = [IsAuthenticated, MenuPermission]
    menu_key = None
    permission_action = None

    def get_serializer_class(self):
        """Looks up `serializer_classes[self.action]`, then its 'default' entry."""
        serializer_classes = getattr(self, 'serializer_classes', {})
        serializer_class = serializer_classes.get(self.action, serializer_classes.get('default'))
        return serializer_class or super().get_serializer_class()


class BaseModelViewSet(MenuSectionMixin, AuditViewMixin, HistoryViewMixin, viewsets.ModelViewSet):
    pass


class ReadOnlyModelViewSet(MenuSectionMixin, HistoryViewMixin, viewsets.ReadOnlyModelViewSet):
    pass
