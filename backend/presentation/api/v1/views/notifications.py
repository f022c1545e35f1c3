"""
Notification Views.

Every user sees only their own notifications.
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.notifications import NotificationService
from infrastructure.persistence.models import Notification
from ..serializers.notifications import NotificationSerializer, NotificationSettingsSerializer


class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet
):
    """
    Endpoints:
    - GET /notifications/unread_count/
    - POST /notifications/{id}/mark_read/
    - POST /notifications/mark_all_read/
    - GET|PUT|PATCH /notifications/settings/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    filterset_fields = ['is_read', 'type', 'priority', 'reference_type']
    ordering = ['-created_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Notification.objects.none()
        return Notification.objects.filter(user=self.request.user)

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        return Response({'count': NotificationService.unread_count(request.user)})

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_read()
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        return Response({'updated': NotificationService.mark_all_read(request.user)})

    @action(detail=False, methods=['get', 'put', 'patch'], url_path='settings')
    def notification_settings(self, request):
        settings_obj = NotificationService.get_settings(request.user)
        if request.method == 'GET':
            return Response(NotificationSettingsSerializer(settings_obj).data)

        serializer = NotificationSettingsSerializer(
            settings_obj, data=request.data, partial=request.method == 'PATCH'
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_200_OK)
