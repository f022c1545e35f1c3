"""
Dashboard Views.

Management screen: per-project summary and active alerts that need the
PMU's attention.
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.dashboard import AlertSeverity, DashboardService, ManagementAlertService
from domain.shared.exceptions import EntityNotFoundException
from infrastructure.persistence.models import MenuKeys, Project
from ...permissions import MenuPermission


class DashboardViewSet(viewsets.ViewSet):
    """
    Endpoints:
    - GET /dashboard/summary/?project=<id> - one project, or every project
    - GET /dashboard/alerts/?project=<id>&severity=critical
    """

    permission_classes = [IsAuthenticated, MenuPermission]
    menu_key = MenuKeys.HOME
    permission_action = None

    def _project(self, request):
        project_id = request.query_params.get('project')
        if not project_id:
            return None
        project = Project.objects.filter(pk=project_id).first()
        if project is None:
            raise EntityNotFoundException('Проект', project_id)
        return project

    @action(detail=False, methods=['get'])
    def summary(self, request):
        project = self._project(request)
        if project is not None:
            return Response(DashboardService.project_summary(project))

        return Response({
            'projects': [
                {'id': project.pk, 'code': project.code, 'name': project.name_ru,
                 'summary': DashboardService.project_summary(project)}
                for project in Project.objects.all()
            ],
        })

    @action(detail=False, methods=['get'])
    def alerts(self, request):
        project = self._project(request)
        alerts = ManagementAlertService.get_active_alerts(project)
        severity = request.query_params.get('severity')
        if severity:
            alerts = [alert for alert in alerts if alert.severity == severity]
        return Response({
            'critical_count': sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL),
            'warning_count': sum(1 for a in alerts if a.severity == AlertSeverity.WARNING),
            'alerts': [alert.as_dict() for alert in alerts],
        })
