"""
API tests for authentication, procurement plans and document uploads.
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from infrastructure.persistence.models import AuditLog, Document, ProcurementStatusChoices
from tests.conftest import ContractFactory, ProcurementPlanFactory, WorkProgressFactory


# ============================================================================
# AUTH
# ============================================================================

@pytest.mark.django_db
class TestAuthAPI:

    def _login(self, client, password='testpass123'):
        return client.post('/api/v1/auth/login/', {
            'username': 'pmu_staff',
            'password': password,
        }, format='json')

    def test_login_returns_token_pair(self, api_client, staff_user):
        response = self._login(api_client)

        assert response.status_code == 200
        assert {'access', 'refresh', 'user'} <= set(response.data)
        assert response.data['user']['username'] == 'pmu_staff'
        assert AuditLog.objects.filter(action='login', user=staff_user).exists()

    def test_wrong_password(self, api_client, staff_user):
        response = self._login(api_client, password='wrong')
        assert response.status_code == 400

    def test_access_token_authenticates(self, api_client, staff_user):
        access = self._login(api_client).data['access']

        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        response = api_client.get('/api/v1/auth/me/')

        assert response.status_code == 200
        assert response.data['username'] == 'pmu_staff'

    def test_logout_blacklists_refresh_token(self, api_client, staff_user):
        tokens = self._login(api_client).data
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = api_client.post('/api/v1/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        assert response.status_code == 200

        response = api_client.post('/api/v1/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
        assert response.status_code == 401


# ============================================================================
# PROCUREMENT
# ============================================================================

@pytest.mark.django_db
class TestProcurementAPI:

    def _change(self, client, plan, new_status):
        return client.post(
            f'/api/v1/procurement-plans/{plan.pk}/change_status/', {'status': new_status}, format='json'
        )

    def test_tender_announcement_stamps_date(self, admin_client):
        plan = ProcurementPlanFactory()

        response = self._change(admin_client, plan, ProcurementStatusChoices.IN_PROGRESS)

        assert response.status_code == 200
        plan.refresh_from_db()
        assert plan.status == ProcurementStatusChoices.IN_PROGRESS
        assert plan.advertisement_date == timezone.localdate()

    def test_unknown_status(self, admin_client):
        plan = ProcurementPlanFactory()
        assert self._change(admin_client, plan, 'archived').status_code == 400

    def test_closed_plan_cannot_move(self, admin_client):
        plan = ProcurementPlanFactory(status=ProcurementStatusChoices.CANCELLED)

        response = self._change(admin_client, plan, ProcurementStatusChoices.PLANNED)

        assert response.status_code == 409
        assert response.data['error'] == 'invalid_status_transition'

    def test_view_only_role_cannot_change_status(self, staff_client):
        plan = ProcurementPlanFactory()
        assert self._change(staff_client, plan, ProcurementStatusChoices.IN_PROGRESS).status_code == 403

    def test_statistics(self, staff_client):
        plan = ProcurementPlanFactory()
        ProcurementPlanFactory(project=plan.project, status=ProcurementStatusChoices.AWARDED)

        response = staff_client.get('/api/v1/procurement-plans/statistics/', {'project': plan.project_id})

        assert response.status_code == 200
        assert response.data['total_count'] == 2
        assert response.data['by_status'][ProcurementStatusChoices.PLANNED]['count'] == 1


# ============================================================================
# DOCUMENTS
# ============================================================================

@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


@pytest.mark.django_db
class TestDocumentAPI:

    def _upload(self, client, **data):
        payload = {
            'file': SimpleUploadedFile('act.pdf', b'%PDF-1.4 test', content_type='application/pdf'),
            'type': 'work_act',
            **data,
        }
        return client.post('/api/v1/documents/', payload, format='multipart')

    def test_upload_to_contract(self, staff_client, staff_user, contract, media_root):
        response = self._upload(staff_client, contract=contract.pk)

        assert response.status_code == 201, response.data
        document = Document.objects.get(pk=response.data['id'])
        assert document.original_file_name == 'act.pdf'
        assert document.content_type == 'application/pdf'
        assert document.file_size == len(b'%PDF-1.4 test')
        assert document.uploaded_by == staff_user

    def test_contract_taken_from_work_act(self, staff_client, contract, media_root):
        work_progress = WorkProgressFactory(contract=contract)

        response = self._upload(staff_client, work_progress=work_progress.pk)

        assert response.status_code == 201, response.data
        assert response.data['contract'] == contract.pk

    def test_owner_required(self, staff_client, media_root):
        assert self._upload(staff_client).status_code == 400

    def test_foreign_contract_rejected(self, staff_client, media_root):
        other = ContractFactory()
        assert self._upload(staff_client, contract=other.pk).status_code == 403

    def test_oversized_file(self, staff_client, contract, media_root, settings):
        settings.PMMIS = {**settings.PMMIS, 'DOCUMENT_MAX_SIZE': 4}
        assert self._upload(staff_client, contract=contract.pk).status_code == 400


# ============================================================================
# HISTORY
# ============================================================================

@pytest.mark.django_db
class TestHistoryAPI:

    def test_contract_history_lists_changed_fields(self, admin_client):
        contract = ContractFactory()
        contract.scope_of_work = "Реконструкция водопровода"
        contract.save()

        response = admin_client.get(f'/api/v1/contracts/{contract.pk}/history/')

        assert response.status_code == 200
        assert response.data[0]['type'] == '~'
        assert response.data[-1]['type'] == '+'
        latest = response.data[0]
        assert {'field': 'scope_of_work', 'old': "Строительство системы водоснабжения",
                'new': "Реконструкция водопровода"} in latest['changes']
        assert response.data[-1]['changes'] == []
