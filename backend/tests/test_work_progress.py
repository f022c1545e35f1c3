"""
AVR workflow tests.

Draft → SubmittedForReview → ManagerApproved → DirectorApproved with the
follow-up tasks, the automatic interim payment and the rejection loop.
"""

from decimal import Decimal

import pytest

from application.services.work_progress import WorkProgressService
from domain.shared.exceptions import (
    AuthorizationException,
    InvalidOperationException,
    StatusTransitionException,
    ValidationException,
)
from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import (
    ApprovalStatusChoices,
    ContractIndicatorProgress,
    PaymentStatusChoices,
    PaymentTypeChoices,
    ProjectTask,
    TaskStatusChoices,
)
from tests.conftest import (
    ContractFactory,
    ContractIndicatorFactory,
    UserFactory,
    WorkProgressFactory,
    make_user,
)


@pytest.fixture
def manager(db):
    return make_user(RoleCode.PMU_STAFF, username='manager')


@pytest.fixture
def avr_contract(staff_user, manager):
    return ContractFactory(curator=staff_user, project_manager=manager, contract_amount=Decimal('200000.00'))


# ============================================================================
# CREATE / UPDATE / DELETE
# ============================================================================

@pytest.mark.django_db
class TestWorkProgressCrud:

    def test_create_assigns_review_task_to_curator(self, avr_contract, staff_user):
        avr = WorkProgressService.create(
            avr_contract, staff_user,
            report_date=avr_contract.signing_date, completed_percent=Decimal('40'),
        )

        assert avr.approval_status == ApprovalStatusChoices.DRAFT
        task = ProjectTask.objects.get(work_progress=avr)
        assert task.assignee == staff_user
        avr_contract.refresh_from_db()
        assert avr_contract.work_completed_percent == Decimal('40')

    def test_reviewer_falls_back_to_creator(self, db):
        contract = ContractFactory()
        creator = UserFactory()
        avr = WorkProgressService.create(
            contract, creator, report_date=contract.signing_date, completed_percent=Decimal('10'),
        )
        assert ProjectTask.objects.get(work_progress=avr).assignee == creator

    def test_contract_progress_follows_latest_report(self, avr_contract, staff_user):
        WorkProgressFactory(contract=avr_contract, report_date=avr_contract.signing_date,
                            completed_percent=Decimal('60'))
        latest = WorkProgressFactory(contract=avr_contract, completed_percent=Decimal('35'))

        assert avr_contract.recalculate_work_completed() == Decimal('35')

        WorkProgressService.delete(latest)
        avr_contract.refresh_from_db()
        assert avr_contract.work_completed_percent == Decimal('60')

    def test_delete_draft_lowers_indicator_total(self, avr_contract, staff_user):
        ci = ContractIndicatorFactory(contract=avr_contract)
        kept = WorkProgressService.create(
            avr_contract, staff_user, indicator_entries=[{'contract_indicator': ci.pk, 'value': '250'}],
            report_date=avr_contract.signing_date, completed_percent=Decimal('20'),
        )
        draft = WorkProgressService.create(
            avr_contract, staff_user, indicator_entries=[{'contract_indicator': ci.pk, 'value': '150'}],
            report_date=avr_contract.signing_date, completed_percent=Decimal('30'),
        )
        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('400')

        WorkProgressService.delete(draft)

        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('250')
        assert list(ContractIndicatorProgress.objects.values_list('work_progress_id', flat=True)) == [kept.pk]

    def test_update_replaces_indicator_rows(self, avr_contract, staff_user):
        first = ContractIndicatorFactory(contract=avr_contract)
        second = ContractIndicatorFactory(contract=avr_contract)
        avr = WorkProgressService.create(
            avr_contract, staff_user, indicator_entries=[{'contract_indicator': first.pk, 'value': '100'}],
            report_date=avr_contract.signing_date, completed_percent=Decimal('10'),
        )

        WorkProgressService.update(avr, staff_user, indicator_entries=[
            {'contract_indicator': second.pk, 'value': '40'},
        ])

        first.refresh_from_db()
        second.refresh_from_db()
        assert first.achieved_value == Decimal('0')
        assert second.achieved_value == Decimal('40')
        assert list(avr.indicator_progresses.values_list('contract_indicator_id', flat=True)) == [second.pk]

    def test_update_without_entries_keeps_indicator_rows(self, avr_contract, staff_user):
        ci = ContractIndicatorFactory(contract=avr_contract)
        avr = WorkProgressService.create(
            avr_contract, staff_user, indicator_entries=[{'contract_indicator': ci.pk, 'value': '60'}],
            report_date=avr_contract.signing_date, completed_percent=Decimal('10'),
        )

        WorkProgressService.update(avr, staff_user, completed_percent=Decimal('15'))

        ci.refresh_from_db()
        assert ci.achieved_value == Decimal('60')

    def test_update_rejected_for_submitted_report(self, avr_contract, staff_user):
        avr = WorkProgressFactory(contract=avr_contract)
        avr.submit_for_review(staff_user)

        with pytest.raises(InvalidOperationException):
            WorkProgressService.update(avr, staff_user, completed_percent=Decimal('80'))

    def test_delete_rejected_for_approved_report(self, avr_contract, staff_user):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
        with pytest.raises(InvalidOperationException):
            WorkProgressService.delete(avr)


# ============================================================================
# APPROVAL WORKFLOW
# ============================================================================

@pytest.mark.workflow
@pytest.mark.django_db
class TestApprovalWorkflow:

    def test_full_cycle_creates_payment(self, avr_contract, staff_user, manager, admin_user):
        avr = WorkProgressService.create(
            avr_contract, staff_user,
            report_date=avr_contract.signing_date, completed_percent=Decimal('25'),
        )

        WorkProgressService.submit_for_review(avr, staff_user)
        assert avr.approval_status == ApprovalStatusChoices.SUBMITTED_FOR_REVIEW
        assert avr.submitted_by == staff_user
        review_task = ProjectTask.objects.filter(work_progress=avr, assignee=manager).get()

        WorkProgressService.manager_approve(avr, manager, "Объёмы подтверждены")
        review_task.refresh_from_db()
        assert review_task.status == TaskStatusChoices.COMPLETED
        assert avr.manager_comment == "Объёмы подтверждены"
        assert ProjectTask.objects.filter(work_progress=avr, assignee=admin_user).exists()

        avr, payment = WorkProgressService.director_approve(avr, admin_user)

        assert avr.approval_status == ApprovalStatusChoices.DIRECTOR_APPROVED
        assert avr.director_approved_by == admin_user
        assert payment.amount == Decimal('50000.00')
        assert payment.status == PaymentStatusChoices.PENDING
        assert payment.type == PaymentTypeChoices.INTERIM
        assert payment.work_progress == avr
        assert ProjectTask.objects.filter(payment=payment).exists()
        assert not ProjectTask.objects.filter(
            work_progress=avr, status=TaskStatusChoices.NEW
        ).exists()

    def test_director_approve_requires_admin(self, avr_contract, staff_user, manager):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.MANAGER_APPROVED)
        with pytest.raises(AuthorizationException):
            WorkProgressService.director_approve(avr, manager)

    def test_cannot_skip_manager_step(self, avr_contract, admin_user):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.SUBMITTED_FOR_REVIEW)
        with pytest.raises(StatusTransitionException):
            WorkProgressService.director_approve(avr, admin_user)

    def test_reject_requires_reason(self, avr_contract, manager):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.SUBMITTED_FOR_REVIEW)
        with pytest.raises(ValidationException):
            WorkProgressService.reject(avr, manager, "   ")

    def test_rejected_report_can_be_fixed_and_resubmitted(self, avr_contract, staff_user, manager):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.SUBMITTED_FOR_REVIEW)

        WorkProgressService.reject(avr, manager, "Нет фотоотчёта")
        assert avr.approval_status == ApprovalStatusChoices.REJECTED
        assert avr.rejection_reason == "Нет фотоотчёта"
        assert ProjectTask.objects.filter(work_progress=avr, assignee=staff_user).exists()

        WorkProgressService.update(avr, staff_user, description="Фотоотчёт приложен")
        WorkProgressService.submit_for_review(avr, staff_user)
        assert avr.approval_status == ApprovalStatusChoices.SUBMITTED_FOR_REVIEW

    def test_director_approved_cannot_be_rejected(self, avr_contract, admin_user):
        avr = WorkProgressFactory(contract=avr_contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
        with pytest.raises(StatusTransitionException):
            WorkProgressService.reject(avr, admin_user, "Поздно")


# ============================================================================
# API
# ============================================================================

@pytest.mark.workflow
@pytest.mark.django_db
class TestWorkProgressAPI:

    def test_create_and_submit(self, staff_client, contract):
        response = staff_client.post('/api/v1/work-progress/', {
            'contract': contract.pk,
            'report_date': str(contract.signing_date),
            'completed_percent': '15.00',
            'description': 'Земляные работы',
        }, format='json')
        assert response.status_code == 201, response.data
        avr_id = response.data['id']

        response = staff_client.post(f'/api/v1/work-progress/{avr_id}/submit_for_review/')
        assert response.status_code == 200
        assert response.data['approval_status'] == ApprovalStatusChoices.SUBMITTED_FOR_REVIEW

    def test_percent_out_of_range(self, staff_client, contract):
        response = staff_client.post('/api/v1/work-progress/', {
            'contract': contract.pk,
            'report_date': str(contract.signing_date),
            'completed_percent': '120',
        }, format='json')
        assert response.status_code == 400

    def test_foreign_contract_is_forbidden(self, staff_client, db):
        other = ContractFactory()
        response = staff_client.post('/api/v1/work-progress/', {
            'contract': other.pk,
            'report_date': str(other.signing_date),
            'completed_percent': '15',
        }, format='json')
        assert response.status_code == 403

    def test_invalid_transition_is_conflict(self, staff_client, contract):
        avr = WorkProgressFactory(contract=contract)
        response = staff_client.post(f'/api/v1/work-progress/{avr.pk}/manager_approve/', {}, format='json')
        assert response.status_code == 409
        assert response.data['error'] == 'invalid_status_transition'
