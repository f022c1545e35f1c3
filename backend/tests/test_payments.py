"""
Payment tests.

Contract limit validation, TJS conversion, the approve/reject/mark-paid
cycle and the payment report.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core import mail

from application.services.payments import PaymentService
from domain.shared.exceptions import (
    InvalidOperationException,
    PaymentLimitExceededException,
    ValidationException,
)
from domain.tasks.rules import RoleCode
from infrastructure.persistence.models import (
    ApprovalStatusChoices,
    Notification,
    PaymentStatusChoices,
    ProjectTask,
    TaskStatusChoices,
)
from tests.conftest import (
    ContractFactory,
    ContractorFactory,
    PaymentFactory,
    UserFactory,
    WorkProgressFactory,
    make_user,
)


# ============================================================================
# CREATE
# ============================================================================

@pytest.mark.django_db
class TestCreatePayment:

    def test_create_within_limit(self, contract, staff_user):
        payment, warnings = PaymentService.create_payment(
            contract, staff_user,
            amount=Decimal('20000.00'), payment_date=contract.signing_date, type='advance',
        )

        assert payment.status == PaymentStatusChoices.PENDING
        assert warnings == []
        assert contract.available_limit == Decimal('80000.00')

    def test_preparation_task_due_two_days_before(self, contract, staff_user):
        payment, _ = PaymentService.create_payment(
            contract, staff_user,
            amount=Decimal('1000.00'), payment_date=contract.contract_end_date, type='advance',
        )
        task = ProjectTask.objects.get(payment=payment)
        assert task.assignee == staff_user
        assert task.due_date.date() == contract.contract_end_date - timedelta(days=2)

    def test_limit_counts_pipeline_payments(self, contract, staff_user):
        PaymentFactory(contract=contract, amount=Decimal('60000.00'), status=PaymentStatusChoices.PAID)
        PaymentFactory(contract=contract, amount=Decimal('30000.00'), status=PaymentStatusChoices.APPROVED)

        with pytest.raises(PaymentLimitExceededException) as exc_info:
            PaymentService.create_payment(
                contract, staff_user, amount=Decimal('10000.01'), payment_date=contract.signing_date,
            )
        assert exc_info.value.details['contract_number'] == contract.contract_number

    def test_rejected_payments_free_the_limit(self, contract, staff_user):
        PaymentFactory(contract=contract, amount=Decimal('90000.00'), status=PaymentStatusChoices.REJECTED)
        payment, _ = PaymentService.create_payment(
            contract, staff_user, amount=Decimal('50000.00'), payment_date=contract.signing_date, type='advance',
        )
        assert payment.pk

    def test_amendments_raise_the_limit(self, contract, staff_user):
        contract.additional_amount = Decimal('20000.00')
        contract.save()
        payment, _ = PaymentService.create_payment(
            contract, staff_user, amount=Decimal('105000.00'), payment_date=contract.signing_date, type='advance',
        )
        assert payment.amount == Decimal('105000.00')

    def test_warning_near_limit(self, contract, staff_user):
        _, warnings = PaymentService.create_payment(
            contract, staff_user, amount=Decimal('95000.00'), payment_date=contract.signing_date, type='advance',
        )
        assert len(warnings) == 1
        assert '90%' in warnings[0]

    def test_interim_without_approved_avr_warns(self, contract, staff_user):
        _, warnings = PaymentService.create_payment(
            contract, staff_user, amount=Decimal('1000.00'), payment_date=contract.signing_date, type='interim',
        )
        assert any('АВР' in w for w in warnings)

    def test_interim_with_approved_avr_has_no_warning(self, contract, staff_user):
        WorkProgressFactory(contract=contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
        _, warnings = PaymentService.create_payment(
            contract, staff_user, amount=Decimal('1000.00'), payment_date=contract.signing_date, type='interim',
        )
        assert warnings == []

    def test_tjs_amount_converted_before_limit_check(self, staff_user):
        contract = ContractFactory(curator=staff_user, currency='TJS', contract_amount=Decimal('1000.00'))

        payment, _ = PaymentService.create_payment(
            contract, staff_user,
            amount_tjs=Decimal('5467.50'), exchange_rate=Decimal('10.935'),
            payment_date=contract.signing_date, type='advance',
        )
        assert payment.amount == Decimal('500.00')

        with pytest.raises(PaymentLimitExceededException):
            PaymentService.create_payment(
                contract, staff_user,
                amount_tjs=Decimal('10935.00'), exchange_rate=Decimal('10.935'),
                payment_date=contract.signing_date, type='advance',
            )

    def test_zero_amount_rejected(self, contract, staff_user):
        with pytest.raises(ValidationException):
            PaymentService.create_payment(contract, staff_user, amount=Decimal('0'), payment_date=contract.signing_date)

    def test_approved_avrs_excludes_linked(self, contract):
        linked = WorkProgressFactory(contract=contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
        free = WorkProgressFactory(contract=contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
        WorkProgressFactory(contract=contract, approval_status=ApprovalStatusChoices.MANAGER_APPROVED)
        PaymentFactory(contract=contract, work_progress=linked)

        assert list(PaymentService.approved_avrs(contract)) == [free]


# ============================================================================
# STATUS CYCLE
# ============================================================================

@pytest.mark.workflow
@pytest.mark.django_db
class TestPaymentCycle:

    def test_approve_then_pay_notifies_contractor(self, contract, staff_user, django_capture_on_commit_callbacks):
        contractor_user = UserFactory(contractor=contract.contractor, email='contractor@pmmis.test')
        payment = PaymentFactory(contract=contract, amount=Decimal('15000.00'))
        task = ProjectTask.objects.create(
            title='Подготовить документы', due_date=payment.created_at, payment=payment, assignee=staff_user,
        )

        PaymentService.approve(payment, staff_user)
        assert payment.status == PaymentStatusChoices.APPROVED
        assert payment.approved_by == staff_user

        with django_capture_on_commit_callbacks(execute=True):
            PaymentService.mark_paid(payment, staff_user)

        assert payment.status == PaymentStatusChoices.PAID
        assert payment.paid_at is not None
        assert contract.paid_amount == Decimal('15000.00')
        task.refresh_from_db()
        assert task.status == TaskStatusChoices.COMPLETED
        assert Notification.objects.filter(user=contractor_user, reference_id=payment.pk).exists()
        assert [m.to for m in mail.outbox] == [['contractor@pmmis.test']]

    def test_mark_paid_requires_approval(self, contract, staff_user):
        payment = PaymentFactory(contract=contract)
        with pytest.raises(InvalidOperationException):
            PaymentService.mark_paid(payment, staff_user)

    def test_paid_payment_cannot_be_rejected(self, contract, staff_user):
        payment = PaymentFactory(contract=contract, status=PaymentStatusChoices.PAID)
        with pytest.raises(InvalidOperationException):
            PaymentService.reject(payment, staff_user, "Ошибка в реквизитах")

    def test_reject_approved_payment(self, contract, staff_user):
        payment = PaymentFactory(contract=contract, status=PaymentStatusChoices.APPROVED)
        PaymentService.reject(payment, staff_user, "Ошибка в реквизитах")
        assert payment.status == PaymentStatusChoices.REJECTED
        assert payment.rejection_reason == "Ошибка в реквизитах"


# ============================================================================
# REPORT
# ============================================================================

@pytest.mark.django_db
class TestPaymentReport:

    def test_report_totals(self, contract):
        PaymentFactory(contract=contract, amount=Decimal('40000.00'), status=PaymentStatusChoices.PAID)
        PaymentFactory(contract=contract, amount=Decimal('5000.00'), status=PaymentStatusChoices.PENDING)
        other = ContractFactory(contractor=ContractorFactory(), contract_amount=Decimal('50000.00'))

        report = PaymentService.payment_report(type(contract).objects.filter(pk__in=[contract.pk, other.pk]))

        assert report['total_contracts'] == 2
        assert report['total_payments'] == 2
        assert report['total_planned_usd'] == Decimal('150000.00')
        assert report['total_paid_usd'] == Decimal('40000.00')
        assert report['total_difference'] == Decimal('110000.00')
        assert report['overall_paid_percent'] == Decimal('26.67')
        row = next(r for r in report['contracts'] if r['contract_id'] == contract.pk)
        assert row['paid_percent'] == Decimal('40.00')


# ============================================================================
# API
# ============================================================================

@pytest.mark.django_db
class TestPaymentAPI:

    def test_create_returns_warnings(self, staff_client, contract):
        response = staff_client.post('/api/v1/payments/', {
            'contract': contract.pk,
            'payment_date': str(contract.signing_date),
            'amount': '95000.00',
            'type': 'advance',
        }, format='json')
        assert response.status_code == 201, response.data
        assert len(response.data['warnings']) == 1

    def test_limit_exceeded_is_bad_request(self, staff_client, contract):
        response = staff_client.post('/api/v1/payments/', {
            'contract': contract.pk,
            'payment_date': str(contract.signing_date),
            'amount': '100000.01',
        }, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'payment_limit_exceeded'

    def test_only_pending_payment_is_editable(self, staff_client, contract):
        payment = PaymentFactory(contract=contract, status=PaymentStatusChoices.APPROVED)
        response = staff_client.patch(f'/api/v1/payments/{payment.pk}/', {'description': 'x'}, format='json')
        assert response.status_code == 400

    def test_paid_payment_cannot_be_deleted(self, admin_client, contract):
        payment = PaymentFactory(contract=contract, status=PaymentStatusChoices.PAID)
        response = admin_client.delete(f'/api/v1/payments/{payment.pk}/')
        assert response.status_code == 400

    def test_scope_hides_foreign_payments(self, staff_client, contract):
        PaymentFactory(contract=contract)
        PaymentFactory(contract=ContractFactory())

        response = staff_client.get('/api/v1/payments/')
        assert response.status_code == 200
        assert response.data['count'] == 1

    def test_accountant_without_role_permission_is_forbidden(self, api_client, contract):
        accountant = make_user(RoleCode.ACCOUNTANT)
        api_client.force_authenticate(user=accountant)
        response = api_client.get('/api/v1/payments/')
        assert response.status_code == 403
