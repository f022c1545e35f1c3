"""
Contract amendment tests.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from application.services.amendments import AmendmentService
from domain.contracts.rules import AmendmentType
from domain.shared.exceptions import ValidationException
from infrastructure.persistence.models import AuditLog, ContractAmendment
from tests.conftest import ContractFactory


@pytest.mark.django_db
class TestAmendmentService:

    def test_amount_change_raises_final_amount(self, contract, staff_user):
        AmendmentService.create(
            contract, staff_user,
            type=AmendmentType.AMOUNT_CHANGE, amendment_date=date(2026, 3, 1),
            amount_change_usd=Decimal('15000.00'),
        )
        contract.refresh_from_db()
        assert contract.additional_amount == Decimal('15000.00')
        assert contract.final_amount == Decimal('115000.00')

    def test_tjs_change_converted_to_usd(self, contract, staff_user):
        amendment = AmendmentService.create(
            contract, staff_user,
            type=AmendmentType.AMOUNT_CHANGE, amendment_date=date(2026, 3, 1),
            amount_change_tjs=Decimal('21870.00'), exchange_rate=Decimal('10.935'),
        )
        assert amendment.amount_change_usd == Decimal('2000.00')
        contract.refresh_from_db()
        assert contract.additional_amount == Decimal('2000.00')

    def test_tjs_change_requires_rate(self, contract, staff_user):
        with pytest.raises(ValidationException) as exc_info:
            AmendmentService.create(
                contract, staff_user,
                type=AmendmentType.AMOUNT_CHANGE, amendment_date=date(2026, 3, 1),
                amount_change_tjs=Decimal('21870.00'),
            )
        assert exc_info.value.details['field'] == 'exchange_rate'
        assert not ContractAmendment.objects.filter(contract=contract).exists()
        contract.refresh_from_db()
        assert contract.additional_amount == Decimal('0')

    def test_extension_requires_new_date(self, contract, staff_user):
        with pytest.raises(ValidationException) as exc_info:
            AmendmentService.create(
                contract, staff_user,
                type=AmendmentType.DEADLINE_EXTENSION, amendment_date=date(2026, 3, 1),
            )
        assert exc_info.value.details['field'] == 'new_end_date'

    def test_amount_change_requires_amount(self, contract, staff_user):
        with pytest.raises(ValidationException):
            AmendmentService.create(
                contract, staff_user,
                type=AmendmentType.AMOUNT_CHANGE, amendment_date=date(2026, 3, 1),
            )

    def test_extension_moves_effective_end_date(self, contract, staff_user):
        new_end = contract.contract_end_date + timedelta(days=90)
        amendment = AmendmentService.create(
            contract, staff_user,
            type=AmendmentType.DEADLINE_EXTENSION, amendment_date=date(2026, 3, 1), new_end_date=new_end,
        )
        contract.refresh_from_db()
        assert amendment.previous_end_date == contract.contract_end_date
        assert contract.extended_to_date == new_end
        assert contract.effective_end_date == new_end

    def test_delete_reverts_effect(self, contract, staff_user):
        amendment = AmendmentService.create(
            contract, staff_user,
            type=AmendmentType.DEADLINE_EXTENSION, amendment_date=date(2026, 3, 1),
            new_end_date=contract.contract_end_date + timedelta(days=30),
        )
        AmendmentService.delete(amendment, staff_user)

        contract.refresh_from_db()
        assert contract.extended_to_date is None
        assert not ContractAmendment.objects.filter(contract=contract).exists()

    def test_actions_are_audited(self, contract, staff_user):
        amendment = AmendmentService.create(
            contract, staff_user,
            type=AmendmentType.SCOPE_CHANGE, amendment_date=date(2026, 3, 1),
            new_scope_of_work="Водопровод и насосная станция",
        )
        amendment_id = str(amendment.pk)
        AmendmentService.delete(amendment, staff_user)

        actions = list(
            AuditLog.objects.filter(object_id=amendment_id, user=staff_user)
            .order_by('timestamp', 'id').values_list('action', flat=True)
        )
        assert actions == ['create', 'delete']


@pytest.mark.django_db
class TestAmendmentAPI:

    def test_create_and_delete(self, admin_client):
        contract = ContractFactory(contract_amount=Decimal('50000.00'))

        response = admin_client.post('/api/v1/contract-amendments/', {
            'contract': contract.pk,
            'type': AmendmentType.AMOUNT_CHANGE.value,
            'amendment_date': '2026-03-01',
            'amount_change_usd': '5000.00',
        }, format='json')
        assert response.status_code == 201, response.data
        contract.refresh_from_db()
        assert contract.final_amount == Decimal('55000.00')

        response = admin_client.delete(f"/api/v1/contract-amendments/{response.data['id']}/")
        assert response.status_code == 204
        contract.refresh_from_db()
        assert contract.final_amount == Decimal('50000.00')

    def test_amendments_cannot_be_edited(self, admin_client):
        contract = ContractFactory()
        amendment = AmendmentService.create(
            contract, None,
            type=AmendmentType.AMOUNT_CHANGE, amendment_date=date(2026, 3, 1),
            amount_change_usd=Decimal('100.00'),
        )
        response = admin_client.patch(
            f'/api/v1/contract-amendments/{amendment.pk}/', {'description': 'x'}, format='json'
        )
        assert response.status_code == 405

    def test_unknown_type_rejected(self, admin_client):
        contract = ContractFactory()
        response = admin_client.post('/api/v1/contract-amendments/', {
            'contract': contract.pk,
            'type': 9,
            'amendment_date': '2026-03-01',
        }, format='json')
        assert response.status_code == 400
