"""
Contract Amendment Services.
"""

import logging
from decimal import Decimal

from domain.contracts.rules import AmendmentType
from domain.shared.exceptions import ValidationException
from domain.shared.value_objects import Money
from infrastructure.persistence.models import AuditLog, ContractAmendment

logger = logging.getLogger(__name__)


class AmendmentService:
    """Create and delete amendments together with their effect on the contract."""

    @staticmethod
    def _validate(fields):
        amendment_type = fields.get('type')
        if amendment_type == AmendmentType.DEADLINE_EXTENSION and not fields.get('new_end_date'):
            raise ValidationException("Укажите новый срок окончания", field='new_end_date')
        if amendment_type == AmendmentType.AMOUNT_CHANGE and not (
            fields.get('amount_change_usd') or fields.get('amount_change_tjs')
        ):
            raise ValidationException("Укажите сумму изменения", field='amount_change_usd')
        if fields.get('amount_change_tjs') and not fields.get('amount_change_usd') and not fields.get('exchange_rate'):
            raise ValidationException("Укажите курс для суммы в TJS", field='exchange_rate')

    @classmethod
    def create(cls, contract, user, request=None, **fields) -> ContractAmendment:
        cls._validate(fields)

        tjs = fields.get('amount_change_tjs')
        rate = fields.get('exchange_rate')
        if tjs and rate and not fields.get('amount_change_usd'):
            rate = Decimal(rate)
            if rate <= 0:
                raise ValidationException("Курс должен быть больше нуля", field='exchange_rate', value=rate)
            fields['amount_change_usd'] = Money(Decimal(tjs), 'TJS').to_usd(rate).amount

        amendment = ContractAmendment(contract=contract, created_by=user, **fields)
        amendment.apply_to_contract()

        AuditLog.record(
            'create', user=user, obj=amendment, request=request,
            changes={
                'type': amendment.get_type_display(),
                'amount_change_usd': str(amendment.amount_change_usd or ''),
                'new_end_date': str(amendment.new_end_date or ''),
            },
        )
        logger.info(
            f"Amendment {amendment.pk} ({amendment.get_type_display()}) applied to contract "
            f"{contract.contract_number}"
        )
        return amendment

    @staticmethod
    def delete(amendment, user, request=None) -> None:
        contract_number = amendment.contract.contract_number
        AuditLog.record('delete', user=user, obj=amendment, request=request)
        amendment.revert_and_delete()
        logger.info(f"Amendment reverted and deleted from contract {contract_number}")
