"""
Payment Services.

Contract limit validation, the payment approval cycle and the payment report.
"""

import logging
from collections import defaultdict
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import List, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from domain.contracts.rules import check_payment_limit
from domain.shared.exceptions import PaymentLimitExceededException, ValidationException
from domain.shared.value_objects import Money, Percent
from infrastructure.persistence.models import (
    ApprovalStatusChoices,
    Contract,
    CurrencyChoices,
    NotificationChannelChoices,
    NotificationTypeChoices,
    Payment,
    PaymentStatusChoices,
    PaymentTypeChoices,
    TaskPriorityChoices,
    WorkProgress,
)
from .notifications import NotificationService
from .tasks import TaskService

logger = logging.getLogger(__name__)


class PaymentService:

    @staticmethod
    def available_limit(contract) -> Decimal:
        """final - paid - (pending + approved)."""
        return contract.available_limit

    @staticmethod
    def approved_avrs(contract):
        """Director-approved AVRs of the contract not yet linked to a payment."""
        linked = Payment.objects.filter(
            contract=contract, work_progress__isnull=False
        ).values_list('work_progress_id', flat=True)
        return (
            WorkProgress.objects
            .filter(contract=contract, approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED)
            .exclude(pk__in=linked)
            .order_by('-report_date')
        )

    @classmethod
    def create_payment(cls, contract, user, **fields) -> Tuple[Payment, List[str]]:
        """
        Validate and create a payment. Returns (payment, warnings).

        Raises PaymentLimitExceededException when the USD amount exceeds
        the available contract limit.
        """
        warnings = []

        if contract.currency == CurrencyChoices.TJS and fields.get('amount_tjs') and fields.get('exchange_rate'):
            rate = Decimal(fields['exchange_rate'])
            if rate <= 0:
                raise ValidationException("Курс должен быть больше нуля", field='exchange_rate', value=rate)
            fields['amount'] = Money(Decimal(fields['amount_tjs']), CurrencyChoices.TJS).to_usd(rate).amount

        amount = fields.get('amount')
        if amount is None or Decimal(amount) <= 0:
            raise ValidationException("Сумма платежа должна быть больше нуля", field='amount', value=amount)
        amount = Decimal(amount)

        with transaction.atomic():
            contract = Contract.objects.select_for_update().get(pk=contract.pk)
            check = check_payment_limit(
                amount,
                contract.final_amount,
                contract.paid_amount,
                contract.pipeline_amount,
                Decimal(str(settings.PMMIS['PAYMENT_LIMIT_WARNING_RATIO'])),
            )
            if check.exceeded:
                raise PaymentLimitExceededException(contract.contract_number, amount, check.available)
            warnings.extend(check.warnings)

            payment_type = fields.get('type', PaymentTypeChoices.INTERIM)
            if payment_type != PaymentTypeChoices.ADVANCE and not contract.work_progresses.filter(
                approval_status=ApprovalStatusChoices.DIRECTOR_APPROVED
            ).exists():
                warnings.append(
                    "Для контракта нет утверждённого АВР. Рекомендуется утвердить АВР "
                    "перед созданием промежуточных и окончательных платежей."
                )

            payment = Payment.objects.create(contract=contract, created_by=user, **fields)

            due = timezone.make_aware(datetime.combine(payment.payment_date - timedelta(days=2), time(18, 0)))
            TaskService.create(
                user,
                title=f"Подготовить документы к оплате #{payment.pk}",
                description=(
                    f"Контракт: {contract.contract_number}\n"
                    f"Подрядчик: {contract.contractor.name}\n"
                    f"Сумма: {payment.amount:,.2f} USD\n"
                    f"Тип: {payment.get_type_display()}\n"
                    f"Дата платежа: {payment.payment_date:%d.%m.%Y}"
                ),
                priority=(
                    TaskPriorityChoices.HIGH if payment.type == PaymentTypeChoices.FINAL
                    else TaskPriorityChoices.NORMAL
                ),
                due_date=due,
                assignee=user,
                contract=contract,
                payment=payment,
                project_id=contract.project_id,
            )

        for warning in warnings:
            logger.warning(f"Payment {payment.pk} ({contract.contract_number}): {warning}")
        logger.info(f"Payment {payment.pk} for {payment.amount} USD created on {contract.contract_number}")
        return payment, warnings

    @staticmethod
    def approve(payment, user) -> Payment:
        payment.approve(user)
        logger.info(f"Payment {payment.pk} approved by {user.username}")
        return payment

    @staticmethod
    def reject(payment, user, reason) -> Payment:
        payment.reject(user, reason)
        logger.info(f"Payment {payment.pk} rejected by {user.username}")
        return payment

    @classmethod
    def mark_paid(cls, payment, user) -> Payment:
        with transaction.atomic():
            payment.mark_as_paid(user)
            TaskService.complete_related_tasks(user, payment=payment)

        contract = payment.contract
        recipients = contract.contractor.users.filter(is_active=True)
        NotificationService.send_to_users(
            recipients,
            "Платёж произведён",
            f"По контракту {contract.contract_number} оплачено {payment.amount:,.2f} USD "
            f"({payment.get_type_display().lower()})",
            NotificationTypeChoices.PAYMENT_APPROVED,
            channel=NotificationChannelChoices.ALL,
            reference_type='Payment',
            reference_id=payment.pk,
            action_url=f"/payments/{payment.pk}",
        )
        logger.info(f"Payment {payment.pk} marked as paid by {user.username}")
        return payment

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    @staticmethod
    def payment_report(contracts) -> dict:
        """
        Per-contract planned vs. paid figures with totals by status and type.

        `contracts` is an already scoped Contract queryset.
        """
        contract_ids = list(contracts.values_list('pk', flat=True))
        contracts = Contract.objects.filter(pk__in=contract_ids).select_related('contractor', 'project').annotate(
            paid_usd=Sum('payments__amount', filter=Q(payments__status=PaymentStatusChoices.PAID)),
            paid_tjs=Sum('payments__amount_tjs', filter=Q(payments__status=PaymentStatusChoices.PAID)),
            payments_count=Count('payments'),
        )

        by_status = defaultdict(lambda: {'count': 0, 'amount': Decimal('0')})
        by_type = defaultdict(lambda: {'count': 0, 'amount': Decimal('0')})
        payments = Payment.objects.filter(contract_id__in=contract_ids)
        for row in payments.values('status').annotate(count=Count('id'), amount=Sum('amount')):
            label = PaymentStatusChoices(row['status']).label
            by_status[label] = {'count': row['count'], 'amount': row['amount'] or Decimal('0')}
        for row in payments.values('type').annotate(count=Count('id'), amount=Sum('amount')):
            label = PaymentTypeChoices(row['type']).label
            by_type[label] = {'count': row['count'], 'amount': row['amount'] or Decimal('0')}

        rows = []
        total_planned = Decimal('0')
        total_paid = Decimal('0')
        total_payments = 0
        for contract in contracts:
            planned = contract.final_amount
            paid = contract.paid_usd or Decimal('0')
            total_planned += planned
            total_paid += paid
            total_payments += contract.payments_count
            rows.append({
                'contract_id': contract.pk,
                'contract_number': contract.contract_number,
                'contractor_name': contract.contractor.name,
                'project_name': contract.project.name_ru,
                'currency': contract.currency,
                'signing_date': contract.signing_date,
                'planned_usd': planned,
                'planned_tjs': contract.amount_tjs,
                'exchange_rate': contract.exchange_rate,
                'paid_usd': paid,
                'paid_tjs': contract.paid_tjs if contract.currency == CurrencyChoices.TJS else None,
                'difference': planned - paid,
                'paid_percent': Percent.ratio(paid, planned),
                'payments_count': contract.payments_count,
            })

        return {
            'contracts': rows,
            'total_contracts': len(rows),
            'total_payments': total_payments,
            'total_planned_usd': total_planned,
            'total_paid_usd': total_paid,
            'total_difference': total_planned - total_paid,
            'overall_paid_percent': Percent.ratio(total_paid, total_planned),
            'by_status': dict(by_status),
            'by_type': dict(by_type),
        }
