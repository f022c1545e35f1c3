"""
Domain rule tests - pure functions, no database.

Covers:
- AVR and payment status transitions
- Contract financial arithmetic and the payment limit check
- Amendment apply/revert
- Task assignment rights and KPI
- Shared value objects
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from domain.contracts.rules import (
    AmendmentEffect,
    AmendmentType,
    ApprovalStatus,
    ContractTerms,
    PaymentStatus,
    apply_amendment,
    auto_payment_amount,
    check_payment_limit,
    ensure_approval_transition,
    ensure_payment_transition,
    final_amount,
    paid_percent,
    remaining_days,
    revert_amendment,
)
from domain.shared.exceptions import StatusTransitionException
from domain.shared.value_objects import Language, Money, Percent, localized
from domain.tasks.rules import (
    RoleCode,
    TaskStatus,
    can_assign_to,
    clamp_progress,
    compute_kpi,
    is_overdue,
)


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================

class TestApprovalTransitions:

    @pytest.mark.parametrize('current, target', [
        (ApprovalStatus.DRAFT, ApprovalStatus.SUBMITTED_FOR_REVIEW),
        (ApprovalStatus.SUBMITTED_FOR_REVIEW, ApprovalStatus.MANAGER_APPROVED),
        (ApprovalStatus.MANAGER_APPROVED, ApprovalStatus.DIRECTOR_APPROVED),
        (ApprovalStatus.MANAGER_APPROVED, ApprovalStatus.REJECTED),
        (ApprovalStatus.REJECTED, ApprovalStatus.SUBMITTED_FOR_REVIEW),
    ])
    def test_allowed(self, current, target):
        ensure_approval_transition(current, target)

    @pytest.mark.parametrize('current, target', [
        (ApprovalStatus.DRAFT, ApprovalStatus.DIRECTOR_APPROVED),
        (ApprovalStatus.SUBMITTED_FOR_REVIEW, ApprovalStatus.DIRECTOR_APPROVED),
        (ApprovalStatus.DIRECTOR_APPROVED, ApprovalStatus.REJECTED),
        (ApprovalStatus.REJECTED, ApprovalStatus.MANAGER_APPROVED),
    ])
    def test_forbidden(self, current, target):
        with pytest.raises(StatusTransitionException) as exc_info:
            ensure_approval_transition(current, target)
        assert exc_info.value.details['current_status'] == current.name

    def test_director_approved_is_terminal(self):
        assert ApprovalStatus.DIRECTOR_APPROVED.is_terminal
        assert not ApprovalStatus.DIRECTOR_APPROVED.is_editable
        assert ApprovalStatus.REJECTED.is_editable


class TestPaymentTransitions:

    def test_paid_is_final(self):
        with pytest.raises(StatusTransitionException):
            ensure_payment_transition(PaymentStatus.PAID, PaymentStatus.REJECTED)

    def test_approved_can_be_rejected(self):
        ensure_payment_transition(PaymentStatus.APPROVED, PaymentStatus.REJECTED)


# ============================================================================
# FINANCIALS
# ============================================================================

class TestContractFinancials:

    def test_final_amount(self):
        assert final_amount(Decimal('100000'), Decimal('15000'), Decimal('5000')) == Decimal('110000')

    def test_paid_percent_zero_final(self):
        assert paid_percent(Decimal('10'), Decimal('0')) == Decimal('0')

    def test_paid_percent(self):
        assert paid_percent(Decimal('25000'), Decimal('100000')) == Decimal('25.00')

    def test_remaining_days_prefers_extension(self):
        today = date(2026, 1, 1)
        assert remaining_days(date(2026, 1, 11), None, today) == 10
        assert remaining_days(date(2026, 1, 11), date(2026, 2, 1), today) == 31

    def test_auto_payment_amount(self):
        assert auto_payment_amount(Decimal('100000'), Decimal('33.33')) == Decimal('33330.00')


class TestPaymentLimitCheck:

    def test_within_limit(self):
        check = check_payment_limit(Decimal('1000'), Decimal('100000'), Decimal('0'), Decimal('0'))
        assert not check.exceeded
        assert check.warnings == []
        assert check.available == Decimal('100000')

    def test_pipeline_reduces_available(self):
        check = check_payment_limit(Decimal('30000'), Decimal('100000'), Decimal('50000'), Decimal('25000'))
        assert check.available == Decimal('25000')
        assert check.exceeded

    def test_warning_above_ratio(self):
        check = check_payment_limit(Decimal('95'), Decimal('100'), Decimal('0'), Decimal('0'))
        assert not check.exceeded
        assert len(check.warnings) == 1


# ============================================================================
# AMENDMENTS
# ============================================================================

class TestAmendments:

    def _terms(self):
        return ContractTerms(
            additional_amount=Decimal('0'),
            contract_end_date=date(2026, 6, 30),
            extended_to_date=None,
            scope_of_work="Водопровод",
        )

    def test_amount_change_and_revert(self):
        terms = self._terms()
        effect = apply_amendment(terms, AmendmentEffect(AmendmentType.AMOUNT_CHANGE, Decimal('12000')))
        assert terms.additional_amount == Decimal('12000')
        revert_amendment(terms, effect)
        assert terms.additional_amount == Decimal('0')

    def test_deadline_extension_records_previous_date(self):
        terms = self._terms()
        effect = apply_amendment(
            terms, AmendmentEffect(AmendmentType.DEADLINE_EXTENSION, new_end_date=date(2026, 12, 31))
        )
        assert effect.previous_end_date == date(2026, 6, 30)
        assert terms.extended_to_date == date(2026, 12, 31)

        revert_amendment(terms, effect)
        assert terms.extended_to_date is None

    def test_second_extension_reverts_to_first(self):
        terms = self._terms()
        apply_amendment(terms, AmendmentEffect(AmendmentType.DEADLINE_EXTENSION, new_end_date=date(2026, 9, 30)))
        second = apply_amendment(
            terms, AmendmentEffect(AmendmentType.DEADLINE_EXTENSION, new_end_date=date(2026, 12, 31))
        )
        revert_amendment(terms, second)
        assert terms.extended_to_date == date(2026, 9, 30)

    def test_scope_change_updates_scope(self):
        terms = self._terms()
        apply_amendment(terms, AmendmentEffect(
            AmendmentType.SCOPE_CHANGE, Decimal('500'), new_scope_of_work="Водопровод и резервуар"
        ))
        assert terms.scope_of_work == "Водопровод и резервуар"
        assert terms.additional_amount == Decimal('500')

    def test_amount_change_ignores_new_end_date(self):
        terms = self._terms()
        apply_amendment(terms, AmendmentEffect(
            AmendmentType.AMOUNT_CHANGE, Decimal('100'), new_end_date=date(2027, 1, 1)
        ))
        assert terms.extended_to_date is None


# ============================================================================
# TASKS
# ============================================================================

class TestTaskRules:

    def test_admin_assigns_to_anyone(self):
        assert can_assign_to({RoleCode.PMU_ADMIN}, {RoleCode.WORLD_BANK}, False)

    def test_staff_assigns_to_contractor(self):
        assert can_assign_to({RoleCode.PMU_STAFF}, {RoleCode.CONTRACTOR}, False)

    def test_staff_cannot_assign_to_world_bank(self):
        assert not can_assign_to({RoleCode.PMU_STAFF}, {RoleCode.WORLD_BANK}, False)

    def test_world_bank_assigns_to_nobody(self):
        assert not can_assign_to({RoleCode.WORLD_BANK}, {RoleCode.WORLD_BANK}, True)

    def test_contractor_only_self(self):
        assert can_assign_to({RoleCode.CONTRACTOR}, {RoleCode.CONTRACTOR}, True)
        assert not can_assign_to({RoleCode.CONTRACTOR}, {RoleCode.PMU_STAFF}, False)

    @pytest.mark.parametrize('raw, expected', [(-5, 0), (42, 42), (150, 100), ('73', 73)])
    def test_clamp_progress(self, raw, expected):
        assert clamp_progress(raw) == expected

    def test_closed_task_is_never_overdue(self):
        now = datetime(2026, 3, 1, 12, 0)
        past = now - timedelta(days=1)
        assert is_overdue(TaskStatus.IN_PROGRESS, past, now)
        assert not is_overdue(TaskStatus.COMPLETED, past, now)
        assert not is_overdue(TaskStatus.NEW, None, now)

    def test_kpi(self):
        now = datetime(2026, 3, 1, 12, 0)
        due = now - timedelta(days=2)
        tasks = [
            SimpleNamespace(status=TaskStatus.COMPLETED, due_date=due, completed_at=due - timedelta(hours=1)),
            SimpleNamespace(status=TaskStatus.COMPLETED, due_date=due, completed_at=now),
            SimpleNamespace(status=TaskStatus.IN_PROGRESS, due_date=due, completed_at=None),
            SimpleNamespace(status=TaskStatus.NEW, due_date=now + timedelta(days=1), completed_at=None),
            SimpleNamespace(status=TaskStatus.CANCELLED, due_date=due, completed_at=None),
        ]
        kpi = compute_kpi(tasks, now, pending_extensions=1)

        assert kpi.total == 5
        assert kpi.completed == 2
        assert kpi.completed_on_time == 1
        assert kpi.completed_late == 1
        assert kpi.active == 2
        assert kpi.overdue == 1
        assert kpi.completion_rate == Decimal('40.00')
        assert kpi.on_time_rate == Decimal('50.00')
        assert kpi.as_dict()['pending_extensions'] == 1


# ============================================================================
# VALUE OBJECTS
# ============================================================================

class TestValueObjects:

    def test_localized_falls_back_to_russian(self):
        assert localized('tj', 'Село', '', 'Village') == 'Село'
        assert localized('en', 'Село', 'Деҳа', 'Village') == 'Village'
        assert localized('xx', 'Село', 'Деҳа', 'Village') == 'Село'

    def test_language_parse(self):
        assert Language.parse('TJ') is Language.TJ
        assert Language.parse(None) is Language.RU

    def test_money_to_usd(self):
        assert Money(Decimal('1093.50'), 'TJS').to_usd(Decimal('10.935')) == Money(Decimal('100.00'), 'USD')

    def test_money_usd_is_not_converted(self):
        usd = Money(Decimal('250.00'), 'USD')
        assert usd.to_usd(None) is usd

    def test_money_rejects_bad_currency_code(self):
        with pytest.raises(ValueError):
            Money(Decimal('1'), 'SOMONI')

    def test_money_rejects_zero_rate(self):
        with pytest.raises(ValueError):
            Money(Decimal('1'), 'TJS').to_usd(Decimal('0'))

    def test_percent_bounds(self):
        with pytest.raises(ValueError):
            Percent(Decimal('101'))
        assert Percent.clamp(250).value == Decimal('100')
