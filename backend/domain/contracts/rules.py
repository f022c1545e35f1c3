"""
Contract Domain - Business Rules.

Status transitions for work-progress reports (AVR) and payments,
contract financial calculations and amendment effects.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import IntEnum
from typing import Dict, List, Optional, Set

from domain.shared.exceptions import StatusTransitionException
from domain.shared.value_objects import Percent


class ApprovalStatus(IntEnum):
    """AVR approval status."""

    DRAFT = 0
    SUBMITTED_FOR_REVIEW = 1
    MANAGER_APPROVED = 2
    DIRECTOR_APPROVED = 3
    REJECTED = 4

    @property
    def is_terminal(self) -> bool:
        return self == ApprovalStatus.DIRECTOR_APPROVED

    @property
    def is_editable(self) -> bool:
        return self in (ApprovalStatus.DRAFT, ApprovalStatus.REJECTED)


class PaymentStatus(IntEnum):
    """Payment status."""

    PENDING = 0
    APPROVED = 1
    PAID = 2
    REJECTED = 3


class AmendmentType(IntEnum):
    """Contract amendment type."""

    AMOUNT_CHANGE = 0
    DEADLINE_EXTENSION = 1
    SCOPE_CHANGE = 2


# Rejected reports go back through submission after being corrected.
APPROVAL_TRANSITIONS: Dict[ApprovalStatus, Set[ApprovalStatus]] = {
    ApprovalStatus.DRAFT: {ApprovalStatus.SUBMITTED_FOR_REVIEW, ApprovalStatus.REJECTED},
    ApprovalStatus.SUBMITTED_FOR_REVIEW: {ApprovalStatus.MANAGER_APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.MANAGER_APPROVED: {ApprovalStatus.DIRECTOR_APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.DIRECTOR_APPROVED: set(),
    ApprovalStatus.REJECTED: {ApprovalStatus.SUBMITTED_FOR_REVIEW},
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.APPROVED, PaymentStatus.REJECTED},
    PaymentStatus.APPROVED: {PaymentStatus.PAID, PaymentStatus.REJECTED},
    PaymentStatus.PAID: set(),
    PaymentStatus.REJECTED: set(),
}


def ensure_approval_transition(current: int, target: int) -> None:
    """Raise StatusTransitionException unless current → target is allowed."""
    current_status = ApprovalStatus(current)
    target_status = ApprovalStatus(target)
    allowed = APPROVAL_TRANSITIONS[current_status]
    if target_status not in allowed:
        raise StatusTransitionException(
            entity_type="АВР",
            current_status=current_status.name,
            target_status=target_status.name,
            allowed_transitions=sorted(s.name for s in allowed),
        )


def ensure_payment_transition(current: int, target: int) -> None:
    current_status = PaymentStatus(current)
    target_status = PaymentStatus(target)
    allowed = PAYMENT_TRANSITIONS[current_status]
    if target_status not in allowed:
        raise StatusTransitionException(
            entity_type="Платёж",
            current_status=current_status.name,
            target_status=target_status.name,
            allowed_transitions=sorted(s.name for s in allowed),
        )


# =============================================================================
# FINANCIALS
# =============================================================================

def final_amount(contract_amount: Decimal, additional_amount: Decimal, saved_amount: Decimal) -> Decimal:
    return (contract_amount or Decimal(0)) + (additional_amount or Decimal(0)) - (saved_amount or Decimal(0))


def paid_percent(paid: Decimal, final: Decimal) -> Decimal:
    return Percent.ratio(paid, final)


def remaining_days(contract_end_date: date, extended_to_date: Optional[date], today: date) -> int:
    return ((extended_to_date or contract_end_date) - today).days


@dataclass
class PaymentLimitCheck:
    """Outcome of validating a new payment against the contract limit."""

    available: Decimal
    exceeded: bool = False
    warnings: List[str] = field(default_factory=list)


def check_payment_limit(
    amount: Decimal,
    final: Decimal,
    paid: Decimal,
    in_pipeline: Decimal,
    warning_ratio: Decimal = Decimal("0.9"),
) -> PaymentLimitCheck:
    """
    Validate a payment amount.

    available = final − paid − (pending + approved); an amount above it is
    an error, above warning_ratio of it a warning.
    """
    available = final - paid - in_pipeline
    result = PaymentLimitCheck(available=available)
    if amount > available:
        result.exceeded = True
    elif available > 0 and amount > available * warning_ratio:
        result.warnings.append(
            f"Сумма платежа превышает {int(warning_ratio * 100)}% доступного остатка ({available:.2f})"
        )
    return result


def auto_payment_amount(contract_amount: Decimal, completed_percent: Decimal) -> Decimal:
    """Interim payment generated on director approval of an AVR."""
    return (Decimal(contract_amount) * Decimal(completed_percent) / 100).quantize(Decimal("0.01"))


# =============================================================================
# AMENDMENTS
# =============================================================================

@dataclass
class ContractTerms:
    """Mutable snapshot of the contract fields amendments change."""

    additional_amount: Decimal
    contract_end_date: date
    extended_to_date: Optional[date]
    scope_of_work: str


@dataclass
class AmendmentEffect:
    amendment_type: AmendmentType
    amount_change_usd: Decimal = Decimal(0)
    new_end_date: Optional[date] = None
    new_scope_of_work: str = ""
    previous_end_date: Optional[date] = None


def apply_amendment(terms: ContractTerms, effect: AmendmentEffect) -> AmendmentEffect:
    """Apply an amendment to contract terms; fills effect.previous_end_date."""
    changes_amount = effect.amendment_type in (AmendmentType.AMOUNT_CHANGE, AmendmentType.SCOPE_CHANGE)
    changes_deadline = effect.amendment_type in (AmendmentType.DEADLINE_EXTENSION, AmendmentType.SCOPE_CHANGE)

    if changes_amount and effect.amount_change_usd:
        terms.additional_amount += effect.amount_change_usd

    if changes_deadline and effect.new_end_date:
        effect.previous_end_date = terms.extended_to_date or terms.contract_end_date
        terms.extended_to_date = effect.new_end_date

    if effect.amendment_type == AmendmentType.SCOPE_CHANGE and effect.new_scope_of_work.strip():
        terms.scope_of_work = effect.new_scope_of_work

    return effect


def revert_amendment(terms: ContractTerms, effect: AmendmentEffect) -> None:
    """Undo the financial and deadline part of an amendment."""
    changes_amount = effect.amendment_type in (AmendmentType.AMOUNT_CHANGE, AmendmentType.SCOPE_CHANGE)
    changes_deadline = effect.amendment_type in (AmendmentType.DEADLINE_EXTENSION, AmendmentType.SCOPE_CHANGE)

    if changes_amount and effect.amount_change_usd:
        terms.additional_amount -= effect.amount_change_usd

    if changes_deadline and effect.previous_end_date:
        if effect.previous_end_date == terms.contract_end_date:
            terms.extended_to_date = None
        else:
            terms.extended_to_date = effect.previous_end_date
