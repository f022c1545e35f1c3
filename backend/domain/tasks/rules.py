"""
Task Domain - Business Rules.

Assignment rights, progress bounds and KPI arithmetic for project tasks.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Iterable, Optional, Set

from domain.shared.value_objects import Percent


class TaskStatus(IntEnum):
    NEW = 0
    IN_PROGRESS = 1
    ON_HOLD = 2
    UNDER_REVIEW = 3
    COMPLETED = 4
    CANCELLED = 5

    @property
    def is_closed(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class RoleCode:
    """System role codes."""

    PMU_ADMIN = 'PMU_ADMIN'
    PMU_STAFF = 'PMU_STAFF'
    ACCOUNTANT = 'ACCOUNTANT'
    WORLD_BANK = 'WORLD_BANK'
    CONTRACTOR = 'CONTRACTOR'

    ALL = [PMU_ADMIN, PMU_STAFF, ACCOUNTANT, WORLD_BANK, CONTRACTOR]


STAFF_ASSIGNABLE_ROLES = {RoleCode.PMU_STAFF, RoleCode.ACCOUNTANT, RoleCode.CONTRACTOR}


def can_assign_to(
    assigner_roles: Set[str],
    assignee_roles: Set[str],
    is_self: bool,
) -> bool:
    """
    Whether a user with assigner_roles may assign a task to a user with
    assignee_roles.

    PMU_ADMIN assigns to anyone; PMU_STAFF and ACCOUNTANT to staff,
    accountants and contractors; WORLD_BANK to nobody; everyone else
    only to themselves.
    """
    if RoleCode.PMU_ADMIN in assigner_roles:
        return True
    if RoleCode.PMU_STAFF in assigner_roles or RoleCode.ACCOUNTANT in assigner_roles:
        return bool(assignee_roles & STAFF_ASSIGNABLE_ROLES)
    if RoleCode.WORLD_BANK in assigner_roles:
        return False
    return is_self


def clamp_progress(value) -> int:
    return int(Percent.clamp(value).value)


def is_overdue(status: int, due_date: Optional[datetime], now: datetime) -> bool:
    if due_date is None:
        return False
    return not TaskStatus(status).is_closed and now > due_date


@dataclass
class TaskKpi:
    total: int = 0
    completed: int = 0
    completed_on_time: int = 0
    completed_late: int = 0
    active: int = 0
    overdue: int = 0
    pending_extensions: int = 0

    @property
    def completion_rate(self) -> Decimal:
        return Percent.ratio(Decimal(self.completed), Decimal(self.total))

    @property
    def on_time_rate(self) -> Decimal:
        return Percent.ratio(Decimal(self.completed_on_time), Decimal(self.completed))

    def as_dict(self) -> dict:
        data = asdict(self)
        data['completion_rate'] = self.completion_rate
        data['on_time_rate'] = self.on_time_rate
        return data


def compute_kpi(tasks: Iterable, now: datetime, pending_extensions: int = 0) -> TaskKpi:
    """
    Aggregate KPI over task-like objects exposing status, due_date and
    completed_at.
    """
    kpi = TaskKpi(pending_extensions=pending_extensions)
    for task in tasks:
        kpi.total += 1
        status = TaskStatus(task.status)
        if status == TaskStatus.COMPLETED:
            kpi.completed += 1
            if task.due_date is None or (task.completed_at and task.completed_at <= task.due_date):
                kpi.completed_on_time += 1
            else:
                kpi.completed_late += 1
        elif status != TaskStatus.CANCELLED:
            kpi.active += 1
            if is_overdue(status, task.due_date, now):
                kpi.overdue += 1
    return kpi
