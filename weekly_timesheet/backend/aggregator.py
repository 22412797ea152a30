"""Derived totals for the weekly grid.

All functions are pure reads over a `TimeMatrix` and `LeaveTracker`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from .config import TimesheetPolicy
from .leave import LeaveKind, LeaveTracker
from .matrix import ZERO, TimeMatrix


@dataclass(frozen=True)
class Numeric:
    hours: Decimal


@dataclass(frozen=True)
class Frozen:
    """A day taken by full-day leave or a public holiday."""

    kind: LeaveKind

    @property
    def label(self) -> str:
        return "Holiday" if self.kind is LeaveKind.HOLIDAY else "Leave"


DayTotal = Union[Numeric, Frozen]


def day_total(matrix: TimeMatrix, leave: LeaveTracker, day: str) -> DayTotal:
    if leave.is_blocked(day):
        return Frozen(leave.kind(day))
    return Numeric(matrix.day_hours(day))


def leave_total(leave: LeaveTracker) -> Decimal:
    return sum((leave.leave_hours(d) for d in leave.days), ZERO)


def week_total(matrix: TimeMatrix, leave: LeaveTracker) -> Decimal:
    """Project hours plus the hours credited for leave days."""
    return matrix.total() + leave_total(leave)


def weekly_target(leave_count: int, policy: TimesheetPolicy) -> Decimal:
    excess = max(0, leave_count - policy.grace_leave_days)
    return max(ZERO, policy.weekly_cap - excess * policy.daily_cap)


def shortfall(matrix: TimeMatrix, leave: LeaveTracker, policy: TimesheetPolicy) -> Decimal:
    """Hours still missing before the week can be submitted (never negative)."""
    target = weekly_target(leave.leave_count(), policy)
    return max(ZERO, target - week_total(matrix, leave))


def project_totals(matrix: TimeMatrix) -> dict[str, Decimal]:
    return {c: matrix.category_total(c) for c in matrix.categories()}
