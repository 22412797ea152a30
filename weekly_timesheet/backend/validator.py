from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from . import aggregator
from .config import TimesheetPolicy
from .errors import ValidationRejected
from .leave import LEAVE_CATEGORY, LeaveKind, LeaveTracker
from .matrix import ZERO, TimeMatrix
from .utils import fmt_hours


class Validator:
    """Accepts or refuses a single cell edit before it reaches the matrix."""

    def __init__(
        self,
        matrix: TimeMatrix,
        leave: LeaveTracker,
        policy: TimesheetPolicy,
        categories: Iterable[str] | None = None,
    ) -> None:
        self.matrix = matrix
        self.leave = leave
        self.policy = policy
        # None means any category is accepted.
        self.categories = set(categories) if categories is not None else None

    def daily_cap(self, day: str) -> Decimal:
        if self.leave.is_blocked(day):
            return ZERO
        if self.leave.kind(day) is LeaveKind.HALF_DAY:
            return self.policy.half_day_cap
        return self.policy.daily_cap

    def remaining(self, day: str, exclude: str | None = None) -> Decimal:
        """Hours still available on `day` for `exclude` (or a new category)."""
        return max(ZERO, self.daily_cap(day) - self.matrix.day_hours(day, exclude=exclude))

    def check(self, category: str, day: str, hours: Decimal) -> None:
        if category == LEAVE_CATEGORY:
            raise ValidationRejected("Leave is recorded per day, not as project hours.")
        if self.categories is not None and category not in self.categories:
            raise ValidationRejected(f"Unknown project: {category}")
        if hours < 0:
            raise ValidationRejected("Hours cannot be negative.")
        if self.leave.is_blocked(day):
            raise ValidationRejected(
                f"{day} is frozen ({self.leave.kind(day).value}); remove the leave flag first.",
                remaining=ZERO,
            )

        others = self.matrix.day_hours(day, exclude=category)
        cap = self.daily_cap(day)
        if others + hours > cap:
            raise ValidationRejected(
                f"Daily limit exceeded: cannot exceed {fmt_hours(cap)} hours on {day}. "
                f"Current total: {others:.1f} hours. "
                f"Maximum you can add: {max(ZERO, cap - others):.1f} hours.",
                remaining=max(ZERO, cap - others),
            )

        if self.policy.enforce_weekly_cap_on_edit:
            current = aggregator.week_total(self.matrix, self.leave)
            without_cell = current - self.matrix.hours(category, day)
            if without_cell + hours > self.policy.weekly_cap:
                left = max(ZERO, self.policy.weekly_cap - without_cell)
                raise ValidationRejected(
                    f"Weekly limit exceeded: cannot exceed {fmt_hours(self.policy.weekly_cap)} "
                    f"hours per week. Maximum you can add: {left:.1f} hours.",
                    remaining=min(left, cap - others),
                )
