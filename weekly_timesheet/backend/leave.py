from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from decimal import Decimal

from .config import TimesheetPolicy
from .errors import ValidationRejected
from .matrix import ZERO, TimeMatrix

logger = logging.getLogger(__name__)

LEAVE_CATEGORY = "Leave/Holiday"


class LeaveKind(str, enum.Enum):
    NONE = "none"
    HALF_DAY = "half-day"
    FULL_DAY = "full-day"
    HOLIDAY = "holiday"

    @property
    def blocks_day(self) -> bool:
        return self in (LeaveKind.FULL_DAY, LeaveKind.HOLIDAY)


class LeaveTracker:
    """Per-day leave and public-holiday flags for the displayed week."""

    def __init__(self, days: Sequence[str], matrix: TimeMatrix, policy: TimesheetPolicy) -> None:
        self.days = tuple(days)
        self.matrix = matrix
        self.policy = policy
        self._kinds: dict[str, LeaveKind] = {}

    def kind(self, day: str) -> LeaveKind:
        return self._kinds.get(day, LeaveKind.NONE)

    def set_leave(self, day: str, kind: LeaveKind | str) -> LeaveKind:
        """Flag `day` with `kind`.

        Full-day leave and holidays wipe the day's project hours. Half-day
        leave keeps them, but is refused when they already exceed the
        half-day ceiling.
        """
        if day not in self.days:
            raise ValidationRejected(f"Unknown day: {day}")
        try:
            kind = LeaveKind(kind)
        except ValueError:
            raise ValidationRejected(f"Unknown leave type: {kind}") from None
        if kind is LeaveKind.HALF_DAY:
            booked = self.matrix.day_hours(day)
            if booked > self.policy.half_day_cap:
                raise ValidationRejected(
                    f"{day} already has {booked}h booked; half-day leave allows "
                    f"at most {self.policy.half_day_cap}h.",
                    remaining=ZERO,
                )
        if kind.blocks_day:
            cleared = self.matrix.clear_day(day)
            if cleared:
                logger.info("Cleared %s hours for %s on %s", ", ".join(cleared), day, kind.value)
        if kind is LeaveKind.NONE:
            self._kinds.pop(day, None)
        else:
            self._kinds[day] = kind
        return kind

    def toggle_leave(self, day: str) -> LeaveKind:
        """Checkbox behaviour: no leave <-> full-day leave."""
        target = LeaveKind.NONE if self.kind(day) is not LeaveKind.NONE else LeaveKind.FULL_DAY
        return self.set_leave(day, target)

    def is_blocked(self, day: str) -> bool:
        return self.kind(day).blocks_day

    def leave_count(self) -> int:
        return sum(1 for d in self.days if self.kind(d) is not LeaveKind.NONE)

    def leave_hours(self, day: str) -> Decimal:
        """Hours credited towards the weekly total for leave on `day`."""
        kind = self.kind(day)
        if kind.blocks_day:
            return self.policy.daily_cap
        if kind is LeaveKind.HALF_DAY:
            return self.policy.daily_cap - self.policy.half_day_cap
        return ZERO

    def flagged(self) -> dict[str, LeaveKind]:
        """Leave days in display order."""
        return {d: self._kinds[d] for d in self.days if d in self._kinds}
