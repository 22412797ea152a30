from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from decimal import Decimal

from .parsers import parse_hours

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Raises ValidationRejected to veto an edit.
EditCheck = Callable[[str, str, Decimal], None]


class TimeMatrix:
    """Hours per (category, weekday) for the displayed week.

    Absent cells read as zero. Writing zero removes the cell so that
    `cells()` only ever yields non-zero entries.
    """

    def __init__(self, days: Sequence[str]) -> None:
        self.days = tuple(days)
        self._hours: dict[str, dict[str, Decimal]] = {}

    def hours(self, category: str, day: str) -> Decimal:
        return self._hours.get(category, {}).get(day, ZERO)

    def set_hours(
        self,
        category: str,
        day: str,
        value: object,
        *,
        check: EditCheck | None = None,
    ) -> Decimal:
        """Parse `value` and store it after `check` accepts it.

        Returns the committed hours. If `check` raises, nothing changes.
        """
        self._require_day(day)
        hours = parse_hours(value)
        if check is not None:
            check(category, day, hours)
        row = self._hours.setdefault(category, {})
        if hours == ZERO:
            row.pop(day, None)
            if not row:
                del self._hours[category]
        else:
            row[day] = hours
        logger.debug("Set %s/%s to %s", category, day, hours)
        return hours

    def category_total(self, category: str) -> Decimal:
        return sum((self.hours(category, d) for d in self.days), ZERO)

    def day_hours(self, day: str, exclude: str | None = None) -> Decimal:
        """Sum of all categories on `day`, optionally leaving one out."""
        return sum(
            (row.get(day, ZERO) for cat, row in self._hours.items() if cat != exclude),
            ZERO,
        )

    def total(self) -> Decimal:
        return sum((self.category_total(c) for c in self._hours), ZERO)

    def clear_day(self, day: str) -> list[str]:
        """Drop every entry on `day`; returns the categories that were cleared."""
        cleared = []
        for category in list(self._hours):
            row = self._hours[category]
            if row.pop(day, None) is not None:
                cleared.append(category)
            if not row:
                del self._hours[category]
        return cleared

    def categories(self) -> list[str]:
        return list(self._hours)

    def cells(self) -> Iterator[tuple[str, str, Decimal]]:
        """Yield (category, day, hours) for every non-zero cell in day order."""
        for category, row in self._hours.items():
            for day in self.days:
                if day in row:
                    yield category, day, row[day]

    def _require_day(self, day: str) -> None:
        if day not in self.days:
            raise KeyError(f"Unknown weekday code: {day!r}")
