"""Calendar helpers for the displayed week."""

from __future__ import annotations

from datetime import date, timedelta

MONDAY_FIRST = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
SUNDAY_FIRST = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def day_codes(first_day: str = "mon") -> tuple[str, ...]:
    """Return the seven weekday codes in display order."""
    return SUNDAY_FIRST if first_day == "sun" else MONDAY_FIRST


def week_start(d: date, first_day: str = "mon") -> date:
    """Return the first day of the week containing `d`."""
    if first_day == "sun":
        # date.weekday(): Monday is 0, Sunday is 6.
        return d - timedelta(days=(d.weekday() + 1) % 7)
    return d - timedelta(days=d.weekday())


def week_dates(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(7)]


def day_date(start: date, day: str, first_day: str = "mon") -> date:
    """Calendar date of weekday code `day` in the week beginning at `start`."""
    return start + timedelta(days=day_codes(first_day).index(day))


def week_range_label(start: date) -> str:
    """Format a week as "dd/mm/yyyy - dd/mm/yyyy"."""
    end = start + timedelta(days=6)
    return f"{start:%d/%m/%Y} - {end:%d/%m/%Y}"


def iso_week_number(d: date) -> int:
    return d.isocalendar()[1]


def shift_week(d: date, direction: str) -> date:
    """Move one week forward ("next") or back ("prev")."""
    if direction not in ("prev", "next"):
        raise ValueError(f"direction must be 'prev' or 'next', got {direction!r}")
    return d + timedelta(days=7 if direction == "next" else -7)
