"""CSV export utilities for timesheet weeks."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence

from ..forms import WeekSnapshot
from ..utils import fmt_hours

WEEK_FIELDS = ("week_start", "category", "day", "hours", "is_leave", "status")


def render_csv(rows: Iterable[dict[str, object]], fieldnames: Sequence[str]) -> str:
    """Render an iterable of dict rows to a CSV string with given headers.

    - Unknown keys are ignored to keep output stable.
    - Values are stringified via the csv module.
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(fieldnames), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row or {})
    return buf.getvalue()


def week_rows(snapshot: WeekSnapshot) -> list[dict[str, object]]:
    return [
        {
            "week_start": snapshot.week_start.isoformat(),
            "category": e.category,
            "day": e.day,
            "hours": fmt_hours(e.hours),
            "is_leave": "yes" if e.is_leave else "no",
            "status": snapshot.status,
        }
        for e in snapshot.entries
    ]


def render_week_csv(snapshot: WeekSnapshot) -> str:
    """One CSV line per non-zero cell and leave day of the week."""
    return render_csv(week_rows(snapshot), WEEK_FIELDS)
