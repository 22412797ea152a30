"""Aggregate hour reports over saved weeks.

Employees see their own figures; administrators pass every user's weeks.
Only project hours count here; leave rows are reported separately.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from . import weeks
from .config import Project
from .forms import SUBMITTED, SnapshotEntry, WeekSnapshot

ZERO = Decimal("0")


@dataclass
class ProjectUsage:
    project_id: str
    name: str
    logged: Decimal
    allocated: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.logged


@dataclass
class HoursReport:
    total_hours: Decimal = ZERO
    this_week_hours: Decimal = ZERO
    this_month_hours: Decimal = ZERO
    average_daily: Decimal = ZERO
    leave_days: int = 0
    projects: list[ProjectUsage] = field(default_factory=list)


def entry_date(snapshot: WeekSnapshot, entry: SnapshotEntry) -> date:
    """Calendar date of a snapshot entry."""
    first_day = "sun" if snapshot.week_start.weekday() == 6 else "mon"
    return weeks.day_date(snapshot.week_start, entry.day, first_day)


def build_report(
    snapshots: Iterable[WeekSnapshot],
    *,
    today: date,
    projects: Sequence[Project] = (),
    submitted_only: bool = False,
) -> HoursReport:
    """Summarize hours as of `today`.

    This week starts on the Monday on or before `today`; the daily average
    divides this month's hours by the day of the month.
    """
    week_begin = weeks.week_start(today, "mon")
    month_begin = today.replace(day=1)
    logged: dict[str, Decimal] = {}
    report = HoursReport()

    for snap in snapshots:
        if submitted_only and snap.status != SUBMITTED:
            continue
        report.leave_days += len(snap.leave_entries())
        for e in snap.project_entries():
            when = entry_date(snap, e)
            report.total_hours += e.hours
            if week_begin <= when <= today:
                report.this_week_hours += e.hours
            if month_begin <= when <= today:
                report.this_month_hours += e.hours
            logged[e.category] = logged.get(e.category, ZERO) + e.hours

    report.average_daily = report.this_month_hours / today.day

    known = {p.id: p for p in projects}
    for project_id in list(known) + [c for c in logged if c not in known]:
        p = known.get(project_id)
        report.projects.append(
            ProjectUsage(
                project_id=project_id,
                name=p.name if p else project_id,
                logged=logged.get(project_id, ZERO),
                allocated=p.allocated_hours if p else ZERO,
            )
        )
    return report
