"""One employee's timesheet for one displayed week.

`TimesheetSession` wires the time matrix, leave tracker and validator
together and owns the Save/Submit gate. Every user action goes through it:

    edit -> Validator -> (accepted) TimeMatrix / LeaveTracker -> totals

Changing the displayed week produces a fresh session; nothing carries over
except what the store has saved.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from . import aggregator, weeks
from .aggregator import DayTotal
from .config import Project, TimesheetPolicy, User
from .errors import PersistenceFailure, SubmitBlocked, ValidationRejected
from .forms import DRAFT, SUBMITTED, SnapshotEntry, WeekSnapshot, validate
from .leave import LEAVE_CATEGORY, LeaveKind, LeaveTracker
from .matrix import TimeMatrix
from .store import TimesheetStore
from .utils import classify_week, fmt_hours
from .validator import Validator

logger = logging.getLogger(__name__)


class TimesheetSession:
    def __init__(
        self,
        user: User,
        week_of: date,
        *,
        projects: Sequence[Project] | None = None,
        policy: TimesheetPolicy | None = None,
        store: TimesheetStore | None = None,
        read_only: bool = False,
    ) -> None:
        self.user = user
        self.policy = policy or TimesheetPolicy()
        self.store = store
        self.read_only = read_only
        self.projects = list(projects) if projects is not None else None
        self.days = weeks.day_codes(self.policy.week_start_day)
        self.week_start = weeks.week_start(week_of, self.policy.week_start_day)
        self.matrix = TimeMatrix(self.days)
        self.leave = LeaveTracker(self.days, self.matrix, self.policy)
        self.validator = Validator(
            self.matrix,
            self.leave,
            self.policy,
            categories=[p.id for p in self.projects] if self.projects is not None else None,
        )
        self.comment = ""
        self.status: str | None = None

    @classmethod
    def open(
        cls,
        store: TimesheetStore,
        week_of: date,
        policy: TimesheetPolicy | None = None,
    ) -> TimesheetSession:
        """Start a session for the store's current user and load any saved week.

        Administrators get a view-only session.
        """
        user = store.current_user()
        projects = cls._call_store("fetch projects", store.fetch_assigned_projects, user.id)
        session = cls(
            user,
            week_of,
            projects=projects,
            policy=policy,
            store=store,
            read_only=user.is_admin,
        )
        session.load()
        return session

    # --- Editing ---

    def resolve_category(self, value: str) -> str:
        """Map a project id or name to the row key used in the matrix."""
        if self.projects is None:
            return value.strip()
        v = value.strip().lower()
        for p in self.projects:
            if p.id.lower() == v or p.name.strip().lower() == v:
                return p.id
        return value.strip()

    def set_hours(self, category: str, day: str, value: object) -> Decimal:
        """Validate and store the hours typed into one grid cell."""
        self._require_editable()
        self._require_day(day)
        key = self.resolve_category(category)
        return self.matrix.set_hours(key, day, value, check=self.validator.check)

    def set_leave(self, day: str, kind: LeaveKind | str) -> LeaveKind:
        self._require_editable()
        self._require_day(day)
        return self.leave.set_leave(day, kind)

    def toggle_leave(self, day: str) -> LeaveKind:
        self._require_editable()
        self._require_day(day)
        return self.leave.toggle_leave(day)

    def set_comment(self, text: str) -> str:
        self._require_editable()
        text = text or ""
        if len(text) > self.policy.comment_max_length:
            raise ValidationRejected(
                f"Comment must be at most {self.policy.comment_max_length} characters "
                f"(got {len(text)})."
            )
        self.comment = text
        return text

    # --- Totals ---

    def category_total(self, category: str) -> Decimal:
        return self.matrix.category_total(self.resolve_category(category))

    def day_total(self, day: str) -> DayTotal:
        return aggregator.day_total(self.matrix, self.leave, day)

    def week_total(self) -> Decimal:
        return aggregator.week_total(self.matrix, self.leave)

    def weekly_target(self) -> Decimal:
        return aggregator.weekly_target(self.leave.leave_count(), self.policy)

    def leave_count(self) -> int:
        return self.leave.leave_count()

    def is_blocked(self, day: str) -> bool:
        return self.leave.is_blocked(day)

    def shortfall(self) -> Decimal:
        return aggregator.shortfall(self.matrix, self.leave, self.policy)

    def can_submit(self) -> bool:
        return self.week_total() >= self.weekly_target()

    # --- Save / Submit ---

    def snapshot(self, status: str = DRAFT) -> WeekSnapshot:
        entries = [SnapshotEntry(c, d, h) for c, d, h in self.matrix.cells()]
        for day, kind in self.leave.flagged().items():
            entries.append(
                SnapshotEntry(
                    LEAVE_CATEGORY,
                    day,
                    self.leave.leave_hours(day),
                    is_leave=True,
                    leave_kind=kind.value,
                )
            )
        return WeekSnapshot(
            user_id=self.user.id,
            week_start=self.week_start,
            status=status,
            comment=self.comment,
            entries=entries,
        )

    def save(self) -> WeekSnapshot:
        """Hand a draft snapshot to the store. Always allowed."""
        self._require_editable()
        snapshot = self.snapshot(DRAFT)
        self._persist(snapshot)
        logger.info("Saved draft for %s, week of %s", self.user.id, self.week_start)
        return snapshot

    def submit(self) -> WeekSnapshot:
        """Submit the week for approval once the weekly target is met."""
        self._require_editable()
        if not self.can_submit():
            short = self.shortfall()
            logger.warning(
                "Submit blocked for %s, week of %s: %sh short",
                self.user.id,
                self.week_start,
                short,
            )
            raise SubmitBlocked(short, self.weekly_target())
        snapshot = self.snapshot(SUBMITTED)
        self._persist(snapshot)
        logger.info("Submitted week of %s for %s", self.week_start, self.user.id)
        return snapshot

    def load(self) -> bool:
        """Replace the in-memory week with the store's saved copy, if any."""
        if self.store is None:
            return False
        saved = self._call_store("fetch week", self.store.fetch_week, self.user.id, self.week_start)
        if saved is None:
            return False
        self.apply_snapshot(saved)
        return True

    def apply_snapshot(self, snapshot: WeekSnapshot) -> None:
        """Rebuild the grid from a saved week under the current policy.

        Saved cells the current rules refuse (a tighter cap, a project no
        longer assigned) are dropped with a warning.
        """
        self.matrix = TimeMatrix(self.days)
        self.leave = LeaveTracker(self.days, self.matrix, self.policy)
        self.validator = Validator(
            self.matrix, self.leave, self.policy, categories=self.validator.categories
        )
        for e in snapshot.leave_entries():
            if e.day in self.days:
                try:
                    self.leave.set_leave(e.day, e.leave_kind or LeaveKind.FULL_DAY)
                except ValidationRejected as exc:
                    logger.warning("Dropped saved leave on %s: %s", e.day, exc.reason)
        for e in snapshot.project_entries():
            if e.day not in self.days:
                continue
            try:
                self.matrix.set_hours(e.category, e.day, e.hours, check=self.validator.check)
            except ValidationRejected as exc:
                logger.warning(
                    "Dropped saved %sh of %s on %s: %s", e.hours, e.category, e.day, exc.reason
                )
        self.comment = snapshot.comment
        self.status = snapshot.status

    # --- Week navigation ---

    def navigate(self, direction: str) -> TimesheetSession:
        return self.select_week(weeks.shift_week(self.week_start, direction))

    def select_week(self, d: date) -> TimesheetSession:
        session = TimesheetSession(
            self.user,
            d,
            projects=self.projects,
            policy=self.policy,
            store=self.store,
            read_only=self.read_only,
        )
        session.load()
        return session

    def week_dates(self) -> list[date]:
        return weeks.week_dates(self.week_start)

    def week_range_label(self) -> str:
        return weeks.week_range_label(self.week_start)

    def week_number(self) -> int:
        return weeks.iso_week_number(self.week_start)

    def summary(self) -> dict[str, Any]:
        """Plain-data view of the grid, for the CLI and the session driver."""
        names = {p.id: p.name for p in self.projects or []}
        totals = aggregator.project_totals(self.matrix)
        rows = self.matrix.categories()
        for p in self.projects or []:
            if p.id not in rows:
                rows.append(p.id)
        days: dict[str, str] = {}
        for d in self.days:
            total = self.day_total(d)
            days[d] = (
                total.label if isinstance(total, aggregator.Frozen) else fmt_hours(total.hours)
            )
        return {
            "week": self.week_range_label(),
            "week_number": self.week_number(),
            "dates": {d: dt.isoformat() for d, dt in zip(self.days, self.week_dates())},
            "rows": [
                {
                    "project": c,
                    "name": names.get(c, c),
                    "hours": {d: fmt_hours(self.matrix.hours(c, d)) for d in self.days},
                    "total": fmt_hours(totals.get(c, 0)),
                }
                for c in rows
            ],
            "leave": {d: k.value for d, k in self.leave.flagged().items()},
            "day_totals": days,
            "week_total": fmt_hours(self.week_total()),
            "weekly_target": fmt_hours(self.weekly_target()),
            "leave_count": self.leave_count(),
            "can_submit": self.can_submit(),
            "note": classify_week(self.week_total(), self.weekly_target()),
            "comment": self.comment,
            "status": self.status,
        }

    # --- Internal helpers ---

    def _require_editable(self) -> None:
        if self.read_only:
            raise ValidationRejected("This timesheet is view only.")

    def _require_day(self, day: str) -> None:
        if day not in self.days:
            raise ValidationRejected(f"Unknown day: {day}")

    def _persist(self, snapshot: WeekSnapshot) -> None:
        if self.store is None:
            raise PersistenceFailure("No timesheet store is configured.")
        problems = validate(snapshot, self.policy.comment_max_length)
        if problems:
            raise ValidationRejected("; ".join(problems))
        self._call_store("save week", self.store.replace_week, snapshot)
        self.status = snapshot.status

    @staticmethod
    def _call_store(what: str, fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except PersistenceFailure:
            logger.warning("Store failed to %s", what)
            raise
        except Exception as exc:
            logger.warning("Store failed to %s: %s", what, exc)
            raise PersistenceFailure(f"Could not {what}.") from exc
