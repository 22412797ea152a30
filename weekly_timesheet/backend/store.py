"""Storage collaborators for saved and submitted weeks.

The timesheet core only ever talks to a `TimesheetStore`. The hosted table
backend is out of scope here; `InMemoryStore` serves tests and the scripted
driver, `JsonFileStore` keeps weeks in one JSON document on disk for the CLI.

Projects come from the company directory plus any an administrator has
assigned through the store.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from .config import PROJECT_STATUSES, Directory, Project, User, project_from_dict, project_to_dict
from .errors import PersistenceFailure, ValidationRejected
from .forms import WeekSnapshot, from_dict

logger = logging.getLogger(__name__)


class TimesheetStore(Protocol):
    def current_user(self) -> User: ...

    def fetch_assigned_projects(self, user_id: str) -> list[Project]: ...

    def list_projects(self, status: str | None = None) -> list[Project]: ...

    def assign_project(
        self,
        name: str,
        assigned_to: str,
        *,
        allocated_hours: object = 0,
        description: str = "",
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Project: ...

    def fetch_week(self, user_id: str, week_start: date) -> WeekSnapshot | None: ...

    def replace_week(self, snapshot: WeekSnapshot) -> None: ...

    def list_weeks(self, user_id: str | None = None) -> list[WeekSnapshot]: ...


def _week_key(user_id: str, week_start: date) -> str:
    return f"{user_id}:{week_start.isoformat()}"


class InMemoryStore:
    """Dictionary-backed store; snapshots are copied in and out."""

    def __init__(self, user: User, directory: Directory | None = None) -> None:
        self.user = user
        self.directory = directory
        self._weeks: dict[str, dict[str, Any]] = {}
        self._projects: dict[str, dict[str, Any]] = {}

    def current_user(self) -> User:
        return self.user

    def list_projects(self, status: str | None = None) -> list[Project]:
        """Every known project, optionally only those with `status`."""
        if status is not None and status not in PROJECT_STATUSES:
            raise ValidationRejected(
                f"Unknown project status: {status}. Use one of {', '.join(PROJECT_STATUSES)}."
            )
        projects = list(self.directory.projects) if self.directory else []
        projects += [project_from_dict(d) for d in self._projects.values()]
        return [p for p in projects if status is None or p.status == status]

    def fetch_assigned_projects(self, user_id: str) -> list[Project]:
        return [
            p
            for p in self.list_projects("active")
            if p.assigned_to is None or p.assigned_to == user_id
        ]

    def assign_project(
        self,
        name: str,
        assigned_to: str,
        *,
        allocated_hours: object = 0,
        description: str = "",
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Project:
        """Create an active project for one employee. Administrators only."""
        if not self.user.is_admin:
            raise ValidationRejected("Only administrators can assign projects.")
        name = (name or "").strip()
        if not name:
            raise ValidationRejected("Project name is required.")
        employee = self.directory.find_user(assigned_to) if self.directory else None
        if employee is None:
            raise ValidationRejected(f"Unknown employee: {assigned_to}")
        try:
            hours = Decimal(str(allocated_hours or 0))
        except InvalidOperation:
            raise ValidationRejected(f"Invalid allocated hours: {allocated_hours}") from None
        if not hours.is_finite() or hours < 0:
            raise ValidationRejected("Allocated hours must be zero or more.")
        if start_date and end_date and end_date < start_date:
            raise ValidationRejected("End date must not be before the start date.")
        project = Project(
            id=uuid.uuid4().hex[:8],
            name=name,
            allocated_hours=hours,
            status="active",
            assigned_to=employee.id,
            description=(description or "").strip(),
            start_date=start_date,
            end_date=end_date,
            assigned_by=self.user.id,
        )
        self._projects[project.id] = project_to_dict(project)
        logger.info("Assigned project %s (%s) to %s", project.name, project.id, employee.id)
        return project

    def fetch_week(self, user_id: str, week_start: date) -> WeekSnapshot | None:
        data = self._weeks.get(_week_key(user_id, week_start))
        return from_dict(data) if data is not None else None

    def replace_week(self, snapshot: WeekSnapshot) -> None:
        self._weeks[_week_key(snapshot.user_id, snapshot.week_start)] = snapshot.to_dict()

    def list_weeks(self, user_id: str | None = None) -> list[WeekSnapshot]:
        weeks = [from_dict(d) for d in self._weeks.values()]
        return [w for w in weeks if user_id is None or w.user_id == user_id]


class JsonFileStore(InMemoryStore):
    """Store backed by a single JSON file of the form
    {"weeks": {key: snapshot}, "projects": {id: project}}.

    The file is re-read on every call so that two CLI sessions see each
    other's saves. I/O and decoding problems surface as `PersistenceFailure`.
    """

    def __init__(self, path: str, user: User, directory: Directory | None = None) -> None:
        super().__init__(user, directory)
        self.path = path

    def list_projects(self, status: str | None = None) -> list[Project]:
        self._read()
        try:
            return super().list_projects(status)
        except (KeyError, ValueError, ArithmeticError) as exc:
            raise PersistenceFailure(f"Corrupt project data in {self.path}: {exc}") from exc

    def assign_project(self, name: str, assigned_to: str, **details: Any) -> Project:
        self._read()
        project = super().assign_project(name, assigned_to, **details)
        self._write()
        return project

    def fetch_week(self, user_id: str, week_start: date) -> WeekSnapshot | None:
        self._read()
        try:
            return super().fetch_week(user_id, week_start)
        except (KeyError, ValueError, ArithmeticError) as exc:
            raise PersistenceFailure(f"Corrupt timesheet data in {self.path}: {exc}") from exc

    def replace_week(self, snapshot: WeekSnapshot) -> None:
        self._read()
        super().replace_week(snapshot)
        self._write()

    def list_weeks(self, user_id: str | None = None) -> list[WeekSnapshot]:
        self._read()
        try:
            return super().list_weeks(user_id)
        except (KeyError, ValueError, ArithmeticError) as exc:
            raise PersistenceFailure(f"Corrupt timesheet data in {self.path}: {exc}") from exc

    def _read(self) -> None:
        if not os.path.isfile(self.path):
            self._weeks, self._projects = {}, {}
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", self.path, exc)
            raise PersistenceFailure(f"Could not read timesheet data from {self.path}") from exc
        weeks = data.get("weeks") if isinstance(data, dict) else None
        projects = data.get("projects", {}) if isinstance(data, dict) else None
        if not isinstance(weeks, dict) or not isinstance(projects, dict):
            raise PersistenceFailure(f"Unexpected timesheet data layout in {self.path}")
        self._weeks, self._projects = weeks, projects

    def _write(self) -> None:
        folder = os.path.dirname(self.path)
        tmp_path = f"{self.path}.tmp"
        try:
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(
                    {"weeks": self._weeks, "projects": self._projects}, f, indent=2, sort_keys=True
                )
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Could not write %s: %s", self.path, exc)
            raise PersistenceFailure(f"Could not save timesheet data to {self.path}") from exc
