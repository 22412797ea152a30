from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

WEEK_START_DAYS = ("mon", "sun")
PROJECT_STATUSES = ("active", "completed", "on_hold")
_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


@dataclass(frozen=True)
class TimesheetPolicy:
    """Caps and conventions for one timesheet week.

    Defaults follow the Monday-first grid: 8h per day, 40h per week, two
    grace leave days, and a 4h ceiling on half-day leave days.
    """

    week_start_day: str = "mon"
    daily_cap: Decimal = Decimal("8")
    half_day_cap: Decimal = Decimal("4")
    weekly_cap: Decimal = Decimal("40")
    grace_leave_days: int = 2
    # When False the weekly cap only matters at submit time.
    enforce_weekly_cap_on_edit: bool = False
    comment_max_length: int = 255

    def __post_init__(self) -> None:
        if self.week_start_day not in WEEK_START_DAYS:
            raise ValueError(f"week_start_day must be one of {WEEK_START_DAYS}")
        if self.daily_cap <= 0 or self.weekly_cap <= 0:
            raise ValueError("daily_cap and weekly_cap must be positive")
        if not 0 <= self.half_day_cap <= self.daily_cap:
            raise ValueError("half_day_cap must be between 0 and daily_cap")
        if self.grace_leave_days < 0:
            raise ValueError("grace_leave_days must not be negative")


@dataclass
class Project:
    id: str
    name: str
    allocated_hours: Decimal = Decimal("0")
    status: str = "active"  # active, completed, on_hold
    assigned_to: str | None = None
    description: str = ""
    start_date: date | None = None
    end_date: date | None = None
    assigned_by: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class User:
    id: str
    full_name: str = ""
    role: str = "employee"  # employee, admin, super_admin

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "super_admin")


@dataclass
class Directory:
    """Users and projects known to the company, plus its timesheet policy."""

    name: str
    users: list[User] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    policy: TimesheetPolicy = field(default_factory=TimesheetPolicy)

    def find_user(self, value: str) -> User | None:
        v = (value or "").strip().lower()
        for u in self.users:
            if u.id.strip().lower() == v or u.full_name.strip().lower() == v:
                return u
        return None

    def find_project(self, value: str) -> Project | None:
        v = (value or "").strip().lower()
        for p in self.projects:
            if p.id.strip().lower() == v or p.name.strip().lower() == v:
                return p
        return None

    def assigned_projects(self, user_id: str | None) -> list[Project]:
        """Active projects assigned to `user_id` (unassigned ones are shared)."""
        return [
            p
            for p in self.projects
            if p.is_active and (p.assigned_to is None or p.assigned_to == user_id)
        ]


def _decimal(value: object, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def _date(value: object) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_flag(value: object) -> bool:
    """Read a yes/no setting written as a bool or as text ("true", "off", "1")."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"Not a yes/no value: {value!r}")


def policy_from_dict(data: dict[str, object], base: TimesheetPolicy | None = None) -> TimesheetPolicy:
    base = base or TimesheetPolicy()
    flag = data.get("enforce_weekly_cap_on_edit")
    return replace(
        base,
        week_start_day=str(data.get("week_start_day") or base.week_start_day).lower()[:3],
        daily_cap=_decimal(data.get("daily_cap"), base.daily_cap),
        half_day_cap=_decimal(data.get("half_day_cap"), base.half_day_cap),
        weekly_cap=_decimal(data.get("weekly_cap"), base.weekly_cap),
        grace_leave_days=int(data.get("grace_leave_days", base.grace_leave_days)),
        enforce_weekly_cap_on_edit=(
            base.enforce_weekly_cap_on_edit if flag is None else parse_flag(flag)
        ),
        comment_max_length=int(data.get("comment_max_length", base.comment_max_length)),
    )


def project_from_dict(x: dict[str, object]) -> Project:
    return Project(
        id=str(x.get("id", "")),
        name=str(x.get("name", "")),
        allocated_hours=_decimal(x.get("allocated_hours"), Decimal("0")),
        status=str(x.get("status") or "active"),
        assigned_to=(str(x["assigned_to"]) if x.get("assigned_to") is not None else None),
        description=str(x.get("description") or ""),
        start_date=_date(x.get("start_date")),
        end_date=_date(x.get("end_date")),
        assigned_by=(str(x["assigned_by"]) if x.get("assigned_by") is not None else None),
    )


def project_to_dict(p: Project) -> dict[str, object]:
    return {
        "id": p.id,
        "name": p.name,
        "allocated_hours": str(p.allocated_hours),
        "status": p.status,
        "assigned_to": p.assigned_to,
        "description": p.description,
        "start_date": p.start_date.isoformat() if p.start_date else None,
        "end_date": p.end_date.isoformat() if p.end_date else None,
        "assigned_by": p.assigned_by,
    }


def load_directory(path: str) -> Directory:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    name = str((data.get("company") or {}).get("name") or "")
    users: list[User] = []
    for x in data.get("users") or []:
        if isinstance(x, str):
            users.append(User(id=x, full_name=x))
        elif isinstance(x, dict):
            users.append(
                User(
                    id=str(x.get("id", "")),
                    full_name=str(x.get("full_name") or x.get("name") or ""),
                    role=str(x.get("role") or "employee"),
                )
            )
    projects = [project_from_dict(x) for x in (data.get("projects") or []) if isinstance(x, dict)]
    policy = policy_from_dict(data.get("policy") or {})
    return Directory(name=name, users=users, projects=projects, policy=policy)


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return parse_flag(raw)


def policy_from_env(base: TimesheetPolicy | None = None) -> TimesheetPolicy:
    """Apply TIMESHEET_* overrides from the environment on top of `base`.

    Raises ValueError when an override cannot be read or breaks the policy.
    """
    overrides: dict[str, object] = {}
    env_map = {
        "TIMESHEET_WEEK_START": "week_start_day",
        "TIMESHEET_DAILY_CAP": "daily_cap",
        "TIMESHEET_HALF_DAY_CAP": "half_day_cap",
        "TIMESHEET_WEEKLY_CAP": "weekly_cap",
        "TIMESHEET_GRACE_LEAVE_DAYS": "grace_leave_days",
    }
    for env_name, key in env_map.items():
        raw = os.environ.get(env_name)
        if raw:
            overrides[key] = raw.strip()
    flag = _env_flag("TIMESHEET_ENFORCE_WEEKLY_CAP")
    if flag is not None:
        overrides["enforce_weekly_cap_on_edit"] = flag
    return policy_from_dict(overrides, base)


def env_policy_or(base: TimesheetPolicy | None = None) -> TimesheetPolicy:
    """Like `policy_from_env`, but a bad override is logged and `base` kept."""
    base = base or TimesheetPolicy()
    try:
        return policy_from_env(base)
    except ValueError as exc:
        logger.warning("Ignoring TIMESHEET_* policy overrides: %s", exc)
        return base


def load_from_env(default_path: str | None = None) -> Directory | None:
    """Load the directory from TIMESHEET_CONFIG_PATH or a default path.

    Policy overrides from the environment are applied on top of the file.
    """
    path = os.environ.get("TIMESHEET_CONFIG_PATH") or default_path
    if not path or not os.path.isfile(path):
        return None
    try:
        directory = load_directory(path)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load timesheet config %s: %s", path, exc)
        return None
    directory.policy = env_policy_or(directory.policy)
    return directory
