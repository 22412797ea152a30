from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from dotenv import load_dotenv
from typing_extensions import NotRequired, TypedDict

from agents import Agent, ModelSettings, RunContextWrapper, function_tool, run_demo_loop

from .backend.config import Project, TimesheetPolicy, User, env_policy_or, load_from_env
from .backend.errors import PersistenceFailure, SubmitBlocked, ValidationRejected
from .backend.exporters.csv import render_week_csv
from .backend.parsers import parse_day, resolve_date_phrase
from .backend.reports import build_report
from .backend.session import TimesheetSession
from .backend.store import JsonFileStore
from .backend.utils import fmt_hours

logger = logging.getLogger(__name__)

load_dotenv()


@dataclass
class TimesheetContext:
    """Per-run context holding the week currently on screen."""

    session: TimesheetSession


def _rejected(exc: ValidationRejected) -> dict[str, Any]:
    out: dict[str, Any] = {"status": "error", "problems": [exc.reason]}
    if exc.remaining is not None:
        out["remaining"] = fmt_hours(exc.remaining)
    return out


def _day_or_error(day: str) -> tuple[str | None, dict[str, Any] | None]:
    code = parse_day(day)
    if not code:
        return None, {"status": "error", "problems": [f"Unknown day: {day}"]}
    return code, None


def _project_row(p: Project) -> dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "allocated_hours": fmt_hours(p.allocated_hours),
        "status": p.status,
        "assigned_to": p.assigned_to,
        "start_date": p.start_date.isoformat() if p.start_date else None,
        "end_date": p.end_date.isoformat() if p.end_date else None,
    }


def list_projects_for(session: TimesheetSession, status: str | None = None) -> dict[str, Any]:
    """Projects visible to the session's user: all for admins, their own otherwise."""
    status = (status or "").strip().lower() or None
    if session.store is None:
        projects = [p for p in session.projects or [] if status is None or p.status == status]
    else:
        try:
            projects = session.store.list_projects(status)
        except ValidationRejected as exc:
            return _rejected(exc)
        except PersistenceFailure as exc:
            return {"status": "error", "problems": [str(exc)]}
        user = session.user
        if not user.is_admin:
            projects = [p for p in projects if p.assigned_to in (None, user.id)]
    return {
        "status": "ok" if projects else "empty",
        "projects": [_project_row(p) for p in projects],
    }


def assign_project_for(
    session: TimesheetSession,
    name: str,
    employee: str,
    allocated_hours: str = "0",
    description: str = "",
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict[str, Any]:
    if session.store is None:
        return {"status": "error", "problems": ["No timesheet store is configured."]}
    try:
        start = date.fromisoformat(start_date) if start_date else None
        end = date.fromisoformat(end_date) if end_date else None
    except ValueError as exc:
        return {"status": "error", "problems": [f"Dates must be YYYY-MM-DD: {exc}"]}
    try:
        project = session.store.assign_project(
            name,
            employee,
            allocated_hours=allocated_hours,
            description=description,
            start_date=start,
            end_date=end,
        )
    except ValidationRejected as exc:
        return _rejected(exc)
    except PersistenceFailure as exc:
        return {"status": "error", "problems": [f"Project was not saved: {exc}"]}
    return {"status": "ok", "message": "Project assigned", "project": _project_row(project)}


@function_tool
def list_projects(
    ctx: RunContextWrapper[TimesheetContext], status: str | None = None
) -> dict[str, Any]:
    """List projects. Administrators see every project; employees see their own.

    Args:
        status: Optional filter: "active", "completed" or "on_hold".
    """
    return list_projects_for(ctx.context.session, status)


@function_tool
def assign_project(
    ctx: RunContextWrapper[TimesheetContext],
    name: str,
    employee: str,
    allocated_hours: str = "0",
    description: str = "",
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict[str, Any]:
    """Create an active project and assign it to an employee. Administrators only.

    Args:
        name: Project name.
        employee: Employee id or full name; must exist in the company directory.
        allocated_hours: Hours budgeted for the project.
        description: Short description.
        start_date: YYYY-MM-DD, optional.
        end_date: YYYY-MM-DD, optional.
    """
    return assign_project_for(
        ctx.context.session, name, employee, allocated_hours, description, start_date, end_date
    )


@function_tool
def show_week(ctx: RunContextWrapper[TimesheetContext]) -> dict[str, Any]:
    """Return the grid for the displayed week: hours per project and day, leave days, totals and target."""
    return {"status": "ok", **ctx.context.session.summary()}


@function_tool
def set_hours(
    ctx: RunContextWrapper[TimesheetContext], project: str, day: str, hours: str
) -> dict[str, Any]:
    """Enter hours for one project on one day of the displayed week.

    Args:
        project: Project id or name exactly as listed by list_projects.
        day: Weekday, e.g. "Mon" or "Tuesday".
        hours: Hours as typed by the user, e.g. "7.5". Empty or "0" clears the cell.
    """
    code, err = _day_or_error(day)
    if err:
        return err
    session = ctx.context.session
    try:
        committed = session.set_hours(project, code, hours)
    except ValidationRejected as exc:
        return _rejected(exc)
    key = session.resolve_category(project)
    return {
        "status": "ok",
        "project": key,
        "day": code,
        "hours": fmt_hours(committed),
        "remaining_today": fmt_hours(session.validator.remaining(code)),
        "week_total": fmt_hours(session.week_total()),
    }


class CellUpdate(TypedDict):
    """One grid cell to fill.

    Fields:
        project: Project id or name.
        day: Weekday name or abbreviation.
        hours: Hours as text; optional, defaults to a full day.
    """

    project: str
    day: str
    hours: NotRequired[str]


@function_tool
def bulk_set_hours(
    ctx: RunContextWrapper[TimesheetContext], updates: list[CellUpdate]
) -> dict[str, Any]:
    """Fill several cells at once, e.g. the same project Monday to Friday.

    Each update is validated on its own; refused cells are reported in `issues`
    and do not stop the rest.
    """
    session = ctx.context.session
    applied = 0
    issues: list[dict[str, Any]] = []
    for u in updates or []:
        code = parse_day(u.get("day", ""))
        if not code:
            issues.append({"update": dict(u), "problems": [f"Unknown day: {u.get('day')}"]})
            continue
        hours = u.get("hours") or fmt_hours(session.policy.daily_cap)
        try:
            session.set_hours(u["project"], code, hours)
        except ValidationRejected as exc:
            issues.append({"update": dict(u), **_rejected(exc)})
            continue
        applied += 1
    status = "ok" if applied and not issues else ("partial" if applied else "error")
    return {
        "status": status,
        "applied": applied,
        "issues": issues,
        "week_total": fmt_hours(session.week_total()),
    }


@function_tool
def set_leave(ctx: RunContextWrapper[TimesheetContext], day: str, kind: str = "full-day") -> dict[str, Any]:
    """Flag a day as leave or public holiday.

    Args:
        day: Weekday name or abbreviation.
        kind: One of "none", "half-day", "full-day", "holiday". Full-day leave and
            holidays clear the day's project hours and freeze it.
    """
    code, err = _day_or_error(day)
    if err:
        return err
    try:
        applied = ctx.context.session.set_leave(code, kind)
    except ValidationRejected as exc:
        return _rejected(exc)
    session = ctx.context.session
    return {
        "status": "ok",
        "day": code,
        "kind": applied.value,
        "leave_count": session.leave_count(),
        "weekly_target": fmt_hours(session.weekly_target()),
    }


@function_tool
def set_comment(ctx: RunContextWrapper[TimesheetContext], comment: str) -> dict[str, Any]:
    """Set the free-text comment for the week (at most 255 characters)."""
    try:
        ctx.context.session.set_comment(comment)
    except ValidationRejected as exc:
        return _rejected(exc)
    return {"status": "ok", "length": len(comment)}


@function_tool
def resolve_date(phrase: str, base_date: str | None = None) -> str:
    """Resolve a relative or natural-language date to ISO YYYY-MM-DD.

    Args:
        phrase: A date like "today", "last friday", or "September 9 2025".
        base_date: Optional YYYY-MM-DD used as an anchor for relative phrases.
    Returns:
        ISO date string (YYYY-MM-DD), or empty string if not understood.
    """
    base = base_date or os.environ.get("TIMESHEET_BASE_DATE")
    resolved = resolve_date_phrase(phrase, base_date=base)
    return resolved.isoformat() if resolved else ""


@function_tool
def change_week(
    ctx: RunContextWrapper[TimesheetContext],
    direction: str | None = None,
    on_date: str | None = None,
) -> dict[str, Any]:
    """Switch the displayed week. Unsaved changes to the current week are discarded.

    Args:
        direction: "prev" or "next" to move one week.
        on_date: Any YYYY-MM-DD inside the week to show instead.
    """
    session = ctx.context.session
    try:
        if on_date:
            ctx.context.session = session.select_week(date.fromisoformat(on_date))
        elif direction in ("prev", "next"):
            ctx.context.session = session.navigate(direction)
        else:
            return {"status": "error", "problems": ["Give a direction (prev/next) or a date."]}
    except ValueError:
        return {"status": "error", "problems": [f"Not a valid date: {on_date}"]}
    except PersistenceFailure as exc:
        return {"status": "error", "problems": [str(exc)]}
    return {"status": "ok", **ctx.context.session.summary()}


@function_tool
def save_draft(ctx: RunContextWrapper[TimesheetContext]) -> dict[str, Any]:
    """Save the displayed week as a draft. Always allowed."""
    try:
        snap = ctx.context.session.save()
    except ValidationRejected as exc:
        return _rejected(exc)
    except PersistenceFailure as exc:
        return {"status": "error", "problems": [f"Save failed, your entries are kept: {exc}"]}
    return {"status": "ok", "message": "Timesheet saved as draft", "entries": len(snap.entries)}


@function_tool
def submit_week(ctx: RunContextWrapper[TimesheetContext]) -> dict[str, Any]:
    """Submit the displayed week for approval. Refused while under the weekly target."""
    try:
        snap = ctx.context.session.submit()
    except SubmitBlocked as exc:
        return {
            "status": "blocked",
            "shortfall": fmt_hours(exc.shortfall),
            "weekly_target": fmt_hours(exc.target),
        }
    except ValidationRejected as exc:
        return _rejected(exc)
    except PersistenceFailure as exc:
        return {"status": "error", "problems": [f"Submit failed, your entries are kept: {exc}"]}
    return {"status": "ok", "message": "Timesheet submitted for approval", "entries": len(snap.entries)}


@function_tool
def export_csv(ctx: RunContextWrapper[TimesheetContext]) -> str:
    """Export the displayed week as CSV with headers: week_start,category,day,hours,is_leave,status."""
    session = ctx.context.session
    csv_text = render_week_csv(session.snapshot(session.status or "draft"))
    save_path = os.environ.get("TIMESHEET_EXPORT_PATH")
    if save_path:
        try:
            folder = os.path.dirname(save_path)
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(save_path, "w", encoding="utf-8") as f:
                f.write(csv_text)
        except OSError as exc:
            # Tool output stays pure CSV; the failure only goes to the log.
            logger.warning("Could not write CSV export to %s: %s", save_path, exc)
    return csv_text


@function_tool
def hours_report(ctx: RunContextWrapper[TimesheetContext], today: str | None = None) -> dict[str, Any]:
    """Report total, this-week, this-month and average daily hours, plus per-project usage.

    Administrators see every employee's weeks; employees see their own.
    """
    session = ctx.context.session
    if session.store is None:
        return {"status": "error", "problems": ["No timesheet store is configured."]}
    user = session.user
    try:
        snapshots = session.store.list_weeks(None if user.is_admin else user.id)
        projects = session.store.list_projects() if user.is_admin else (session.projects or [])
    except PersistenceFailure as exc:
        return {"status": "error", "problems": [str(exc)]}
    as_of = date.fromisoformat(today) if today else date.today()
    report = build_report(snapshots, today=as_of, projects=projects)
    return {
        "status": "ok",
        "total_hours": fmt_hours(report.total_hours),
        "this_week_hours": fmt_hours(report.this_week_hours),
        "this_month_hours": fmt_hours(report.this_month_hours),
        "average_daily": fmt_hours(report.average_daily.quantize(Decimal("0.01"))),
        "leave_days": report.leave_days,
        "projects": [
            {
                "id": u.project_id,
                "name": u.name,
                "logged": fmt_hours(u.logged),
                "allocated": fmt_hours(u.allocated),
                "remaining": fmt_hours(u.remaining),
            }
            for u in report.projects
        ],
    }


def agent_instructions(policy: TimesheetPolicy) -> str:
    daily = fmt_hours(policy.daily_cap)
    half = fmt_hours(policy.half_day_cap)
    weekly = fmt_hours(policy.weekly_cap)
    grace = policy.grace_leave_days
    return (
        "You are a careful weekly timesheet assistant for one employee. "
        "The employee logs hours per project per day on a weekly grid, flags leave or public holidays, "
        "and then saves a draft or submits the week for approval. "
        "Use list_projects to learn the assigned projects and show_week to see the current grid. "
        "Record hours with set_hours (one cell) or bulk_set_hours (several cells, e.g. a project Monday to Friday). "
        f"A day allows at most {daily} hours across all projects ({half} on a half-day leave). "
        "When a tool refuses an edit, tell the user the reason and the remaining hours it reports; do not retry with invented values. "
        "Mark leave with set_leave; full-day leave and holidays clear and freeze that day. "
        f"The weekly target is {weekly} hours, reduced by {daily} for every leave day beyond the first {grace}; "
        "leave days count toward the total. "
        "When the user mentions a relative date (e.g. 'last week', 'next monday', 'September 9 2025'), use resolve_date "
        "and then change_week with that date; do not guess. "
        "Use save_draft when asked to save. Use submit_week when asked to submit; if it is blocked, report the shortfall. "
        "Use set_comment for notes on the week and hours_report for totals across weeks. "
        "When asked for an export, call export_csv and return only the CSV content. "
        "Administrators can call list_projects with a status filter and assign_project to give an employee a new project. "
        "Be concise and ask one question at a time."
    )


def build_agent(model_name: str, policy: TimesheetPolicy | None = None) -> Agent[TimesheetContext]:
    return Agent[TimesheetContext](
        name="Weekly Timesheet Agent",
        instructions=agent_instructions(policy or TimesheetPolicy()),
        tools=[
            list_projects,
            assign_project,
            show_week,
            set_hours,
            bulk_set_hours,
            set_leave,
            set_comment,
            resolve_date,
            change_week,
            save_draft,
            submit_week,
            export_csv,
            hours_report,
        ],
        model=model_name,
        model_settings=ModelSettings(),
    )


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "WARNING").upper(), logging.WARNING),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def build_context(today: date | None = None) -> TimesheetContext:
    """Load the directory, pick the user and open the current week."""
    directory = load_from_env(
        default_path=os.path.join(os.path.dirname(__file__), "projects.example.json")
    )
    policy = directory.policy if directory else env_policy_or()
    user_name = os.environ.get("TIMESHEET_USER", "")
    user = None
    if directory:
        user = directory.find_user(user_name) if user_name else None
        if user is None and directory.users:
            user = directory.users[0]
    if user is None:
        user = User(id=user_name or "local", full_name=user_name)
    store = JsonFileStore(
        os.environ.get("TIMESHEET_DATA_PATH", "timesheets.json"), user, directory
    )
    try:
        session = TimesheetSession.open(store, today or date.today(), policy)
    except PersistenceFailure as exc:
        logger.warning("Starting with an empty week: %s", exc)
        session = TimesheetSession(
            user,
            today or date.today(),
            projects=directory.assigned_projects(user.id) if directory else None,
            policy=policy,
            store=store,
            read_only=user.is_admin,
        )
    return TimesheetContext(session=session)


async def main() -> None:
    setup_logging(os.environ.get("TIMESHEET_LOG_LEVEL"))
    model = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # The SDK also checks the key on first call; warn early.
    if not os.environ.get("OPENAI_API_KEY"):
        print("Warning: OPENAI_API_KEY is not set. Set it in your shell or a .env file.")

    context = build_context()
    agent = build_agent(model, context.session.policy)
    user = context.session.user
    print(f"Weekly timesheet for {user.full_name or user.id}: {context.session.week_range_label()}.")
    print("Type hours, leave or 'submit'. Ctrl+C to exit.")
    await run_demo_loop(agent, stream=True, context=context)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
