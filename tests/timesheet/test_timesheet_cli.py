from datetime import date
from decimal import Decimal
from pathlib import Path

from weekly_timesheet.backend.config import TimesheetPolicy
from weekly_timesheet.cli import agent_instructions, assign_project_for, build_context, list_projects_for

EXAMPLE = Path(__file__).resolve().parents[2] / "weekly_timesheet" / "projects.example.json"


def test_build_context_opens_week_for_configured_user(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(EXAMPLE))
    monkeypatch.setenv("TIMESHEET_USER", "Alice Doe")
    monkeypatch.setenv("TIMESHEET_DATA_PATH", str(tmp_path / "weeks.json"))
    ctx = build_context(today=date(2025, 9, 10))
    session = ctx.session
    assert session.user.id == "emp-001"
    assert session.week_start == date(2025, 9, 8)
    assert [p.name for p in session.projects] == ["Website", "Web Page"]
    assert not session.read_only

    session.set_hours("Website", "Mon", "8")
    session.save()
    reopened = build_context(today=date(2025, 9, 12)).session
    assert reopened.matrix.hours("1", "Mon") == Decimal("8")


def test_build_context_admin_is_view_only(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(EXAMPLE))
    monkeypatch.setenv("TIMESHEET_USER", "adm-001")
    monkeypatch.setenv("TIMESHEET_DATA_PATH", str(tmp_path / "weeks.json"))
    assert build_context(today=date(2025, 9, 10)).session.read_only


def _context(tmp_path, monkeypatch, user):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(EXAMPLE))
    monkeypatch.setenv("TIMESHEET_USER", user)
    monkeypatch.setenv("TIMESHEET_DATA_PATH", str(tmp_path / "weeks.json"))
    return build_context(today=date(2025, 9, 10))


def test_admin_assigns_project_and_employee_sees_it(tmp_path, monkeypatch):
    admin = _context(tmp_path, monkeypatch, "adm-001").session
    out = assign_project_for(admin, "Intranet", "Alice Doe", "12", "Staff portal", "2025-09-01")
    assert out["status"] == "ok"
    assert out["project"]["assigned_to"] == "emp-001"
    assert out["project"]["start_date"] == "2025-09-01"
    assert len(list_projects_for(admin)["projects"]) == 3

    employee = _context(tmp_path, monkeypatch, "emp-001").session
    assert [p.name for p in employee.projects] == ["Website", "Web Page", "Intranet"]
    employee.set_hours("Intranet", "Mon", "4")
    assert employee.category_total("Intranet") == Decimal("4")


def test_assign_project_errors_come_back_as_problems(tmp_path, monkeypatch):
    employee = _context(tmp_path, monkeypatch, "emp-001").session
    assert assign_project_for(employee, "Intranet", "emp-001")["status"] == "error"

    admin = _context(tmp_path, monkeypatch, "adm-001").session
    out = assign_project_for(admin, "Intranet", "nobody")
    assert out["status"] == "error"
    assert "Unknown employee" in out["problems"][0]
    assert assign_project_for(admin, "Intranet", "emp-001", start_date="01/09/2025")["status"] == "error"


def test_list_projects_status_filter(tmp_path, monkeypatch):
    admin = _context(tmp_path, monkeypatch, "adm-001").session
    assert list_projects_for(admin, "completed") == {"status": "empty", "projects": []}
    assert len(list_projects_for(admin, "Active")["projects"]) == 2
    assert list_projects_for(admin, "archived")["status"] == "error"


def test_bad_env_override_does_not_stop_startup(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMESHEET_GRACE_LEAVE_DAYS", "two")
    monkeypatch.setenv("TIMESHEET_WEEK_START", "saturday")
    session = _context(tmp_path, monkeypatch, "emp-001").session
    assert session.policy == TimesheetPolicy()

    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(tmp_path / "missing.json"))
    assert build_context(today=date(2025, 9, 10)).session.policy == TimesheetPolicy()


def test_agent_instructions_follow_policy():
    text = agent_instructions(
        TimesheetPolicy(daily_cap=Decimal("7.5"), half_day_cap=Decimal("3.5"), weekly_cap=Decimal("37.5"))
    )
    assert "at most 7.5 hours across all projects (3.5 on a half-day leave)" in text
    assert "weekly target is 37.5 hours, reduced by 7.5 for every leave day beyond the first 2" in text
    assert "8 hours" not in text
