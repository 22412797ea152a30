import json
from decimal import Decimal

import pytest

from weekly_timesheet.backend.config import (
    TimesheetPolicy,
    env_policy_or,
    load_directory,
    load_from_env,
    parse_flag,
    policy_from_dict,
    policy_from_env,
)


def _write_config(tmp_path):
    path = tmp_path / "company.json"
    path.write_text(
        json.dumps(
            {
                "company": {"name": "Example Co"},
                "users": [{"id": "emp-001", "full_name": "Alice Doe"}, "guest"],
                "projects": [{"id": "1", "name": "Website", "allocated_hours": 40}],
                "policy": {"week_start_day": "Sunday", "half_day_cap": 5},
            }
        )
    )
    return path


def test_load_directory(tmp_path):
    d = load_directory(str(_write_config(tmp_path)))
    assert d.name == "Example Co"
    assert d.find_user("alice doe").id == "emp-001"
    assert d.find_user("guest").full_name == "guest"
    assert d.find_project("website").allocated_hours == Decimal("40")
    assert d.policy.week_start_day == "sun"
    assert d.policy.half_day_cap == Decimal("5")
    assert d.policy.daily_cap == Decimal("8")


def test_policy_defaults_and_validation():
    p = TimesheetPolicy()
    assert (p.daily_cap, p.half_day_cap, p.weekly_cap, p.grace_leave_days) == (8, 4, 40, 2)
    assert not p.enforce_weekly_cap_on_edit
    with pytest.raises(ValueError):
        TimesheetPolicy(half_day_cap=Decimal("9"))
    with pytest.raises(ValueError):
        TimesheetPolicy(week_start_day="wed")


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("TIMESHEET_DAILY_CAP", "7.5")
    monkeypatch.setenv("TIMESHEET_ENFORCE_WEEKLY_CAP", "yes")
    p = policy_from_env()
    assert p.daily_cap == Decimal("7.5")
    assert p.enforce_weekly_cap_on_edit


def test_load_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(_write_config(tmp_path)))
    monkeypatch.setenv("TIMESHEET_GRACE_LEAVE_DAYS", "3")
    d = load_from_env()
    assert d is not None
    assert d.policy.grace_leave_days == 3
    assert d.policy.week_start_day == "sun"


def test_load_from_env_missing_or_broken(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(tmp_path / "missing.json"))
    assert load_from_env() is None
    broken = tmp_path / "broken.json"
    broken.write_text("{")
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(broken))
    assert load_from_env() is None


def test_policy_flag_text_is_parsed():
    assert not policy_from_dict({"enforce_weekly_cap_on_edit": "false"}).enforce_weekly_cap_on_edit
    assert not policy_from_dict({"enforce_weekly_cap_on_edit": "0"}).enforce_weekly_cap_on_edit
    assert policy_from_dict({"enforce_weekly_cap_on_edit": "On"}).enforce_weekly_cap_on_edit
    assert policy_from_dict({"enforce_weekly_cap_on_edit": True}).enforce_weekly_cap_on_edit
    with pytest.raises(ValueError):
        policy_from_dict({"enforce_weekly_cap_on_edit": "maybe"})
    with pytest.raises(ValueError):
        parse_flag(2)


def test_load_directory_flag_string_false(tmp_path):
    path = tmp_path / "company.json"
    path.write_text(json.dumps({"policy": {"enforce_weekly_cap_on_edit": "false"}}))
    assert load_directory(str(path)).policy.enforce_weekly_cap_on_edit is False


def test_load_directory_project_details(tmp_path):
    path = tmp_path / "company.json"
    path.write_text(
        json.dumps(
            {
                "projects": [
                    {
                        "id": "7",
                        "name": "Intranet",
                        "description": "Staff portal",
                        "start_date": "2025-09-01",
                        "end_date": "2025-12-19",
                        "status": "on_hold",
                    }
                ]
            }
        )
    )
    p = load_directory(str(path)).projects[0]
    assert p.description == "Staff portal"
    assert p.start_date.isoformat() == "2025-09-01"
    assert p.end_date.isoformat() == "2025-12-19"
    assert not p.is_active


@pytest.mark.parametrize(
    "name,value",
    [
        ("TIMESHEET_GRACE_LEAVE_DAYS", "two"),
        ("TIMESHEET_WEEK_START", "saturday"),
        ("TIMESHEET_HALF_DAY_CAP", "12"),
        ("TIMESHEET_ENFORCE_WEEKLY_CAP", "maybe"),
    ],
)
def test_bad_env_override_keeps_file_policy(tmp_path, monkeypatch, name, value):
    monkeypatch.setenv("TIMESHEET_CONFIG_PATH", str(_write_config(tmp_path)))
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        policy_from_env()
    d = load_from_env()
    assert d is not None
    assert d.policy.week_start_day == "sun"
    assert d.policy.half_day_cap == Decimal("5")
    assert d.policy.grace_leave_days == 2


def test_env_policy_or_falls_back_to_base(monkeypatch):
    base = TimesheetPolicy(daily_cap=Decimal("7"))
    monkeypatch.setenv("TIMESHEET_WEEK_START", "saturday")
    assert env_policy_or(base) is base
    monkeypatch.setenv("TIMESHEET_WEEK_START", "sunday")
    assert env_policy_or(base).week_start_day == "sun"
