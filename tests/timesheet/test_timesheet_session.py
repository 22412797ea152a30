from datetime import date
from decimal import Decimal

import pytest

from weekly_timesheet.backend.aggregator import Frozen, Numeric
from weekly_timesheet.backend.config import Project, TimesheetPolicy, User
from weekly_timesheet.backend.errors import PersistenceFailure, SubmitBlocked, ValidationRejected
from weekly_timesheet.backend.forms import DRAFT, SUBMITTED
from weekly_timesheet.backend.leave import LEAVE_CATEGORY
from weekly_timesheet.backend.session import TimesheetSession
from weekly_timesheet.backend.store import InMemoryStore

MONDAY = date(2025, 9, 8)
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri"]


def _session(policy=None, store=None, user=None):
    return TimesheetSession(
        user or User("emp-001", "Alice Doe"),
        MONDAY,
        projects=[Project("A", "Website", Decimal("40")), Project("B", "Web Page", Decimal("30"))],
        policy=policy,
        store=store,
    )


def test_empty_week_cannot_submit_and_reports_full_shortfall():
    s = _session(store=InMemoryStore(User("emp-001")))
    assert not s.can_submit()
    with pytest.raises(SubmitBlocked) as info:
        s.submit()
    assert info.value.shortfall == Decimal("40.0")
    assert s.shortfall() == Decimal("40")


def test_full_week_on_one_project_can_submit():
    s = _session()
    for d in WEEKDAYS:
        s.set_hours("A", d, "8")
    assert s.week_total() == Decimal("40")
    assert s.can_submit()


def test_full_day_leave_counts_towards_week_total():
    s = _session()
    s.set_leave("Mon", "full-day")
    for d in WEEKDAYS[1:]:
        s.set_hours("A", d, "8")
    assert s.leave_count() == 1
    assert s.weekly_target() == Decimal("40")
    assert s.week_total() == Decimal("40")
    assert s.can_submit()


def test_daily_cap_rejection_reports_remaining_headroom():
    s = _session()
    s.set_hours("B", "Tue", "4")
    with pytest.raises(ValidationRejected) as info:
        s.set_hours("A", "Tue", "5")
    assert info.value.remaining == Decimal("4")
    assert "Daily limit exceeded" in info.value.reason
    assert s.matrix.hours("A", "Tue") == 0
    s.set_hours("A", "Tue", "4")
    assert s.day_total("Tue") == Numeric(Decimal("8"))


def test_editing_same_cell_does_not_count_old_value():
    s = _session()
    s.set_hours("A", "Wed", "8")
    s.set_hours("A", "Wed", "6")
    assert s.matrix.hours("A", "Wed") == Decimal("6")


def test_leave_flag_clears_previously_entered_hours():
    s = _session()
    s.set_hours("A", "Wed", "3")
    s.set_leave("Wed", "full-day")
    assert s.matrix.hours("A", "Wed") == 0
    assert s.category_total("A") == 0


def test_frozen_day_rejects_edits_and_reports_leave_state():
    s = _session()
    s.set_leave("Thu", "holiday")
    with pytest.raises(ValidationRejected) as info:
        s.set_hours("B", "Thu", "1")
    assert "frozen" in info.value.reason
    assert s.matrix.day_hours("Thu") == 0
    total = s.day_total("Thu")
    assert isinstance(total, Frozen)
    assert total.label == "Holiday"


def test_half_day_leave_caps_project_hours():
    s = _session()
    s.set_leave("Fri", "half-day")
    s.set_hours("A", "Fri", "3")
    with pytest.raises(ValidationRejected) as info:
        s.set_hours("B", "Fri", "2")
    assert info.value.remaining == Decimal("1")


@pytest.mark.parametrize(
    "leave_days, target",
    [(0, "40"), (1, "40"), (2, "40"), (3, "32"), (4, "24"), (7, "0")],
)
def test_weekly_target_reduced_after_grace_days(leave_days, target):
    s = _session()
    for d in s.days[:leave_days]:
        s.set_leave(d, "full-day")
    assert s.weekly_target() == Decimal(target)


def test_unknown_project_and_negative_hours_rejected():
    s = _session()
    with pytest.raises(ValidationRejected):
        s.set_hours("Z", "Mon", "1")
    with pytest.raises(ValidationRejected):
        s.set_hours("A", "Mon", "-1")
    with pytest.raises(ValidationRejected):
        s.set_hours(LEAVE_CATEGORY, "Mon", "8")


def test_project_name_resolves_to_id():
    s = _session()
    s.set_hours("web page", "Mon", "2")
    assert s.matrix.hours("B", "Mon") == Decimal("2")


def test_weekly_cap_enforced_on_edit_when_configured():
    s = _session(policy=TimesheetPolicy(enforce_weekly_cap_on_edit=True))
    for d in WEEKDAYS:
        s.set_hours("A", d, "8")
    with pytest.raises(ValidationRejected) as info:
        s.set_hours("B", "Sat", "1")
    assert info.value.remaining == 0
    # Rewriting an existing cell within the cap is still fine.
    s.set_hours("A", "Fri", "7")
    s.set_hours("B", "Sat", "1")


def test_weekly_cap_only_matters_at_submit_by_default():
    s = _session()
    for d in s.days:
        s.set_hours("A", d, "8")
    assert s.week_total() == Decimal("56")
    assert s.can_submit()


def test_save_is_always_allowed_and_stores_draft():
    store = InMemoryStore(User("emp-001"))
    s = _session(store=store)
    s.set_hours("A", "Mon", "2")
    s.set_leave("Tue", "full-day")
    snap = s.save()
    assert snap.status == DRAFT
    saved = store.fetch_week("emp-001", MONDAY)
    assert saved is not None
    assert [(e.category, e.day, e.hours, e.is_leave) for e in saved.entries] == [
        ("A", "Mon", Decimal("2"), False),
        (LEAVE_CATEGORY, "Tue", Decimal("8"), True),
    ]


def test_submit_stores_submitted_snapshot():
    store = InMemoryStore(User("emp-001"))
    s = _session(store=store)
    for d in WEEKDAYS:
        s.set_hours("A", d, "8")
    s.set_comment("Regular week.")
    snap = s.submit()
    assert snap.status == SUBMITTED
    assert store.fetch_week("emp-001", MONDAY).comment == "Regular week."


class _BrokenStore(InMemoryStore):
    def replace_week(self, snapshot):
        raise ConnectionError("backend down")


def test_persistence_failure_keeps_in_memory_state():
    s = _session(store=_BrokenStore(User("emp-001")))
    s.set_hours("A", "Mon", "5")
    with pytest.raises(PersistenceFailure):
        s.save()
    assert s.matrix.hours("A", "Mon") == Decimal("5")
    assert s.status is None


def test_save_without_store_is_a_persistence_failure():
    s = _session()
    with pytest.raises(PersistenceFailure):
        s.save()


def test_comment_capped_at_255_characters():
    s = _session()
    s.set_comment("x" * 255)
    with pytest.raises(ValidationRejected):
        s.set_comment("x" * 256)
    assert len(s.comment) == 255


def test_open_loads_saved_week_and_navigation_recreates_state():
    user = User("emp-001", "Alice Doe")
    store = InMemoryStore(user)
    s = _session(store=store, user=user)
    s.set_hours("A", "Mon", "6")
    s.set_leave("Fri", "half-day")
    s.set_comment("draft")
    s.save()

    nxt = s.navigate("next")
    assert nxt.week_start == date(2025, 9, 15)
    assert nxt.week_total() == 0

    back = nxt.navigate("prev")
    assert back.matrix.hours("A", "Mon") == Decimal("6")
    assert back.leave.kind("Fri").value == "half-day"
    assert back.comment == "draft"
    assert back.status == DRAFT


def test_reload_under_tighter_policy_drops_cells_over_the_cap():
    user = User("emp-001", "Alice Doe")
    store = InMemoryStore(user)
    s = _session(policy=TimesheetPolicy(half_day_cap=Decimal("5")), store=store, user=user)
    s.set_leave("Mon", "half-day")
    s.set_hours("A", "Mon", "5")
    s.set_hours("A", "Tue", "8")
    s.save()

    reopened = _session(store=store, user=user)
    assert reopened.load()
    assert reopened.leave.kind("Mon").value == "half-day"
    assert reopened.day_total("Mon") == Numeric(Decimal("0"))
    assert reopened.validator.daily_cap("Mon") == Decimal("4")
    assert reopened.matrix.hours("A", "Tue") == Decimal("8")


def test_reload_drops_hours_for_projects_no_longer_assigned():
    user = User("emp-001", "Alice Doe")
    store = InMemoryStore(user)
    s = _session(store=store, user=user)
    s.set_hours("A", "Mon", "3")
    s.set_hours("B", "Mon", "2")
    s.save()

    reopened = TimesheetSession(user, MONDAY, projects=[Project("B", "Web Page")], store=store)
    reopened.load()
    assert reopened.matrix.hours("A", "Mon") == 0
    assert reopened.matrix.hours("B", "Mon") == Decimal("2")


def test_admin_session_is_view_only():
    store = InMemoryStore(User("adm-001", "Bob Admin", role="admin"))
    s = TimesheetSession.open(store, MONDAY)
    assert s.read_only
    with pytest.raises(ValidationRejected):
        s.set_hours("A", "Mon", "1")


def test_sunday_first_week():
    s = _session(policy=TimesheetPolicy(week_start_day="sun"))
    assert s.days[0] == "Sun"
    assert s.week_start == date(2025, 9, 7)
    assert s.week_range_label() == "07/09/2025 - 13/09/2025"
