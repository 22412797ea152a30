"""Snapshot of one week as handed to the storage collaborator.

A snapshot is produced on Save (status "draft") and Submit (status
"submitted"). It contains every non-zero project cell plus one row per
leave day under the "Leave/Holiday" category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

DRAFT = "draft"
SUBMITTED = "submitted"
STATUSES = (DRAFT, SUBMITTED)
COMMENT_MAX_LENGTH = 255


@dataclass
class SnapshotEntry:
    category: str
    day: str
    hours: Decimal
    is_leave: bool = False
    leave_kind: str | None = None


@dataclass
class WeekSnapshot:
    user_id: str
    week_start: date
    status: str = DRAFT
    comment: str = ""
    entries: list[SnapshotEntry] = field(default_factory=list)

    def project_entries(self) -> list[SnapshotEntry]:
        return [e for e in self.entries if not e.is_leave]

    def leave_entries(self) -> list[SnapshotEntry]:
        return [e for e in self.entries if e.is_leave]

    def total_hours(self) -> Decimal:
        return sum((e.hours for e in self.entries), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "week_start": self.week_start.isoformat(),
            "status": self.status,
            "comment": self.comment,
            "entries": [
                {
                    "category": e.category,
                    "day": e.day,
                    "hours": str(e.hours),
                    "is_leave": e.is_leave,
                    "leave_kind": e.leave_kind,
                }
                for e in self.entries
            ],
        }


def entry_from_dict(data: dict[str, Any]) -> SnapshotEntry:
    return SnapshotEntry(
        category=str(data.get("category", "")),
        day=str(data.get("day", "")),
        hours=Decimal(str(data.get("hours", 0) or 0)),
        is_leave=bool(data.get("is_leave", False)),
        leave_kind=(str(data["leave_kind"]) if data.get("leave_kind") is not None else None),
    )


def from_dict(data: dict[str, Any]) -> WeekSnapshot:
    """Convert a stored dictionary back into a `WeekSnapshot`."""
    return WeekSnapshot(
        user_id=str(data.get("user_id", "")),
        week_start=date.fromisoformat(str(data["week_start"])),
        status=str(data.get("status") or DRAFT),
        comment=str(data.get("comment") or ""),
        entries=[entry_from_dict(e) for e in (data.get("entries") or []) if isinstance(e, dict)],
    )


def validate(snapshot: WeekSnapshot, comment_max_length: int = COMMENT_MAX_LENGTH) -> list[str]:
    """Return a list of human-readable issues if the snapshot is malformed."""
    issues: list[str] = []
    if not snapshot.user_id.strip():
        issues.append("User is required.")
    if snapshot.status not in STATUSES:
        issues.append(f"Unknown status: {snapshot.status}")
    if len(snapshot.comment) > comment_max_length:
        issues.append(f"Comment must be at most {comment_max_length} characters.")
    seen: set[tuple[str, str]] = set()
    for e in snapshot.entries:
        if e.hours < 0 or (e.hours == 0 and not e.is_leave):
            issues.append(f"Hours for {e.category} on {e.day} must be greater than zero.")
        key = (e.category, e.day)
        if key in seen:
            issues.append(f"Duplicate entry for {e.category} on {e.day}.")
        seen.add(key)
    return issues
