"""Business-rule outcomes raised by the timesheet core.

None of these are fatal. Callers (the CLI tools, the session driver) turn
them into user-facing messages and keep the in-memory week intact.
"""

from __future__ import annotations

from decimal import Decimal


class TimesheetError(Exception):
    """Base class for every expected timesheet outcome."""


class ValidationRejected(TimesheetError):
    """A cell edit or leave change was refused; prior state is unchanged.

    `remaining` carries the hours still available on the day when the
    rejection is a cap violation, so the UI can show the headroom.
    """

    def __init__(self, reason: str, *, remaining: Decimal | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.remaining = remaining


class SubmitBlocked(TimesheetError):
    """The week total is under the weekly target at submit time."""

    def __init__(self, shortfall: Decimal, target: Decimal) -> None:
        super().__init__(f"Weekly total is {shortfall}h short of the {target}h target.")
        self.shortfall = shortfall
        self.target = target


class PersistenceFailure(TimesheetError):
    """The storage collaborator could not fetch or save."""
