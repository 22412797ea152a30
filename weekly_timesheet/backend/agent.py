"""Scripted driver for a timesheet session.

Each line of input is one UI action ("Website Tue 4", "leave Wed",
"submit"); the driver runs it through the session and answers with events
a UI can render:

    input -> parse -> validate -> apply -> recompute totals

Business-rule refusals come back as events, never as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import PersistenceFailure, SubmitBlocked, ValidationRejected
from .parsers import parse_command
from .session import TimesheetSession
from .utils import fmt_hours


@dataclass
class AgentEvent:
    """A simple event structure suitable for streaming to a UI."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)


class TimesheetAgent:
    """Turns one-line commands into session calls and events."""

    def __init__(self, session: TimesheetSession) -> None:
        self.session = session

    def start(self) -> AgentEvent:
        return AgentEvent(
            type="started",
            payload={
                "message": (
                    f"Timesheet for {self.session.week_range_label()}. Enter hours as "
                    "'<project> <day> <hours>', mark leave with 'leave <day> [half|full|holiday]', "
                    "then 'save' or 'submit'."
                ),
                "summary": self.session.summary(),
            },
        )

    def provide_input(self, text: str) -> list[AgentEvent]:
        events = [AgentEvent(type="user_input", payload={"text": text})]
        command = parse_command(text)
        action = command["action"]
        try:
            if action == "set_hours":
                events.append(self._set_hours(command))
            elif action == "leave":
                kind = self.session.set_leave(command["day"], command["kind"])
                events.append(
                    AgentEvent(type="leave_set", payload={"day": command["day"], "kind": kind.value})
                )
            elif action == "comment":
                self.session.set_comment(command["text"])
                events.append(AgentEvent(type="comment_set", payload={"comment": command["text"]}))
            elif action == "save":
                snap = self.session.save()
                events.append(
                    AgentEvent(
                        type="saved",
                        payload={"message": "Timesheet saved as draft", "entries": len(snap.entries)},
                    )
                )
            elif action == "submit":
                snap = self.session.submit()
                events.append(
                    AgentEvent(
                        type="submitted",
                        payload={
                            "message": "Timesheet submitted for approval",
                            "entries": len(snap.entries),
                        },
                    )
                )
            elif action == "summary":
                pass
            else:
                events.append(
                    AgentEvent(
                        type="needs_revision",
                        payload={"message": "I could not understand that.", "text": text},
                    )
                )
                return events
        except ValidationRejected as exc:
            payload: dict[str, Any] = {"message": exc.reason}
            if exc.remaining is not None:
                payload["remaining"] = fmt_hours(exc.remaining)
            events.append(AgentEvent(type="rejected", payload=payload))
            return events
        except SubmitBlocked as exc:
            events.append(
                AgentEvent(
                    type="submit_blocked",
                    payload={
                        "message": str(exc),
                        "shortfall": fmt_hours(exc.shortfall),
                        "target": fmt_hours(exc.target),
                    },
                )
            )
            return events
        except PersistenceFailure as exc:
            events.append(
                AgentEvent(
                    type="persistence_failed",
                    payload={"message": "Something went wrong, please try again.", "detail": str(exc)},
                )
            )
            return events

        events.append(AgentEvent(type="summary", payload=self.session.summary()))
        return events

    def _set_hours(self, command: dict[str, Any]) -> AgentEvent:
        hours = self.session.set_hours(command["category"], command["day"], command["hours"])
        category = self.session.resolve_category(command["category"])
        return AgentEvent(
            type="hours_set",
            payload={
                "project": category,
                "day": command["day"],
                "hours": fmt_hours(hours),
                "project_total": fmt_hours(self.session.category_total(category)),
            },
        )
