"""Free-text parsing for timesheet input.

Hours cells arrive as raw text from the grid, and the session driver accepts
one-line commands such as "Website Tue 4" or "leave Wed half". Everything
here is tolerant: unknown input yields zero hours or an "unknown" command
rather than an exception.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

_DAY_ALIASES = {
    "mon": "Mon",
    "monday": "Mon",
    "tue": "Tue",
    "tues": "Tue",
    "tuesday": "Tue",
    "wed": "Wed",
    "weds": "Wed",
    "wednesday": "Wed",
    "thu": "Thu",
    "thur": "Thu",
    "thurs": "Thu",
    "thursday": "Thu",
    "fri": "Fri",
    "friday": "Fri",
    "sat": "Sat",
    "saturday": "Sat",
    "sun": "Sun",
    "sunday": "Sun",
}

_LEAVE_WORDS = {
    "none": "none",
    "off": "none",
    "clear": "none",
    "half": "half-day",
    "half-day": "half-day",
    "full": "full-day",
    "full-day": "full-day",
    "holiday": "holiday",
}

_HOURS_RE = re.compile(r"^(-?\d+(?:\.\d+)?|-?\.\d+)\s*(?:h|hr|hrs|hour|hours)?$", re.IGNORECASE)


def parse_hours(value: object) -> Decimal:
    """Parse a cell value into Decimal hours.

    Empty, malformed and non-finite input parses to 0. Negative numbers are
    returned as-is so the validator can refuse them with a reason.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return Decimal("0")
        m = _HOURS_RE.match(text)
        if not m:
            return Decimal("0")
        try:
            parsed = Decimal(m.group(1))
        except InvalidOperation:
            return Decimal("0")
    if not parsed.is_finite():
        return Decimal("0")
    return parsed


def parse_day(text: str | None) -> str | None:
    """Normalize a weekday name or abbreviation to its three-letter code."""
    return _DAY_ALIASES.get((text or "").strip().lower().strip(",.;:"))


def parse_command(text: str) -> dict[str, Any]:
    """Parse one line of session input into a structured command.

    Recognized forms:
    - "save" / "save draft", "submit", "summary"
    - "comment <free text>"
    - "leave <day> [none|half|full|holiday]" (defaults to full), "holiday <day>"
    - "<project> [on] <day> <hours>", e.g. "Web Page on Wed 3.5h"
    """
    s = (text or "").strip()
    if not s:
        return {"action": "unknown", "text": ""}
    low = s.lower()

    if low in {"save", "save draft"}:
        return {"action": "save"}
    if low == "submit":
        return {"action": "submit"}
    if low in {"summary", "total", "totals"}:
        return {"action": "summary"}

    comment_match = re.match(r"^comment\s*:?\s*(.*)$", s, flags=re.IGNORECASE | re.DOTALL)
    if comment_match:
        return {"action": "comment", "text": comment_match.group(1).strip()}

    tokens = s.split()
    head = tokens[0].lower()
    if head in {"leave", "holiday"} and len(tokens) >= 2:
        day = parse_day(tokens[1])
        if day:
            if head == "holiday":
                kind = "holiday"
            else:
                kind = _LEAVE_WORDS.get(tokens[2].lower(), "") if len(tokens) > 2 else "full-day"
            if kind:
                return {"action": "leave", "day": day, "kind": kind}
        return {"action": "unknown", "text": s}

    # Hours: "<category words> [on] <day> <hours>".
    day_idx = next((i for i, tok in enumerate(tokens) if i > 0 and parse_day(tok)), -1)
    if day_idx < 0 or day_idx + 1 >= len(tokens):
        return {"action": "unknown", "text": s}
    category_tokens = tokens[:day_idx]
    if category_tokens and category_tokens[-1].lower() in {"on", "for", "at"}:
        category_tokens = category_tokens[:-1]
    if not category_tokens:
        return {"action": "unknown", "text": s}
    return {
        "action": "set_hours",
        "category": " ".join(category_tokens),
        "day": parse_day(tokens[day_idx]),
        "hours": " ".join(tokens[day_idx + 1 :]),
    }


_MONTHS = {
    name: idx
    for idx, names in enumerate(
        [
            ("jan", "january"),
            ("feb", "february"),
            ("mar", "march"),
            ("apr", "april"),
            ("may",),
            ("jun", "june"),
            ("jul", "july"),
            ("aug", "august"),
            ("sep", "sept", "september"),
            ("oct", "october"),
            ("nov", "november"),
            ("dec", "december"),
        ],
        start=1,
    )
    for name in names
}

_WEEKDAY_INDEX = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _safe_date(y: int, m: int | None, d: int) -> date | None:
    if not m:
        return None
    try:
        return date(y, m, d)
    except ValueError:
        return None


def resolve_date_phrase(phrase: str, *, base_date: date | str | None = None) -> date | None:
    """Resolve a natural-language date used to pick a week.

    Supported: today/yesterday/tomorrow, YYYY-MM-DD, "September 9 2025",
    "9 September 2025", MM/DD/YYYY, and "this/next/last <weekday>".
    Returns None when the phrase is not understood.
    """
    s = (phrase or "").strip().lower()
    if not s:
        return None
    if isinstance(base_date, str):
        base_date = datetime.strptime(base_date, "%Y-%m-%d").date()
    today = base_date or date.today()

    relative = {"today": 0, "yesterday": -1, "tomorrow": 1}
    if s in relative:
        return today + timedelta(days=relative[s])

    iso = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", s)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    mdy = re.search(r"\b([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?\s*,?\s*(\d{4})\b", s)
    if mdy:
        return _safe_date(int(mdy.group(3)), _MONTHS.get(mdy.group(1)), int(mdy.group(2)))

    dmy = re.search(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+([a-z]+)\s*(\d{4})\b", s)
    if dmy:
        return _safe_date(int(dmy.group(3)), _MONTHS.get(dmy.group(2)), int(dmy.group(1)))

    numeric = re.search(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b", s)
    if numeric:
        return _safe_date(int(numeric.group(3)), int(numeric.group(1)), int(numeric.group(2)))

    wk = re.search(r"\b(this|next|last)\s+(" + "|".join(_WEEKDAY_INDEX) + r")\b", s)
    if wk:
        offset = (_WEEKDAY_INDEX[wk.group(2)] - today.weekday()) % 7
        days = {"this": offset, "next": offset + 7, "last": offset - 7}[wk.group(1)]
        return today + timedelta(days=days)

    return None
