from __future__ import annotations

from decimal import Decimal


def fmt_hours(x: Decimal | float | int) -> str:
    """Render hours without trailing zeros: 8 -> "8", 7.50 -> "7.5"."""
    s = f"{Decimal(str(x)):.2f}"
    if s.endswith(".00"):
        return s[:-3]
    if s.endswith("0"):
        return s[:-1]
    return s


def classify_week(total: Decimal, target: Decimal) -> str | None:
    """Return a standardized note comparing the week total with its target.

    - total == target: None.
    - total < target: "Short: Xh under {target}h target".
    - total > target: "Overtime: +Xh over {target}h target".
    """
    delta = total - target
    if delta == 0:
        return None
    if delta < 0:
        return f"Short: {fmt_hours(-delta)}h under {fmt_hours(target)}h target"
    return f"Overtime: +{fmt_hours(delta)}h over {fmt_hours(target)}h target"

