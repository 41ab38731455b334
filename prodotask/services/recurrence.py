from __future__ import annotations

import calendar
from datetime import date, timedelta

RECURRENCE_NONE = "None"


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole calendar months, clamping to the month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def next_due_date(base: date, recurrence: str) -> date:
    if recurrence == "Daily":
        return base + timedelta(days=1)
    if recurrence == "Weekly":
        return base + timedelta(days=7)
    if recurrence == "Monthly":
        return add_months(base, 1)
    raise ValueError(f"Task recurrence {recurrence!r} has no next occurrence")


def is_recurring(recurrence: str | None) -> bool:
    return bool(recurrence) and recurrence != RECURRENCE_NONE
