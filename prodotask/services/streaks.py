from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable


def day_difference(day: date, last_logged: date) -> int:
    return (day - last_logged).days


def next_streak(current_streak: int, last_logged: date | None, day: date) -> int:
    """Streak after logging ``day`` given the previous ``last_logged``.

    Only forward or same-day logs are handled here; backdated logs go through
    ``streak_ending_at``.
    """
    if last_logged is None:
        return 1
    delta = day_difference(day, last_logged)
    if delta < 0:
        raise ValueError("Backdated log; recompute the streak from the log history")
    if delta == 0:
        return current_streak
    if delta == 1:
        return current_streak + 1
    return 1


def streak_ending_at(logged_days: Iterable[date], end: date) -> int:
    """Length of the run of consecutive logged days that ends on ``end``."""
    days = set(logged_days)
    count = 0
    current = end
    while current in days:
        count += 1
        current = current - timedelta(days=1)
    return count
