from datetime import date

import pytest

from prodotask.services.recurrence import add_months, is_recurring, next_due_date


def test_daily_adds_one_day():
    assert next_due_date(date(2024, 2, 28), "Daily") == date(2024, 2, 29)
    assert next_due_date(date(2024, 12, 31), "Daily") == date(2025, 1, 1)


def test_weekly_adds_seven_days():
    assert next_due_date(date(2024, 3, 28), "Weekly") == date(2024, 4, 4)


def test_monthly_preserves_day_of_month():
    assert next_due_date(date(2024, 1, 15), "Monthly") == date(2024, 2, 15)
    assert next_due_date(date(2024, 12, 15), "Monthly") == date(2025, 1, 15)


def test_monthly_clamps_to_end_of_shorter_month():
    assert next_due_date(date(2024, 1, 31), "Monthly") == date(2024, 2, 29)
    assert next_due_date(date(2023, 1, 31), "Monthly") == date(2023, 2, 28)
    assert next_due_date(date(2024, 3, 31), "Monthly") == date(2024, 4, 30)


def test_add_months_across_years():
    assert add_months(date(2023, 11, 30), 3) == date(2024, 2, 29)
    assert add_months(date(2024, 5, 10), 12) == date(2025, 5, 10)


def test_none_has_no_next_occurrence():
    with pytest.raises(ValueError):
        next_due_date(date(2024, 1, 1), "None")


def test_is_recurring():
    assert is_recurring("Weekly")
    assert not is_recurring("None")
    assert not is_recurring(None)
