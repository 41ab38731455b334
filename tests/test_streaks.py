from datetime import date

import pytest

from prodotask.services.streaks import next_streak, streak_ending_at


def test_first_log_starts_streak():
    assert next_streak(0, None, date(2024, 5, 1)) == 1


def test_consecutive_day_increments():
    assert next_streak(3, date(2024, 5, 1), date(2024, 5, 2)) == 4


def test_gap_resets_to_one():
    assert next_streak(7, date(2024, 5, 1), date(2024, 5, 6)) == 1


def test_same_day_keeps_streak():
    assert next_streak(2, date(2024, 5, 1), date(2024, 5, 1)) == 2


def test_backdated_log_is_rejected_by_forward_rule():
    with pytest.raises(ValueError):
        next_streak(2, date(2024, 5, 3), date(2024, 5, 1))


def test_streak_ending_at_counts_consecutive_run():
    days = [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 4), date(2024, 5, 5), date(2024, 5, 6)]
    assert streak_ending_at(days, date(2024, 5, 6)) == 3
    assert streak_ending_at(days, date(2024, 5, 2)) == 2
    assert streak_ending_at(days, date(2024, 5, 3)) == 0
