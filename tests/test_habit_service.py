"""
Habit service: CRUD, streak updates on logging, log cleanup.
"""
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from prodotask.db import TransactionScope
from prodotask.errors import NotFound, TransactionAborted
from prodotask.schemas import HabitCreate, HabitPatch
from prodotask.services import habit_service

DAY_N = date(2024, 4, 10)


async def _habit(gateway, user, name="Read", frequency="Daily"):
    return await habit_service.create_habit(gateway, user.id, HabitCreate(name=name, frequency=frequency))


async def _set_state(gateway, habit_id, streak, last_logged):
    await gateway.execute(
        "UPDATE Habits SET streak = :streak, last_logged = :last_logged WHERE id = :id",
        {"streak": streak, "last_logged": last_logged.isoformat(), "id": habit_id},
    )


# ===================== CRUD =====================


async def test_create_habit_starts_with_empty_streak(gateway, user):
    habit = await _habit(gateway, user)
    assert habit.streak == 0
    assert habit.last_logged is None
    assert habit.frequency == "Daily"


async def test_habits_listed_by_name(gateway, user):
    for name in ["Yoga", "Journal", "Meditate"]:
        await _habit(gateway, user, name=name)
    names = [habit.name for habit in await habit_service.list_habits_by_user(gateway, user.id)]
    assert names == ["Journal", "Meditate", "Yoga"]


async def test_update_habit_is_partial(gateway, user):
    habit = await _habit(gateway, user, name="Run", frequency="Weekly")
    updated = await habit_service.update_habit(gateway, habit.id, HabitPatch(name="Run 5k"))
    assert updated.name == "Run 5k"
    assert updated.frequency == "Weekly"
    assert await habit_service.update_habit(gateway, habit.id, HabitPatch()) == updated


async def test_delete_habit_removes_its_logs(gateway, user):
    habit = await _habit(gateway, user)
    await habit_service.log_habit(gateway, habit.id, DAY_N)
    await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=1))

    assert await habit_service.delete_habit(gateway, habit.id) is True
    assert await habit_service.get_habit_by_id(gateway, habit.id) is None
    orphans = await gateway.query("SELECT id FROM HabitLogs WHERE habit_id = :id", {"id": habit.id})
    assert orphans == []
    assert await habit_service.delete_habit(gateway, habit.id) is False


# ===================== LOGGING / STREAKS =====================


async def test_first_log_sets_streak_to_one(gateway, user):
    habit = await _habit(gateway, user)
    assert await habit_service.log_habit(gateway, habit.id, DAY_N) is True
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.streak == 1
    assert habit.last_logged == DAY_N


async def test_logging_same_day_twice_is_idempotent(gateway, user):
    habit = await _habit(gateway, user)
    await habit_service.log_habit(gateway, habit.id, DAY_N)
    first = await habit_service.get_habit_by_id(gateway, habit.id)

    assert await habit_service.log_habit(gateway, habit.id, DAY_N) is True
    second = await habit_service.get_habit_by_id(gateway, habit.id)
    assert (second.streak, second.last_logged) == (first.streak, first.last_logged)
    logs = await habit_service.get_habit_logs(gateway, habit.id, DAY_N, DAY_N)
    assert len(logs) == 1


async def test_next_day_log_extends_streak(gateway, user):
    habit = await _habit(gateway, user)
    await _set_state(gateway, habit.id, 4, DAY_N)
    await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=1))
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.streak == 5
    assert habit.last_logged == DAY_N + timedelta(days=1)


async def test_gap_resets_streak(gateway, user):
    habit = await _habit(gateway, user)
    await _set_state(gateway, habit.id, 4, DAY_N)
    await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=5))
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.streak == 1
    assert habit.last_logged == DAY_N + timedelta(days=5)


async def test_backdated_log_recomputes_from_history(gateway, user):
    habit = await _habit(gateway, user)
    for offset in (0, 2, 3):
        await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=offset))
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.streak == 2

    # Filling the gap on day N+1 joins the runs.
    await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=1))
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.streak == 4
    assert habit.last_logged == DAY_N + timedelta(days=3)


async def test_backdated_log_never_moves_last_logged_back(gateway, user):
    habit = await _habit(gateway, user)
    await habit_service.log_habit(gateway, habit.id, DAY_N)
    await habit_service.log_habit(gateway, habit.id, DAY_N - timedelta(days=10))
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.last_logged == DAY_N
    assert habit.streak == 1


async def test_log_missing_habit_raises_not_found(gateway):
    with pytest.raises(NotFound):
        await habit_service.log_habit(gateway, 999, DAY_N)
    assert await gateway.query("SELECT id FROM HabitLogs") == []


async def test_failed_streak_update_rolls_back_log(gateway, user, monkeypatch):
    habit = await _habit(gateway, user)
    original_execute = TransactionScope.execute

    async def _failing_execute(self, sql, params=None):
        if sql.lstrip().startswith("UPDATE Habits"):
            raise OperationalError(sql, params, Exception("database is locked"))
        return await original_execute(self, sql, params)

    monkeypatch.setattr(TransactionScope, "execute", _failing_execute)

    with pytest.raises(TransactionAborted):
        await habit_service.log_habit(gateway, habit.id, DAY_N)
    assert await gateway.query("SELECT id FROM HabitLogs") == []
    unchanged = await habit_service.get_habit_by_id(gateway, habit.id)
    assert unchanged.streak == 0
    assert unchanged.last_logged is None


async def test_log_defaults_to_today(gateway, user):
    habit = await _habit(gateway, user)
    await habit_service.log_habit(gateway, habit.id)
    habit = await habit_service.get_habit_by_id(gateway, habit.id)
    assert habit.last_logged == date.today()


# ===================== QUERIES =====================


async def test_get_habit_logs_in_range(gateway, user):
    habit = await _habit(gateway, user)
    for offset in (3, 0, 1, 7):
        await habit_service.log_habit(gateway, habit.id, DAY_N + timedelta(days=offset))
    logs = await habit_service.get_habit_logs(gateway, habit.id, DAY_N, DAY_N + timedelta(days=3))
    assert [log.completed_date for log in logs] == [
        DAY_N,
        DAY_N + timedelta(days=1),
        DAY_N + timedelta(days=3),
    ]


async def test_status_for_day(gateway, user, other_user):
    read = await _habit(gateway, user, name="Read")
    walk = await _habit(gateway, user, name="Walk")
    theirs = await _habit(gateway, other_user, name="Read")
    await habit_service.log_habit(gateway, read.id, DAY_N)
    await habit_service.log_habit(gateway, theirs.id, DAY_N)
    await habit_service.log_habit(gateway, walk.id, DAY_N - timedelta(days=1))

    status = await habit_service.get_habit_status_for_day(gateway, user.id, DAY_N)
    assert [(item.habit.name, item.logged) for item in status] == [("Read", True), ("Walk", False)]
