from __future__ import annotations

import logging
from datetime import date
from typing import Union

from prodotask.db import Executor, TransactionScope
from prodotask.db_init import HABITS_TABLE, HABIT_LOGS_TABLE
from prodotask.errors import CreationFailed, NotFound, ValidationFailed
from prodotask.patches import build_assignments, iso_date, utc_now_iso
from prodotask.schemas import Habit, HabitCreate, HabitDayStatus, HabitLog, HabitPatch
from prodotask.services.streaks import day_difference, next_streak, streak_ending_at

logger = logging.getLogger(__name__)

HABIT_COLUMNS = "id, name, frequency, streak, last_logged, created_at, user_id"
LOG_COLUMNS = "id, habit_id, completed_date, created_at"

_PATCH_COLUMNS = {"name": None, "frequency": None}


def _to_habit(row: dict | None) -> Habit | None:
    return Habit.model_validate(row) if row else None


def _clean_name(value: str | None) -> str:
    name = " ".join(str(value or "").split())
    if not name:
        raise ValidationFailed("Habit name cannot be empty")
    return name


async def create_habit(db: Executor, user_id: int, payload: HabitCreate) -> Habit:
    result = await db.execute(
        f"""
        INSERT INTO {HABITS_TABLE} (name, frequency, streak, last_logged, created_at, user_id)
        VALUES (:name, :frequency, 0, NULL, :created_at, :user_id)
        """,
        {
            "name": _clean_name(payload.name),
            "frequency": payload.frequency or "Daily",
            "created_at": utc_now_iso(),
            "user_id": user_id,
        },
    )
    habit = await get_habit_by_id(db, result.last_insert_id)
    if habit is None:
        raise CreationFailed("habit")
    return habit


async def get_habit_by_id(db: Executor, habit_id: int) -> Habit | None:
    row = await db.get_one(
        f"SELECT {HABIT_COLUMNS} FROM {HABITS_TABLE} WHERE id = :id",
        {"id": habit_id},
    )
    return _to_habit(row)


async def list_habits_by_user(db: Executor, user_id: int) -> list[Habit]:
    rows = await db.query(
        f"SELECT {HABIT_COLUMNS} FROM {HABITS_TABLE} WHERE user_id = :user_id ORDER BY name ASC, id ASC",
        {"user_id": user_id},
    )
    return [_to_habit(row) for row in rows]


async def update_habit(db: Executor, habit_id: int, patch: Union[HabitPatch, dict]) -> Habit | None:
    fields = patch.model_dump(exclude_unset=True) if isinstance(patch, HabitPatch) else dict(patch or {})
    if fields.get("name") is not None:
        fields["name"] = _clean_name(fields["name"])
    updates, params = build_assignments(fields, _PATCH_COLUMNS, non_null=_PATCH_COLUMNS)
    if not updates:
        return await get_habit_by_id(db, habit_id)
    params["id"] = habit_id
    await db.execute(f"UPDATE {HABITS_TABLE} SET {', '.join(updates)} WHERE id = :id", params)
    return await get_habit_by_id(db, habit_id)


async def delete_habit(db: Executor, habit_id: int) -> bool:
    async def _delete(tx: TransactionScope) -> bool:
        await tx.execute(f"DELETE FROM {HABIT_LOGS_TABLE} WHERE habit_id = :habit_id", {"habit_id": habit_id})
        result = await tx.execute(f"DELETE FROM {HABITS_TABLE} WHERE id = :id", {"id": habit_id})
        return result.rows_affected > 0

    return await db.with_transaction(_delete)


async def _logged_days(tx: Executor, habit_id: int) -> list[date]:
    rows = await tx.query(
        f"SELECT completed_date FROM {HABIT_LOGS_TABLE} WHERE habit_id = :habit_id",
        {"habit_id": habit_id},
    )
    return [date.fromisoformat(str(row["completed_date"])[:10]) for row in rows]


async def log_habit(db: Executor, habit_id: int, day: date | None = None) -> bool:
    """Record a completion of ``habit_id`` on ``day`` (default today).

    Runs in one transaction: read the habit, insert the log, write the new
    streak and last_logged. Logging the same day twice is a no-op. A backdated
    log recomputes the streak from the log history and leaves last_logged
    where it was.
    """
    day = day or date.today()
    day_iso = day.isoformat()

    async def _log(tx: TransactionScope) -> bool:
        habit = await get_habit_by_id(tx, habit_id)
        if habit is None:
            raise NotFound("Habit", habit_id)

        existing = await tx.get_one(
            f"SELECT id FROM {HABIT_LOGS_TABLE} WHERE habit_id = :habit_id AND completed_date = :completed_date",
            {"habit_id": habit_id, "completed_date": day_iso},
        )
        if existing:
            logger.debug("Habit %s already logged on %s", habit_id, day_iso)
            return True

        await tx.execute(
            f"""
            INSERT INTO {HABIT_LOGS_TABLE} (habit_id, completed_date, created_at)
            VALUES (:habit_id, :completed_date, :created_at)
            """,
            {"habit_id": habit_id, "completed_date": day_iso, "created_at": utc_now_iso()},
        )

        last_logged = habit.last_logged
        if last_logged is not None and day_difference(day, last_logged) < 0:
            streak = streak_ending_at(await _logged_days(tx, habit_id), last_logged)
        else:
            streak = next_streak(habit.streak, last_logged, day)
            last_logged = day
            if habit.last_logged is not None and streak == 1 and habit.streak > 1:
                logger.info("Habit %s streak reset after %s", habit_id, habit.last_logged.isoformat())

        await tx.execute(
            f"UPDATE {HABITS_TABLE} SET streak = :streak, last_logged = :last_logged WHERE id = :id",
            {"streak": streak, "last_logged": iso_date(last_logged), "id": habit_id},
        )
        logger.info("Habit %s logged on %s (streak %s)", habit_id, day_iso, streak)
        return True

    return await db.with_transaction(_log)


async def get_habit_logs(db: Executor, habit_id: int, start: date, end: date) -> list[HabitLog]:
    rows = await db.query(
        f"""
        SELECT {LOG_COLUMNS} FROM {HABIT_LOGS_TABLE}
        WHERE habit_id = :habit_id
          AND completed_date BETWEEN :start_date AND :end_date
        ORDER BY completed_date
        """,
        {"habit_id": habit_id, "start_date": start.isoformat(), "end_date": end.isoformat()},
    )
    return [HabitLog.model_validate(row) for row in rows]


async def get_habit_status_for_day(db: Executor, user_id: int, day: date) -> list[HabitDayStatus]:
    habits = await list_habits_by_user(db, user_id)
    rows = await db.query(
        f"""
        SELECT l.habit_id
        FROM {HABIT_LOGS_TABLE} l
        JOIN {HABITS_TABLE} h ON h.id = l.habit_id
        WHERE h.user_id = :user_id AND l.completed_date = :day
        """,
        {"user_id": user_id, "day": day.isoformat()},
    )
    logged_ids = {row["habit_id"] for row in rows}
    return [HabitDayStatus(habit=habit, logged=habit.id in logged_ids) for habit in habits]
