from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Union

from prodotask.db import Executor
from prodotask.db_init import EVENTS_TABLE
from prodotask.errors import CreationFailed, ValidationFailed
from prodotask.patches import as_flag, build_assignments, iso_date, iso_datetime, utc_now_iso
from prodotask.schemas import CalendarEvent, CalendarEventCreate, CalendarEventPatch, DayEvents
from prodotask.services import task_service

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id, title, start_time, end_time, color, is_all_day, created_at, user_id"
EVENT_ORDER = "datetime(start_time), id"

_PATCH_COLUMNS = {
    "title": None,
    "start_time": iso_datetime,
    "end_time": iso_datetime,
    "color": None,
    "is_all_day": as_flag,
}
_NON_NULL_COLUMNS = {"title", "start_time", "is_all_day"}


def _to_event(row: dict | None) -> CalendarEvent | None:
    return CalendarEvent.model_validate(row) if row else None


def _check_interval(start_time: datetime | None, end_time: datetime | None) -> None:
    if start_time is None or end_time is None:
        return
    try:
        inverted = end_time < start_time
    except TypeError:
        raise ValidationFailed("Event start and end must both be timezone-aware or both naive")
    if inverted:
        raise ValidationFailed("Event end_time is before start_time")


async def create_event(db: Executor, user_id: int, payload: CalendarEventCreate) -> CalendarEvent:
    title = str(payload.title or "").strip()
    if not title:
        raise ValidationFailed("Event title cannot be empty")
    _check_interval(payload.start_time, payload.end_time)
    result = await db.execute(
        f"""
        INSERT INTO {EVENTS_TABLE} (title, start_time, end_time, color, is_all_day, created_at, user_id)
        VALUES (:title, :start_time, :end_time, :color, :is_all_day, :created_at, :user_id)
        """,
        {
            "title": title,
            "start_time": iso_datetime(payload.start_time),
            "end_time": iso_datetime(payload.end_time),
            "color": payload.color,
            "is_all_day": as_flag(payload.is_all_day),
            "created_at": utc_now_iso(),
            "user_id": user_id,
        },
    )
    event = await get_event_by_id(db, result.last_insert_id)
    if event is None:
        raise CreationFailed("calendar event")
    return event


async def get_event_by_id(db: Executor, event_id: int) -> CalendarEvent | None:
    row = await db.get_one(
        f"SELECT {EVENT_COLUMNS} FROM {EVENTS_TABLE} WHERE id = :id",
        {"id": event_id},
    )
    return _to_event(row)


async def list_events_by_user(db: Executor, user_id: int) -> list[CalendarEvent]:
    rows = await db.query(
        f"SELECT {EVENT_COLUMNS} FROM {EVENTS_TABLE} WHERE user_id = :user_id ORDER BY {EVENT_ORDER}",
        {"user_id": user_id},
    )
    return [_to_event(row) for row in rows]


async def list_events_by_range(db: Executor, user_id: int, start: date, end: date) -> list[CalendarEvent]:
    rows = await db.query(
        f"""
        SELECT {EVENT_COLUMNS} FROM {EVENTS_TABLE}
        WHERE user_id = :user_id
          AND (
            substr(start_time, 1, 10) BETWEEN :start_date AND :end_date
            OR substr(end_time, 1, 10) BETWEEN :start_date AND :end_date
            OR (substr(start_time, 1, 10) <= :start_date AND substr(end_time, 1, 10) >= :end_date)
          )
        ORDER BY {EVENT_ORDER}
        """,
        {"user_id": user_id, "start_date": iso_date(start), "end_date": iso_date(end)},
    )
    return [_to_event(row) for row in rows]


async def update_event(
    db: Executor, event_id: int, patch: Union[CalendarEventPatch, dict]
) -> CalendarEvent | None:
    fields = (
        patch.model_dump(exclude_unset=True) if isinstance(patch, CalendarEventPatch) else dict(patch or {})
    )
    if fields.get("title") is not None:
        fields["title"] = str(fields["title"]).strip()
        if not fields["title"]:
            raise ValidationFailed("Event title cannot be empty")
    updates, params = build_assignments(fields, _PATCH_COLUMNS, non_null=_NON_NULL_COLUMNS)
    if not updates:
        return await get_event_by_id(db, event_id)
    if "start_time" in params or "end_time" in params:
        current = await get_event_by_id(db, event_id)
        if current is None:
            return None
        _check_interval(
            fields.get("start_time") or current.start_time,
            fields["end_time"] if "end_time" in fields else current.end_time,
        )
    params["id"] = event_id
    await db.execute(f"UPDATE {EVENTS_TABLE} SET {', '.join(updates)} WHERE id = :id", params)
    return await get_event_by_id(db, event_id)


async def delete_event(db: Executor, event_id: int) -> bool:
    result = await db.execute(f"DELETE FROM {EVENTS_TABLE} WHERE id = :id", {"id": event_id})
    return result.rows_affected > 0


async def find_overlapping_events(
    db: Executor,
    user_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_event_id: int | None = None,
) -> list[CalendarEvent]:
    """Timed events of ``user_id`` intersecting the half-open ``[start_time, end_time)``.

    All-day events never conflict. An event without an end is an instant and
    conflicts when it falls inside the window.
    """
    sql = f"""
        SELECT {EVENT_COLUMNS} FROM {EVENTS_TABLE}
        WHERE user_id = :user_id
          AND is_all_day = 0
          AND datetime(start_time) < datetime(:end_time)
          AND (
            (end_time IS NULL AND datetime(:start_time) <= datetime(start_time))
            OR datetime(:start_time) < datetime(end_time)
          )
    """
    params = {
        "user_id": user_id,
        "start_time": iso_datetime(start_time),
        "end_time": iso_datetime(end_time),
    }
    if exclude_event_id is not None:
        sql += " AND id != :exclude_id"
        params["exclude_id"] = exclude_event_id
    sql += f" ORDER BY {EVENT_ORDER}"
    rows = await db.query(sql, params)
    if rows:
        logger.debug("%d event(s) overlap %s - %s for user %s", len(rows), start_time, end_time, user_id)
    return [_to_event(row) for row in rows]


async def get_day_events(db: Executor, user_id: int, day: date) -> DayEvents:
    day_iso = iso_date(day)
    rows = await db.query(
        f"""
        SELECT {EVENT_COLUMNS} FROM {EVENTS_TABLE}
        WHERE user_id = :user_id
          AND (
            substr(start_time, 1, 10) = :day
            OR substr(end_time, 1, 10) = :day
            OR (substr(start_time, 1, 10) <= :day AND substr(end_time, 1, 10) >= :day)
          )
        ORDER BY {EVENT_ORDER}
        """,
        {"user_id": user_id, "day": day_iso},
    )
    tasks = await task_service.list_tasks_by_due_date(db, user_id, day)
    return DayEvents(events=[_to_event(row) for row in rows], tasks=tasks)
