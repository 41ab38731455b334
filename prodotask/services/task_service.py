from __future__ import annotations

import logging
from datetime import date
from typing import Union

from prodotask.db import Executor, TransactionScope
from prodotask.db_init import TASKS_TABLE, TASK_LABELS_TABLE
from prodotask.errors import CreationFailed, ValidationFailed
from prodotask.patches import build_assignments, iso_date, utc_now_iso
from prodotask.schemas import Task, TaskCreate, TaskPatch
from prodotask.services.recurrence import is_recurring, next_due_date

logger = logging.getLogger(__name__)

TASK_COLUMNS = "id, title, description, due_date, priority, status, recurrence, labels, created_at, updated_at, user_id"

PRIORITY_RANK = "CASE priority WHEN 'High' THEN 3 WHEN 'Medium' THEN 2 WHEN 'Low' THEN 1 ELSE 0 END"
TASK_ORDER = f"due_date IS NULL, due_date ASC, {PRIORITY_RANK} DESC, id ASC"

_PATCH_COLUMNS = {
    "title": None,
    "description": None,
    "due_date": iso_date,
    "priority": None,
    "status": None,
    "recurrence": None,
    "labels": None,
}
_NON_NULL_COLUMNS = {"title", "status", "recurrence"}


def _to_task(row: dict | None) -> Task | None:
    return Task.model_validate(row) if row else None


def _clean_title(value: str | None) -> str:
    title = " ".join(str(value or "").split())
    if not title:
        raise ValidationFailed("Task title cannot be empty")
    return title


async def create_task(db: Executor, user_id: int, payload: TaskCreate) -> Task:
    now = utc_now_iso()
    record = {
        "title": _clean_title(payload.title),
        "description": payload.description,
        "due_date": iso_date(payload.due_date),
        "priority": payload.priority,
        "status": payload.status or "To Do",
        "recurrence": payload.recurrence or "None",
        "labels": payload.labels,
        "created_at": now,
        "updated_at": now,
        "user_id": user_id,
    }
    result = await db.execute(
        f"""
        INSERT INTO {TASKS_TABLE}
        (title, description, due_date, priority, status, recurrence, labels, created_at, updated_at, user_id)
        VALUES
        (:title, :description, :due_date, :priority, :status, :recurrence, :labels, :created_at, :updated_at, :user_id)
        """,
        record,
    )
    task = await get_task_by_id(db, result.last_insert_id)
    if task is None:
        raise CreationFailed("task")
    logger.debug("Created task %s for user %s", task.id, user_id)
    return task


async def get_task_by_id(db: Executor, task_id: int) -> Task | None:
    row = await db.get_one(
        f"SELECT {TASK_COLUMNS} FROM {TASKS_TABLE} WHERE id = :id",
        {"id": task_id},
    )
    return _to_task(row)


async def list_tasks_by_user(db: Executor, user_id: int) -> list[Task]:
    rows = await db.query(
        f"SELECT {TASK_COLUMNS} FROM {TASKS_TABLE} WHERE user_id = :user_id ORDER BY {TASK_ORDER}",
        {"user_id": user_id},
    )
    return [_to_task(row) for row in rows]


async def list_tasks_by_status(db: Executor, user_id: int, status: str) -> list[Task]:
    rows = await db.query(
        f"""
        SELECT {TASK_COLUMNS} FROM {TASKS_TABLE}
        WHERE user_id = :user_id AND status = :status
        ORDER BY {TASK_ORDER}
        """,
        {"user_id": user_id, "status": status},
    )
    return [_to_task(row) for row in rows]


async def list_tasks_by_due_date(db: Executor, user_id: int, day: date) -> list[Task]:
    rows = await db.query(
        f"""
        SELECT {TASK_COLUMNS} FROM {TASKS_TABLE}
        WHERE user_id = :user_id AND due_date = :day
        ORDER BY {PRIORITY_RANK} DESC, id ASC
        """,
        {"user_id": user_id, "day": iso_date(day)},
    )
    return [_to_task(row) for row in rows]


async def list_overdue_tasks(db: Executor, user_id: int, today: date | None = None) -> list[Task]:
    today = today or date.today()
    rows = await db.query(
        f"""
        SELECT {TASK_COLUMNS} FROM {TASKS_TABLE}
        WHERE user_id = :user_id
          AND due_date IS NOT NULL
          AND due_date < :today
          AND status != 'Completed'
        ORDER BY {TASK_ORDER}
        """,
        {"user_id": user_id, "today": today.isoformat()},
    )
    return [_to_task(row) for row in rows]


async def update_task(db: Executor, task_id: int, patch: Union[TaskPatch, dict]) -> Task | None:
    fields = patch.model_dump(exclude_unset=True) if isinstance(patch, TaskPatch) else dict(patch or {})
    if "title" in fields and fields["title"] is not None:
        fields["title"] = _clean_title(fields["title"])
    updates, params = build_assignments(fields, _PATCH_COLUMNS, non_null=_NON_NULL_COLUMNS)
    if not updates:
        return await get_task_by_id(db, task_id)
    updates.append("updated_at = :updated_at")
    params["updated_at"] = utc_now_iso()
    params["id"] = task_id
    await db.execute(f"UPDATE {TASKS_TABLE} SET {', '.join(updates)} WHERE id = :id", params)
    return await get_task_by_id(db, task_id)


async def delete_task(db: Executor, task_id: int) -> bool:
    async def _delete(tx: TransactionScope) -> bool:
        await tx.execute(f"DELETE FROM {TASK_LABELS_TABLE} WHERE task_id = :task_id", {"task_id": task_id})
        result = await tx.execute(f"DELETE FROM {TASKS_TABLE} WHERE id = :id", {"id": task_id})
        return result.rows_affected > 0

    return await db.with_transaction(_delete)


async def complete_task(db: Executor, task_id: int, today: date | None = None) -> Task | None:
    """Mark a task Completed and, for recurring tasks, schedule the next one.

    Returns the completed original; the successor has to be fetched
    separately. ``today`` is the base date for recurring tasks without a due
    date.
    """

    async def _complete(tx: TransactionScope) -> Task | None:
        await tx.execute(
            f"UPDATE {TASKS_TABLE} SET status = 'Completed', updated_at = :updated_at WHERE id = :id",
            {"id": task_id, "updated_at": utc_now_iso()},
        )
        task = await get_task_by_id(tx, task_id)
        if task is None:
            return None
        if is_recurring(task.recurrence):
            base = task.due_date or today or date.today()
            successor = await create_task(
                tx,
                task.user_id,
                TaskCreate(
                    title=task.title,
                    description=task.description,
                    due_date=next_due_date(base, task.recurrence),
                    priority=task.priority,
                    status="To Do",
                    recurrence=task.recurrence,
                    labels=task.labels,
                ),
            )
            logger.info(
                "Task %s completed; %s successor %s due %s",
                task.id,
                task.recurrence.lower(),
                successor.id,
                successor.due_date,
            )
        else:
            logger.info("Task %s completed", task.id)
        return task

    return await db.with_transaction(_complete)
