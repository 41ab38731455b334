from __future__ import annotations

from typing import Union

from prodotask.db import Executor
from prodotask.db_init import NOTES_TABLE
from prodotask.errors import CreationFailed, ValidationFailed
from prodotask.patches import build_assignments, utc_now_iso
from prodotask.schemas import Note, NoteCreate, NotePatch

NOTE_COLUMNS = "id, title, content, created_at, updated_at, user_id"
NOTE_ORDER = "updated_at DESC, id DESC"

_PATCH_COLUMNS = {"title": None, "content": None}


def _to_note(row: dict | None) -> Note | None:
    return Note.model_validate(row) if row else None


def _clean_title(value: str | None) -> str:
    title = str(value or "").strip()
    if not title:
        raise ValidationFailed("Note title cannot be empty")
    return title


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def create_note(db: Executor, user_id: int, payload: NoteCreate) -> Note:
    now = utc_now_iso()
    result = await db.execute(
        f"""
        INSERT INTO {NOTES_TABLE} (title, content, created_at, updated_at, user_id)
        VALUES (:title, :content, :created_at, :updated_at, :user_id)
        """,
        {
            "title": _clean_title(payload.title),
            "content": payload.content,
            "created_at": now,
            "updated_at": now,
            "user_id": user_id,
        },
    )
    note = await get_note_by_id(db, result.last_insert_id)
    if note is None:
        raise CreationFailed("note")
    return note


async def get_note_by_id(db: Executor, note_id: int) -> Note | None:
    row = await db.get_one(
        f"SELECT {NOTE_COLUMNS} FROM {NOTES_TABLE} WHERE id = :id",
        {"id": note_id},
    )
    return _to_note(row)


async def list_notes_by_user(db: Executor, user_id: int) -> list[Note]:
    rows = await db.query(
        f"SELECT {NOTE_COLUMNS} FROM {NOTES_TABLE} WHERE user_id = :user_id ORDER BY {NOTE_ORDER}",
        {"user_id": user_id},
    )
    return [_to_note(row) for row in rows]


async def search_notes(db: Executor, user_id: int, term: str) -> list[Note]:
    pattern = f"%{_escape_like(term.strip())}%"
    rows = await db.query(
        f"""
        SELECT {NOTE_COLUMNS} FROM {NOTES_TABLE}
        WHERE user_id = :user_id
          AND (title LIKE :pattern ESCAPE '\\' OR content LIKE :pattern ESCAPE '\\')
        ORDER BY {NOTE_ORDER}
        """,
        {"user_id": user_id, "pattern": pattern},
    )
    return [_to_note(row) for row in rows]


async def list_recent_notes(db: Executor, user_id: int, limit: int = 5) -> list[Note]:
    rows = await db.query(
        f"""
        SELECT {NOTE_COLUMNS} FROM {NOTES_TABLE}
        WHERE user_id = :user_id
        ORDER BY {NOTE_ORDER}
        LIMIT :limit
        """,
        {"user_id": user_id, "limit": max(int(limit), 0)},
    )
    return [_to_note(row) for row in rows]


async def update_note(db: Executor, note_id: int, patch: Union[NotePatch, dict]) -> Note | None:
    fields = patch.model_dump(exclude_unset=True) if isinstance(patch, NotePatch) else dict(patch or {})
    if fields.get("title") is not None:
        fields["title"] = _clean_title(fields["title"])
    updates, params = build_assignments(fields, _PATCH_COLUMNS, non_null={"title"})
    if not updates:
        return await get_note_by_id(db, note_id)
    updates.append("updated_at = :updated_at")
    params["updated_at"] = utc_now_iso()
    params["id"] = note_id
    await db.execute(f"UPDATE {NOTES_TABLE} SET {', '.join(updates)} WHERE id = :id", params)
    return await get_note_by_id(db, note_id)


async def delete_note(db: Executor, note_id: int) -> bool:
    result = await db.execute(f"DELETE FROM {NOTES_TABLE} WHERE id = :id", {"id": note_id})
    return result.rows_affected > 0
