from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from prodotask.auth import ensure_owned, get_gateway, require_user
from prodotask.db import Gateway
from prodotask.schemas import NoteCreate, NotePatch, User
from prodotask.services import note_service

router = APIRouter()


@router.get("/v1/notes")
async def list_notes(
    q: Optional[str] = Query(None),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    if q and q.strip():
        items = await note_service.search_notes(gateway, user.id, q)
    else:
        items = await note_service.list_notes_by_user(gateway, user.id)
    return {"items": jsonable_encoder(items)}


@router.get("/v1/notes/recent")
async def recent_notes(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    return {"items": jsonable_encoder(await note_service.list_recent_notes(gateway, user.id, limit))}


@router.post("/v1/notes")
async def create_note(payload: NoteCreate, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    return jsonable_encoder(await note_service.create_note(gateway, user.id, payload))


@router.get("/v1/notes/{note_id}")
async def get_note(note_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    note = ensure_owned(await note_service.get_note_by_id(gateway, note_id), user, "Note")
    return jsonable_encoder(note)


@router.patch("/v1/notes/{note_id}")
async def update_note(
    note_id: int,
    payload: NotePatch,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await note_service.get_note_by_id(gateway, note_id), user, "Note")
    note = await note_service.update_note(gateway, note_id, payload)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return jsonable_encoder(note)


@router.delete("/v1/notes/{note_id}")
async def delete_note(note_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    ensure_owned(await note_service.get_note_by_id(gateway, note_id), user, "Note")
    return {"ok": await note_service.delete_note(gateway, note_id)}
