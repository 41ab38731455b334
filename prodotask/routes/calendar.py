from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from prodotask.auth import ensure_owned, get_gateway, require_user
from prodotask.db import Gateway
from prodotask.schemas import CalendarEventCreate, CalendarEventPatch, User
from prodotask.services import calendar_service

router = APIRouter()


@router.get("/v1/calendar/events")
async def list_events(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    if start and end:
        if end < start:
            raise HTTPException(status_code=400, detail="end must not be before start")
        items = await calendar_service.list_events_by_range(gateway, user.id, start, end)
    elif start or end:
        raise HTTPException(status_code=400, detail="start and end must be given together")
    else:
        items = await calendar_service.list_events_by_user(gateway, user.id)
    return {"items": jsonable_encoder(items)}


@router.get("/v1/calendar/overlaps")
async def check_overlaps(
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_event_id: Optional[int] = Query(None),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    items = await calendar_service.find_overlapping_events(
        gateway, user.id, start_time, end_time, exclude_event_id=exclude_event_id
    )
    return {"overlapping": bool(items), "items": jsonable_encoder(items)}


@router.post("/v1/calendar/events")
async def create_event(
    payload: CalendarEventCreate,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    return jsonable_encoder(await calendar_service.create_event(gateway, user.id, payload))


@router.get("/v1/calendar/events/{event_id}")
async def get_event(event_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    event = ensure_owned(await calendar_service.get_event_by_id(gateway, event_id), user, "Event")
    return jsonable_encoder(event)


@router.patch("/v1/calendar/events/{event_id}")
async def update_event(
    event_id: int,
    payload: CalendarEventPatch,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await calendar_service.get_event_by_id(gateway, event_id), user, "Event")
    event = await calendar_service.update_event(gateway, event_id, payload)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return jsonable_encoder(event)


@router.delete("/v1/calendar/events/{event_id}")
async def delete_event(event_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    ensure_owned(await calendar_service.get_event_by_id(gateway, event_id), user, "Event")
    return {"ok": await calendar_service.delete_event(gateway, event_id)}
