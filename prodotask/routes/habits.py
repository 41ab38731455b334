from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from prodotask.auth import ensure_owned, get_gateway, require_user
from prodotask.db import Gateway
from prodotask.errors import TransactionAborted
from prodotask.schemas import HabitCreate, HabitLogPayload, HabitPatch, User
from prodotask.services import habit_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/v1/habits")
async def list_habits(user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    return {"items": jsonable_encoder(await habit_service.list_habits_by_user(gateway, user.id))}


@router.post("/v1/habits")
async def create_habit(payload: HabitCreate, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    habit = await habit_service.create_habit(gateway, user.id, payload)
    return jsonable_encoder(habit)


@router.get("/v1/habits/status/{day}")
async def habit_status(day: date, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    items = await habit_service.get_habit_status_for_day(gateway, user.id, day)
    return {"date": day.isoformat(), "items": jsonable_encoder(items)}


@router.get("/v1/habits/{habit_id}")
async def get_habit(habit_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    habit = ensure_owned(await habit_service.get_habit_by_id(gateway, habit_id), user, "Habit")
    return jsonable_encoder(habit)


@router.patch("/v1/habits/{habit_id}")
async def update_habit(
    habit_id: int,
    payload: HabitPatch,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await habit_service.get_habit_by_id(gateway, habit_id), user, "Habit")
    habit = await habit_service.update_habit(gateway, habit_id, payload)
    if habit is None:
        raise HTTPException(status_code=404, detail="Habit not found")
    return jsonable_encoder(habit)


@router.delete("/v1/habits/{habit_id}")
async def delete_habit(habit_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    ensure_owned(await habit_service.get_habit_by_id(gateway, habit_id), user, "Habit")
    return {"ok": await habit_service.delete_habit(gateway, habit_id)}


@router.post("/v1/habits/{habit_id}/log")
async def log_habit(
    habit_id: int,
    payload: Optional[HabitLogPayload] = None,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await habit_service.get_habit_by_id(gateway, habit_id), user, "Habit")
    day = payload.day if payload else None
    try:
        ok = await habit_service.log_habit(gateway, habit_id, day)
    except TransactionAborted as exc:
        logger.exception("Failed to log habit %s: %s", habit_id, exc)
        raise HTTPException(status_code=500, detail="Internal error")
    habit = await habit_service.get_habit_by_id(gateway, habit_id)
    return {"ok": ok, "habit": jsonable_encoder(habit)}


@router.get("/v1/habits/{habit_id}/logs")
async def list_habit_logs(
    habit_id: int,
    start: date = Query(...),
    end: date = Query(...),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await habit_service.get_habit_by_id(gateway, habit_id), user, "Habit")
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    items = await habit_service.get_habit_logs(gateway, habit_id, start, end)
    return {"items": jsonable_encoder(items)}
