from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from datetime import date as dt_date

from prodotask.auth import get_gateway, require_user
from prodotask.db import Gateway
from prodotask.schemas import User
from prodotask.services import calendar_service

router = APIRouter()


@router.get("/v1/day/{day}")
async def get_day(day: str, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    try:
        parsed = dt_date.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")
    payload = await calendar_service.get_day_events(gateway, user.id, parsed)
    return {"date": parsed.isoformat(), "user_id": user.id, **jsonable_encoder(payload)}
