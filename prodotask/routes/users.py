from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder

from prodotask.auth import get_gateway, require_backend_token, require_user
from prodotask.db import Gateway
from prodotask.schemas import LoginPayload, PasswordChange, User, UserCreate, UserPatch
from prodotask.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/v1/users", dependencies=[Depends(require_backend_token)])
async def register(payload: UserCreate, gateway: Gateway = Depends(get_gateway)):
    user = await user_service.create_user(gateway, payload)
    return jsonable_encoder(user)


@router.post("/v1/auth/login", dependencies=[Depends(require_backend_token)])
async def login(payload: LoginPayload, gateway: Gateway = Depends(get_gateway)):
    user = await user_service.authenticate(gateway, payload.email, payload.password)
    if user is None:
        logger.info("Rejected login for %s", payload.email.strip().lower())
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return jsonable_encoder(user)


@router.get("/v1/me")
async def me(user: User = Depends(require_user)):
    return jsonable_encoder(user)


@router.patch("/v1/me")
async def update_me(payload: UserPatch, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    updated = await user_service.update_user(gateway, user.id, payload)
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")
    return jsonable_encoder(updated)


@router.put("/v1/me/password")
async def change_password(
    payload: PasswordChange,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    return {"ok": await user_service.change_password(gateway, user.id, payload.password)}
