from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, Request

from prodotask.db import Gateway
from prodotask.schemas import User
from prodotask.services import user_service
from prodotask.settings import get_settings


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


async def require_backend_token(
    x_backend_token: str | None = Header(default=None, alias="X-Backend-Token"),
) -> None:
    settings = get_settings()
    if not x_backend_token or not secrets.compare_digest(x_backend_token, settings.backend_session_secret):
        raise HTTPException(status_code=401, detail="Invalid backend token")


async def require_user_email(
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    _: None = Depends(require_backend_token),
) -> str:
    settings = get_settings()
    if not x_user_email:
        raise HTTPException(status_code=401, detail="Missing user email")
    email = x_user_email.strip().lower()
    if settings.allowed_emails and email not in settings.allowed_emails:
        raise HTTPException(status_code=403, detail="User not allowed")
    return email


async def require_user(
    user_email: str = Depends(require_user_email),
    gateway: Gateway = Depends(get_gateway),
) -> User:
    record = await user_service.get_user_by_email(gateway, user_email)
    if record is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return record.public()


def ensure_owned(record, user: User, entity: str):
    """Return ``record`` if ``user`` owns it; otherwise 404 so ids do not leak."""
    if record is None or record.user_id != user.id:
        raise HTTPException(status_code=404, detail=f"{entity} not found")
    return record
