from __future__ import annotations

import logging
from typing import Union

import bcrypt

from prodotask.db import Executor
from prodotask.db_init import USERS_TABLE
from prodotask.errors import CreationFailed, ValidationFailed
from prodotask.patches import build_assignments, utc_now_iso
from prodotask.schemas import User, UserCreate, UserPatch, UserRecord
from prodotask.settings import get_settings

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, email, password_hash, name, avatar_url, theme_preference, created_at"

_PATCH_COLUMNS = {
    "email": None,
    "password_hash": None,
    "name": None,
    "avatar_url": None,
    "theme_preference": None,
}
_NON_NULL_COLUMNS = {"email", "password_hash", "theme_preference"}


def _normalize_email(value: str | None) -> str:
    email = str(value or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationFailed("A valid email address is required")
    return email


def _to_record(row: dict | None) -> UserRecord | None:
    return UserRecord.model_validate(row) if row else None


def hash_password(password: str) -> str:
    if not password:
        raise ValidationFailed("Password cannot be empty")
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        raise ValidationFailed("Password is too long (72 bytes max)")
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(user: UserRecord, password: str) -> bool:
    if not password or not user.password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash for user %s is not a bcrypt hash", user.id)
        return False


async def create_user(db: Executor, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    if await get_user_by_email(db, email) is not None:
        raise ValidationFailed("Email already registered")
    result = await db.execute(
        f"""
        INSERT INTO {USERS_TABLE} (email, password_hash, name, avatar_url, theme_preference, created_at)
        VALUES (:email, :password_hash, :name, :avatar_url, :theme_preference, :created_at)
        """,
        {
            "email": email,
            "password_hash": hash_password(payload.password),
            "name": payload.name,
            "avatar_url": payload.avatar_url,
            "theme_preference": payload.theme_preference or "light",
            "created_at": utc_now_iso(),
        },
    )
    record = await get_user_record(db, result.last_insert_id)
    if record is None:
        raise CreationFailed("user")
    logger.info("Registered user %s", record.id)
    return record.public()


async def get_user_record(db: Executor, user_id: int) -> UserRecord | None:
    row = await db.get_one(
        f"SELECT {USER_COLUMNS} FROM {USERS_TABLE} WHERE id = :id",
        {"id": user_id},
    )
    return _to_record(row)


async def get_user_by_id(db: Executor, user_id: int) -> User | None:
    record = await get_user_record(db, user_id)
    return record.public() if record else None


async def get_user_by_email(db: Executor, email: str) -> UserRecord | None:
    row = await db.get_one(
        f"SELECT {USER_COLUMNS} FROM {USERS_TABLE} WHERE email = :email",
        {"email": str(email or "").strip().lower()},
    )
    return _to_record(row)


async def update_user(db: Executor, user_id: int, patch: Union[UserPatch, dict]) -> User | None:
    fields = patch.model_dump(exclude_unset=True) if isinstance(patch, UserPatch) else dict(patch or {})
    password = fields.pop("password", None)
    if password is not None:
        fields["password_hash"] = hash_password(password)
    if fields.get("email") is not None:
        fields["email"] = _normalize_email(fields["email"])
        owner = await get_user_by_email(db, fields["email"])
        if owner is not None and owner.id != user_id:
            raise ValidationFailed("Email already registered")
    updates, params = build_assignments(fields, _PATCH_COLUMNS, non_null=_NON_NULL_COLUMNS)
    if not updates:
        return await get_user_by_id(db, user_id)
    params["id"] = user_id
    await db.execute(f"UPDATE {USERS_TABLE} SET {', '.join(updates)} WHERE id = :id", params)
    return await get_user_by_id(db, user_id)


async def change_password(db: Executor, user_id: int, new_password: str) -> bool:
    result = await db.execute(
        f"UPDATE {USERS_TABLE} SET password_hash = :password_hash WHERE id = :id",
        {"password_hash": hash_password(new_password), "id": user_id},
    )
    return result.rows_affected > 0


async def delete_user(db: Executor, user_id: int) -> bool:
    result = await db.execute(f"DELETE FROM {USERS_TABLE} WHERE id = :id", {"id": user_id})
    return result.rows_affected > 0


async def authenticate(db: Executor, email: str, password: str) -> User | None:
    record = await get_user_by_email(db, email)
    if record is None or not verify_password(record, password):
        return None
    return record.public()
