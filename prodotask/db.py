from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar, Union

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncConnection, AsyncEngine
from sqlalchemy.pool import StaticPool

from prodotask.db_init import init_db
from prodotask.errors import TransactionAborted

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    if url.startswith("sqlite:///"):
        url = "sqlite+aiosqlite:///" + url[len("sqlite:///") :]
    if not url.startswith("sqlite+aiosqlite:///"):
        raise ValueError(f"Unsupported DATABASE_URL {url!r}; expected a sqlite:/// path")
    return url


def _sqlite_path(url: str) -> str | None:
    prefix = "sqlite+aiosqlite:///"
    if not url.startswith(prefix):
        return None
    path = url[len(prefix) :].split("?", 1)[0]
    if not path or path == ":memory:":
        return None
    return path


@dataclass(frozen=True)
class ExecResult:
    last_insert_id: int | None
    rows_affected: int


async def _fetch_all(conn: AsyncConnection, sql: str, params: dict | None) -> list[dict]:
    result = await conn.execute(sql_text(sql), params or {})
    return [dict(row) for row in result.mappings().all()]


async def _fetch_one(conn: AsyncConnection, sql: str, params: dict | None) -> dict | None:
    result = await conn.execute(sql_text(sql), params or {})
    row = result.mappings().fetchone()
    return dict(row) if row else None


async def _execute(conn: AsyncConnection, sql: str, params: dict | None) -> ExecResult:
    result = await conn.execute(sql_text(sql), params or {})
    return ExecResult(last_insert_id=result.lastrowid, rows_affected=result.rowcount or 0)


class TransactionScope:
    """Executes statements on the single connection of an open transaction."""

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def query(self, sql: str, params: dict | None = None) -> list[dict]:
        return await _fetch_all(self._conn, sql, params)

    async def get_one(self, sql: str, params: dict | None = None) -> dict | None:
        return await _fetch_one(self._conn, sql, params)

    async def execute(self, sql: str, params: dict | None = None) -> ExecResult:
        return await _execute(self._conn, sql, params)

    async def with_transaction(self, fn: Callable[["TransactionScope"], Awaitable[T]]) -> T:
        # Already inside a transaction; nested scopes join it.
        return await fn(self)


class Gateway:
    """Parameterised access to the relational store.

    Every statement is a SQLAlchemy ``text()`` with named binds. The schema is
    created on first use; ``open()`` does it eagerly and ``close()`` disposes
    the engine.
    """

    def __init__(self, database_url: str, **engine_kwargs: Any):
        self.database_url = _normalize_database_url(database_url)
        self._engine: AsyncEngine = self._build_engine(self.database_url, engine_kwargs)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @staticmethod
    def _build_engine(db_url: str, engine_kwargs: dict) -> AsyncEngine:
        kwargs: dict[str, Any] = {"future": True}
        sqlite_path = _sqlite_path(db_url)
        if sqlite_path:
            Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        else:
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        kwargs.update(engine_kwargs)
        return create_async_engine(db_url, **kwargs)

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await init_db(conn)
            self._schema_ready = True
            logger.info("Database schema ready at %s", self._engine.url.render_as_string(hide_password=True))

    async def open(self) -> "Gateway":
        await self._ensure_schema()
        return self

    async def close(self) -> None:
        await self._engine.dispose()
        self._schema_ready = False

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        await self._ensure_schema()
        async with self._engine.begin() as conn:
            yield conn

    async def query(self, sql: str, params: dict | None = None) -> list[dict]:
        async with self._connect() as conn:
            return await _fetch_all(conn, sql, params)

    async def get_one(self, sql: str, params: dict | None = None) -> dict | None:
        async with self._connect() as conn:
            return await _fetch_one(conn, sql, params)

    async def execute(self, sql: str, params: dict | None = None) -> ExecResult:
        async with self._connect() as conn:
            return await _execute(conn, sql, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionScope]:
        try:
            async with self._connect() as conn:
                yield TransactionScope(conn)
        except SQLAlchemyError as exc:
            logger.warning("Transaction rolled back: %s", exc)
            raise TransactionAborted(str(exc)) from exc

    async def with_transaction(self, fn: Callable[[TransactionScope], Awaitable[T]]) -> T:
        async with self.transaction() as tx:
            return await fn(tx)


Executor = Union[Gateway, TransactionScope]
