from __future__ import annotations

import logging

from sqlalchemy import text as sql_text
from sqlalchemy.ext.asyncio import AsyncConnection

logger = logging.getLogger(__name__)

USERS_TABLE = "Users"
TASKS_TABLE = "Tasks"
HABITS_TABLE = "Habits"
HABIT_LOGS_TABLE = "HabitLogs"
NOTES_TABLE = "Notes"
EVENTS_TABLE = "CalendarEvents"
LABELS_TABLE = "Labels"
TASK_LABELS_TABLE = "TaskLabels"


SCHEMA_STATEMENTS = [
    f"""
    CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        name TEXT,
        avatar_url TEXT,
        theme_preference TEXT NOT NULL DEFAULT 'light',
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {TASKS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        due_date TEXT,
        priority TEXT,
        status TEXT NOT NULL DEFAULT 'To Do',
        recurrence TEXT NOT NULL DEFAULT 'None',
        labels TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        user_id INTEGER NOT NULL REFERENCES {USERS_TABLE}(id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {HABITS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        frequency TEXT NOT NULL DEFAULT 'Daily',
        streak INTEGER NOT NULL DEFAULT 0,
        last_logged TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        user_id INTEGER NOT NULL REFERENCES {USERS_TABLE}(id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {NOTES_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        content TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        user_id INTEGER NOT NULL REFERENCES {USERS_TABLE}(id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {EVENTS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT,
        color TEXT,
        is_all_day INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        user_id INTEGER NOT NULL REFERENCES {USERS_TABLE}(id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {HABIT_LOGS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        habit_id INTEGER NOT NULL REFERENCES {HABITS_TABLE}(id),
        completed_date TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {LABELS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        color TEXT,
        user_id INTEGER NOT NULL REFERENCES {USERS_TABLE}(id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {TASK_LABELS_TABLE} (
        task_id INTEGER NOT NULL REFERENCES {TASKS_TABLE}(id),
        label_id INTEGER NOT NULL REFERENCES {LABELS_TABLE}(id),
        PRIMARY KEY (task_id, label_id)
    )
    """,
]

INDEX_STATEMENTS = [
    f"CREATE INDEX IF NOT EXISTS idx_{TASKS_TABLE}_user_due ON {TASKS_TABLE} (user_id, due_date)",
    f"CREATE INDEX IF NOT EXISTS idx_{HABITS_TABLE}_user ON {HABITS_TABLE} (user_id, name)",
    f"CREATE INDEX IF NOT EXISTS idx_{HABIT_LOGS_TABLE}_habit_date ON {HABIT_LOGS_TABLE} (habit_id, completed_date)",
    f"CREATE INDEX IF NOT EXISTS idx_{NOTES_TABLE}_user_updated ON {NOTES_TABLE} (user_id, updated_at)",
    f"CREATE INDEX IF NOT EXISTS idx_{EVENTS_TABLE}_user_start ON {EVENTS_TABLE} (user_id, start_time)",
]


async def init_db(conn: AsyncConnection) -> None:
    for statement in SCHEMA_STATEMENTS:
        await conn.execute(sql_text(statement))
    for statement in INDEX_STATEMENTS:
        await conn.execute(sql_text(statement))
    logger.debug("Schema ensured (%d tables)", len(SCHEMA_STATEMENTS))
