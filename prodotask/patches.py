from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

Converter = Optional[Callable[[Any], Any]]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def iso_date(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    value_str = str(value).strip()
    return value_str[:10] if value_str else None


def iso_datetime(value) -> str | None:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    value_str = str(value).strip()
    return value_str or None


def as_flag(value) -> int:
    return int(bool(value))


def build_assignments(
    fields: Mapping[str, Any],
    columns: Mapping[str, Converter],
    non_null: Iterable[str] = (),
) -> tuple[list[str], dict]:
    """Turn the set fields of a patch into ``col = :col`` assignments.

    Only keys listed in ``columns`` are considered, so column names never come
    from caller input. ``None`` clears a nullable column and is ignored for
    the ones named in ``non_null``.
    """
    skip_null = set(non_null)
    assignments: list[str] = []
    params: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in columns:
            continue
        if value is None and key in skip_null:
            continue
        convert = columns[key]
        assignments.append(f"{key} = :{key}")
        params[key] = convert(value) if convert is not None and value is not None else value
    return assignments, params
