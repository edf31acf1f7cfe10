from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def fetch_scalar(cur, key: str = "value", default: Any = 0) -> Any:
    row = cur.fetchone()
    if not row:
        return default
    value = row.get(key) if isinstance(row, dict) else row[0]
    return default if value is None else value


def build_set_clause(changes: Mapping[str, Any], *, allowed: Sequence[str]) -> Tuple[str, List[Any]]:
    """Build ``col=%s, ...`` for an UPDATE from a change mapping.

    Only columns listed in ``allowed`` are accepted; anything else is a bug in
    the caller and raises ``ValueError`` rather than reaching the SQL text.
    """

    parts: List[str] = []
    params: List[Any] = []
    for column, value in changes.items():
        if column not in allowed:
            raise ValueError(f"Column not updatable: {column!r}")
        parts.append(f"{column}=%s")
        params.append(value)
    return ", ".join(parts), params


def placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)
