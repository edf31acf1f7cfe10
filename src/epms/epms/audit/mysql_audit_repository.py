from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence, Tuple

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetch_scalar, fetchall
from .model import AuditEntry
from .repository import AuditRepository


def _filters(user_id: Optional[int], action: Optional[str], resource_type: Optional[str]) -> Tuple[str, List[Any]]:
    where = ["1=1"]
    params: List[Any] = []
    if user_id is not None:
        where.append("user_id=%s")
        params.append(user_id)
    if action:
        where.append("action=%s")
        params.append(action)
    if resource_type:
        where.append("resource_type=%s")
        params.append(resource_type)
    return " AND ".join(where), params


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert(self, entry_id: str, entry: AuditEntry) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs
                    (id, user_id, user_email, user_role, action, resource_type, resource_id,
                     resource_name, changes, metadata, ip_address, user_agent, created_at)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,NOW())
                """,
                (
                    entry_id,
                    entry.user_id,
                    entry.user_email,
                    entry.user_role,
                    entry.action.value,
                    entry.resource_type,
                    entry.resource_id,
                    entry.resource_name,
                    json.dumps(entry.changes, default=str) if entry.changes else None,
                    json.dumps(entry.metadata, default=str) if entry.metadata else None,
                    entry.ip_address,
                    entry.user_agent,
                ),
            )

    def list_recent(
        self,
        *,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[dict]:
        where, params = _filters(user_id, action, resource_type)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT id, user_id, user_email, user_role, action, resource_type, resource_id,
                       resource_name, changes, metadata, ip_address, user_agent, created_at
                FROM audit_logs
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            return fetchall(cur)

    def count(
        self,
        *,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
    ) -> int:
        where, params = _filters(user_id, action, resource_type)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS value FROM audit_logs WHERE {where}", tuple(params))
            return int(fetch_scalar(cur))
