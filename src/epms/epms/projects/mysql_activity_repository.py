from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .activity_repository import ActivityRepository


class MySQLActivityRepository(ActivityRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def log(
        self,
        *,
        user_id: int,
        project_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO project_activity_log(user_id, project_id, action, entity_type, entity_id, description)
                VALUES(%s, %s, %s, %s, %s, %s)
                """,
                (user_id, project_id, action, entity_type, entity_id, description),
            )

    def list_for_project(self, project_id: int, *, limit: int = 50) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.id, a.user_id, u.name AS user_name, a.action, a.entity_type, a.entity_id,
                       a.description, a.created_at
                FROM project_activity_log a
                LEFT JOIN users u ON u.id = a.user_id
                WHERE a.project_id=%s
                ORDER BY a.created_at DESC, a.id DESC
                LIMIT %s
                """,
                (project_id, int(limit)),
            )
            return fetchall(cur)
