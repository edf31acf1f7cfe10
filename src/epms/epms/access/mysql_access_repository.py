from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import UserAccessRow
from .repository import AccessRepository


class MySQLAccessRepository(AccessRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_user_access_row(self, user_id: int) -> Optional[UserAccessRow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT u.id, u.department_id,
                       COALESCE(r.name, '') AS role_name,
                       (SELECT COUNT(*) FROM departments d
                         WHERE d.manager_id = u.id AND d.deleted_at IS NULL) AS is_dept_manager
                FROM users u
                LEFT JOIN user_roles ur ON ur.user_id = u.id
                LEFT JOIN roles r ON r.id = ur.role_id
                WHERE u.id=%s AND u.deleted_at IS NULL
                ORDER BY ur.role_id ASC
                LIMIT 1
                """,
                (user_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return UserAccessRow(
                user_id=int(row["id"]),
                department_id=row.get("department_id") or None,
                role_name=row.get("role_name") or "",
                manages_department=int(row.get("is_dept_manager") or 0) > 0,
            )

    def list_department_manager_project_ids(self, *, user_id: int, department_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DISTINCT p.id
                FROM projects p
                LEFT JOIN project_members pm ON pm.project_id = p.id AND pm.user_id = %s
                WHERE p.deleted_at IS NULL
                  AND (p.department_id = %s OR pm.user_id IS NOT NULL OR p.manager_id = %s OR p.owner_id = %s)
                """,
                (user_id, department_id, user_id, user_id),
            )
            return [int(r["id"]) for r in fetchall(cur)]

    def list_staff_project_ids(self, *, user_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DISTINCT p.id
                FROM projects p
                LEFT JOIN project_members pm
                       ON pm.project_id = p.id AND pm.user_id = %s AND pm.is_active = 1
                WHERE p.deleted_at IS NULL
                  AND (pm.user_id IS NOT NULL OR p.manager_id = %s OR p.owner_id = %s OR p.created_by = %s)
                """,
                (user_id, user_id, user_id, user_id),
            )
            return [int(r["id"]) for r in fetchall(cur)]
