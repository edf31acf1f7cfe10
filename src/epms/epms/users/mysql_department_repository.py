from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone
from .department_model import Department
from .department_repository import DepartmentRepository

DEPARTMENT_COLUMNS = ("name", "manager_id", "parent_id", "analytic_account", "description", "status")


def _filters(search: Optional[str], status: Optional[str]) -> Tuple[str, List[Any]]:
    where = "d.deleted_at IS NULL"
    params: List[Any] = []
    if search:
        where += " AND (d.name LIKE %s OR d.analytic_account LIKE %s)"
        params += [f"%{search}%", f"%{search}%"]
    if status and status != "all":
        where += " AND d.status=%s"
        params.append(status)
    return where, params


class MySQLDepartmentRepository(DepartmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, department_id: int) -> Optional[Department]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, name, manager_id, parent_id, analytic_account, description, status
                FROM departments
                WHERE id=%s AND deleted_at IS NULL
                """,
                (department_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Department(
                department_id=int(row["id"]),
                name=row["name"],
                manager_id=row.get("manager_id"),
                parent_id=row.get("parent_id"),
                analytic_account=row.get("analytic_account"),
                description=row.get("description"),
                status=row.get("status") or "active",
            )

    def find_id_by_name(self, name: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        sql = "SELECT id FROM departments WHERE name=%s AND deleted_at IS NULL"
        params: List[Any] = [name]
        if exclude_id is not None:
            sql += " AND id<>%s"
            params.append(exclude_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            row = fetchone(cur)
            return int(row["id"]) if row else None

    def list_page(
        self, *, search: Optional[str], status: Optional[str], limit: int, offset: int
    ) -> Sequence[dict]:
        where, params = _filters(search, status)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT d.id, d.uuid, d.name, d.analytic_account, d.status, d.description,
                       d.manager_id, d.parent_id, d.created_at, d.updated_at,
                       CONCAT(m.first_name, ' ', m.last_name) AS manager_name,
                       m.email AS manager_email,
                       p.name AS parent_name,
                       (SELECT COUNT(*) FROM users u
                         WHERE u.department_id = d.id AND u.deleted_at IS NULL) AS member_count
                FROM departments d
                LEFT JOIN users m ON m.id = d.manager_id
                LEFT JOIN departments p ON p.id = d.parent_id
                WHERE {where}
                ORDER BY d.name ASC
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            return fetchall(cur)

    def count(self, *, search: Optional[str], status: Optional[str]) -> int:
        where, params = _filters(search, status)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS value FROM departments d WHERE {where}", tuple(params))
            return int(fetch_scalar(cur))

    def list_active(self) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, name, manager_id
                FROM departments
                WHERE status='active' AND deleted_at IS NULL
                ORDER BY name
                """
            )
            return fetchall(cur)

    def create(
        self,
        *,
        name: str,
        manager_id: Optional[int],
        parent_id: Optional[int],
        analytic_account: Optional[str],
        description: Optional[str],
        status: str,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO departments(uuid, name, manager_id, parent_id, analytic_account, description, status)
                VALUES(UUID(), %s, %s, %s, %s, %s, %s)
                """,
                (name, manager_id, parent_id, analytic_account, description, status),
            )
            return int(cur.lastrowid)

    def update(self, department_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=DEPARTMENT_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE departments SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, department_id),
            )
            return cur.rowcount > 0

    def has_children(self, department_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id FROM departments WHERE parent_id=%s AND deleted_at IS NULL LIMIT 1",
                (department_id,),
            )
            return fetchone(cur) is not None

    def soft_delete(self, department_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE departments SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (department_id,),
            )
            return cur.rowcount > 0
