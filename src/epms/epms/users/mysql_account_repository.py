from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..core.constants import DEFAULT_ROLE_NAME
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone
from .account_model import Role, UserAccount
from .account_repository import RoleRepository, UserAccountRepository

ACCOUNT_COLUMNS = (
    "name",
    "first_name",
    "last_name",
    "email",
    "password",
    "phone",
    "job_title",
    "department_id",
    "status",
)

# A user's effective role is the lowest role id assigned, as at sign-in.
_ROLE_JOIN = "LEFT JOIN roles r ON r.id = (SELECT MIN(ur.role_id) FROM user_roles ur WHERE ur.user_id = u.id)"


def _filters(role: Optional[str], status: Optional[str], search: Optional[str]) -> Tuple[str, List[Any]]:
    where = "u.deleted_at IS NULL"
    params: List[Any] = []
    if role and role != "all":
        where += " AND COALESCE(r.name, %s)=%s"
        params += [DEFAULT_ROLE_NAME, role]
    if status and status != "all":
        where += " AND u.status=%s"
        params.append(status)
    if search:
        where += " AND (u.name LIKE %s OR u.email LIKE %s)"
        params += [f"%{search}%", f"%{search}%"]
    return where, params


class MySQLUserAccountRepository(UserAccountRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, user_id: int) -> Optional[UserAccount]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT u.id, u.uuid, u.name, u.email, u.first_name, u.last_name, u.phone, u.job_title,
                       u.department_id, u.status, r.name AS role_name
                FROM users u
                {_ROLE_JOIN}
                WHERE u.id=%s AND u.deleted_at IS NULL
                """,
                (user_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return UserAccount(
                user_id=int(row["id"]),
                uuid=row["uuid"],
                name=row.get("name") or "",
                email=row["email"],
                first_name=row.get("first_name"),
                last_name=row.get("last_name"),
                phone=row.get("phone"),
                job_title=row.get("job_title"),
                department_id=row.get("department_id"),
                status=row.get("status") or "active",
                role_name=row.get("role_name") or DEFAULT_ROLE_NAME,
            )

    def find_id_by_email(self, email: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        sql = "SELECT id FROM users WHERE email=%s AND deleted_at IS NULL"
        params: List[Any] = [email]
        if exclude_id is not None:
            sql += " AND id<>%s"
            params.append(exclude_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            row = fetchone(cur)
            return int(row["id"]) if row else None

    def list_page(
        self, *, role: Optional[str], status: Optional[str], search: Optional[str], limit: int, offset: int
    ) -> Sequence[dict]:
        where, params = _filters(role, status, search)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT u.id, u.uuid, u.name, u.first_name, u.last_name, u.email, u.phone, u.avatar_url,
                       u.job_title, u.department_id, d.name AS department_name, u.status,
                       u.last_login_at, u.created_at, u.updated_at,
                       COALESCE(r.name, %s) AS role
                FROM users u
                {_ROLE_JOIN}
                LEFT JOIN departments d ON d.id = u.department_id
                WHERE {where}
                ORDER BY u.created_at DESC
                LIMIT %s OFFSET %s
                """,
                (DEFAULT_ROLE_NAME, *params, int(limit), int(offset)),
            )
            return fetchall(cur)

    def count(self, *, role: Optional[str], status: Optional[str], search: Optional[str]) -> int:
        where, params = _filters(role, status, search)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS value FROM users u {_ROLE_JOIN} WHERE {where}", tuple(params))
            return int(fetch_scalar(cur))

    def create(self, fields: Mapping[str, Any]) -> int:
        set_sql, params = build_set_clause(fields, allowed=("uuid", *ACCOUNT_COLUMNS))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"INSERT INTO users SET {set_sql}", tuple(params))
            return int(cur.lastrowid)

    def update(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=ACCOUNT_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE users SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, user_id),
            )
            return cur.rowcount > 0

    def assign_role(self, user_id: int, role_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM user_roles WHERE user_id=%s", (user_id,))
            cur.execute("INSERT INTO user_roles (user_id, role_id) VALUES (%s, %s)", (user_id, role_id))

    def soft_delete(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET deleted_at=NOW(), status='inactive' WHERE id=%s AND deleted_at IS NULL",
                (user_id,),
            )
            removed = cur.rowcount > 0
            cur.execute("DELETE FROM user_roles WHERE user_id=%s", (user_id,))
            return removed


class MySQLRoleRepository(RoleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_role(row: dict) -> Role:
        return Role(
            role_id=int(row["id"]),
            name=row["name"],
            description=row.get("description"),
            is_system=bool(row.get("is_system")),
            user_count=int(row.get("user_count") or 0),
        )

    def list_roles(self) -> Sequence[Role]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT r.id, r.name, r.description, r.is_system,
                       (SELECT COUNT(*) FROM user_roles ur
                          JOIN users u ON u.id = ur.user_id AND u.deleted_at IS NULL
                         WHERE ur.role_id = r.id) AS user_count
                FROM roles r
                ORDER BY r.id
                """
            )
            return [self._to_role(row) for row in fetchall(cur)]

    def get_by_name(self, name: str) -> Optional[Role]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT id, name, description, is_system FROM roles WHERE name=%s LIMIT 1", (name,))
            row = fetchone(cur)
            return self._to_role(row) if row else None
