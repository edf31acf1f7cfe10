from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.constants import DEFAULT_ROLE_NAME
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetchone
from .model import UserCredentials, UserProfile
from .repository import UserRepository

PROFILE_COLUMNS = (
    "first_name",
    "last_name",
    "display_name",
    "phone",
    "job_title",
    "department",
    "timezone",
    "locale",
    "date_format",
    "time_format",
)

_CREDENTIALS_SQL = """
    SELECT u.id, u.name, u.email, u.password, u.status, r.name AS role_name
    FROM users u
    LEFT JOIN user_roles ur ON ur.user_id = u.id
    LEFT JOIN roles r ON r.id = ur.role_id
    WHERE {where} AND u.status='active' AND u.deleted_at IS NULL
    ORDER BY ur.role_id ASC
    LIMIT 1
"""


def _to_credentials(row: dict) -> UserCredentials:
    return UserCredentials(
        user_id=int(row["id"]),
        name=row.get("name") or "",
        email=row["email"],
        password=row.get("password") or "",
        role_name=row.get("role_name") or DEFAULT_ROLE_NAME,
        status=row.get("status") or "active",
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_CREDENTIALS_SQL.format(where="u.email=%s"), (email,))
            row = fetchone(cur)
            return _to_credentials(row) if row else None

    def get_credentials_by_id(self, user_id: int) -> Optional[UserCredentials]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_CREDENTIALS_SQL.format(where="u.id=%s"), (user_id,))
            row = fetchone(cur)
            return _to_credentials(row) if row else None

    def update_password(self, user_id: int, password_hash: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET password=%s, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (password_hash, user_id),
            )
            return cur.rowcount > 0

    def touch_last_login(self, user_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET last_login_at=NOW() WHERE id=%s", (user_id,))

    def get_profile(self, user_id: int) -> Optional[UserProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT u.id, u.uuid, u.email, u.first_name, u.last_name, u.display_name,
                       u.avatar_url, u.phone, u.job_title, u.department,
                       u.timezone, u.locale, u.date_format, u.time_format,
                       u.status, u.last_login_at, u.created_at
                FROM users u
                WHERE u.id=%s AND u.deleted_at IS NULL
                """,
                (user_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return UserProfile(
                user_id=int(row["id"]),
                uuid=row.get("uuid"),
                email=row["email"],
                first_name=row.get("first_name"),
                last_name=row.get("last_name"),
                display_name=row.get("display_name"),
                avatar_url=row.get("avatar_url"),
                phone=row.get("phone"),
                job_title=row.get("job_title"),
                department=row.get("department"),
                timezone=row.get("timezone") or "UTC",
                locale=row.get("locale") or "en",
                date_format=row.get("date_format") or "YYYY-MM-DD",
                time_format=row.get("time_format") or "24h",
                status=row.get("status") or "active",
                last_login_at=row.get("last_login_at"),
                created_at=row.get("created_at"),
            )

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=PROFILE_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE users SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, user_id),
            )
            return cur.rowcount > 0
