from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..core.enums import TimeEntryStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetchall, fetchone
from .model import TimeEntry
from .repository import TimeEntryRepository

TIME_ENTRY_COLUMNS = ("duration_minutes", "description", "is_billable", "task_id", "date")


def _scope(ctx: AccessContext, owner_id: Optional[int]) -> Tuple[str, List[Any]]:
    access_sql, params = build_entity_access_filter(ctx, "te")
    sql = f"p.deleted_at IS NULL AND {access_sql}"
    args: List[Any] = list(params)
    if owner_id is not None:
        sql += " AND te.user_id=%s"
        args.append(owner_id)
    return sql, args


class MySQLTimeEntryRepository(TimeEntryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, entry_id: int) -> Optional[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, user_id, project_id, task_id, date, duration_minutes, status, is_billable
                FROM time_entries
                WHERE id=%s
                """,
                (entry_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return TimeEntry(
                entry_id=int(row["id"]),
                user_id=int(row["user_id"]),
                project_id=int(row["project_id"]),
                task_id=row.get("task_id"),
                entry_date=row["date"],
                duration_minutes=int(row.get("duration_minutes") or 0),
                status=row.get("status") or TimeEntryStatus.DRAFT.value,
                is_billable=bool(row.get("is_billable")),
            )

    def get_detail(self, entry_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT te.*, ROUND(te.duration_minutes / 60, 2) AS hours,
                       u.name AS user_name, p.name AS project_name, p.code AS project_code,
                       t.title AS task_name, t.task_key
                FROM time_entries te
                JOIN users u ON u.id = te.user_id
                JOIN projects p ON p.id = te.project_id
                LEFT JOIN tasks t ON t.id = te.task_id
                WHERE te.id=%s
                """,
                (entry_id,),
            )
            return fetchone(cur)

    def list_entries(
        self,
        ctx: AccessContext,
        *,
        owner_id: Optional[int],
        filters: Mapping[str, Any],
    ) -> Sequence[dict]:
        scope_sql, args = _scope(ctx, owner_id)
        sql = f"""
            SELECT te.*, ROUND(te.duration_minutes / 60, 2) AS hours,
                   u.name AS user_name, u.email AS user_email,
                   p.name AS project_name, p.code AS project_code,
                   t.title AS task_name, t.task_key
            FROM time_entries te
            JOIN users u ON u.id = te.user_id
            JOIN projects p ON p.id = te.project_id
            LEFT JOIN tasks t ON t.id = te.task_id
            WHERE {scope_sql}
        """
        if filters.get("user_id") is not None:
            sql += " AND te.user_id=%s"
            args.append(filters["user_id"])
        if filters.get("project_id") is not None:
            sql += " AND te.project_id=%s"
            args.append(filters["project_id"])
        if filters.get("date_from"):
            sql += " AND te.date >= %s"
            args.append(filters["date_from"])
        if filters.get("date_to"):
            sql += " AND te.date <= %s"
            args.append(filters["date_to"])
        status = filters.get("status")
        if status and status != "all":
            sql += " AND te.status=%s"
            args.append(status)
        sql += " ORDER BY te.date DESC, te.created_at DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return fetchall(cur)

    def summarize(self, ctx: AccessContext, *, owner_id: Optional[int]) -> dict:
        scope_sql, args = _scope(ctx, owner_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total_entries,
                       COALESCE(SUM(te.duration_minutes), 0) / 60 AS total_hours,
                       COALESCE(SUM(CASE WHEN te.is_billable = 1 THEN te.duration_minutes ELSE 0 END), 0) / 60
                           AS billable_hours,
                       COALESCE(SUM(CASE WHEN te.is_billable = 0 THEN te.duration_minutes ELSE 0 END), 0) / 60
                           AS non_billable_hours,
                       COALESCE(SUM(CASE WHEN te.status = 'submitted' THEN te.duration_minutes ELSE 0 END), 0) / 60
                           AS pending_hours,
                       COALESCE(SUM(CASE WHEN te.status = 'approved' THEN te.duration_minutes ELSE 0 END), 0) / 60
                           AS approved_hours
                FROM time_entries te
                JOIN projects p ON p.id = te.project_id
                WHERE {scope_sql}
                """,
                tuple(args),
            )
            row = fetchone(cur) or {}
        out = {k: round(float(v or 0), 2) for k, v in row.items()}
        out["total_entries"] = int(row.get("total_entries") or 0)
        return out

    def create(
        self,
        *,
        user_id: int,
        project_id: int,
        task_id: Optional[int],
        entry_date: date,
        duration_minutes: int,
        description: Optional[str],
        is_billable: bool,
        status: str,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO time_entries(user_id, project_id, task_id, date, duration_minutes, description,
                                         is_billable, status)
                VALUES(%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (user_id, project_id, task_id, entry_date, duration_minutes, description, int(is_billable), status),
            )
            return int(cur.lastrowid)

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=TIME_ENTRY_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE time_entries SET {set_sql}, updated_at=NOW() WHERE id=%s", (*params, entry_id))
            return cur.rowcount > 0

    def set_status(self, entry_id: int, status: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_entries
                SET status=%s, rejection_reason=NULL, submitted_at=NOW(), updated_at=NOW()
                WHERE id=%s
                """,
                (status, entry_id),
            )
            return cur.rowcount > 0

    def review(self, entry_id: int, *, status: str, reviewer_id: int, rejection_reason: Optional[str]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_entries
                SET status=%s, approved_by=%s, approved_at=NOW(), rejection_reason=%s, updated_at=NOW()
                WHERE id=%s
                """,
                (status, reviewer_id, rejection_reason, entry_id),
            )
            return cur.rowcount > 0

    def delete(self, entry_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM time_entries WHERE id=%s", (entry_id,))
            return cur.rowcount > 0
