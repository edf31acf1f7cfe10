from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..common.sanitize import new_uuid
from ..core.enums import ChangeRequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone, placeholders
from .model import Approval, ChangeRequest
from .repository import ApprovalRepository, ChangeRequestRepository

CR_EDITABLE_COLUMNS = (
    "title",
    "description",
    "justification",
    "category",
    "current_state",
    "proposed_change",
    "benefits",
    "scope_impact",
    "schedule_impact_days",
    "cost_impact",
    "risk_impact",
    "quality_impact",
    "resource_impact",
    "priority",
    "impact_level",
    "urgency",
    "target_decision_date",
)

CR_INSERT_COLUMNS = (
    "uuid",
    "project_id",
    "change_number",
    "change_key",
    *CR_EDITABLE_COLUMNS,
    "requested_by",
    "status",
    "submitted_date",
    "submitted_at",
)


def _where(ctx: AccessContext, filters: Mapping[str, Any]) -> Tuple[str, List[Any]]:
    access_sql, params = build_entity_access_filter(ctx, "cr")
    sql = f"WHERE cr.deleted_at IS NULL AND {access_sql}"
    args: List[Any] = list(params)
    for key in ("status", "priority", "category", "project_id"):
        if filters.get(key):
            sql += f" AND cr.{key}=%s"
            args.append(filters[key])
    if filters.get("requested_by"):
        sql += " AND cr.requested_by=%s"
        args.append(filters["requested_by"])
    if filters.get("search"):
        sql += " AND (cr.title LIKE %s OR cr.change_key LIKE %s OR cr.description LIKE %s)"
        like = f"%{filters['search']}%"
        args += [like, like, like]
    return sql, args


class MySQLChangeRequestRepository(ChangeRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, cr_id: int) -> Optional[ChangeRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, project_id, change_key, title, status, requested_by
                FROM change_requests
                WHERE id=%s AND deleted_at IS NULL
                """,
                (cr_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return ChangeRequest(
                cr_id=int(row["id"]),
                project_id=row.get("project_id"),
                change_key=row.get("change_key") or "",
                title=row["title"],
                status=row.get("status") or ChangeRequestStatus.DRAFT.value,
                requested_by=row.get("requested_by"),
            )

    def get_detail(self, cr_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT cr.*, p.name AS project_name, p.code AS project_code,
                       u.name AS requester_name, u.email AS requester_email
                FROM change_requests cr
                LEFT JOIN projects p ON p.id = cr.project_id
                LEFT JOIN users u ON u.id = cr.requested_by
                WHERE cr.id=%s AND cr.deleted_at IS NULL
                """,
                (cr_id,),
            )
            return fetchone(cur)

    def list_page(self, ctx: AccessContext, *, filters: Mapping[str, Any], limit: int, offset: int) -> Sequence[dict]:
        where_sql, args = _where(ctx, filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT cr.id, cr.uuid, cr.change_key, cr.title, cr.description, cr.category, cr.priority,
                       cr.impact_level, cr.urgency, cr.status, cr.project_id, p.name AS project_name,
                       cr.requested_by, u.name AS requester_name,
                       cr.submitted_date, cr.target_decision_date, cr.decision_date, cr.created_at
                FROM change_requests cr
                LEFT JOIN projects p ON p.id = cr.project_id
                LEFT JOIN users u ON u.id = cr.requested_by
                {where_sql}
                ORDER BY cr.created_at DESC
                LIMIT %s OFFSET %s
                """,
                (*args, int(limit), int(offset)),
            )
            return fetchall(cur)

    def count(self, ctx: AccessContext, *, filters: Mapping[str, Any]) -> int:
        where_sql, args = _where(ctx, filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS value FROM change_requests cr {where_sql}", tuple(args))
            return int(fetch_scalar(cur))

    def count_for_project(self, project_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS value FROM change_requests WHERE project_id=%s", (project_id,))
            return int(fetch_scalar(cur))

    def create(self, fields: Mapping[str, Any]) -> int:
        values = dict(fields)
        values.setdefault("uuid", new_uuid())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO change_requests({', '.join(CR_INSERT_COLUMNS)}) "
                f"VALUES({placeholders(len(CR_INSERT_COLUMNS))})",
                tuple(values.get(c) for c in CR_INSERT_COLUMNS),
            )
            return int(cur.lastrowid)

    def update(self, cr_id: int, changes: Mapping[str, Any], *, submit: bool = False) -> bool:
        parts: List[str] = []
        params: List[Any] = []
        if changes:
            set_sql, set_params = build_set_clause(changes, allowed=CR_EDITABLE_COLUMNS)
            parts.append(set_sql)
            params.extend(set_params)
        if submit:
            parts.append("status=%s, submitted_date=CURDATE(), submitted_at=NOW()")
            params.append(ChangeRequestStatus.SUBMITTED.value)
        if not parts:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE change_requests SET {', '.join(parts)}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, cr_id),
            )
            return cur.rowcount > 0

    def set_status(self, cr_id: int, status: str, *, decided: bool = False) -> None:
        extra = ", decision_date=NOW()" if decided else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE change_requests SET status=%s{extra}, updated_at=NOW() WHERE id=%s",
                (status, cr_id),
            )

    def soft_delete(self, cr_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE change_requests SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (cr_id,),
            )
            return cur.rowcount > 0


class MySQLApprovalRepository(ApprovalRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_request(self, cr_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.*, u.name AS approver_name, u.email AS approver_email
                FROM cr_approvals a
                LEFT JOIN users u ON u.id = a.approver_id
                WHERE a.cr_id=%s
                ORDER BY a.step_order, a.created_at
                """,
                (cr_id,),
            )
            return fetchall(cur)

    def find_pending(self, cr_id: int, approver_id: int) -> Optional[Approval]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, cr_id, approver_id, status
                FROM cr_approvals
                WHERE cr_id=%s AND approver_id=%s AND status='pending'
                ORDER BY step_order
                LIMIT 1
                """,
                (cr_id, approver_id),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Approval(
                approval_id=int(row["id"]),
                cr_id=int(row["cr_id"]),
                approver_id=int(row["approver_id"]),
                status=row["status"],
            )

    def record_decision(
        self, approval_id: int, *, decision: str, comments: Optional[str], conditions: Optional[str]
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE cr_approvals
                SET status=%s, decision=%s, decision_date=NOW(), comments=%s, conditions=%s
                WHERE id=%s
                """,
                (decision, decision, comments, conditions, approval_id),
            )

    def count_pending(self, cr_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS value FROM cr_approvals WHERE cr_id=%s AND status='pending'",
                (cr_id,),
            )
            return int(fetch_scalar(cur))

    def add_approvers(self, cr_id: int, approver_ids: Sequence[int]) -> int:
        if not approver_ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT approver_id, step_order FROM cr_approvals WHERE cr_id=%s",
                (cr_id,),
            )
            rows = fetchall(cur)
            existing = {int(r["approver_id"]) for r in rows}
            next_step = max((int(r["step_order"] or 0) for r in rows), default=0) + 1
            new_rows = []
            for approver_id in approver_ids:
                if int(approver_id) in existing:
                    continue
                new_rows.append((new_uuid(), cr_id, int(approver_id), next_step))
                existing.add(int(approver_id))
                next_step += 1
            if new_rows:
                cur.executemany(
                    """
                    INSERT INTO cr_approvals(uuid, cr_id, approver_id, step_order, status)
                    VALUES(%s, %s, %s, %s, 'pending')
                    """,
                    new_rows,
                )
            return len(new_rows)

    def log_activity(self, cr_id: int, *, user_id: int, action: str, description: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO cr_activity_log(uuid, cr_id, user_id, action, description)
                VALUES(%s, %s, %s, %s, %s)
                """,
                (new_uuid(), cr_id, user_id, action, description),
            )

    def list_activity(self, cr_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.*, u.name AS user_name, u.email AS user_email
                FROM cr_activity_log a
                LEFT JOIN users u ON u.id = a.user_id
                WHERE a.cr_id=%s
                ORDER BY a.created_at DESC
                """,
                (cr_id,),
            )
            return fetchall(cur)
