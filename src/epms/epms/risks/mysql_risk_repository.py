from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..core.enums import RiskStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone, placeholders
from .model import Risk
from .repository import RiskRepository

RISK_INSERT_COLUMNS = (
    "risk_number",
    "risk_key",
    "project_id",
    "title",
    "description",
    "category",
    "probability",
    "impact",
    "risk_score",
    "risk_level",
    "mitigation_plan",
    "contingency_plan",
    "owner_id",
    "status",
)

RISK_COLUMNS = (
    "title",
    "description",
    "category",
    "probability",
    "impact",
    "risk_score",
    "risk_level",
    "status",
    "mitigation_plan",
    "contingency_plan",
    "owner_id",
)

_SELECT_SQL = """
    SELECT r.*, p.name AS project_name, p.code AS project_code, u.name AS owner_name
    FROM risks r
    JOIN projects p ON p.id = r.project_id
    LEFT JOIN users u ON u.id = r.owner_id
"""


class MySQLRiskRepository(RiskRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, risk_id: int) -> Optional[Risk]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, project_id, risk_key, title, status, probability, impact, owner_id
                FROM risks
                WHERE id=%s AND deleted_at IS NULL
                """,
                (risk_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Risk(
                risk_id=int(row["id"]),
                project_id=int(row["project_id"]),
                risk_key=row.get("risk_key") or "",
                title=row["title"],
                status=row.get("status") or RiskStatus.IDENTIFIED.value,
                probability=int(row.get("probability") or 3),
                impact=int(row.get("impact") or 3),
                owner_id=row.get("owner_id"),
            )

    def get_detail(self, risk_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_SQL + " WHERE r.id=%s AND r.deleted_at IS NULL", (risk_id,))
            return fetchone(cur)

    def list_risks(
        self,
        ctx: AccessContext,
        *,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
        risk_level: Optional[str] = None,
    ) -> Sequence[dict]:
        access_sql, params = build_entity_access_filter(ctx, "r")
        sql = _SELECT_SQL + f" WHERE r.deleted_at IS NULL AND p.deleted_at IS NULL AND {access_sql}"
        args: List[Any] = list(params)
        if project_id is not None:
            sql += " AND r.project_id=%s"
            args.append(project_id)
        if status and status != "all":
            sql += " AND r.status=%s"
            args.append(status)
        if risk_level and risk_level != "all":
            sql += " AND r.risk_level=%s"
            args.append(risk_level)
        sql += " ORDER BY r.risk_score DESC, r.created_at DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return fetchall(cur)

    def summarize(self, ctx: AccessContext) -> dict:
        access_sql, params = build_entity_access_filter(ctx, "r")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN r.status <> 'closed' THEN 1 ELSE 0 END) AS open_risks,
                       SUM(CASE WHEN r.status = 'mitigating' THEN 1 ELSE 0 END) AS mitigating,
                       SUM(CASE WHEN r.status = 'closed' THEN 1 ELSE 0 END) AS closed,
                       SUM(CASE WHEN r.risk_level = 'critical' THEN 1 ELSE 0 END) AS critical,
                       SUM(CASE WHEN r.risk_level = 'high' THEN 1 ELSE 0 END) AS high,
                       SUM(CASE WHEN r.risk_level = 'medium' THEN 1 ELSE 0 END) AS medium,
                       SUM(CASE WHEN r.risk_level = 'low' THEN 1 ELSE 0 END) AS low,
                       AVG(r.risk_score) AS avg_score
                FROM risks r
                JOIN projects p ON p.id = r.project_id
                WHERE r.deleted_at IS NULL AND p.deleted_at IS NULL AND {access_sql}
                """,
                tuple(params),
            )
            row = fetchone(cur) or {}
        summary = {k: int(v or 0) for k, v in row.items() if k != "avg_score"}
        summary["avg_score"] = round(float(row.get("avg_score") or 0), 1)
        return summary

    def count_for_project(self, project_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS value FROM risks WHERE project_id=%s", (project_id,))
            return int(fetch_scalar(cur))

    def create(self, fields: Mapping[str, Any]) -> int:
        values = [fields.get(c) for c in RISK_INSERT_COLUMNS]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO risks({', '.join(RISK_INSERT_COLUMNS)}) "
                f"VALUES({placeholders(len(RISK_INSERT_COLUMNS))})",
                tuple(values),
            )
            return int(cur.lastrowid)

    def update(self, risk_id: int, changes: Mapping[str, Any], *, closing: bool = False) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=RISK_COLUMNS)
        if closing:
            set_sql += ", closed_date=NOW()"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE risks SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, risk_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, risk_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE risks SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL", (risk_id,))
            return cur.rowcount > 0
