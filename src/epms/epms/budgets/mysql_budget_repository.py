from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..core.enums import BudgetStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetchall, fetchone
from .model import Budget
from .repository import BudgetRepository

BUDGET_COLUMNS = ("total_budget", "approved_budget", "actual_spent", "remaining", "status", "notes")


class MySQLBudgetRepository(BudgetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, budget_id: int) -> Optional[Budget]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, project_id, fiscal_year, total_budget, approved_budget, actual_spent, status
                FROM project_budgets
                WHERE id=%s
                """,
                (budget_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Budget(
                budget_id=int(row["id"]),
                project_id=int(row["project_id"]),
                fiscal_year=int(row.get("fiscal_year") or 0),
                total_budget=float(row.get("total_budget") or 0),
                approved_budget=float(row.get("approved_budget") or 0),
                actual_spent=float(row.get("actual_spent") or 0),
                status=row.get("status") or BudgetStatus.DRAFT.value,
            )

    def get_detail(self, budget_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT pb.*, p.name AS project_name, p.code AS project_code, p.budget AS project_budget,
                       p.actual_cost, u.name AS approved_by_name,
                       (SELECT COALESCE(SUM(amount), 0) FROM expenses e
                           WHERE e.project_id = p.id AND e.status = 'approved') AS total_expenses
                FROM project_budgets pb
                JOIN projects p ON p.id = pb.project_id
                LEFT JOIN users u ON u.id = pb.approved_by
                WHERE pb.id=%s
                """,
                (budget_id,),
            )
            return fetchone(cur)

    def list_budgets(self, ctx: AccessContext, *, project_id: Optional[int] = None) -> Sequence[dict]:
        access_sql, params = build_entity_access_filter(ctx, "pb")
        sql = f"""
            SELECT pb.*, p.name AS project_name, p.code AS project_code, p.budget AS project_budget,
                   p.actual_cost, p.department_id, d.name AS department_name
            FROM project_budgets pb
            JOIN projects p ON p.id = pb.project_id
            LEFT JOIN departments d ON d.id = p.department_id
            WHERE p.deleted_at IS NULL AND {access_sql}
        """
        args: List[Any] = list(params)
        if project_id is not None:
            sql += " AND pb.project_id=%s"
            args.append(project_id)
        sql += " ORDER BY pb.fiscal_year DESC, p.name"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return fetchall(cur)

    def overview(self, ctx: AccessContext) -> dict:
        access_sql, params = build_entity_access_filter(ctx, "pb")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COALESCE(SUM(pb.total_budget), 0) AS total_budget,
                       COALESCE(SUM(pb.approved_budget), 0) AS approved_budget,
                       COALESCE(SUM(pb.actual_spent), 0) AS actual_spent,
                       COALESCE(SUM(pb.remaining), 0) AS remaining,
                       COUNT(DISTINCT pb.project_id) AS project_count
                FROM project_budgets pb
                JOIN projects p ON p.id = pb.project_id
                WHERE p.deleted_at IS NULL AND {access_sql}
                """,
                tuple(params),
            )
            row = fetchone(cur) or {}
        out = {k: float(row.get(k) or 0) for k in ("total_budget", "approved_budget", "actual_spent", "remaining")}
        out["project_count"] = int(row.get("project_count") or 0)
        return out

    def create(
        self,
        *,
        project_id: int,
        fiscal_year: int,
        total_budget: float,
        approved_budget: float,
        notes: Optional[str],
        status: str,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO project_budgets(project_id, fiscal_year, total_budget, approved_budget, actual_spent,
                                            remaining, notes, status)
                VALUES(%s, %s, %s, %s, 0, %s, %s, %s)
                """,
                (project_id, fiscal_year, total_budget, approved_budget, total_budget, notes, status),
            )
            return int(cur.lastrowid)

    def update(self, budget_id: int, changes: Mapping[str, Any], *, approved_by: Optional[int] = None) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=BUDGET_COLUMNS)
        if approved_by is not None:
            set_sql += ", approved_by=%s, approved_at=NOW()"
            params.append(approved_by)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE project_budgets SET {set_sql}, updated_at=NOW() WHERE id=%s", (*params, budget_id))
            return cur.rowcount > 0

    def delete(self, budget_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM project_budgets WHERE id=%s", (budget_id,))
            return cur.rowcount > 0
