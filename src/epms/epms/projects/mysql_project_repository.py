from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Sequence

from ..access.filters import build_project_access_filter
from ..access.model import AccessContext
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone
from .model import Project
from .repository import ProjectRepository

PROJECT_COLUMNS = (
    "name",
    "description",
    "status",
    "priority",
    "health",
    "methodology",
    "planned_start_date",
    "planned_end_date",
    "budget",
    "actual_cost",
    "progress_percentage",
    "owner_id",
    "manager_id",
    "department_id",
    "category",
)

_COUNTS_SQL = """
    (SELECT COUNT(*) FROM tasks t WHERE t.project_id = p.id AND t.deleted_at IS NULL) AS task_count,
    (SELECT COUNT(*) FROM tasks t WHERE t.project_id = p.id AND t.status = 'done' AND t.deleted_at IS NULL)
        AS completed_task_count,
    (SELECT COUNT(*) FROM project_members pm WHERE pm.project_id = p.id AND pm.is_active = 1) AS member_count
"""


class MySQLProjectRepository(ProjectRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, project_id: int) -> Optional[Project]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, code, name, status, department_id, owner_id, manager_id, created_by
                FROM projects
                WHERE id=%s AND deleted_at IS NULL
                """,
                (project_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Project(
                project_id=int(row["id"]),
                code=row.get("code") or "",
                name=row["name"],
                status=row.get("status") or "planning",
                department_id=row.get("department_id"),
                owner_id=row.get("owner_id"),
                manager_id=row.get("manager_id"),
                created_by=row.get("created_by"),
            )

    def get_detail(self, project_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT p.*, u.name AS owner_name, m.name AS manager_name, d.name AS department_name,
                       {_COUNTS_SQL},
                       (SELECT COUNT(*) FROM sprints s WHERE s.project_id = p.id) AS sprint_count,
                       (SELECT COUNT(*) FROM risks r WHERE r.project_id = p.id AND r.deleted_at IS NULL) AS risk_count,
                       (SELECT COUNT(*) FROM issues i WHERE i.project_id = p.id AND i.deleted_at IS NULL) AS issue_count
                FROM projects p
                LEFT JOIN users u ON u.id = p.owner_id
                LEFT JOIN users m ON m.id = p.manager_id
                LEFT JOIN departments d ON d.id = p.department_id
                WHERE p.id=%s AND p.deleted_at IS NULL
                """,
                (project_id,),
            )
            return fetchone(cur)

    def list_members(self, project_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT pm.id, pm.project_id, pm.user_id, pm.role_name, pm.joined_at,
                       u.name AS user_name, u.email AS user_email, u.job_title,
                       u.department_id AS user_dept_id, dept.name AS user_dept_name
                FROM project_members pm
                JOIN users u ON u.id = pm.user_id
                LEFT JOIN departments dept ON dept.id = u.department_id
                WHERE pm.project_id=%s AND pm.is_active = 1
                """,
                (project_id,),
            )
            return fetchall(cur)

    def list_phases(self, project_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM project_phases WHERE project_id=%s ORDER BY order_index", (project_id,))
            return fetchall(cur)

    def list_milestones(self, project_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT m.*, ph.name AS phase_name
                FROM project_milestones m
                LEFT JOIN project_phases ph ON ph.id = m.phase_id
                WHERE m.project_id=%s
                ORDER BY m.due_date
                """,
                (project_id,),
            )
            return fetchall(cur)

    def list_projects(
        self,
        ctx: AccessContext,
        *,
        status: Optional[str] = None,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[dict]:
        access_sql, params = build_project_access_filter(ctx, "p")
        sql = f"""
            SELECT p.*, u.name AS owner_name, m.name AS manager_name, d.name AS department_name,
                   {_COUNTS_SQL}
            FROM projects p
            LEFT JOIN users u ON u.id = p.owner_id
            LEFT JOIN users m ON m.id = p.manager_id
            LEFT JOIN departments d ON d.id = p.department_id
            WHERE p.deleted_at IS NULL AND p.is_template = FALSE AND {access_sql}
        """
        args: List[Any] = list(params)
        if status and status != "all":
            sql += " AND p.status=%s"
            args.append(status)
        if department_id:
            sql += " AND p.department_id=%s"
            args.append(department_id)
        if search:
            sql += " AND (p.name LIKE %s OR p.code LIKE %s OR p.description LIKE %s)"
            like = f"%{search}%"
            args += [like, like, like]
        sql += " ORDER BY p.updated_at DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return fetchall(cur)

    def summarize(self, ctx: AccessContext) -> dict:
        access_sql, params = build_project_access_filter(ctx, "p")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN status IN ('active','execution','monitoring') THEN 1 ELSE 0 END) AS active,
                       SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                       SUM(CASE WHEN status = 'planning' THEN 1 ELSE 0 END) AS planning,
                       SUM(CASE WHEN status = 'on_hold' THEN 1 ELSE 0 END) AS on_hold,
                       SUM(CASE WHEN health = 'on_track' THEN 1 ELSE 0 END) AS on_track,
                       SUM(CASE WHEN health = 'at_risk' THEN 1 ELSE 0 END) AS at_risk,
                       SUM(CASE WHEN health = 'off_track' THEN 1 ELSE 0 END) AS off_track
                FROM projects p
                WHERE p.deleted_at IS NULL AND p.is_template = FALSE AND {access_sql}
                """,
                tuple(params),
            )
            row = fetchone(cur) or {}
            return {k: int(v or 0) for k, v in row.items()}

    def max_code_number(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT MAX(CAST(SUBSTRING(code, 5) AS UNSIGNED)) AS value
                FROM projects
                WHERE code LIKE 'PRJ-%'
                """
            )
            return int(fetch_scalar(cur))

    def create(
        self,
        *,
        code: str,
        name: str,
        description: Optional[str],
        status: str,
        priority: str,
        health: str,
        methodology: str,
        planned_start_date: Optional[date],
        planned_end_date: Optional[date],
        budget: float,
        owner_id: int,
        manager_id: int,
        department_id: int,
        category: Optional[str],
        created_by: int,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO projects(uuid, code, name, description, status, priority, health, methodology,
                                     planned_start_date, planned_end_date, budget, owner_id, manager_id,
                                     department_id, category, created_by)
                VALUES(UUID(), %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    code,
                    name,
                    description,
                    status,
                    priority,
                    health,
                    methodology,
                    planned_start_date,
                    planned_end_date,
                    budget,
                    owner_id,
                    manager_id,
                    department_id,
                    category,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

    def add_member(self, project_id: int, user_id: int, *, role_name: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT IGNORE INTO project_members(project_id, user_id, role_name) VALUES(%s, %s, %s)",
                (project_id, user_id, role_name),
            )

    def update(self, project_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=PROJECT_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE projects SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, project_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, project_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE projects SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL", (project_id,))
            return cur.rowcount > 0
