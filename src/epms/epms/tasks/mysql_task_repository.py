from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Sequence

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone
from .model import Task
from .repository import TaskRepository

TASK_COLUMNS = (
    "title",
    "description",
    "status",
    "priority",
    "severity",
    "type",
    "sprint_id",
    "phase_id",
    "parent_id",
    "story_points",
    "estimated_hours",
    "actual_hours",
    "planned_start_date",
    "due_date",
    "progress_percentage",
    "completed_at",
)


def _split_ids(value: Any) -> List[int]:
    if not value:
        return []
    return [int(v) for v in str(value).split(",") if v.strip()]


class MySQLTaskRepository(TaskRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, task_id: int) -> Optional[Task]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, project_id, task_key, title, status, sprint_id
                FROM tasks
                WHERE id=%s AND deleted_at IS NULL
                """,
                (task_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Task(
                task_id=int(row["id"]),
                project_id=int(row["project_id"]),
                task_key=row.get("task_key") or "",
                title=row["title"],
                status=row.get("status") or "to_do",
                sprint_id=row.get("sprint_id"),
            )

    def get_detail(self, task_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT t.*, p.name AS project_name, p.code AS project_code, p.department_id,
                       s.name AS sprint_name, ph.name AS phase_name, parent.title AS parent_title,
                       GROUP_CONCAT(DISTINCT u.name) AS assignee_names,
                       GROUP_CONCAT(DISTINCT ta.user_id) AS assignee_ids
                FROM tasks t
                JOIN projects p ON p.id = t.project_id
                LEFT JOIN sprints s ON s.id = t.sprint_id
                LEFT JOIN project_phases ph ON ph.id = t.phase_id
                LEFT JOIN tasks parent ON parent.id = t.parent_id
                LEFT JOIN task_assignees ta ON ta.task_id = t.id
                LEFT JOIN users u ON u.id = ta.user_id
                WHERE t.id=%s AND t.deleted_at IS NULL
                GROUP BY t.id
                """,
                (task_id,),
            )
            row = fetchone(cur)
            if row:
                row["assignee_ids"] = _split_ids(row.get("assignee_ids"))
            return row

    def list_comments(self, task_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT c.*, u.name AS user_name
                FROM task_comments c
                JOIN users u ON u.id = c.user_id
                WHERE c.task_id=%s
                ORDER BY c.created_at DESC
                """,
                (task_id,),
            )
            return fetchall(cur)

    def list_dependencies(self, task_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT td.*, t.title AS dep_name, t.status AS dep_status
                FROM task_dependencies td
                JOIN tasks t ON t.id = td.depends_on_task_id
                WHERE td.task_id=%s
                """,
                (task_id,),
            )
            return fetchall(cur)

    def list_subtasks(self, task_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, title, task_key, status, priority
                FROM tasks
                WHERE parent_id=%s AND deleted_at IS NULL
                ORDER BY created_at
                """,
                (task_id,),
            )
            return fetchall(cur)

    def list_tasks(self, ctx: AccessContext, *, filters: Mapping[str, Any]) -> Sequence[dict]:
        access_sql, params = build_entity_access_filter(ctx, "t")
        sql = f"""
            SELECT t.id, t.task_number, t.task_key, t.title, t.type, t.status, t.priority, t.severity,
                   t.story_points, t.estimated_hours, t.actual_hours, t.due_date, t.planned_start_date,
                   t.project_id, t.sprint_id, t.phase_id, t.parent_id, t.progress_percentage,
                   t.created_at, t.updated_at,
                   p.name AS project_name, p.code AS project_code, p.department_id,
                   s.name AS sprint_name,
                   GROUP_CONCAT(DISTINCT u.name) AS assignee_names,
                   GROUP_CONCAT(DISTINCT ta.user_id) AS assignee_ids,
                   (SELECT COUNT(*) FROM tasks sub WHERE sub.parent_id = t.id AND sub.deleted_at IS NULL)
                       AS subtask_count
            FROM tasks t
            JOIN projects p ON p.id = t.project_id
            LEFT JOIN sprints s ON s.id = t.sprint_id
            LEFT JOIN task_assignees ta ON ta.task_id = t.id
            LEFT JOIN users u ON u.id = ta.user_id
            WHERE t.deleted_at IS NULL AND p.deleted_at IS NULL AND {access_sql}
        """
        args: List[Any] = list(params)
        for key, column in (("project_id", "t.project_id"), ("sprint_id", "t.sprint_id")):
            if filters.get(key) is not None:
                sql += f" AND {column}=%s"
                args.append(filters[key])
        if filters.get("assignee_id") is not None:
            # Separate alias keeps every assignee in the GROUP_CONCATs.
            sql += " AND EXISTS (SELECT 1 FROM task_assignees x WHERE x.task_id = t.id AND x.user_id=%s)"
            args.append(filters["assignee_id"])
        for key in ("status", "priority", "type"):
            value = filters.get(key)
            if value and value != "all":
                sql += f" AND t.{key}=%s"
                args.append(value)
        if filters.get("search"):
            sql += " AND (t.title LIKE %s OR t.task_key LIKE %s OR t.description LIKE %s)"
            like = f"%{filters['search']}%"
            args += [like, like, like]
        sql += " GROUP BY t.id ORDER BY t.updated_at DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            rows = fetchall(cur)
        for row in rows:
            row["assignee_ids"] = _split_ids(row.get("assignee_ids"))
        return rows

    def summarize(self, ctx: AccessContext, *, project_id: Optional[int] = None) -> dict:
        access_sql, params = build_entity_access_filter(ctx, "t")
        args: List[Any] = list(params)
        extra = ""
        if project_id is not None:
            extra = " AND t.project_id=%s"
            args.append(project_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN t.status = 'to_do' THEN 1 ELSE 0 END) AS todo,
                       SUM(CASE WHEN t.status = 'in_progress' THEN 1 ELSE 0 END) AS in_progress,
                       SUM(CASE WHEN t.status = 'done' THEN 1 ELSE 0 END) AS done,
                       SUM(CASE WHEN t.status = 'in_review' THEN 1 ELSE 0 END) AS in_review,
                       SUM(CASE WHEN t.priority = 'critical' THEN 1 ELSE 0 END) AS critical,
                       SUM(CASE WHEN t.due_date < CURDATE() AND t.status NOT IN ('done','cancelled')
                                THEN 1 ELSE 0 END) AS overdue
                FROM tasks t
                JOIN projects p ON p.id = t.project_id
                WHERE t.deleted_at IS NULL AND p.deleted_at IS NULL AND {access_sql}{extra}
                """,
                tuple(args),
            )
            row = fetchone(cur) or {}
            return {k: int(v or 0) for k, v in row.items()}

    def count_for_project(self, project_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS value FROM tasks WHERE project_id=%s", (project_id,))
            return int(fetch_scalar(cur))

    def create(
        self,
        *,
        task_number: int,
        task_key: str,
        title: str,
        description: Optional[str],
        project_id: int,
        sprint_id: Optional[int],
        phase_id: Optional[int],
        parent_id: Optional[int],
        type: str,
        status: str,
        priority: str,
        severity: Optional[str],
        story_points: Optional[int],
        estimated_hours: Optional[float],
        planned_start_date: Optional[date],
        due_date: Optional[date],
        created_by: int,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO tasks(task_number, task_key, title, description, project_id, sprint_id, phase_id,
                                  parent_id, type, status, priority, severity, story_points, estimated_hours,
                                  planned_start_date, due_date, created_by)
                VALUES(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    task_number,
                    task_key,
                    title,
                    description,
                    project_id,
                    sprint_id,
                    phase_id,
                    parent_id,
                    type,
                    status,
                    priority,
                    severity,
                    story_points,
                    estimated_hours,
                    planned_start_date,
                    due_date,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

    def replace_assignees(self, task_id: int, user_ids: Sequence[int]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM task_assignees WHERE task_id=%s", (task_id,))
            if user_ids:
                cur.executemany(
                    "INSERT INTO task_assignees(task_id, user_id) VALUES(%s, %s)",
                    [(task_id, int(uid)) for uid in user_ids],
                )

    def update(self, task_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=TASK_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE tasks SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, task_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, task_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tasks SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL", (task_id,))
            return cur.rowcount > 0
