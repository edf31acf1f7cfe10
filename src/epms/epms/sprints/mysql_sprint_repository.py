from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Sequence

from ..access.filters import build_entity_access_filter
from ..access.model import AccessContext
from ..core.enums import SprintStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone
from .model import CompletedWork, Sprint
from .repository import SprintRepository

SPRINT_COLUMNS = (
    "name",
    "goal",
    "status",
    "start_date",
    "end_date",
    "capacity_points",
    "capacity_hours",
    "velocity",
    "what_went_well",
    "what_to_improve",
    "retrospective_notes",
)

_TOTALS_SQL = """
    (SELECT COUNT(*) FROM tasks WHERE sprint_id = s.id AND deleted_at IS NULL) AS total_tasks,
    (SELECT COUNT(*) FROM tasks WHERE sprint_id = s.id AND status = 'done' AND deleted_at IS NULL)
        AS completed_tasks,
    (SELECT COALESCE(SUM(story_points), 0) FROM tasks WHERE sprint_id = s.id AND deleted_at IS NULL)
        AS total_points,
    (SELECT COALESCE(SUM(story_points), 0) FROM tasks
        WHERE sprint_id = s.id AND status = 'done' AND deleted_at IS NULL) AS completed_points
"""


class MySQLSprintRepository(SprintRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, sprint_id: int) -> Optional[Sprint]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, project_id, name, status, start_date, end_date, extended_to, committed_points
                FROM sprints
                WHERE id=%s
                """,
                (sprint_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Sprint(
                sprint_id=int(row["id"]),
                project_id=int(row["project_id"]),
                name=row["name"],
                status=row.get("status") or SprintStatus.PLANNING.value,
                start_date=row.get("start_date"),
                end_date=row.get("end_date"),
                extended_to=row.get("extended_to"),
                committed_points=int(row.get("committed_points") or 0),
            )

    def get_detail(self, sprint_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.*, p.name AS project_name, p.code AS project_code, p.department_id,
                       {_TOTALS_SQL},
                       (SELECT COALESCE(SUM(estimated_hours), 0) FROM tasks
                           WHERE sprint_id = s.id AND deleted_at IS NULL) AS total_hours
                FROM sprints s
                JOIN projects p ON p.id = s.project_id
                WHERE s.id=%s
                """,
                (sprint_id,),
            )
            return fetchone(cur)

    def list_tasks(self, sprint_id: int) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT t.id, t.task_key, t.title, t.type, t.status, t.priority, t.story_points,
                       t.estimated_hours, t.actual_hours, t.due_date,
                       GROUP_CONCAT(DISTINCT u.name) AS assignee_names
                FROM tasks t
                LEFT JOIN task_assignees ta ON ta.task_id = t.id
                LEFT JOIN users u ON u.id = ta.user_id
                WHERE t.sprint_id=%s AND t.deleted_at IS NULL
                GROUP BY t.id
                ORDER BY t.priority = 'critical' DESC, t.priority = 'high' DESC, t.created_at
                """,
                (sprint_id,),
            )
            return fetchall(cur)

    def list_sprints(
        self,
        ctx: AccessContext,
        *,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Sequence[dict]:
        access_sql, params = build_entity_access_filter(ctx, "s")
        sql = f"""
            SELECT s.*, p.name AS project_name, p.code AS project_code,
                   {_TOTALS_SQL}
            FROM sprints s
            JOIN projects p ON p.id = s.project_id
            WHERE p.deleted_at IS NULL AND {access_sql}
        """
        args: List[Any] = list(params)
        if project_id is not None:
            sql += " AND s.project_id=%s"
            args.append(project_id)
        if status and status != "all":
            sql += " AND s.status=%s"
            args.append(status)
        sql += " ORDER BY s.start_date DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return fetchall(cur)

    def create(
        self,
        *,
        project_id: int,
        name: str,
        goal: Optional[str],
        start_date: date,
        end_date: date,
        capacity_points: Optional[int],
        created_by: int,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO sprints(project_id, name, goal, start_date, end_date, capacity_points, status, created_by)
                VALUES(%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    project_id,
                    name,
                    goal,
                    start_date,
                    end_date,
                    capacity_points,
                    SprintStatus.PLANNING.value,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

    def update(self, sprint_id: int, changes: Mapping[str, Any], *, status: Optional[str] = None) -> bool:
        parts: List[str] = []
        params: List[Any] = []
        if changes:
            set_sql, set_params = build_set_clause(changes, allowed=SPRINT_COLUMNS)
            parts.append(set_sql)
            params.extend(set_params)
        if status == SprintStatus.ACTIVE.value:
            parts.append("actual_start_date=COALESCE(actual_start_date, NOW())")
        elif status == SprintStatus.COMPLETED.value:
            parts.append("actual_end_date=NOW()")
        if not parts:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE sprints SET {', '.join(parts)}, updated_at=NOW() WHERE id=%s",
                (*params, sprint_id),
            )
            return cur.rowcount > 0

    def delete(self, sprint_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tasks SET sprint_id=NULL WHERE sprint_id=%s", (sprint_id,))
            cur.execute("DELETE FROM sprints WHERE id=%s", (sprint_id,))
            return cur.rowcount > 0

    def total_points(self, sprint_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(story_points), 0) AS value
                FROM tasks
                WHERE sprint_id=%s AND deleted_at IS NULL
                """,
                (sprint_id,),
            )
            return int(fetch_scalar(cur))

    def completed_work(self, sprint_id: int) -> Sequence[CompletedWork]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DATE(completed_at) AS day, COALESCE(SUM(story_points), 0) AS points
                FROM tasks
                WHERE sprint_id=%s AND status = 'done' AND completed_at IS NOT NULL AND deleted_at IS NULL
                GROUP BY DATE(completed_at)
                ORDER BY day
                """,
                (sprint_id,),
            )
            return [CompletedWork(day=r["day"], points=int(r["points"] or 0)) for r in fetchall(cur)]
