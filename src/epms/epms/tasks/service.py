from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.datetime_utils import now_local
from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import (
    optional_text,
    parse_optional_date,
    parse_optional_float,
    parse_optional_int,
)
from ..core.constants import DEFAULT_TASK_KEY_PREFIX
from ..core.enums import Priority, TaskStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..projects.activity_repository import ActivityRepository
from ..projects.repository import ProjectRepository
from .repository import TaskRepository

_INT_FIELDS = ("sprint_id", "phase_id", "parent_id", "story_points", "progress_percentage")
_FLOAT_FIELDS = ("estimated_hours", "actual_hours")


def _parse_assignees(value: Any) -> List[int]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError("assignee_ids must be a list")
    out: List[int] = []
    for v in value:
        uid = parse_optional_int(v, "assignee_ids")
        if uid is not None and uid not in out:
            out.append(uid)
    return out


def _check_choice(value: Optional[str], enum_cls, field: str) -> Optional[str]:
    if value is None:
        return None
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError(f"Invalid {field}")


class TaskService:
    def __init__(self, tasks: TaskRepository, projects: ProjectRepository, activity: ActivityRepository):
        self._tasks = tasks
        self._projects = projects
        self._activity = activity

    def list_tasks(self, ctx: AccessContext, args: Mapping[str, Any]) -> dict:
        filters = {
            "project_id": parse_optional_int(args.get("project_id"), "project_id"),
            "sprint_id": parse_optional_int(args.get("sprint_id"), "sprint_id"),
            "assignee_id": parse_optional_int(args.get("assignee_id"), "assignee_id"),
            "status": optional_text(args.get("status")),
            "priority": optional_text(args.get("priority")),
            "type": optional_text(args.get("type")),
            "search": optional_text(args.get("search")),
        }
        return {
            "tasks": list(self._tasks.list_tasks(ctx, filters=filters)),
            "summary": self._tasks.summarize(ctx, project_id=filters["project_id"]),
        }

    def get_task(self, ctx: AccessContext, task_id: int) -> dict:
        detail = self._tasks.get_detail(int(task_id))
        if not detail:
            raise NotFoundError("Task not found")
        ProjectAccessService.ensure_project_access(ctx, int(detail["project_id"]))
        out = dict(detail)
        out["comments"] = list(self._tasks.list_comments(int(task_id)))
        out["dependencies"] = list(self._tasks.list_dependencies(int(task_id)))
        out["subtasks"] = list(self._tasks.list_subtasks(int(task_id)))
        return out

    def create_task(self, ctx: AccessContext, *, user_id: int, data: Mapping[str, Any]) -> dict:
        title = sanitize_string(optional_text(data.get("title")))
        if not title:
            raise ValidationError("Task title is required")
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        if not project_id:
            raise ValidationError("Project is required")
        ProjectAccessService.ensure_project_access(ctx, project_id)

        project = self._projects.get(project_id)
        if not project:
            raise NotFoundError("Project not found")

        task_number = self._tasks.count_for_project(project_id) + 1
        task_key = f"{project.code or DEFAULT_TASK_KEY_PREFIX}-{task_number}"

        task_id = self._tasks.create(
            task_number=task_number,
            task_key=task_key,
            title=title,
            description=strip_dangerous_tags(optional_text(data.get("description"))),
            project_id=project_id,
            sprint_id=parse_optional_int(data.get("sprint_id"), "sprint_id"),
            phase_id=parse_optional_int(data.get("phase_id"), "phase_id"),
            parent_id=parse_optional_int(data.get("parent_id"), "parent_id"),
            type=optional_text(data.get("type")) or "task",
            status=_check_choice(optional_text(data.get("status")), TaskStatus, "status") or TaskStatus.TO_DO.value,
            priority=_check_choice(optional_text(data.get("priority")), Priority, "priority") or Priority.MEDIUM.value,
            severity=optional_text(data.get("severity")),
            story_points=parse_optional_int(data.get("story_points"), "story_points"),
            estimated_hours=parse_optional_float(data.get("estimated_hours"), "estimated_hours"),
            planned_start_date=parse_optional_date(data.get("start_date"), "start_date"),
            due_date=parse_optional_date(data.get("due_date"), "due_date"),
            created_by=user_id,
        )

        assignees = _parse_assignees(data.get("assignee_ids"))
        if assignees:
            self._tasks.replace_assignees(task_id, assignees)

        self._activity.log(
            user_id=user_id,
            project_id=project_id,
            action="created",
            entity_type="task",
            entity_id=task_id,
            description=f"Created task: {title}",
        )
        return {"id": task_id, "task_key": task_key}

    def _build_changes(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        if optional_text(data.get("title")):
            changes["title"] = sanitize_string(optional_text(data.get("title")))
        if "description" in data:
            changes["description"] = strip_dangerous_tags(optional_text(data.get("description")))
        if data.get("status") is not None:
            changes["status"] = _check_choice(optional_text(data.get("status")), TaskStatus, "status")
        if data.get("priority") is not None:
            changes["priority"] = _check_choice(optional_text(data.get("priority")), Priority, "priority")
        for field in ("severity", "type"):
            if data.get(field) is not None:
                changes[field] = optional_text(data.get(field))
        for field in _INT_FIELDS:
            if field in data:
                changes[field] = parse_optional_int(data.get(field), field)
        for field in _FLOAT_FIELDS:
            if field in data:
                changes[field] = parse_optional_float(data.get(field), field)
        if "start_date" in data:
            changes["planned_start_date"] = parse_optional_date(data.get("start_date"), "start_date")
        if "due_date" in data:
            changes["due_date"] = parse_optional_date(data.get("due_date"), "due_date")
        return changes

    def update_task(self, ctx: AccessContext, *, user_id: int, task_id: int, data: Mapping[str, Any]) -> None:
        task = self._tasks.get(int(task_id))
        if not task:
            raise NotFoundError("Task not found")
        ProjectAccessService.ensure_project_access(ctx, task.project_id)

        changes = self._build_changes(data)
        if changes.get("status") == TaskStatus.DONE.value and task.status != TaskStatus.DONE.value:
            changes["completed_at"] = now_local()
            changes.setdefault("progress_percentage", 100)
        elif "status" in changes and changes["status"] != TaskStatus.DONE.value:
            changes["completed_at"] = None

        if changes:
            self._tasks.update(task.task_id, changes)
        if "assignee_ids" in data:
            self._tasks.replace_assignees(task.task_id, _parse_assignees(data.get("assignee_ids")))

        self._activity.log(
            user_id=user_id,
            project_id=task.project_id,
            action="updated",
            entity_type="task",
            entity_id=task.task_id,
            description="Updated task",
        )

    def delete_task(self, ctx: AccessContext, *, user_id: int, task_id: int) -> None:
        task = self._tasks.get(int(task_id))
        if not task:
            raise NotFoundError("Task not found")
        ProjectAccessService.ensure_project_access(ctx, task.project_id)
        self._tasks.soft_delete(task.task_id)
        self._activity.log(
            user_id=user_id,
            project_id=task.project_id,
            action="deleted",
            entity_type="task",
            entity_id=task.task_id,
            description=f"Deleted task: {task.task_key}",
        )
