from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import optional_text, parse_optional_date, parse_optional_float, parse_optional_int
from ..core.constants import DEFAULT_ACTIVITY_LIMIT, PROJECT_CODE_PREFIX
from ..core.enums import Priority, ProjectHealth, ProjectStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..users.department_repository import DepartmentRepository
from .activity_repository import ActivityRepository
from .repository import ProjectRepository

logger = logging.getLogger(__name__)

_FIELD_TO_COLUMN = {
    "start_date": "planned_start_date",
    "end_date": "planned_end_date",
}
_ENUM_FIELDS = {
    "status": ProjectStatus,
    "priority": Priority,
    "health": ProjectHealth,
}


def format_project_code(number: int) -> str:
    return f"{PROJECT_CODE_PREFIX}-{number:03d}"


class ProjectService:
    def __init__(
        self,
        projects: ProjectRepository,
        departments: DepartmentRepository,
        activity: ActivityRepository,
    ):
        self._projects = projects
        self._departments = departments
        self._activity = activity

    def list_projects(
        self,
        ctx: AccessContext,
        *,
        status: Optional[str] = None,
        department_id: Any = None,
        search: Optional[str] = None,
    ) -> dict:
        rows = self._projects.list_projects(
            ctx,
            status=status,
            department_id=parse_optional_int(department_id, "department_id"),
            search=(search or "").strip() or None,
        )
        return {
            "projects": list(rows),
            "summary": self._projects.summarize(ctx),
            "departments": list(self._departments.list_active()),
        }

    def get_project(self, ctx: AccessContext, project_id: int) -> dict:
        ProjectAccessService.ensure_project_access(ctx, project_id)
        detail = self._projects.get_detail(int(project_id))
        if not detail:
            raise NotFoundError("Project not found")
        out = dict(detail)
        out["members"] = list(self._projects.list_members(int(project_id)))
        out["phases"] = list(self._projects.list_phases(int(project_id)))
        out["milestones"] = list(self._projects.list_milestones(int(project_id)))
        return out

    def create_project(self, *, user_id: int, data: Mapping[str, Any]) -> dict:
        name = sanitize_string(optional_text(data.get("name")))
        if not name:
            raise ValidationError("Project name is required")

        department_id = parse_optional_int(data.get("department_id"), "department_id")
        if not department_id:
            raise ValidationError("Department is required")
        dept = self._departments.get_by_id(department_id)
        if not dept or dept.status != "active":
            raise ValidationError("Invalid department")

        code = format_project_code(self._projects.max_code_number() + 1)
        requested_manager = parse_optional_int(data.get("manager_id"), "manager_id")
        owner_id = parse_optional_int(data.get("owner_id"), "owner_id") or user_id
        manager_id = requested_manager or dept.manager_id or user_id

        project_id = self._projects.create(
            code=code,
            name=name,
            description=strip_dangerous_tags(optional_text(data.get("description"))),
            status=self._enum_value("status", data.get("status")) or ProjectStatus.PLANNING.value,
            priority=self._enum_value("priority", data.get("priority")) or Priority.MEDIUM.value,
            health=self._enum_value("health", data.get("health")) or ProjectHealth.NOT_STARTED.value,
            methodology=optional_text(data.get("methodology")) or "agile",
            planned_start_date=parse_optional_date(data.get("start_date"), "start_date"),
            planned_end_date=parse_optional_date(data.get("end_date"), "end_date"),
            budget=parse_optional_float(data.get("budget"), "budget") or 0.0,
            owner_id=owner_id,
            manager_id=manager_id,
            department_id=department_id,
            category=sanitize_string(optional_text(data.get("category"))),
            created_by=user_id,
        )

        members = [user_id]
        if dept.manager_id and dept.manager_id not in members:
            members.append(dept.manager_id)
        if requested_manager and requested_manager not in members:
            members.append(requested_manager)
        for member_id in members:
            self._projects.add_member(project_id, member_id, role_name="manager")

        self._activity.log(
            user_id=user_id,
            project_id=project_id,
            action="created",
            entity_type="project",
            entity_id=project_id,
            description=f"Created project: {name}",
        )
        logger.info("Project %s (%s) created by user %s", project_id, code, user_id)
        return {"id": project_id, "code": code, "name": name}

    @staticmethod
    def _enum_value(field: str, value: Any) -> Optional[str]:
        text = optional_text(value)
        if text is None:
            return None
        try:
            return _ENUM_FIELDS[field](text).value
        except ValueError:
            raise ValidationError(f"Invalid {field}")

    def _build_changes(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for field in ("status", "priority", "health"):
            value = self._enum_value(field, data.get(field))
            if value is not None:
                changes[field] = value

        name = sanitize_string(optional_text(data.get("name")))
        if name:
            changes["name"] = name
        description = optional_text(data.get("description"))
        if description:
            changes["description"] = strip_dangerous_tags(description)
        category = optional_text(data.get("category"))
        if category:
            changes["category"] = sanitize_string(category)
        methodology = optional_text(data.get("methodology"))
        if methodology:
            changes["methodology"] = methodology

        for field in ("start_date", "end_date"):
            value = parse_optional_date(data.get(field), field)
            if value is not None:
                changes[_FIELD_TO_COLUMN[field]] = value
        for field in ("budget", "actual_cost"):
            value = parse_optional_float(data.get(field), field)
            if value is not None:
                changes[field] = value
        progress = parse_optional_int(data.get("progress_percentage"), "progress_percentage")
        if progress is not None:
            if not 0 <= progress <= 100:
                raise ValidationError("progress_percentage must be between 0 and 100")
            changes["progress_percentage"] = progress
        for field in ("owner_id", "manager_id", "department_id"):
            value = parse_optional_int(data.get(field), field)
            if value is not None:
                changes[field] = value
        return changes

    def update_project(self, ctx: AccessContext, *, user_id: int, project_id: int, data: Mapping[str, Any]) -> None:
        ProjectAccessService.ensure_project_access(ctx, project_id)
        if not self._projects.get(int(project_id)):
            raise NotFoundError("Project not found")

        changes = self._build_changes(data)
        if "department_id" in changes:
            dept = self._departments.get_by_id(changes["department_id"])
            if not dept or dept.status != "active":
                raise ValidationError("Invalid department")

        if changes:
            self._projects.update(int(project_id), changes)
        self._activity.log(
            user_id=user_id,
            project_id=int(project_id),
            action="updated",
            entity_type="project",
            entity_id=int(project_id),
            description="Updated project",
        )

    def delete_project(self, ctx: AccessContext, *, user_id: int, project_id: int) -> None:
        ProjectAccessService.ensure_project_access(ctx, project_id)
        if not self._projects.soft_delete(int(project_id)):
            raise NotFoundError("Project not found")
        self._activity.log(
            user_id=user_id,
            project_id=int(project_id),
            action="deleted",
            entity_type="project",
            entity_id=int(project_id),
            description="Deleted project",
        )

    def list_activity(self, ctx: AccessContext, project_id: int, *, limit: Any = None):
        ProjectAccessService.ensure_project_access(ctx, project_id)
        limit_n = parse_optional_int(limit, "limit") or DEFAULT_ACTIVITY_LIMIT
        return self._activity.list_for_project(int(project_id), limit=min(max(limit_n, 1), 200))
