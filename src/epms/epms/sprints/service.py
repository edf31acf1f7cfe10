from __future__ import annotations

from datetime import date
from typing import Any, Dict, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.datetime_utils import today
from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import optional_text, parse_optional_date, parse_optional_float, parse_optional_int
from ..core.enums import SprintStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..projects.activity_repository import ActivityRepository
from .burndown import build_burndown
from .model import Sprint
from .repository import SprintRepository

_RETRO_FIELDS = ("what_went_well", "what_to_improve", "retrospective_notes")


class SprintService:
    def __init__(self, sprints: SprintRepository, activity: ActivityRepository):
        self._sprints = sprints
        self._activity = activity

    def _get_accessible(self, ctx: AccessContext, sprint_id: int) -> Sprint:
        sprint = self._sprints.get(int(sprint_id))
        if not sprint:
            raise NotFoundError("Sprint not found")
        ProjectAccessService.ensure_project_access(ctx, sprint.project_id)
        return sprint

    def list_sprints(self, ctx: AccessContext, *, project_id: Any = None, status: Optional[str] = None):
        return list(
            self._sprints.list_sprints(
                ctx,
                project_id=parse_optional_int(project_id, "project_id"),
                status=optional_text(status),
            )
        )

    def get_sprint(self, ctx: AccessContext, sprint_id: int) -> dict:
        self._get_accessible(ctx, sprint_id)
        detail = self._sprints.get_detail(int(sprint_id))
        if not detail:
            raise NotFoundError("Sprint not found")
        out = dict(detail)
        out["tasks"] = list(self._sprints.list_tasks(int(sprint_id)))
        return out

    def create_sprint(self, ctx: AccessContext, *, user_id: int, data: Mapping[str, Any]) -> dict:
        name = sanitize_string(optional_text(data.get("name")))
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        if not project_id or not name:
            raise ValidationError("Project and name required")
        start = parse_optional_date(data.get("start_date"), "start_date")
        end = parse_optional_date(data.get("end_date"), "end_date")
        if not start or not end:
            raise ValidationError("Start and end dates are required")
        if end < start:
            raise ValidationError("End date must be on or after start date")
        ProjectAccessService.ensure_project_access(ctx, project_id)

        sprint_id = self._sprints.create(
            project_id=project_id,
            name=name,
            goal=strip_dangerous_tags(optional_text(data.get("goal"))),
            start_date=start,
            end_date=end,
            capacity_points=parse_optional_int(data.get("capacity_points"), "capacity_points"),
            created_by=user_id,
        )
        self._activity.log(
            user_id=user_id,
            project_id=project_id,
            action="created",
            entity_type="sprint",
            entity_id=sprint_id,
            description=f"Created sprint: {name}",
        )
        return {"id": sprint_id}

    @staticmethod
    def _build_changes(sprint: Sprint, data: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        name = sanitize_string(optional_text(data.get("name")))
        if name:
            changes["name"] = name
        if "goal" in data:
            changes["goal"] = strip_dangerous_tags(optional_text(data.get("goal")))
        status = optional_text(data.get("status"))
        if status is not None:
            try:
                changes["status"] = SprintStatus(status).value
            except ValueError:
                raise ValidationError("Invalid status")
        for field in ("start_date", "end_date"):
            if data.get(field) is not None:
                changes[field] = parse_optional_date(data.get(field), field)
        for field in ("capacity_points", "velocity"):
            if data.get(field) is not None:
                changes[field] = parse_optional_int(data.get(field), field)
        if data.get("capacity_hours") is not None:
            changes["capacity_hours"] = parse_optional_float(data.get("capacity_hours"), "capacity_hours")
        for field in _RETRO_FIELDS:
            value = optional_text(data.get(field))
            if value:
                changes[field] = strip_dangerous_tags(value)

        start: Optional[date] = changes.get("start_date", sprint.start_date)
        end: Optional[date] = changes.get("end_date", sprint.end_date)
        if start and end and end < start:
            raise ValidationError("End date must be on or after start date")
        return changes

    def update_sprint(self, ctx: AccessContext, *, user_id: int, sprint_id: int, data: Mapping[str, Any]) -> None:
        sprint = self._get_accessible(ctx, sprint_id)
        changes = self._build_changes(sprint, data)
        if not changes:
            return
        self._sprints.update(sprint.sprint_id, changes, status=changes.get("status"))
        self._activity.log(
            user_id=user_id,
            project_id=sprint.project_id,
            action="updated",
            entity_type="sprint",
            entity_id=sprint.sprint_id,
            description=f"Updated sprint: {sprint.name}",
        )

    def delete_sprint(self, ctx: AccessContext, *, user_id: int, sprint_id: int) -> None:
        sprint = self._get_accessible(ctx, sprint_id)
        self._sprints.delete(sprint.sprint_id)
        self._activity.log(
            user_id=user_id,
            project_id=sprint.project_id,
            action="deleted",
            entity_type="sprint",
            entity_id=sprint.sprint_id,
            description=f"Deleted sprint: {sprint.name}",
        )

    def get_burndown(self, ctx: AccessContext, sprint_id: int, *, on: Optional[date] = None) -> dict:
        sprint = self._get_accessible(ctx, sprint_id)
        end = sprint.extended_to or sprint.end_date
        if not sprint.start_date or not end:
            raise ValidationError("Sprint has no schedule")
        committed = sprint.committed_points or self._sprints.total_points(sprint.sprint_id)
        chart = build_burndown(
            start=sprint.start_date,
            end=end,
            committed_points=committed,
            completed=self._sprints.completed_work(sprint.sprint_id),
            today=on or today(),
        )
        return chart.to_dict()
