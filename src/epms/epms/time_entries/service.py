from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.sanitize import strip_dangerous_tags
from ..common.validators import (
    optional_text,
    parse_bool,
    parse_optional_date,
    parse_optional_float,
    parse_optional_int,
)
from ..core.constants import DEFAULT_REJECTION_REASON, MAX_HOURS_PER_ENTRY
from ..core.enums import TimeEntryStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..projects.activity_repository import ActivityRepository
from .model import TimeEntry
from .repository import TimeEntryRepository

_REVIEW_STATUSES = (TimeEntryStatus.APPROVED.value, TimeEntryStatus.REJECTED.value)
_SUBMITTABLE = (TimeEntryStatus.DRAFT.value, TimeEntryStatus.REJECTED.value)


def hours_to_minutes(value: Any) -> int:
    hours = parse_optional_float(value, "hours")
    if hours is None or hours <= 0:
        raise ValidationError("hours must be greater than 0")
    if hours > MAX_HOURS_PER_ENTRY:
        raise ValidationError(f"hours cannot exceed {MAX_HOURS_PER_ENTRY}")
    return int(round(hours * 60))


class TimeEntryService:
    """Time logging with a draft -> submitted -> approved/rejected lifecycle.

    Staff only ever see and change their own entries; admins and department
    managers see everyone's entries on their projects and review them.
    """

    def __init__(self, entries: TimeEntryRepository, activity: ActivityRepository):
        self._entries = entries
        self._activity = activity

    @staticmethod
    def _owner_scope(ctx: AccessContext) -> Optional[int]:
        return None if ctx.can_manage_people else ctx.user_id

    def _get_visible(self, ctx: AccessContext, entry_id: int) -> TimeEntry:
        entry = self._entries.get(int(entry_id))
        if not entry:
            raise NotFoundError("Time entry not found")
        ProjectAccessService.ensure_project_access(ctx, entry.project_id)
        if not ctx.can_manage_people and entry.user_id != ctx.user_id:
            raise AuthorizationError("You can only access your own time entries")
        return entry

    def list_entries(self, ctx: AccessContext, args: Mapping[str, Any]) -> dict:
        owner_id = self._owner_scope(ctx)
        filters = {
            "user_id": parse_optional_int(args.get("user_id"), "user_id") if owner_id is None else None,
            "project_id": parse_optional_int(args.get("project_id"), "project_id"),
            "date_from": parse_optional_date(args.get("date_from"), "date_from"),
            "date_to": parse_optional_date(args.get("date_to"), "date_to"),
            "status": optional_text(args.get("status")),
        }
        return {
            "entries": list(self._entries.list_entries(ctx, owner_id=owner_id, filters=filters)),
            "summary": self._entries.summarize(ctx, owner_id=owner_id),
        }

    def get_entry(self, ctx: AccessContext, entry_id: int) -> dict:
        self._get_visible(ctx, entry_id)
        detail = self._entries.get_detail(int(entry_id))
        if not detail:
            raise NotFoundError("Time entry not found")
        return detail

    def create_entry(self, ctx: AccessContext, *, user_id: int, data: Mapping[str, Any]) -> dict:
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        entry_date = parse_optional_date(data.get("date"), "date")
        if not project_id or not entry_date or data.get("hours") in (None, ""):
            raise ValidationError("Project, date, and hours required")
        minutes = hours_to_minutes(data.get("hours"))
        ProjectAccessService.ensure_project_access(ctx, project_id)

        entry_id = self._entries.create(
            user_id=user_id,
            project_id=project_id,
            task_id=parse_optional_int(data.get("task_id"), "task_id"),
            entry_date=entry_date,
            duration_minutes=minutes,
            description=strip_dangerous_tags(optional_text(data.get("description"))),
            is_billable=parse_bool(data.get("is_billable")),
            status=TimeEntryStatus.DRAFT.value,
        )
        self._activity.log(
            user_id=user_id,
            project_id=project_id,
            action="created",
            entity_type="time_entry",
            entity_id=entry_id,
            description=f"Logged {round(minutes / 60, 2)}h",
        )
        return {"id": entry_id, "duration_minutes": minutes}

    def update_entry(self, ctx: AccessContext, *, user_id: int, entry_id: int, data: Mapping[str, Any]) -> None:
        status = optional_text(data.get("status"))
        if status in _REVIEW_STATUSES:
            self.review_entry(
                ctx, reviewer_id=user_id, entry_id=entry_id, status=status, reason=data.get("rejection_reason")
            )
            return
        if status == TimeEntryStatus.SUBMITTED.value:
            self.submit_entry(ctx, user_id=user_id, entry_id=entry_id)
            return

        entry = self._get_visible(ctx, entry_id)
        if entry.user_id != user_id and not ctx.is_admin:
            raise AuthorizationError("Can only edit own entries")
        if entry.status == TimeEntryStatus.APPROVED.value:
            raise ValidationError("Cannot edit approved entries")

        changes: Dict[str, Any] = {}
        if data.get("hours") is not None:
            changes["duration_minutes"] = hours_to_minutes(data.get("hours"))
        if "description" in data:
            changes["description"] = strip_dangerous_tags(optional_text(data.get("description")))
        if "is_billable" in data:
            changes["is_billable"] = int(parse_bool(data.get("is_billable")))
        if "task_id" in data:
            changes["task_id"] = parse_optional_int(data.get("task_id"), "task_id")
        if data.get("date"):
            changes["date"] = parse_optional_date(data.get("date"), "date")
        if changes:
            self._entries.update(entry.entry_id, changes)

    def submit_entry(self, ctx: AccessContext, *, user_id: int, entry_id: int) -> None:
        entry = self._get_visible(ctx, entry_id)
        if entry.user_id != user_id:
            raise AuthorizationError("Can only submit own entries")
        if entry.status not in _SUBMITTABLE:
            raise ValidationError("Only draft or rejected entries can be submitted")
        self._entries.set_status(entry.entry_id, TimeEntryStatus.SUBMITTED.value)

    def review_entry(
        self,
        ctx: AccessContext,
        *,
        reviewer_id: int,
        entry_id: int,
        status: str,
        reason: Any = None,
    ) -> None:
        if not ctx.can_manage_people:
            raise AuthorizationError("Only managers can approve/reject")
        if status not in _REVIEW_STATUSES:
            raise ValidationError("Invalid status")
        entry = self._get_visible(ctx, entry_id)
        if entry.status != TimeEntryStatus.SUBMITTED.value:
            raise ValidationError("Only submitted entries can be approved or rejected")
        rejection_reason = None
        if status == TimeEntryStatus.REJECTED.value:
            rejection_reason = strip_dangerous_tags(optional_text(reason)) or DEFAULT_REJECTION_REASON
        self._entries.review(entry.entry_id, status=status, reviewer_id=reviewer_id, rejection_reason=rejection_reason)
        self._activity.log(
            user_id=reviewer_id,
            project_id=entry.project_id,
            action=status,
            entity_type="time_entry",
            entity_id=entry.entry_id,
            description=f"Time entry {status}",
        )

    def delete_entry(self, ctx: AccessContext, *, user_id: int, entry_id: int) -> None:
        entry = self._get_visible(ctx, entry_id)
        if entry.user_id != user_id:
            raise AuthorizationError("Can only delete own entries")
        if entry.status == TimeEntryStatus.APPROVED.value:
            raise ValidationError("Cannot delete approved entries")
        self._entries.delete(entry.entry_id)
