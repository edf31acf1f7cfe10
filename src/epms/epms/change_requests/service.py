from __future__ import annotations

import logging
from math import ceil
from typing import Any, Dict, List, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.datetime_utils import now_local
from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import (
    optional_text,
    parse_bool,
    parse_optional_date,
    parse_optional_float,
    parse_optional_int,
    parse_pagination,
)
from ..core.constants import DEFAULT_CR_KEY_PREFIX
from ..core.enums import ApprovalDecision, ChangeRequestStatus, Priority
from ..core.exceptions import NotFoundError, ValidationError
from ..projects.repository import ProjectRepository
from .model import ChangeRequest
from .repository import ApprovalRepository, ChangeRequestRepository

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "description",
    "justification",
    "current_state",
    "proposed_change",
    "benefits",
    "scope_impact",
    "risk_impact",
    "quality_impact",
    "resource_impact",
)
_CHOICE_FIELDS = ("category", "impact_level", "urgency")

DEFAULT_CATEGORY = "scope"
DEFAULT_IMPACT_LEVEL = "moderate"
DEFAULT_URGENCY = "normal"


def _priority(value: Any) -> Optional[str]:
    text = optional_text(value)
    if text is None:
        return None
    try:
        return Priority(text).value
    except ValueError:
        raise ValidationError("Invalid priority")


def _clean_field(field: str, value: Any) -> Any:
    if field == "title":
        return sanitize_string(optional_text(value))
    if field in _TEXT_FIELDS:
        return strip_dangerous_tags(optional_text(value))
    if field in _CHOICE_FIELDS:
        return sanitize_string(optional_text(value))
    if field == "priority":
        return _priority(value)
    if field == "schedule_impact_days":
        return parse_optional_int(value, field)
    if field == "cost_impact":
        return parse_optional_float(value, field)
    if field == "target_decision_date":
        return parse_optional_date(value, field)
    raise ValidationError(f"Unknown field {field}")


UPDATABLE_FIELDS = (
    "title",
    *_TEXT_FIELDS,
    *_CHOICE_FIELDS,
    "priority",
    "schedule_impact_days",
    "cost_impact",
    "target_decision_date",
)


class ChangeRequestService:
    def __init__(self, requests: ChangeRequestRepository, approvals: ApprovalRepository, projects: ProjectRepository):
        self._requests = requests
        self._approvals = approvals
        self._projects = projects

    def _get_accessible(self, ctx: AccessContext, cr_id: int) -> ChangeRequest:
        cr = self._requests.get(int(cr_id))
        if not cr:
            raise NotFoundError("Change request not found")
        if cr.project_id is not None:
            ProjectAccessService.ensure_project_access(ctx, int(cr.project_id))
        return cr

    def list_requests(self, ctx: AccessContext, *, user_id: int, args: Mapping[str, Any]) -> dict:
        page, limit = parse_pagination(args.get("page"), args.get("limit"))
        filters = {
            "status": optional_text(args.get("status")),
            "priority": optional_text(args.get("priority")),
            "category": optional_text(args.get("category")),
            "project_id": parse_optional_int(args.get("project_id") or args.get("projectId"), "project_id"),
            "search": optional_text(args.get("search")),
            "requested_by": user_id if parse_bool(args.get("my_requests") or args.get("myRequests")) else None,
        }
        total = self._requests.count(ctx, filters=filters)
        rows = self._requests.list_page(ctx, filters=filters, limit=limit, offset=(page - 1) * limit)
        return {
            "requests": list(rows),
            "pagination": {"page": page, "limit": limit, "total": total, "totalPages": ceil(total / limit)},
        }

    def get_request(self, ctx: AccessContext, cr_id: int) -> dict:
        self._get_accessible(ctx, cr_id)
        detail = self._requests.get_detail(int(cr_id))
        if not detail:
            raise NotFoundError("Change request not found")
        return detail

    def create_request(self, ctx: AccessContext, *, user_id: int, data: Mapping[str, Any]) -> dict:
        title = sanitize_string(optional_text(data.get("title")))
        description = strip_dangerous_tags(optional_text(data.get("description")))
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        if not project_id or not title or not description:
            raise ValidationError("Project, title, and description are required")
        ProjectAccessService.ensure_project_access(ctx, project_id)
        project = self._projects.get(project_id)
        if not project:
            raise NotFoundError("Project not found")

        number = self._requests.count_for_project(project_id) + 1
        change_key = f"{project.code or DEFAULT_CR_KEY_PREFIX}-CR-{number}"
        submit = parse_bool(data.get("submit"))
        status = ChangeRequestStatus.SUBMITTED.value if submit else ChangeRequestStatus.DRAFT.value
        now = now_local()

        fields: Dict[str, Any] = {f: _clean_field(f, data.get(f)) for f in UPDATABLE_FIELDS}
        fields.update(
            title=title,
            description=description,
            project_id=project_id,
            change_number=number,
            change_key=change_key,
            requested_by=user_id,
            status=status,
            submitted_date=now.date() if submit else None,
            submitted_at=now if submit else None,
        )
        fields["category"] = fields["category"] or DEFAULT_CATEGORY
        fields["priority"] = fields["priority"] or Priority.MEDIUM.value
        fields["impact_level"] = fields["impact_level"] or DEFAULT_IMPACT_LEVEL
        fields["urgency"] = fields["urgency"] or DEFAULT_URGENCY

        cr_id = self._requests.create(fields)
        self._approvals.log_activity(
            cr_id,
            user_id=user_id,
            action="created",
            description=f"Change request created{' and submitted' if submit else ' as draft'}",
        )
        return {"id": cr_id, "change_key": change_key, "status": status}

    def update_request(self, ctx: AccessContext, *, user_id: int, cr_id: int, data: Mapping[str, Any]) -> None:
        cr = self._get_accessible(ctx, cr_id)
        changes = {f: _clean_field(f, data.get(f)) for f in UPDATABLE_FIELDS if f in data}
        if "title" in changes and not changes["title"]:
            raise ValidationError("Title cannot be empty")
        submit = parse_bool(data.get("submit")) and cr.status == ChangeRequestStatus.DRAFT.value
        if not changes and not submit:
            return
        self._requests.update(cr.cr_id, changes, submit=submit)
        self._approvals.log_activity(
            cr.cr_id,
            user_id=user_id,
            action="submitted" if submit else "updated",
            description="Change request submitted" if submit else "Change request updated",
        )

    def delete_request(self, ctx: AccessContext, *, user_id: int, cr_id: int) -> None:
        cr = self._get_accessible(ctx, cr_id)
        self._requests.soft_delete(cr.cr_id)
        self._approvals.log_activity(cr.cr_id, user_id=user_id, action="deleted", description="Change request deleted")

    def list_approvals(self, ctx: AccessContext, cr_id: int):
        cr = self._get_accessible(ctx, cr_id)
        return list(self._approvals.list_for_request(cr.cr_id))

    def assign_approvers(self, ctx: AccessContext, *, user_id: int, cr_id: int, data: Mapping[str, Any]) -> int:
        cr = self._get_accessible(ctx, cr_id)
        raw = data.get("approver_ids")
        if not isinstance(raw, (list, tuple)) or not raw:
            raise ValidationError("approver_ids must be a non-empty list")
        approver_ids: List[int] = []
        for value in raw:
            approver_id = parse_optional_int(value, "approver_ids")
            if approver_id and approver_id not in approver_ids:
                approver_ids.append(approver_id)
        if cr.status in (ChangeRequestStatus.APPROVED.value, ChangeRequestStatus.REJECTED.value,
                         ChangeRequestStatus.IMPLEMENTED.value):
            raise ValidationError("Change request is already decided")

        added = self._approvals.add_approvers(cr.cr_id, approver_ids)
        if added and cr.status == ChangeRequestStatus.SUBMITTED.value:
            self._requests.set_status(cr.cr_id, ChangeRequestStatus.UNDER_REVIEW.value)
        self._approvals.log_activity(
            cr.cr_id, user_id=user_id, action="approvers_assigned", description=f"{added} approver(s) assigned"
        )
        return added

    def decide(self, ctx: AccessContext, *, user_id: int, cr_id: int, data: Mapping[str, Any]) -> str:
        """Record the caller's decision and roll it up into the request status.

        A rejection rejects the request immediately; an approval approves it
        once no pending approvals remain. Deferrals only close the caller's
        approval.
        """

        try:
            decision = ApprovalDecision(optional_text(data.get("decision")) or "").value
        except ValueError:
            raise ValidationError("Invalid decision")
        cr = self._get_accessible(ctx, cr_id)

        pending = self._approvals.find_pending(cr.cr_id, user_id)
        if not pending:
            raise ValidationError("No pending approval found for you")

        comments = strip_dangerous_tags(optional_text(data.get("comments")))
        self._approvals.record_decision(
            pending.approval_id,
            decision=decision,
            comments=comments,
            conditions=strip_dangerous_tags(optional_text(data.get("conditions"))),
        )
        self._approvals.log_activity(
            cr.cr_id, user_id=user_id, action=decision, description=f"Approval {decision}: {comments or ''}"
        )

        if decision == ApprovalDecision.REJECTED.value:
            self._requests.set_status(cr.cr_id, ChangeRequestStatus.REJECTED.value, decided=True)
        elif decision == ApprovalDecision.APPROVED.value and self._approvals.count_pending(cr.cr_id) == 0:
            self._requests.set_status(cr.cr_id, ChangeRequestStatus.APPROVED.value, decided=True)
        logger.info("Change request %s: user %s recorded %s", cr.change_key, user_id, decision)
        return decision

    def list_activity(self, ctx: AccessContext, cr_id: int):
        cr = self._get_accessible(ctx, cr_id)
        return list(self._approvals.list_activity(cr.cr_id))
