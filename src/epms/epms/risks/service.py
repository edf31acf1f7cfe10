from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import optional_text, parse_optional_int
from ..core.constants import DEFAULT_RISK_IMPACT, DEFAULT_RISK_KEY_PREFIX, DEFAULT_RISK_PROBABILITY
from ..core.enums import RiskLevel, RiskStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..projects.activity_repository import ActivityRepository
from ..projects.repository import ProjectRepository
from .model import Risk
from .repository import RiskRepository
from .scoring import parse_scale, risk_level, risk_score


def _enum(value: Any, enum_cls, field: str) -> Optional[str]:
    text = optional_text(value)
    if text is None:
        return None
    try:
        return enum_cls(text).value
    except ValueError:
        raise ValidationError(f"Invalid {field}")


class RiskService:
    def __init__(self, risks: RiskRepository, projects: ProjectRepository, activity: ActivityRepository):
        self._risks = risks
        self._projects = projects
        self._activity = activity

    def _get_accessible(self, ctx: AccessContext, risk_id: int) -> Risk:
        risk = self._risks.get(int(risk_id))
        if not risk:
            raise NotFoundError("Risk not found")
        ProjectAccessService.ensure_project_access(ctx, risk.project_id)
        return risk

    def list_risks(self, ctx: AccessContext, args: Mapping[str, Any]) -> dict:
        rows = self._risks.list_risks(
            ctx,
            project_id=parse_optional_int(args.get("project_id"), "project_id"),
            status=optional_text(args.get("status")),
            risk_level=optional_text(args.get("risk_level")),
        )
        return {"risks": list(rows), "summary": self._risks.summarize(ctx)}

    def get_risk(self, ctx: AccessContext, risk_id: int) -> dict:
        self._get_accessible(ctx, risk_id)
        detail = self._risks.get_detail(int(risk_id))
        if not detail:
            raise NotFoundError("Risk not found")
        return detail

    def create_risk(self, ctx: AccessContext, *, user_id: int, data: Mapping[str, Any]) -> dict:
        title = sanitize_string(optional_text(data.get("title")))
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        if not project_id or not title:
            raise ValidationError("Project and title required")
        ProjectAccessService.ensure_project_access(ctx, project_id)
        project = self._projects.get(project_id)
        if not project:
            raise NotFoundError("Project not found")

        probability = parse_scale(data.get("probability"), "probability", default=DEFAULT_RISK_PROBABILITY)
        impact = parse_scale(data.get("impact"), "impact", default=DEFAULT_RISK_IMPACT)
        score = risk_score(probability, impact)
        number = self._risks.count_for_project(project_id) + 1
        risk_key = f"{project.code or DEFAULT_RISK_KEY_PREFIX}-R{number}"

        risk_id = self._risks.create(
            {
                "risk_number": number,
                "risk_key": risk_key,
                "project_id": project_id,
                "title": title,
                "description": strip_dangerous_tags(optional_text(data.get("description"))),
                "category": sanitize_string(optional_text(data.get("category"))),
                "probability": probability,
                "impact": impact,
                "risk_score": score,
                "risk_level": _enum(data.get("risk_level"), RiskLevel, "risk_level") or risk_level(score),
                "mitigation_plan": strip_dangerous_tags(optional_text(data.get("mitigation_plan"))),
                "contingency_plan": strip_dangerous_tags(optional_text(data.get("contingency_plan"))),
                "owner_id": parse_optional_int(data.get("owner_id"), "owner_id") or user_id,
                "status": RiskStatus.IDENTIFIED.value,
            }
        )
        self._activity.log(
            user_id=user_id,
            project_id=project_id,
            action="created",
            entity_type="risk",
            entity_id=risk_id,
            description=f"Created risk: {title}",
        )
        return {"id": risk_id, "risk_key": risk_key}

    @staticmethod
    def _build_changes(risk: Risk, data: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        title = sanitize_string(optional_text(data.get("title")))
        if title:
            changes["title"] = title
        category = optional_text(data.get("category"))
        if category:
            changes["category"] = sanitize_string(category)
        for field in ("description", "mitigation_plan", "contingency_plan"):
            if field in data:
                changes[field] = strip_dangerous_tags(optional_text(data.get(field)))
        status = _enum(data.get("status"), RiskStatus, "status")
        if status:
            changes["status"] = status
        owner_id = parse_optional_int(data.get("owner_id"), "owner_id")
        if owner_id is not None:
            changes["owner_id"] = owner_id

        probability = parse_scale(data.get("probability"), "probability")
        impact = parse_scale(data.get("impact"), "impact")
        if probability is not None or impact is not None:
            probability = probability if probability is not None else risk.probability
            impact = impact if impact is not None else risk.impact
            score = risk_score(probability, impact)
            changes.update(probability=probability, impact=impact, risk_score=score, risk_level=risk_level(score))
        level = _enum(data.get("risk_level"), RiskLevel, "risk_level")
        if level:
            changes["risk_level"] = level
        return changes

    def update_risk(self, ctx: AccessContext, *, user_id: int, risk_id: int, data: Mapping[str, Any]) -> None:
        risk = self._get_accessible(ctx, risk_id)
        changes = self._build_changes(risk, data)
        if not changes:
            return
        closing = changes.get("status") == RiskStatus.CLOSED.value and risk.status != RiskStatus.CLOSED.value
        self._risks.update(risk.risk_id, changes, closing=closing)
        self._activity.log(
            user_id=user_id,
            project_id=risk.project_id,
            action="updated",
            entity_type="risk",
            entity_id=risk.risk_id,
            description=f"Updated risk: {risk.risk_key}",
        )

    def delete_risk(self, ctx: AccessContext, *, user_id: int, risk_id: int) -> None:
        risk = self._get_accessible(ctx, risk_id)
        self._risks.soft_delete(risk.risk_id)
        self._activity.log(
            user_id=user_id,
            project_id=risk.project_id,
            action="deleted",
            entity_type="risk",
            entity_id=risk.risk_id,
            description=f"Deleted risk: {risk.risk_key}",
        )
