from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..access.model import AccessContext
from ..access.service import ProjectAccessService
from ..common.datetime_utils import today
from ..common.sanitize import strip_dangerous_tags
from ..common.validators import optional_text, parse_optional_float, parse_optional_int
from ..core.enums import BudgetStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.permissions import has_all_permissions
from .model import Budget
from .repository import BudgetRepository


def utilization_percent(spent: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(spent / total * 100, 1)


def _non_negative(value: Any, field_name: str) -> Optional[float]:
    amount = parse_optional_float(value, field_name)
    if amount is not None and amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return amount


def permissions_for_update(data: Mapping[str, Any]) -> List[str]:
    """Approving needs budgets.approve; every other change needs budgets.edit."""
    status = optional_text(data.get("status"))
    needed = []
    if any(key != "status" for key in data) or (status and status != BudgetStatus.APPROVED.value):
        needed.append("budgets.edit")
    if status == BudgetStatus.APPROVED.value:
        needed.append("budgets.approve")
    return needed


class BudgetService:
    def __init__(self, budgets: BudgetRepository):
        self._budgets = budgets

    def _get_accessible(self, ctx: AccessContext, budget_id: int) -> Budget:
        budget = self._budgets.get(int(budget_id))
        if not budget:
            raise NotFoundError("Budget not found")
        ProjectAccessService.ensure_project_access(ctx, budget.project_id)
        return budget

    def list_budgets(self, ctx: AccessContext, *, project_id: Any = None) -> dict:
        rows = self._budgets.list_budgets(ctx, project_id=parse_optional_int(project_id, "project_id"))
        overview = dict(self._budgets.overview(ctx))
        overview["utilization"] = utilization_percent(overview["actual_spent"], overview["total_budget"])
        return {"budgets": list(rows), "overview": overview}

    def get_budget(self, ctx: AccessContext, budget_id: int) -> dict:
        self._get_accessible(ctx, budget_id)
        detail = self._budgets.get_detail(int(budget_id))
        if not detail:
            raise NotFoundError("Budget not found")
        return detail

    def create_budget(self, ctx: AccessContext, *, data: Mapping[str, Any]) -> dict:
        project_id = parse_optional_int(data.get("project_id"), "project_id")
        total = _non_negative(data.get("total_budget"), "total_budget")
        if not project_id or not total:
            raise ValidationError("Project and total budget required")
        ProjectAccessService.ensure_project_access(ctx, project_id)

        approved = _non_negative(data.get("approved_budget"), "approved_budget")
        budget_id = self._budgets.create(
            project_id=project_id,
            fiscal_year=parse_optional_int(data.get("fiscal_year"), "fiscal_year") or today().year,
            total_budget=total,
            approved_budget=approved or total,
            notes=strip_dangerous_tags(optional_text(data.get("notes"))),
            status=BudgetStatus.DRAFT.value,
        )
        return {"id": budget_id, "remaining": total}

    def update_budget(
        self,
        ctx: AccessContext,
        *,
        user_id: int,
        budget_id: int,
        data: Mapping[str, Any],
        permissions: Iterable[str],
    ) -> None:
        if not has_all_permissions(permissions, permissions_for_update(data)):
            raise AuthorizationError("Insufficient permissions")
        budget = self._get_accessible(ctx, budget_id)
        changes: Dict[str, Any] = {}
        for field in ("total_budget", "approved_budget", "actual_spent"):
            amount = _non_negative(data.get(field), field)
            if amount is not None:
                changes[field] = amount
        if "notes" in data:
            changes["notes"] = strip_dangerous_tags(optional_text(data.get("notes")))

        approved_by = None
        status = optional_text(data.get("status"))
        if status:
            try:
                changes["status"] = BudgetStatus(status).value
            except ValueError:
                raise ValidationError("Invalid status")
            if changes["status"] == BudgetStatus.APPROVED.value:
                approved_by = user_id

        if "total_budget" in changes or "actual_spent" in changes:
            total = changes.get("total_budget", budget.total_budget)
            spent = changes.get("actual_spent", budget.actual_spent)
            changes["remaining"] = total - spent

        if changes:
            self._budgets.update(budget.budget_id, changes, approved_by=approved_by)

    def delete_budget(self, ctx: AccessContext, budget_id: int) -> None:
        budget = self._get_accessible(ctx, budget_id)
        self._budgets.delete(budget.budget_id)
