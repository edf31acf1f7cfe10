from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import Budget


class BudgetRepository(Protocol):
    def get(self, budget_id: int) -> Optional[Budget]:
        raise NotImplementedError

    def get_detail(self, budget_id: int) -> Optional[dict]:
        raise NotImplementedError

    def list_budgets(self, ctx: AccessContext, *, project_id: Optional[int] = None) -> Sequence[dict]:
        raise NotImplementedError

    def overview(self, ctx: AccessContext) -> dict:
        raise NotImplementedError

    def create(
        self,
        *,
        project_id: int,
        fiscal_year: int,
        total_budget: float,
        approved_budget: float,
        notes: Optional[str],
        status: str,
    ) -> int:
        raise NotImplementedError

    def update(self, budget_id: int, changes: Mapping[str, Any], *, approved_by: Optional[int] = None) -> bool:
        """Apply changes; ``approved_by`` also stamps the approver and approval time."""
        raise NotImplementedError

    def delete(self, budget_id: int) -> bool:
        raise NotImplementedError
