from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Budget:
    budget_id: int
    project_id: int
    fiscal_year: int
    total_budget: float
    approved_budget: float
    actual_spent: float
    status: str

    @property
    def remaining(self) -> float:
        return self.total_budget - self.actual_spent
