from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import CompletedWork, Sprint


class SprintRepository(Protocol):
    def get(self, sprint_id: int) -> Optional[Sprint]:
        raise NotImplementedError

    def get_detail(self, sprint_id: int) -> Optional[dict]:
        """Sprint row with project name/code and task/point totals."""
        raise NotImplementedError

    def list_tasks(self, sprint_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_sprints(
        self,
        ctx: AccessContext,
        *,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Sequence[dict]:
        raise NotImplementedError

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
        raise NotImplementedError

    def update(self, sprint_id: int, changes: Mapping[str, Any], *, status: Optional[str] = None) -> bool:
        """Apply whitelisted changes; ``status`` also stamps actual start/end dates."""
        raise NotImplementedError

    def delete(self, sprint_id: int) -> bool:
        """Detach the sprint's tasks, then remove the sprint."""
        raise NotImplementedError

    def total_points(self, sprint_id: int) -> int:
        raise NotImplementedError

    def completed_work(self, sprint_id: int) -> Sequence[CompletedWork]:
        raise NotImplementedError
