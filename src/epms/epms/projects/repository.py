from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import Project


class ProjectRepository(Protocol):
    def get(self, project_id: int) -> Optional[Project]:
        raise NotImplementedError

    def get_detail(self, project_id: int) -> Optional[dict]:
        """Project row joined with owner/manager/department names and counts."""
        raise NotImplementedError

    def list_members(self, project_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_phases(self, project_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_milestones(self, project_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_projects(
        self,
        ctx: AccessContext,
        *,
        status: Optional[str] = None,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[dict]:
        raise NotImplementedError

    def summarize(self, ctx: AccessContext) -> dict:
        raise NotImplementedError

    def max_code_number(self) -> int:
        raise NotImplementedError

    def create(
        self,
        *,
        code: str,
        name: str,
        description: Optional[str],
        status: str,
        priority: str,
        health: str,
        methodology: str,
        planned_start_date: Optional[date],
        planned_end_date: Optional[date],
        budget: float,
        owner_id: int,
        manager_id: int,
        department_id: int,
        category: Optional[str],
        created_by: int,
    ) -> int:
        raise NotImplementedError

    def add_member(self, project_id: int, user_id: int, *, role_name: str) -> None:
        raise NotImplementedError

    def update(self, project_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def soft_delete(self, project_id: int) -> bool:
        raise NotImplementedError
