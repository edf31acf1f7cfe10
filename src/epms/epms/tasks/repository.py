from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import Task


class TaskRepository(Protocol):
    def get(self, task_id: int) -> Optional[Task]:
        raise NotImplementedError

    def get_detail(self, task_id: int) -> Optional[dict]:
        raise NotImplementedError

    def list_comments(self, task_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_dependencies(self, task_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_subtasks(self, task_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def list_tasks(self, ctx: AccessContext, *, filters: Mapping[str, Any]) -> Sequence[dict]:
        raise NotImplementedError

    def summarize(self, ctx: AccessContext, *, project_id: Optional[int] = None) -> dict:
        raise NotImplementedError

    def count_for_project(self, project_id: int) -> int:
        raise NotImplementedError

    def create(
        self,
        *,
        task_number: int,
        task_key: str,
        title: str,
        description: Optional[str],
        project_id: int,
        sprint_id: Optional[int],
        phase_id: Optional[int],
        parent_id: Optional[int],
        type: str,
        status: str,
        priority: str,
        severity: Optional[str],
        story_points: Optional[int],
        estimated_hours: Optional[float],
        planned_start_date: Optional[date],
        due_date: Optional[date],
        created_by: int,
    ) -> int:
        raise NotImplementedError

    def replace_assignees(self, task_id: int, user_ids: Sequence[int]) -> None:
        raise NotImplementedError

    def update(self, task_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def soft_delete(self, task_id: int) -> bool:
        raise NotImplementedError
