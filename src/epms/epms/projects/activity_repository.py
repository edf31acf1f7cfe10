from __future__ import annotations

from typing import Optional, Protocol, Sequence


class ActivityRepository(Protocol):
    """Per-project activity feed (project_activity_log)."""

    def log(
        self,
        *,
        user_id: int,
        project_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
    ) -> None:
        raise NotImplementedError

    def list_for_project(self, project_id: int, *, limit: int = 50) -> Sequence[dict]:
        raise NotImplementedError
