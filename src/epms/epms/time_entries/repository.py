from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import TimeEntry


class TimeEntryRepository(Protocol):
    def get(self, entry_id: int) -> Optional[TimeEntry]:
        raise NotImplementedError

    def get_detail(self, entry_id: int) -> Optional[dict]:
        raise NotImplementedError

    def list_entries(
        self,
        ctx: AccessContext,
        *,
        owner_id: Optional[int],
        filters: Mapping[str, Any],
    ) -> Sequence[dict]:
        """Entries on accessible projects; ``owner_id`` restricts to one user's entries."""
        raise NotImplementedError

    def summarize(self, ctx: AccessContext, *, owner_id: Optional[int]) -> dict:
        raise NotImplementedError

    def create(
        self,
        *,
        user_id: int,
        project_id: int,
        task_id: Optional[int],
        entry_date: date,
        duration_minutes: int,
        description: Optional[str],
        is_billable: bool,
        status: str,
    ) -> int:
        raise NotImplementedError

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def set_status(self, entry_id: int, status: str) -> bool:
        raise NotImplementedError

    def review(self, entry_id: int, *, status: str, reviewer_id: int, rejection_reason: Optional[str]) -> bool:
        raise NotImplementedError

    def delete(self, entry_id: int) -> bool:
        raise NotImplementedError
