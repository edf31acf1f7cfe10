from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class TimeEntry:
    entry_id: int
    user_id: int
    project_id: int
    entry_date: date
    duration_minutes: int
    status: str
    task_id: Optional[int] = None
    is_billable: bool = False

    @property
    def hours(self) -> float:
        return round(self.duration_minutes / 60, 2)
