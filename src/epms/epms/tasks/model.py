from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Task:
    task_id: int
    project_id: int
    task_key: str
    title: str
    status: str
    sprint_id: Optional[int] = None
