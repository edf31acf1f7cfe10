from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Project:
    project_id: int
    code: str
    name: str
    status: str
    department_id: Optional[int]
    owner_id: Optional[int]
    manager_id: Optional[int]
    created_by: Optional[int]
