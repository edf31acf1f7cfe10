from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class UserAccessRow:
    """Raw facts about a user that decide their project visibility."""

    user_id: int
    department_id: Optional[int]
    role_name: str
    manages_department: bool


@dataclass(frozen=True)
class AccessContext:
    user_id: int
    department_id: Optional[int] = None
    role_name: str = ""
    is_admin: bool = False
    is_dept_manager: bool = False
    accessible_project_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def can_manage_people(self) -> bool:
        """Admins and department managers can see and approve others' records."""
        return self.is_admin or self.is_dept_manager
