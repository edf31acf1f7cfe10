from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import UserAccessRow


class AccessRepository(Protocol):
    def get_user_access_row(self, user_id: int) -> Optional[UserAccessRow]:
        raise NotImplementedError

    def list_department_manager_project_ids(self, *, user_id: int, department_id: int) -> Sequence[int]:
        """Projects in the department, or where the user is member, manager or owner."""
        raise NotImplementedError

    def list_staff_project_ids(self, *, user_id: int) -> Sequence[int]:
        """Projects where the user is an active member, manager, owner or creator."""
        raise NotImplementedError
