from __future__ import annotations

from ..core.enums import ADMIN_ROLE_NAMES
from ..core.exceptions import AuthorizationError
from .filters import can_access_project
from .model import AccessContext
from .repository import AccessRepository


class ProjectAccessService:
    """Resolves which projects a user can see.

    - Admins see everything (and count as department managers).
    - Department managers see their department's projects plus any project they
      belong to, manage or own.
    - Everyone else sees projects they are an active member of, manage, own or
      created.
    """

    def __init__(self, repo: AccessRepository):
        self._repo = repo

    def get_access_context(self, user_id: int) -> AccessContext:
        row = self._repo.get_user_access_row(int(user_id))
        if not row:
            return AccessContext(user_id=int(user_id))

        if row.role_name in ADMIN_ROLE_NAMES:
            return AccessContext(
                user_id=row.user_id,
                department_id=row.department_id,
                role_name=row.role_name,
                is_admin=True,
                is_dept_manager=True,
            )

        if row.manages_department and row.department_id:
            ids = self._repo.list_department_manager_project_ids(
                user_id=row.user_id, department_id=row.department_id
            )
        else:
            ids = self._repo.list_staff_project_ids(user_id=row.user_id)

        return AccessContext(
            user_id=row.user_id,
            department_id=row.department_id,
            role_name=row.role_name,
            is_admin=False,
            is_dept_manager=row.manages_department,
            accessible_project_ids=frozenset(int(i) for i in ids),
        )

    @staticmethod
    def ensure_project_access(ctx: AccessContext, project_id: int) -> None:
        if not can_access_project(ctx, project_id):
            raise AuthorizationError("You do not have access to this project")
