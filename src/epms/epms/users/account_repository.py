from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from .account_model import Role, UserAccount


class UserAccountRepository(Protocol):
    """Admin-side user management: accounts and their role assignment."""

    def get(self, user_id: int) -> Optional[UserAccount]:
        raise NotImplementedError

    def find_id_by_email(self, email: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        raise NotImplementedError

    def list_page(
        self, *, role: Optional[str], status: Optional[str], search: Optional[str], limit: int, offset: int
    ) -> Sequence[dict]:
        raise NotImplementedError

    def count(self, *, role: Optional[str], status: Optional[str], search: Optional[str]) -> int:
        raise NotImplementedError

    def create(self, fields: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def update(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def assign_role(self, user_id: int, role_id: int) -> None:
        raise NotImplementedError

    def soft_delete(self, user_id: int) -> bool:
        raise NotImplementedError


class RoleRepository(Protocol):
    def list_roles(self) -> Sequence[Role]:
        raise NotImplementedError

    def get_by_name(self, name: str) -> Optional[Role]:
        raise NotImplementedError
