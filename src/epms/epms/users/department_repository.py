from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from .department_model import Department


class DepartmentRepository(Protocol):
    def get_by_id(self, department_id: int) -> Optional[Department]:
        raise NotImplementedError

    def find_id_by_name(self, name: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        raise NotImplementedError

    def list_page(
        self, *, search: Optional[str], status: Optional[str], limit: int, offset: int
    ) -> Sequence[dict]:
        raise NotImplementedError

    def count(self, *, search: Optional[str], status: Optional[str]) -> int:
        raise NotImplementedError

    def list_active(self) -> Sequence[dict]:
        raise NotImplementedError

    def create(
        self,
        *,
        name: str,
        manager_id: Optional[int],
        parent_id: Optional[int],
        analytic_account: Optional[str],
        description: Optional[str],
        status: str,
    ) -> int:
        raise NotImplementedError

    def update(self, department_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def has_children(self, department_id: int) -> bool:
        raise NotImplementedError

    def soft_delete(self, department_id: int) -> bool:
        raise NotImplementedError
