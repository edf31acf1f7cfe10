from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AuditEntry


class AuditRepository(Protocol):
    def insert(self, entry_id: str, entry: AuditEntry) -> None:
        raise NotImplementedError

    def list_recent(
        self,
        *,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[dict]:
        raise NotImplementedError

    def count(
        self,
        *,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
    ) -> int:
        raise NotImplementedError
