from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import Risk


class RiskRepository(Protocol):
    def get(self, risk_id: int) -> Optional[Risk]:
        raise NotImplementedError

    def get_detail(self, risk_id: int) -> Optional[dict]:
        raise NotImplementedError

    def list_risks(
        self,
        ctx: AccessContext,
        *,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
        risk_level: Optional[str] = None,
    ) -> Sequence[dict]:
        raise NotImplementedError

    def summarize(self, ctx: AccessContext) -> dict:
        raise NotImplementedError

    def count_for_project(self, project_id: int) -> int:
        raise NotImplementedError

    def create(self, fields: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def update(self, risk_id: int, changes: Mapping[str, Any], *, closing: bool = False) -> bool:
        raise NotImplementedError

    def soft_delete(self, risk_id: int) -> bool:
        raise NotImplementedError
