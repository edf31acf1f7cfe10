from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from ..access.model import AccessContext
from .model import Approval, ChangeRequest


class ChangeRequestRepository(Protocol):
    def get(self, cr_id: int) -> Optional[ChangeRequest]:
        raise NotImplementedError

    def get_detail(self, cr_id: int) -> Optional[dict]:
        raise NotImplementedError

    def list_page(self, ctx: AccessContext, *, filters: Mapping[str, Any], limit: int, offset: int) -> Sequence[dict]:
        raise NotImplementedError

    def count(self, ctx: AccessContext, *, filters: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def count_for_project(self, project_id: int) -> int:
        raise NotImplementedError

    def create(self, fields: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def update(self, cr_id: int, changes: Mapping[str, Any], *, submit: bool = False) -> bool:
        """Apply whitelisted changes; ``submit`` also moves the request to submitted."""
        raise NotImplementedError

    def set_status(self, cr_id: int, status: str, *, decided: bool = False) -> None:
        raise NotImplementedError

    def soft_delete(self, cr_id: int) -> bool:
        raise NotImplementedError


class ApprovalRepository(Protocol):
    """Approvals (cr_approvals) and the per-request activity trail (cr_activity_log)."""

    def list_for_request(self, cr_id: int) -> Sequence[dict]:
        raise NotImplementedError

    def find_pending(self, cr_id: int, approver_id: int) -> Optional[Approval]:
        raise NotImplementedError

    def record_decision(
        self, approval_id: int, *, decision: str, comments: Optional[str], conditions: Optional[str]
    ) -> None:
        raise NotImplementedError

    def count_pending(self, cr_id: int) -> int:
        raise NotImplementedError

    def add_approvers(self, cr_id: int, approver_ids: Sequence[int]) -> int:
        """Create pending approvals for approvers not already assigned; returns rows added."""
        raise NotImplementedError

    def log_activity(self, cr_id: int, *, user_id: int, action: str, description: str) -> None:
        raise NotImplementedError

    def list_activity(self, cr_id: int) -> Sequence[dict]:
        raise NotImplementedError
