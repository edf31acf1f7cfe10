from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChangeRequest:
    cr_id: int
    project_id: Optional[int]
    change_key: str
    title: str
    status: str
    requested_by: Optional[int] = None


@dataclass(frozen=True)
class Approval:
    approval_id: int
    cr_id: int
    approver_id: int
    status: str
