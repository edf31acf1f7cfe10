from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UserAccount:
    """A user as the admin screen edits it. Never carries the password."""

    user_id: int
    uuid: str
    name: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone: Optional[str]
    job_title: Optional[str]
    department_id: Optional[int]
    status: str
    role_name: str


@dataclass(frozen=True)
class Role:
    role_id: int
    name: str
    description: Optional[str]
    is_system: bool = False
    user_count: int = 0
