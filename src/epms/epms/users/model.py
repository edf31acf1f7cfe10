from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UserCredentials:
    """What sign-in needs to know about an account.

    ``password`` is whatever is stored: a bcrypt hash, a legacy Werkzeug hash,
    or (for very old rows) plaintext.
    """

    user_id: int
    name: str
    email: str
    password: str
    role_name: str
    status: str = "active"


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    uuid: Optional[str]
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    display_name: Optional[str]
    avatar_url: Optional[str]
    phone: Optional[str]
    job_title: Optional[str]
    department: Optional[str]
    timezone: str
    locale: str
    date_format: str
    time_format: str
    status: str
    last_login_at: Optional[datetime]
    created_at: Optional[datetime]
