from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .model import UserCredentials, UserProfile


class UserRepository(Protocol):
    """Repository interface for user accounts.

    Services depend on this protocol, not on a concrete database.
    """

    def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        raise NotImplementedError

    def get_credentials_by_id(self, user_id: int) -> Optional[UserCredentials]:
        raise NotImplementedError

    def update_password(self, user_id: int, password_hash: str) -> bool:
        raise NotImplementedError

    def touch_last_login(self, user_id: int) -> None:
        raise NotImplementedError

    def get_profile(self, user_id: int) -> Optional[UserProfile]:
        raise NotImplementedError

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError
