from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import jwt

from ..core.enums import TokenType
from .settings import AuthSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried inside access and refresh tokens."""

    user_id: int
    email: str
    role: str
    permissions: List[str] = field(default_factory=list)
    token_type: TokenType = TokenType.ACCESS
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "email": self.email,
            "role": self.role,
            "permissions": list(self.permissions),
        }


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


def _utc_from_ts(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenService:
    """Issue and verify HS256 JWTs for the access/refresh cookie pair."""

    def __init__(self, settings: AuthSettings, *, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._settings = settings
        self._clock = clock

    def _secret(self, token_type: TokenType) -> str:
        if token_type == TokenType.ACCESS:
            return self._settings.access_secret
        return self._settings.refresh_secret

    def _ttl(self, token_type: TokenType) -> timedelta:
        if token_type == TokenType.ACCESS:
            return self._settings.access_ttl
        return self._settings.refresh_ttl

    def _encode(self, claims: TokenClaims, token_type: TokenType) -> tuple[str, datetime]:
        now = self._clock()
        expires_at = now + self._ttl(token_type)
        payload = {
            "user_id": int(claims.user_id),
            "email": claims.email,
            "role": claims.role,
            "permissions": list(claims.permissions),
            "type": token_type.value,
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret(token_type), algorithm=self._settings.algorithm)
        return token, expires_at

    def generate_access_token(self, claims: TokenClaims) -> str:
        return self._encode(claims, TokenType.ACCESS)[0]

    def generate_refresh_token(self, claims: TokenClaims) -> str:
        return self._encode(claims, TokenType.REFRESH)[0]

    def generate_token_pair(self, claims: TokenClaims) -> TokenPair:
        access, access_exp = self._encode(claims, TokenType.ACCESS)
        refresh, refresh_exp = self._encode(claims, TokenType.REFRESH)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
        )

    def _verify(self, token: str, token_type: TokenType) -> Optional[TokenClaims]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret(token_type),
                algorithms=[self._settings.algorithm],
                issuer=self._settings.issuer,
                audience=self._settings.audience,
                options={"require": ["exp", "iat", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("%s token expired", token_type.value)
            return None
        except jwt.InvalidTokenError as e:
            logger.debug("%s token rejected: %s", token_type.value, e)
            return None

        if payload.get("type") != token_type.value:
            return None
        return self._claims_from_payload(payload)

    @staticmethod
    def _claims_from_payload(payload: Dict[str, Any]) -> Optional[TokenClaims]:
        try:
            return TokenClaims(
                user_id=int(payload["user_id"]),
                email=str(payload.get("email") or ""),
                role=str(payload.get("role") or ""),
                permissions=list(payload.get("permissions") or []),
                token_type=TokenType(payload.get("type", TokenType.ACCESS.value)),
                issued_at=_utc_from_ts(payload.get("iat")),
                expires_at=_utc_from_ts(payload.get("exp")),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def verify_access_token(self, token: str) -> Optional[TokenClaims]:
        return self._verify(token, TokenType.ACCESS)

    def verify_refresh_token(self, token: str) -> Optional[TokenClaims]:
        return self._verify(token, TokenType.REFRESH)

    @staticmethod
    def decode_token(token: str) -> Optional[Dict[str, Any]]:
        """Decode without verifying signature or expiry (for inspection only)."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None

    def is_token_expired(self, token: str) -> bool:
        payload = self.decode_token(token)
        if not payload or "exp" not in payload:
            return True
        return int(payload["exp"]) <= int(self._clock().timestamp())

    def get_token_remaining_time(self, token: str) -> int:
        """Seconds until expiry, 0 when already expired or unreadable."""
        payload = self.decode_token(token)
        if not payload or "exp" not in payload:
            return 0
        return max(0, int(payload["exp"]) - int(self._clock().timestamp()))
