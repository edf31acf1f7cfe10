"""Authentication settings.

Defaults mirror the production policy; ``from_settings`` overlays the secrets
and flags found in the active ``config.*`` module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    # bcrypt ignores or rejects input past 72 bytes.
    max_bytes: int = 72
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_number: bool = True
    require_special_char: bool = True


@dataclass(frozen=True)
class RateLimitRule:
    points: int
    duration_seconds: int
    block_seconds: int = 0


@dataclass(frozen=True)
class CookieNames:
    access_token: str = "epms_access_token"
    refresh_token: str = "epms_refresh_token"
    csrf_token: str = "epms_csrf_token"
    authenticated: str = "epms_authenticated"
    legacy_authenticated: str = "isAuthenticated"


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    csrf_secret: str
    issuer: str = "epms-system"
    audience: str = "epms-users"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    algorithm: str = "HS256"

    bcrypt_rounds: int = 12
    password: PasswordPolicy = field(default_factory=PasswordPolicy)

    login_limit: RateLimitRule = RateLimitRule(points=5, duration_seconds=60, block_seconds=300)
    api_limit: RateLimitRule = RateLimitRule(points=100, duration_seconds=60)
    password_reset_limit: RateLimitRule = RateLimitRule(points=3, duration_seconds=3600)

    cookies: CookieNames = field(default_factory=CookieNames)
    secure_cookies: bool = False
    same_site: str = "Strict"
    cookie_path: str = "/"

    csrf_max_age: timedelta = timedelta(hours=1)
    csrf_header: str = "X-CSRF-Token"

    idle_timeout: timedelta = timedelta(minutes=30)
    absolute_timeout: timedelta = timedelta(hours=24)

    @property
    def access_cookie_max_age(self) -> int:
        return int(self.access_ttl.total_seconds())

    @property
    def refresh_cookie_max_age(self) -> int:
        return int(self.refresh_ttl.total_seconds())

    @classmethod
    def from_settings(cls, settings) -> "AuthSettings":
        return cls(
            access_secret=str(getattr(settings, "JWT_ACCESS_SECRET")),
            refresh_secret=str(getattr(settings, "JWT_REFRESH_SECRET")),
            csrf_secret=str(getattr(settings, "CSRF_SECRET")),
            secure_cookies=bool(getattr(settings, "SECURE_COOKIES", False)),
            bcrypt_rounds=int(getattr(settings, "BCRYPT_ROUNDS", 12)),
        )
