from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..audit.service import AuditService
from ..common.sanitize import is_valid_email
from ..core.enums import AuditAction
from ..core.exceptions import AuthenticationError, RateLimitExceeded, ValidationError
from ..core.permissions import permissions_for_role
from ..users.repository import UserRepository
from .csrf import CsrfTokenService
from .passwords import fits_bcrypt, hash_password, validate_password, verify_stored_password
from .rate_limiter import RateLimiter
from .settings import AuthSettings
from .tokens import TokenClaims, TokenPair, TokenService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password. Please try again."


@dataclass(frozen=True)
class SignedInUser:
    user_id: int
    name: str
    email: str
    role: str
    permissions: List[str]

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "permissions": list(self.permissions),
        }


@dataclass(frozen=True)
class SignInResult:
    user: SignedInUser
    tokens: TokenPair
    csrf_token: str


@dataclass(frozen=True)
class RefreshResult:
    claims: TokenClaims
    tokens: TokenPair
    csrf_token: str


class AuthService:
    """Use cases: sign in, refresh, change password.

    Handles the migration of legacy stored passwords (plaintext or Werkzeug
    hashes) to bcrypt on the first successful sign-in.
    """

    def __init__(
        self,
        users: UserRepository,
        tokens: TokenService,
        csrf: CsrfTokenService,
        login_limiter: RateLimiter,
        password_limiter: RateLimiter,
        audit: AuditService,
        settings: AuthSettings,
    ):
        self._users = users
        self._tokens = tokens
        self._csrf = csrf
        self._login_limiter = login_limiter
        self._password_limiter = password_limiter
        self._audit = audit
        self._settings = settings

    def sign_in(self, email: Optional[str], password: Optional[str], *, client_ip: str, user_agent: str = "") -> SignInResult:
        limit = self._login_limiter.consume(client_ip)
        if not limit.allowed:
            retry = limit.retry_after_seconds
            logger.warning("Login rate limit hit for %s", client_ip)
            raise RateLimitExceeded(
                f"Too many login attempts. Please try again in {retry} seconds.", retry_after=retry
            )

        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")

        user = self._users.get_credentials_by_email(email)
        if not user:
            self._record_failure(email, client_ip, user_agent, reason="unknown_user")
            raise AuthenticationError(INVALID_CREDENTIALS)

        match = verify_stored_password(password, user.password)
        if not match.ok:
            self._record_failure(email, client_ip, user_agent, reason="bad_password", user_id=user.user_id)
            raise AuthenticationError(INVALID_CREDENTIALS)

        if match.needs_rehash:
            if fits_bcrypt(password):
                self._users.update_password(user.user_id, hash_password(password, rounds=self._settings.bcrypt_rounds))
                logger.info("Migrated legacy password for user %s to bcrypt", user.user_id)
            else:
                logger.warning("Legacy password for user %s is too long for bcrypt; left unmigrated", user.user_id)

        self._login_limiter.reset(client_ip)

        permissions = permissions_for_role(user.role_name)
        claims = TokenClaims(
            user_id=user.user_id,
            email=user.email,
            role=user.role_name,
            permissions=permissions,
        )
        pair = self._tokens.generate_token_pair(claims)

        try:
            self._users.touch_last_login(user.user_id)
        except Exception:
            logger.warning("Could not update last_login_at for user %s", user.user_id, exc_info=True)

        self._audit.log_action(
            AuditAction.LOGIN,
            resource_type="auth",
            resource_id=user.user_id,
            user_id=user.user_id,
            user_email=user.email,
            user_role=user.role_name,
            ip_address=client_ip,
            user_agent=user_agent or None,
        )

        return SignInResult(
            user=SignedInUser(
                user_id=user.user_id,
                name=user.name,
                email=user.email,
                role=user.role_name,
                permissions=permissions,
            ),
            tokens=pair,
            csrf_token=self._csrf.generate(),
        )

    def _record_failure(
        self, email: str, client_ip: str, user_agent: str, *, reason: str, user_id: Optional[int] = None
    ) -> None:
        logger.info("Failed login for %s from %s (%s)", email, client_ip, reason)
        self._audit.log_action(
            AuditAction.LOGIN_FAILED,
            resource_type="auth",
            user_id=user_id,
            user_email=email,
            metadata={"reason": reason},
            ip_address=client_ip,
            user_agent=user_agent or None,
        )

    def refresh(self, refresh_token: Optional[str]) -> RefreshResult:
        if not refresh_token:
            raise AuthenticationError("No refresh token provided")
        claims = self._tokens.verify_refresh_token(refresh_token)
        if not claims:
            raise AuthenticationError("Invalid or expired refresh token")

        pair = self._tokens.generate_token_pair(claims)
        return RefreshResult(claims=claims, tokens=pair, csrf_token=self._csrf.generate())

    def sign_out(self, claims: Optional[TokenClaims], *, client_ip: str) -> None:
        if claims is None:
            return
        self._audit.log_action(
            AuditAction.LOGOUT,
            resource_type="auth",
            resource_id=claims.user_id,
            user_id=claims.user_id,
            user_email=claims.email,
            user_role=claims.role,
            ip_address=client_ip,
        )

    def change_password(
        self, claims: TokenClaims, *, current_password: str, new_password: str, client_ip: str
    ) -> None:
        limit = self._password_limiter.consume(f"pwd:{claims.user_id}")
        if not limit.allowed:
            raise RateLimitExceeded(
                "Too many password change attempts. Please try again later.",
                retry_after=limit.retry_after_seconds,
            )

        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")

        user = self._users.get_credentials_by_id(claims.user_id)
        if not user or not verify_stored_password(current_password, user.password).ok:
            raise AuthenticationError("Current password is incorrect")

        check = validate_password(new_password, self._settings.password)
        if not check.valid:
            raise ValidationError("; ".join(check.errors))
        if current_password == new_password:
            raise ValidationError("New password must be different from the current password")

        self._users.update_password(user.user_id, hash_password(new_password, rounds=self._settings.bcrypt_rounds))
        self._audit.log_action(
            AuditAction.PASSWORD_CHANGE,
            resource_type="user",
            resource_id=user.user_id,
            user_id=user.user_id,
            user_email=user.email,
            user_role=user.role_name,
            ip_address=client_ip,
        )
