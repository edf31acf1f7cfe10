"""Request guard for the JSON API.

``AuthGuard.require(...)`` wraps a Flask view and runs, in order: API rate
limiting, CSRF validation for mutating methods, cookie authentication (with
transparent refresh) and the permission check. The decoded claims are put on
``flask.g.current_user`` for the view.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import Request, Response, g, make_response, request

from ..common.http import fail
from ..core.permissions import has_all_permissions, has_any_permission
from .cookies import get_access_token, get_csrf_header, get_refresh_token, set_auth_cookies
from .csrf import CsrfTokenService
from .rate_limiter import RateLimiter, rate_limit_headers
from .settings import AuthSettings
from .tokens import TokenClaims, TokenPair, TokenService

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class AuthResult:
    authenticated: bool
    user: Optional[TokenClaims] = None
    error: Optional[str] = None
    status_code: int = 401
    new_tokens: Optional[TokenPair] = None


def client_ip(req: Request) -> str:
    forwarded = req.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = req.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()
    return req.remote_addr or "unknown"


def current_user() -> TokenClaims:
    return g.current_user


def rate_limited_response(retry_after: int):
    resp = make_response(
        {"success": False, "error": "Too many requests. Please try again later.", "retryAfter": retry_after},
        429,
    )
    resp.headers["Retry-After"] = str(retry_after)
    return resp


class AuthGuard:
    def __init__(
        self,
        tokens: TokenService,
        csrf: CsrfTokenService,
        api_limiter: RateLimiter,
        settings: AuthSettings,
    ):
        self._tokens = tokens
        self._csrf = csrf
        self._api_limiter = api_limiter
        self._settings = settings

    def verify_auth(self, req: Request) -> AuthResult:
        access = get_access_token(req, self._settings)
        if access:
            claims = self._tokens.verify_access_token(access)
            if claims:
                return AuthResult(authenticated=True, user=claims)

        refresh = get_refresh_token(req, self._settings)
        if refresh:
            claims = self._tokens.verify_refresh_token(refresh)
            if claims:
                pair = self._tokens.generate_token_pair(claims)
                logger.debug("Refreshed tokens for user %s", claims.user_id)
                return AuthResult(authenticated=True, user=claims, new_tokens=pair)

        return AuthResult(authenticated=False, error="Authentication required", status_code=401)

    def apply_refreshed_tokens(self, response: Response, result: AuthResult) -> Response:
        if result.new_tokens:
            set_auth_cookies(response, result.new_tokens, self._settings)
        return response

    def require(
        self,
        *permissions: str,
        require_all: bool = False,
        check_csrf: bool = True,
        rate_limit: bool = True,
    ):
        def decorator(view):
            @wraps(view)
            def wrapper(*args, **kwargs):
                limit_result = None
                if rate_limit:
                    limit_result = self._api_limiter.consume(client_ip(request))
                    if not limit_result.allowed:
                        return rate_limited_response(limit_result.retry_after_seconds)

                if check_csrf and request.method in MUTATING_METHODS:
                    if not self._csrf.validate(get_csrf_header(request, self._settings)):
                        return fail("Invalid CSRF token", 403)

                auth = self.verify_auth(request)
                if not auth.authenticated or auth.user is None:
                    return fail(auth.error or "Unauthorized", auth.status_code)

                if permissions:
                    granted = auth.user.permissions
                    allowed = (
                        has_all_permissions(granted, permissions)
                        if require_all
                        else has_any_permission(granted, permissions)
                    )
                    if not allowed:
                        return fail("Insufficient permissions", 403)

                g.current_user = auth.user
                response = make_response(view(*args, **kwargs))
                if limit_result is not None:
                    response.headers.update(rate_limit_headers(limit_result, limit=self._api_limiter.points))
                return self.apply_refreshed_tokens(response, auth)

            return wrapper

        return decorator


def apply_security_headers(response: Response, *, production: bool) -> Response:
    headers = response.headers
    headers.setdefault("X-Content-Type-Options", "nosniff")
    headers.setdefault("X-Frame-Options", "DENY")
    headers.setdefault("X-XSS-Protection", "1; mode=block")
    headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=()")
    headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; img-src 'self' data: blob:; font-src 'self' data:; connect-src 'self'; frame-ancestors 'none'",
    )
    if production:
        headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response
