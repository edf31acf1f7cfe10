from __future__ import annotations

from typing import Optional

from flask import Request, Response

from .settings import AuthSettings
from .tokens import TokenPair


def set_auth_cookies(response: Response, pair: TokenPair, settings: AuthSettings) -> Response:
    names = settings.cookies
    common = dict(
        secure=settings.secure_cookies,
        samesite=settings.same_site,
        path=settings.cookie_path,
    )
    response.set_cookie(
        names.access_token,
        pair.access_token,
        max_age=settings.access_cookie_max_age,
        httponly=True,
        **common,
    )
    response.set_cookie(
        names.refresh_token,
        pair.refresh_token,
        max_age=settings.refresh_cookie_max_age,
        httponly=True,
        **common,
    )
    # Readable by the UI so it can tell whether a session exists.
    response.set_cookie(
        names.authenticated,
        "true",
        max_age=settings.refresh_cookie_max_age,
        httponly=False,
        **common,
    )
    return response


def set_csrf_cookie(response: Response, csrf_token: str, settings: AuthSettings) -> Response:
    response.set_cookie(
        settings.cookies.csrf_token,
        csrf_token,
        max_age=int(settings.csrf_max_age.total_seconds()),
        httponly=False,
        secure=settings.secure_cookies,
        samesite=settings.same_site,
        path=settings.cookie_path,
    )
    return response


def clear_auth_cookies(response: Response, settings: AuthSettings) -> Response:
    names = settings.cookies
    for name in (
        names.access_token,
        names.refresh_token,
        names.csrf_token,
        names.authenticated,
        names.legacy_authenticated,
    ):
        response.delete_cookie(name, path=settings.cookie_path)
    return response


def get_access_token(request: Request, settings: AuthSettings) -> Optional[str]:
    return request.cookies.get(settings.cookies.access_token) or None


def get_refresh_token(request: Request, settings: AuthSettings) -> Optional[str]:
    return request.cookies.get(settings.cookies.refresh_token) or None


def get_csrf_header(request: Request, settings: AuthSettings) -> Optional[str]:
    return request.headers.get(settings.csrf_header) or None
