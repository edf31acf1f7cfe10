from __future__ import annotations

from dataclasses import asdict

from flask import Flask, jsonify, make_response, request

from ..common.http import error_response, json_body, ok, server_error
from ..core.exceptions import DomainError
from ..container import Container
from .cookies import clear_auth_cookies, get_refresh_token, set_auth_cookies, set_csrf_cookie
from .middleware import client_ip, current_user



def register(app: Flask, container: Container) -> None:
    settings = container.auth_settings
    with_auth = container.auth_guard.require

    @app.route("/api/auth/signin", methods=["POST"], endpoint="auth_signin")
    def signin():
        try:
            body = json_body()
            result = container.auth_service.sign_in(
                body.get("email"),
                body.get("password"),
                client_ip=client_ip(request),
                user_agent=request.headers.get("User-Agent", ""),
            )
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("An error occurred during sign in. Please try again.", "Sign in error")

        resp = jsonify(
            {
                "success": True,
                "message": "Login successful",
                "user": result.user.to_dict(),
                "csrfToken": result.csrf_token,
                "expiresAt": result.tokens.access_expires_at.isoformat(),
            }
        )
        set_auth_cookies(resp, result.tokens, settings)
        set_csrf_cookie(resp, result.csrf_token, settings)
        return resp

    @app.route("/api/auth/refresh", methods=["POST"], endpoint="auth_refresh")
    def refresh():
        try:
            result = container.auth_service.refresh(get_refresh_token(request, settings))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Token refresh failed", "Token refresh error")

        resp = jsonify(
            {
                "success": True,
                "csrfToken": result.csrf_token,
                "expiresAt": result.tokens.access_expires_at.isoformat(),
                "user": result.claims.to_public_dict(),
            }
        )
        set_auth_cookies(resp, result.tokens, settings)
        set_csrf_cookie(resp, result.csrf_token, settings)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @with_auth(rate_limit=False)
    def me():
        return ok(user=current_user().to_public_dict())

    @app.route("/api/auth/signout", methods=["GET", "POST"], endpoint="auth_signout")
    def signout():
        auth = container.auth_guard.verify_auth(request)
        container.auth_service.sign_out(auth.user, client_ip=client_ip(request))
        resp = make_response({"success": True, "message": "Signed out successfully"})
        clear_auth_cookies(resp, settings)
        return resp

    @app.route("/api/auth/csrf", methods=["GET"], endpoint="auth_csrf")
    @with_auth(rate_limit=False)
    def csrf():
        token = container.csrf_service.generate()
        resp = make_response({"success": True, "csrfToken": token})
        set_csrf_cookie(resp, token, settings)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.route("/api/auth/profile", methods=["GET"], endpoint="auth_profile")
    @with_auth()
    def profile():
        try:
            prof = container.profile_service.get_profile(current_user().user_id)
            return ok(asdict(prof))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch profile")

    @app.route("/api/auth/profile", methods=["PUT"], endpoint="auth_profile_update")
    @with_auth()
    def profile_update():
        try:
            prof = container.profile_service.update_profile(current_user().user_id, json_body())
            return ok(asdict(prof), message="Profile updated successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update profile")

    @app.route("/api/auth/password", methods=["POST"], endpoint="auth_change_password")
    @with_auth()
    def change_password():
        try:
            body = json_body()
            container.auth_service.change_password(
                current_user(),
                current_password=body.get("current_password") or "",
                new_password=body.get("new_password") or "",
                client_ip=client_ip(request),
            )
            return ok(message="Password changed successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to change password")