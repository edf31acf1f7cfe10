from __future__ import annotations

from flask import Flask, request

from ..common.http import error_response, ok, server_error
from ..common.validators import optional_text, parse_optional_int
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require

    @app.route("/api/audit-logs", methods=["GET"], endpoint="audit_logs_list")
    @with_auth("settings.view")
    def audit_logs_list():
        try:
            data = container.audit_service.list_logs(
                page=request.args.get("page"),
                limit=request.args.get("limit"),
                user_id=parse_optional_int(request.args.get("user_id"), "user_id"),
                action=optional_text(request.args.get("action")),
                resource_type=optional_text(request.args.get("resource_type")),
            )
            return ok(data["logs"], pagination=data["pagination"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch audit logs", "Audit logs GET error")
