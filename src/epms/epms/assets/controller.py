from __future__ import annotations

from flask import Flask, request

from ..auth.middleware import client_ip, current_user
from ..common.http import error_response, json_body, ok, server_error
from ..core.enums import AuditAction
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require
    service = container.asset_service

    def _audit(action: AuditAction, asset_id, name=None) -> None:
        user = current_user()
        container.audit_service.log_action(
            action,
            resource_type="asset",
            resource_id=asset_id,
            resource_name=name,
            user_id=user.user_id,
            user_email=user.email,
            user_role=user.role,
            ip_address=client_ip(request),
        )

    @app.route("/api/assets", methods=["GET"], endpoint="assets_list")
    @with_auth("assets.view", check_csrf=False)
    def assets_list():
        try:
            data = service.list_assets(request.args)
            return ok(data["assets"], summary=data["summary"], pagination=data["pagination"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch assets", "Error fetching assets")

    @app.route("/api/assets/<int:asset_id>", methods=["GET"], endpoint="assets_detail")
    @with_auth("assets.view", check_csrf=False)
    def assets_detail(asset_id: int):
        try:
            return ok(service.get_asset(asset_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch asset", "Error fetching asset")

    @app.route("/api/assets", methods=["POST"], endpoint="assets_create")
    @with_auth("assets.create")
    def assets_create():
        try:
            body = json_body()
            created = service.create_asset(user_id=current_user().user_id, data=body)
            _audit(AuditAction.CREATE, created["id"], body.get("name"))
            return ok(created, status=201, message="Asset created")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create asset", "Error creating asset")

    @app.route("/api/assets/<int:asset_id>", methods=["PUT"], endpoint="assets_update")
    @with_auth("assets.edit")
    def assets_update(asset_id: int):
        try:
            service.update_asset(user_id=current_user().user_id, asset_id=asset_id, data=json_body())
            _audit(AuditAction.UPDATE, asset_id)
            return ok(message="Asset updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update asset", "Error updating asset")

    @app.route("/api/assets/<int:asset_id>", methods=["DELETE"], endpoint="assets_delete")
    @with_auth("assets.delete")
    def assets_delete(asset_id: int):
        try:
            service.delete_asset(user_id=current_user().user_id, asset_id=asset_id)
            _audit(AuditAction.DELETE, asset_id)
            return ok(message="Asset deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete asset", "Error deleting asset")
