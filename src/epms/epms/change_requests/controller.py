from __future__ import annotations

from flask import Flask, request

from ..auth.middleware import client_ip, current_user
from ..common.http import error_response, json_body, ok, server_error
from ..core.enums import AuditAction
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require
    service = container.change_request_service

    def _ctx():
        return container.access_service.get_access_context(current_user().user_id)

    @app.route("/api/change-requests", methods=["GET"], endpoint="change_requests_list")
    @with_auth("change_requests.view", check_csrf=False)
    def change_requests_list():
        try:
            data = service.list_requests(_ctx(), user_id=current_user().user_id, args=request.args)
            return ok(data["requests"], pagination=data["pagination"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch change requests", "Change requests GET error")

    @app.route("/api/change-requests/<int:cr_id>", methods=["GET"], endpoint="change_requests_detail")
    @with_auth("change_requests.view", check_csrf=False)
    def change_requests_detail(cr_id: int):
        try:
            return ok(service.get_request(_ctx(), cr_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch change request", "Change request detail error")

    @app.route("/api/change-requests", methods=["POST"], endpoint="change_requests_create")
    @with_auth("change_requests.create")
    def change_requests_create():
        try:
            created = service.create_request(_ctx(), user_id=current_user().user_id, data=json_body())
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create change request", "Change requests POST error")

    @app.route("/api/change-requests/<int:cr_id>", methods=["PUT"], endpoint="change_requests_update")
    @with_auth("change_requests.edit")
    def change_requests_update(cr_id: int):
        try:
            service.update_request(_ctx(), user_id=current_user().user_id, cr_id=cr_id, data=json_body())
            return ok(message="Change request updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update change request", "Change requests PUT error")

    @app.route("/api/change-requests/<int:cr_id>", methods=["DELETE"], endpoint="change_requests_delete")
    @with_auth("change_requests.delete")
    def change_requests_delete(cr_id: int):
        try:
            service.delete_request(_ctx(), user_id=current_user().user_id, cr_id=cr_id)
            return ok(message="Change request deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete change request", "Change requests DELETE error")

    @app.route("/api/change-requests/<int:cr_id>/approvals", methods=["GET"], endpoint="change_requests_approvals")
    @with_auth("change_requests.view", check_csrf=False)
    def change_requests_approvals(cr_id: int):
        try:
            return ok(service.list_approvals(_ctx(), cr_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch approvals", "Change request approvals error")

    @app.route("/api/change-requests/<int:cr_id>/approvals", methods=["POST"], endpoint="change_requests_decide")
    @with_auth("change_requests.approve")
    def change_requests_decide(cr_id: int):
        try:
            user = current_user()
            decision = service.decide(_ctx(), user_id=user.user_id, cr_id=cr_id, data=json_body())
            container.audit_service.log_action(
                AuditAction.REJECT if decision == "rejected" else AuditAction.APPROVE,
                resource_type="change_request",
                resource_id=str(cr_id),
                user_id=user.user_id,
                user_email=user.email,
                user_role=user.role,
                metadata={"decision": decision},
                ip_address=client_ip(request),
            )
            return ok(message="Approval submitted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to submit approval", "Change request approval POST error")

    @app.route("/api/change-requests/<int:cr_id>/approvers", methods=["POST"], endpoint="change_requests_approvers")
    @with_auth("change_requests.edit", "change_requests.approve")
    def change_requests_approvers(cr_id: int):
        try:
            added = service.assign_approvers(_ctx(), user_id=current_user().user_id, cr_id=cr_id, data=json_body())
            return ok({"added": added}, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to assign approvers", "Change request approvers error")

    @app.route("/api/change-requests/<int:cr_id>/activity", methods=["GET"], endpoint="change_requests_activity")
    @with_auth("change_requests.view", check_csrf=False)
    def change_requests_activity(cr_id: int):
        try:
            return ok(service.list_activity(_ctx(), cr_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch activity", "Change request activity error")
