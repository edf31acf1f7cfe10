from __future__ import annotations

from flask import Flask, request

from ..auth.middleware import client_ip, current_user
from ..common.http import error_response, json_body, ok, server_error
from ..core.enums import AuditAction
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require
    service = container.budget_service

    def _ctx():
        return container.access_service.get_access_context(current_user().user_id)

    @app.route("/api/budgets", methods=["GET"], endpoint="budgets_list")
    @with_auth("budgets.view", check_csrf=False)
    def budgets_list():
        try:
            data = service.list_budgets(_ctx(), project_id=request.args.get("project_id"))
            return ok(data["budgets"], overview=data["overview"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch budgets", "Budgets GET error")

    @app.route("/api/budgets/<int:budget_id>", methods=["GET"], endpoint="budgets_detail")
    @with_auth("budgets.view", check_csrf=False)
    def budgets_detail(budget_id: int):
        try:
            return ok(service.get_budget(_ctx(), budget_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch budget", "Budget detail error")

    @app.route("/api/budgets", methods=["POST"], endpoint="budgets_create")
    @with_auth("budgets.create")
    def budgets_create():
        try:
            return ok(service.create_budget(_ctx(), data=json_body()), status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create budget", "Budgets POST error")

    @app.route("/api/budgets/<int:budget_id>", methods=["PUT"], endpoint="budgets_update")
    @with_auth("budgets.edit", "budgets.approve")
    def budgets_update(budget_id: int):
        try:
            user = current_user()
            body = json_body()
            service.update_budget(
                _ctx(), user_id=user.user_id, budget_id=budget_id, data=body, permissions=user.permissions
            )
            if body.get("status") == "approved":
                container.audit_service.log_action(
                    AuditAction.APPROVE,
                    resource_type="budget",
                    resource_id=budget_id,
                    user_id=user.user_id,
                    user_email=user.email,
                    user_role=user.role,
                    ip_address=client_ip(request),
                )
            return ok(message="Budget updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update budget", "Budgets PUT error")

    @app.route("/api/budgets/<int:budget_id>", methods=["DELETE"], endpoint="budgets_delete")
    @with_auth("budgets.delete")
    def budgets_delete(budget_id: int):
        try:
            service.delete_budget(_ctx(), budget_id)
            return ok(message="Budget deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete budget", "Budgets DELETE error")
