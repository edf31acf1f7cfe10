from __future__ import annotations

from flask import Flask, request

from ..auth.middleware import current_user
from ..common.http import error_response, json_body, ok, server_error
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require

    def _ctx():
        return container.access_service.get_access_context(current_user().user_id)

    @app.route("/api/risks", methods=["GET"], endpoint="risks_list")
    @with_auth("risks.view", check_csrf=False)
    def risks_list():
        try:
            data = container.risk_service.list_risks(_ctx(), request.args)
            return ok(data["risks"], summary=data["summary"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch risks", "Risks GET error")

    @app.route("/api/risks/<int:risk_id>", methods=["GET"], endpoint="risks_detail")
    @with_auth("risks.view", check_csrf=False)
    def risks_detail(risk_id: int):
        try:
            return ok(container.risk_service.get_risk(_ctx(), risk_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch risk", "Risk detail error")

    @app.route("/api/risks", methods=["POST"], endpoint="risks_create")
    @with_auth("risks.create")
    def risks_create():
        try:
            created = container.risk_service.create_risk(
                _ctx(), user_id=current_user().user_id, data=json_body()
            )
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create risk", "Risks POST error")

    @app.route("/api/risks/<int:risk_id>", methods=["PUT"], endpoint="risks_update")
    @with_auth("risks.edit")
    def risks_update(risk_id: int):
        try:
            container.risk_service.update_risk(
                _ctx(), user_id=current_user().user_id, risk_id=risk_id, data=json_body()
            )
            return ok(message="Risk updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update risk", "Risks PUT error")

    @app.route("/api/risks/<int:risk_id>", methods=["DELETE"], endpoint="risks_delete")
    @with_auth("risks.delete")
    def risks_delete(risk_id: int):
        try:
            container.risk_service.delete_risk(_ctx(), user_id=current_user().user_id, risk_id=risk_id)
            return ok(message="Risk deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete risk", "Risks DELETE error")
