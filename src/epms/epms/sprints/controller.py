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

    @app.route("/api/sprints", methods=["GET"], endpoint="sprints_list")
    @with_auth("sprints.view", check_csrf=False)
    def sprints_list():
        try:
            rows = container.sprint_service.list_sprints(
                _ctx(),
                project_id=request.args.get("project_id"),
                status=request.args.get("status"),
            )
            return ok(rows)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch sprints", "Sprints GET error")

    @app.route("/api/sprints/<int:sprint_id>", methods=["GET"], endpoint="sprints_detail")
    @with_auth("sprints.view", check_csrf=False)
    def sprints_detail(sprint_id: int):
        try:
            return ok(container.sprint_service.get_sprint(_ctx(), sprint_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch sprint", "Sprint detail error")

    @app.route("/api/sprints/<int:sprint_id>/burndown", methods=["GET"], endpoint="sprints_burndown")
    @with_auth("sprints.view", check_csrf=False)
    def sprints_burndown(sprint_id: int):
        try:
            chart = container.sprint_service.get_burndown(_ctx(), sprint_id)
            chart["chartType"] = request.args.get("type") or "burndown"
            return ok(chart)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch burndown data", "Get burndown error")

    @app.route("/api/sprints", methods=["POST"], endpoint="sprints_create")
    @with_auth("sprints.create")
    def sprints_create():
        try:
            created = container.sprint_service.create_sprint(
                _ctx(), user_id=current_user().user_id, data=json_body()
            )
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create sprint", "Sprints POST error")

    @app.route("/api/sprints/<int:sprint_id>", methods=["PUT"], endpoint="sprints_update")
    @with_auth("sprints.edit")
    def sprints_update(sprint_id: int):
        try:
            container.sprint_service.update_sprint(
                _ctx(), user_id=current_user().user_id, sprint_id=sprint_id, data=json_body()
            )
            return ok(message="Sprint updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update sprint", "Sprints PUT error")

    @app.route("/api/sprints/<int:sprint_id>", methods=["DELETE"], endpoint="sprints_delete")
    @with_auth("sprints.delete")
    def sprints_delete(sprint_id: int):
        try:
            container.sprint_service.delete_sprint(_ctx(), user_id=current_user().user_id, sprint_id=sprint_id)
            return ok(message="Sprint deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete sprint", "Sprints DELETE error")
