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

    @app.route("/api/projects", methods=["GET"], endpoint="projects_list")
    @with_auth("projects.view", check_csrf=False)
    def projects_list():
        try:
            data = container.project_service.list_projects(
                _ctx(),
                status=request.args.get("status"),
                department_id=request.args.get("department_id"),
                search=request.args.get("search"),
            )
            return ok(data["projects"], summary=data["summary"], departments=data["departments"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch projects", "Projects GET error")

    @app.route("/api/projects/<int:project_id>", methods=["GET"], endpoint="projects_detail")
    @with_auth("projects.view", check_csrf=False)
    def projects_detail(project_id: int):
        try:
            return ok(container.project_service.get_project(_ctx(), project_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch project", "Project detail error")

    @app.route("/api/projects", methods=["POST"], endpoint="projects_create")
    @with_auth("projects.create")
    def projects_create():
        try:
            created = container.project_service.create_project(user_id=current_user().user_id, data=json_body())
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create project", "Projects POST error")

    @app.route("/api/projects/<int:project_id>", methods=["PUT"], endpoint="projects_update")
    @with_auth("projects.edit")
    def projects_update(project_id: int):
        try:
            container.project_service.update_project(
                _ctx(), user_id=current_user().user_id, project_id=project_id, data=json_body()
            )
            return ok(message="Project updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update project", "Projects PUT error")

    @app.route("/api/projects/<int:project_id>", methods=["DELETE"], endpoint="projects_delete")
    @with_auth("projects.delete")
    def projects_delete(project_id: int):
        try:
            container.project_service.delete_project(_ctx(), user_id=current_user().user_id, project_id=project_id)
            return ok(message="Project deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete project", "Projects DELETE error")

    @app.route("/api/projects/<int:project_id>/activity", methods=["GET"], endpoint="projects_activity")
    @with_auth("projects.view", check_csrf=False)
    def projects_activity(project_id: int):
        try:
            rows = container.project_service.list_activity(_ctx(), project_id, limit=request.args.get("limit"))
            return ok(list(rows))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch activity", "Project activity error")
