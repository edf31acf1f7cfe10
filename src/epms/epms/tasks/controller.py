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

    @app.route("/api/tasks", methods=["GET"], endpoint="tasks_list")
    @with_auth("tasks.view", check_csrf=False)
    def tasks_list():
        try:
            data = container.task_service.list_tasks(_ctx(), request.args)
            return ok(data["tasks"], summary=data["summary"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch tasks", "Tasks GET error")

    @app.route("/api/tasks/<int:task_id>", methods=["GET"], endpoint="tasks_detail")
    @with_auth("tasks.view", check_csrf=False)
    def tasks_detail(task_id: int):
        try:
            return ok(container.task_service.get_task(_ctx(), task_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch task", "Task detail error")

    @app.route("/api/tasks", methods=["POST"], endpoint="tasks_create")
    @with_auth("tasks.create")
    def tasks_create():
        try:
            created = container.task_service.create_task(
                _ctx(), user_id=current_user().user_id, data=json_body()
            )
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create task", "Tasks POST error")

    @app.route("/api/tasks/<int:task_id>", methods=["PUT"], endpoint="tasks_update")
    @with_auth("tasks.edit")
    def tasks_update(task_id: int):
        try:
            container.task_service.update_task(
                _ctx(), user_id=current_user().user_id, task_id=task_id, data=json_body()
            )
            return ok(message="Task updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update task", "Tasks PUT error")

    @app.route("/api/tasks/<int:task_id>", methods=["DELETE"], endpoint="tasks_delete")
    @with_auth("tasks.delete")
    def tasks_delete(task_id: int):
        try:
            container.task_service.delete_task(_ctx(), user_id=current_user().user_id, task_id=task_id)
            return ok(message="Task deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete task", "Tasks DELETE error")
