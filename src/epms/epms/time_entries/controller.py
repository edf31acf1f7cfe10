from __future__ import annotations

from flask import Flask, request

from ..auth.middleware import current_user
from ..common.http import error_response, json_body, ok, server_error
from ..core.enums import TimeEntryStatus
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require
    service = container.time_entry_service

    def _ctx():
        return container.access_service.get_access_context(current_user().user_id)

    @app.route("/api/time-entries", methods=["GET"], endpoint="time_entries_list")
    @with_auth("timesheets.view", check_csrf=False)
    def time_entries_list():
        try:
            data = service.list_entries(_ctx(), request.args)
            return ok(data["entries"], summary=data["summary"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch time entries", "Time entries GET error")

    @app.route("/api/time-entries/<int:entry_id>", methods=["GET"], endpoint="time_entries_detail")
    @with_auth("timesheets.view", check_csrf=False)
    def time_entries_detail(entry_id: int):
        try:
            return ok(service.get_entry(_ctx(), entry_id))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch time entry", "Time entry detail error")

    @app.route("/api/time-entries", methods=["POST"], endpoint="time_entries_create")
    @with_auth("timesheets.create")
    def time_entries_create():
        try:
            created = service.create_entry(_ctx(), user_id=current_user().user_id, data=json_body())
            return ok(created, status=201)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create time entry", "Time entries POST error")

    @app.route("/api/time-entries/<int:entry_id>", methods=["PUT"], endpoint="time_entries_update")
    @with_auth("timesheets.edit", "timesheets.approve")
    def time_entries_update(entry_id: int):
        try:
            service.update_entry(_ctx(), user_id=current_user().user_id, entry_id=entry_id, data=json_body())
            return ok(message="Time entry updated")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update time entry", "Time entries PUT error")

    @app.route("/api/time-entries/<int:entry_id>/submit", methods=["POST"], endpoint="time_entries_submit")
    @with_auth("timesheets.edit")
    def time_entries_submit(entry_id: int):
        try:
            service.submit_entry(_ctx(), user_id=current_user().user_id, entry_id=entry_id)
            return ok(message="Time entry submitted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to submit time entry", "Time entry submit error")

    @app.route("/api/time-entries/<int:entry_id>/approve", methods=["POST"], endpoint="time_entries_approve")
    @with_auth("timesheets.approve")
    def time_entries_approve(entry_id: int):
        try:
            service.review_entry(
                _ctx(), reviewer_id=current_user().user_id, entry_id=entry_id, status=TimeEntryStatus.APPROVED.value
            )
            return ok(message="Time entry approved")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to approve time entry", "Time entry approve error")

    @app.route("/api/time-entries/<int:entry_id>/reject", methods=["POST"], endpoint="time_entries_reject")
    @with_auth("timesheets.approve")
    def time_entries_reject(entry_id: int):
        try:
            service.review_entry(
                _ctx(),
                reviewer_id=current_user().user_id,
                entry_id=entry_id,
                status=TimeEntryStatus.REJECTED.value,
                reason=json_body().get("rejection_reason"),
            )
            return ok(message="Time entry rejected")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to reject time entry", "Time entry reject error")

    @app.route("/api/time-entries/<int:entry_id>", methods=["DELETE"], endpoint="time_entries_delete")
    @with_auth("timesheets.delete")
    def time_entries_delete(entry_id: int):
        try:
            service.delete_entry(_ctx(), user_id=current_user().user_id, entry_id=entry_id)
            return ok(message="Time entry deleted")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete time entry", "Time entries DELETE error")
