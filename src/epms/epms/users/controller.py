from __future__ import annotations

from flask import Flask, request

from ..common.http import error_response, json_body, ok, server_error
from ..core.enums import AuditAction
from ..core.exceptions import DomainError
from ..container import Container
from ..auth.middleware import client_ip, current_user


def register(app: Flask, container: Container) -> None:
    with_auth = container.auth_guard.require

    @app.route("/api/settings/departments", methods=["GET"], endpoint="departments_list")
    @with_auth("settings.view", "projects.view")
    def departments_list():
        try:
            data = container.department_service.list_departments(
                page=request.args.get("page"),
                limit=request.args.get("limit"),
                search=request.args.get("search"),
                status=request.args.get("status"),
            )
            return ok(data["departments"], pagination=data["pagination"])
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch departments")

    @app.route("/api/settings/departments", methods=["POST"], endpoint="departments_create")
    @with_auth("settings.edit")
    def departments_create():
        try:
            body = json_body()
            new_id = container.department_service.create_department(body)
            user = current_user()
            container.audit_service.log_action(
                AuditAction.CREATE,
                resource_type="department",
                resource_id=new_id,
                resource_name=body.get("name"),
                user_id=user.user_id,
                user_email=user.email,
                user_role=user.role,
                ip_address=client_ip(request),
            )
            return ok({"id": new_id}, status=201, message="Department created successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create department")

    @app.route("/api/settings/departments/<int:department_id>", methods=["PUT"], endpoint="departments_update")
    @with_auth("settings.edit")
    def departments_update(department_id: int):
        try:
            changes = container.department_service.update_department(department_id, json_body())
            if changes:
                user = current_user()
                container.audit_service.log_action(
                    AuditAction.UPDATE,
                    resource_type="department",
                    resource_id=department_id,
                    changes=changes,
                    user_id=user.user_id,
                    user_email=user.email,
                    user_role=user.role,
                    ip_address=client_ip(request),
                )
            return ok(message="Department updated successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update department")

    @app.route("/api/settings/departments/<int:department_id>", methods=["DELETE"], endpoint="departments_delete")
    @with_auth("settings.edit")
    def departments_delete(department_id: int):
        try:
            container.department_service.delete_department(department_id)
            user = current_user()
            container.audit_service.log_action(
                AuditAction.DELETE,
                resource_type="department",
                resource_id=department_id,
                user_id=user.user_id,
                user_email=user.email,
                user_role=user.role,
                ip_address=client_ip(request),
            )
            return ok(message="Department deleted successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete department")

    def _audit(action: AuditAction, user_id, **fields):
        actor = current_user()
        container.audit_service.log_action(
            action,
            resource_type="user",
            resource_id=user_id,
            user_id=actor.user_id,
            user_email=actor.email,
            user_role=actor.role,
            ip_address=client_ip(request),
            **fields,
        )

    @app.route("/api/settings/users", methods=["GET"], endpoint="users_list")
    @with_auth("users.view")
    def users_list():
        try:
            data = container.user_admin_service.list_users(
                page=request.args.get("page"),
                limit=request.args.get("limit"),
                role=request.args.get("role"),
                status=request.args.get("status"),
                search=request.args.get("search"),
            )
            return ok(data["users"], pagination=data["pagination"], message="Users fetched successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch users")

    @app.route("/api/settings/users", methods=["POST"], endpoint="users_create")
    @with_auth("users.create")
    def users_create():
        try:
            created = container.user_admin_service.create_user(json_body(), granted=current_user().permissions)
            _audit(
                AuditAction.CREATE,
                created["id"],
                resource_name=created["email"],
                metadata={"role": created["role"]},
            )
            return ok(created, status=201, message="User created successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to create user")

    @app.route("/api/settings/users/<int:user_id>", methods=["PUT"], endpoint="users_update")
    @with_auth("users.edit")
    def users_update(user_id: int):
        try:
            actor = current_user()
            changes = container.user_admin_service.update_user(
                user_id, json_body(), actor_id=actor.user_id, granted=actor.permissions
            )
            role_change = changes.pop("role", None)
            if changes:
                _audit(AuditAction.UPDATE, user_id, changes=changes)
            if role_change:
                _audit(AuditAction.PERMISSION_CHANGE, user_id, changes={"role": role_change})
            return ok(message="User updated successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to update user")

    @app.route("/api/settings/users/<int:user_id>", methods=["DELETE"], endpoint="users_delete")
    @with_auth("users.delete")
    def users_delete(user_id: int):
        try:
            actor = current_user()
            removed = container.user_admin_service.delete_user(
                user_id, actor_id=actor.user_id, granted=actor.permissions
            )
            _audit(AuditAction.DELETE, user_id, resource_name=removed.email)
            return ok(message="User deleted successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to delete user")

    @app.route("/api/settings/roles", methods=["GET"], endpoint="roles_list")
    @with_auth("roles.view")
    def roles_list():
        try:
            roles = container.role_service
            return ok(roles.list_roles(), permissions=roles.permission_catalog(), message="Roles fetched successfully")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch roles")

    @app.route("/api/settings/roles/permissions", methods=["GET"], endpoint="roles_permissions")
    @with_auth("roles.view")
    def roles_permissions():
        try:
            return ok(container.role_service.role_permissions(request.args.get("role")))
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Failed to fetch permissions")
