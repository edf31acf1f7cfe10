from __future__ import annotations

from dataclasses import asdict
from math import ceil
from typing import Any, Dict, Iterable, Mapping, Optional

from ..audit.service import diff_changes
from ..auth.passwords import hash_password, validate_password
from ..auth.settings import PasswordPolicy
from ..common.sanitize import is_valid_email, new_uuid, sanitize_string
from ..common.validators import optional_text, parse_optional_int, parse_pagination, require_non_empty
from ..core.enums import UserStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.permissions import PERMISSIONS, has_all_permissions, permissions_for_role
from .account_model import Role, UserAccount
from .account_repository import RoleRepository, UserAccountRepository
from .department_repository import DepartmentRepository
from .model import UserProfile
from .repository import UserRepository

PROFILE_DEFAULTS = {
    "timezone": "UTC",
    "locale": "en",
    "date_format": "YYYY-MM-DD",
    "time_format": "24h",
}
PROFILE_TEXT_FIELDS = ("first_name", "last_name", "display_name", "phone", "job_title", "department")


class ProfileService:
    """Use case: view and edit one's own profile."""

    def __init__(self, users: UserRepository):
        self._users = users

    def get_profile(self, user_id: int) -> UserProfile:
        profile = self._users.get_profile(int(user_id))
        if not profile:
            raise NotFoundError("User not found")
        return profile

    def update_profile(self, user_id: int, data: Mapping[str, Any]) -> UserProfile:
        # Full replace of the editable fields; blanks become NULL / defaults.
        changes: Dict[str, Any] = {}
        for key in PROFILE_TEXT_FIELDS:
            changes[key] = sanitize_string(optional_text(data.get(key)))
        for key, default in PROFILE_DEFAULTS.items():
            changes[key] = optional_text(data.get(key)) or default

        if not self._users.update_profile(int(user_id), changes):
            raise NotFoundError("User not found")
        return self.get_profile(user_id)


class DepartmentService:
    """Use case: manage departments (settings screen)."""

    def __init__(self, departments: DepartmentRepository):
        self._departments = departments

    def list_departments(self, *, page: Any, limit: Any, search: Optional[str], status: Optional[str]) -> dict:
        page_n, limit_n = parse_pagination(page, limit, default_limit=50)
        search = (search or "").strip() or None
        rows = self._departments.list_page(
            search=search, status=status, limit=limit_n, offset=(page_n - 1) * limit_n
        )
        total = self._departments.count(search=search, status=status)
        return {
            "departments": list(rows),
            "pagination": {
                "page": page_n,
                "limit": limit_n,
                "total": total,
                "totalPages": ceil(total / limit_n),
            },
        }

    def list_active(self):
        return self._departments.list_active()

    def create_department(self, data: Mapping[str, Any]) -> int:
        name = require_non_empty(data.get("name"), "Department name")
        if self._departments.find_id_by_name(name) is not None:
            raise ConflictError("A department with this name already exists")

        parent_id = parse_optional_int(data.get("parent_id"), "parent_id")
        if parent_id is not None and not self._departments.get_by_id(parent_id):
            raise ValidationError("Parent department not found")

        return self._departments.create(
            name=name,
            manager_id=parse_optional_int(data.get("manager_id"), "manager_id"),
            parent_id=parent_id,
            analytic_account=optional_text(data.get("analytic_account")),
            description=optional_text(data.get("description")),
            status=optional_text(data.get("status")) or "active",
        )

    def update_department(self, department_id: int, data: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Apply the edit and return the per-field changes for the audit trail."""
        department_id = int(department_id)
        current = self._departments.get_by_id(department_id)
        if not current:
            raise NotFoundError("Department not found")

        name = require_non_empty(data.get("name"), "Department name")
        if self._departments.find_id_by_name(name, exclude_id=department_id) is not None:
            raise ConflictError("A department with this name already exists")

        parent_id = parse_optional_int(data.get("parent_id"), "parent_id")
        if parent_id == department_id:
            raise ValidationError("A department cannot be its own parent")

        changes = {
            "name": name,
            "manager_id": parse_optional_int(data.get("manager_id"), "manager_id"),
            "parent_id": parent_id,
            "analytic_account": optional_text(data.get("analytic_account")),
            "description": optional_text(data.get("description")),
            "status": optional_text(data.get("status")) or "active",
        }
        self._departments.update(department_id, changes)
        return diff_changes(asdict(current), changes)

    def delete_department(self, department_id: int) -> None:
        department_id = int(department_id)
        if not self._departments.get_by_id(department_id):
            raise NotFoundError("Department not found")
        if self._departments.has_children(department_id):
            raise ValidationError("Cannot delete a department that has sub-departments")
        self._departments.soft_delete(department_id)


ACCOUNT_TEXT_FIELDS = ("last_name", "phone", "job_title")
USER_STATUSES = tuple(s.value for s in UserStatus)


def _full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return " ".join(part for part in (first_name, last_name) if part)


class UserAdminService:
    """Use case: administer user accounts and their role (settings screen).

    Nobody can hand out a role, or touch an account, that grants more than
    they hold themselves. Nobody can change their own role or delete their
    own account.
    """

    def __init__(
        self,
        accounts: UserAccountRepository,
        roles: RoleRepository,
        *,
        password_policy: PasswordPolicy,
        bcrypt_rounds: int = 12,
    ):
        self._accounts = accounts
        self._roles = roles
        self._policy = password_policy
        self._rounds = bcrypt_rounds

    def list_users(
        self, *, page: Any, limit: Any, role: Optional[str], status: Optional[str], search: Optional[str]
    ) -> dict:
        page_n, limit_n = parse_pagination(page, limit, default_limit=50)
        search = (search or "").strip() or None
        rows = self._accounts.list_page(
            role=role, status=status, search=search, limit=limit_n, offset=(page_n - 1) * limit_n
        )
        total = self._accounts.count(role=role, status=status, search=search)
        return {
            "users": list(rows),
            "pagination": {
                "page": page_n,
                "limit": limit_n,
                "total": total,
                "totalPages": ceil(total / limit_n),
            },
        }

    def _hash(self, password: str) -> str:
        check = validate_password(password, self._policy)
        if not check.valid:
            raise ValidationError("Password does not meet requirements: " + "; ".join(check.errors))
        return hash_password(password, rounds=self._rounds)

    def _assignable_role(self, role_name: str, granted: Iterable[str]) -> Role:
        role = self._roles.get_by_name(role_name)
        if not role:
            raise ValidationError("Invalid role specified")
        if not has_all_permissions(granted, permissions_for_role(role.name)):
            raise AuthorizationError("Cannot assign a role with more permissions than your own")
        return role

    @staticmethod
    def _ensure_manageable(account: UserAccount, granted: Iterable[str]) -> None:
        if not has_all_permissions(granted, permissions_for_role(account.role_name)):
            raise AuthorizationError("Cannot modify a user with more permissions than your own")

    @staticmethod
    def _status(value: Any) -> Optional[str]:
        status = optional_text(value)
        if status is not None and status not in USER_STATUSES:
            raise ValidationError("Invalid status")
        return status

    def _email(self, value: Any, *, exclude_id: Optional[int] = None) -> str:
        email = str(value).strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if self._accounts.find_id_by_email(email, exclude_id=exclude_id) is not None:
            raise ConflictError("Email already exists")
        return email

    def create_user(self, data: Mapping[str, Any], *, granted: Iterable[str]) -> dict:
        first_name = optional_text(data.get("first_name"))
        email = optional_text(data.get("email"))
        password = data.get("password")
        role_name = optional_text(data.get("role"))
        if not first_name or not email or not password or not role_name:
            raise ValidationError("First name, email, password, and role are required")

        email = self._email(email)
        password_hash = self._hash(str(password))
        role = self._assignable_role(role_name, granted)
        last_name = sanitize_string(optional_text(data.get("last_name")))
        first_name = sanitize_string(first_name)
        fields = {
            "uuid": new_uuid(),
            "name": _full_name(first_name, last_name),
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": password_hash,
            "phone": sanitize_string(optional_text(data.get("phone"))),
            "job_title": sanitize_string(optional_text(data.get("job_title"))),
            "department_id": parse_optional_int(data.get("department_id"), "department_id"),
            "status": self._status(data.get("status")) or UserStatus.ACTIVE.value,
        }
        user_id = self._accounts.create(fields)
        self._accounts.assign_role(user_id, role.role_id)
        return {
            "id": user_id,
            "uuid": fields["uuid"],
            "name": fields["name"],
            "email": email,
            "role": role.name,
            "status": fields["status"],
        }

    def update_user(
        self, user_id: int, data: Mapping[str, Any], *, actor_id: int, granted: Iterable[str]
    ) -> Dict[str, Dict[str, Any]]:
        """Apply the edit; returns the per-field diff, with ``role`` when it changed.

        A new password shows up in the diff as ``password: {"old": None, "new": "changed"}``.
        """
        user_id = int(user_id)
        current = self._accounts.get(user_id)
        if not current:
            raise NotFoundError("User not found")
        self._ensure_manageable(current, granted)

        changes: Dict[str, Any] = {}
        if "first_name" in data:
            changes["first_name"] = sanitize_string(require_non_empty(data.get("first_name"), "First name"))
        for key in ACCOUNT_TEXT_FIELDS:
            if key in data:
                changes[key] = sanitize_string(optional_text(data.get(key)))
        if "first_name" in changes or "last_name" in changes:
            changes["name"] = _full_name(
                changes.get("first_name", current.first_name), changes.get("last_name", current.last_name)
            )
        if optional_text(data.get("email")):
            changes["email"] = self._email(data.get("email"), exclude_id=user_id)
        if "department_id" in data:
            changes["department_id"] = parse_optional_int(data.get("department_id"), "department_id")
        status = self._status(data.get("status"))
        if status:
            changes["status"] = status

        diff = diff_changes(asdict(current), changes)
        if data.get("password"):
            changes["password"] = self._hash(str(data["password"]))
            diff["password"] = {"old": None, "new": "changed"}

        role = None
        role_name = optional_text(data.get("role"))
        if role_name and role_name != current.role_name:
            if user_id == int(actor_id):
                raise AuthorizationError("Cannot change your own role")
            role = self._assignable_role(role_name, granted)

        self._accounts.update(user_id, changes)
        if role is not None:
            self._accounts.assign_role(user_id, role.role_id)
            diff["role"] = {"old": current.role_name, "new": role.name}
        return diff

    def delete_user(self, user_id: int, *, actor_id: int, granted: Iterable[str]) -> UserAccount:
        user_id = int(user_id)
        if user_id == int(actor_id):
            raise AuthorizationError("Cannot delete your own account")
        current = self._accounts.get(user_id)
        if not current:
            raise NotFoundError("User not found")
        self._ensure_manageable(current, granted)
        self._accounts.soft_delete(user_id)
        return current


class RoleService:
    """Read-only view of the roles and what each one grants."""

    def __init__(self, roles: RoleRepository):
        self._roles = roles

    def list_roles(self) -> list:
        return [
            {
                "id": role.role_id,
                "name": role.name,
                "description": role.description,
                "is_system": role.is_system,
                "user_count": role.user_count,
                "permissions": permissions_for_role(role.name),
            }
            for role in self._roles.list_roles()
        ]

    def role_permissions(self, role_name: Optional[str]) -> dict:
        role_name = require_non_empty(role_name, "Role name")
        role = self._roles.get_by_name(role_name)
        if not role:
            # Unknown roles sign in as Viewer.
            return {
                "id": 0,
                "name": role_name,
                "description": "Default permissions",
                "permissions": permissions_for_role(role_name),
            }
        return {
            "id": role.role_id,
            "name": role.name,
            "description": role.description,
            "permissions": permissions_for_role(role.name),
        }

    @staticmethod
    def permission_catalog() -> Dict[str, str]:
        return dict(PERMISSIONS)
