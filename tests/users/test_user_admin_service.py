from __future__ import annotations

from types import SimpleNamespace

import pytest
from flask import Flask

from src.epms.epms.audit.service import AuditService
from src.epms.epms.auth.csrf import CsrfTokenService
from src.epms.epms.auth.middleware import AuthGuard
from src.epms.epms.auth.passwords import verify_password
from src.epms.epms.auth.rate_limiter import RateLimiter
from src.epms.epms.auth.settings import AuthSettings, PasswordPolicy
from src.epms.epms.auth.tokens import TokenClaims, TokenService
from src.epms.epms.common.http import ApiJSONProvider
from src.epms.epms.core.enums import AuditAction
from src.epms.epms.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.epms.epms.core.permissions import DEFAULT_ROLE_PERMISSIONS, permissions_for_role
from src.epms.epms.users.account_model import Role, UserAccount
from src.epms.epms.users.controller import register
from src.epms.epms.users.service import RoleService, UserAdminService

ADMIN = permissions_for_role("Admin")
SUPER_ADMIN = permissions_for_role("Super Admin")


def _account(user_id, email, role_name, **fields):
    return UserAccount(
        user_id=user_id,
        uuid=f"uuid-{user_id}",
        name=fields.get("name", email.split("@")[0]),
        email=email,
        first_name=fields.get("first_name"),
        last_name=fields.get("last_name"),
        phone=None,
        job_title=None,
        department_id=None,
        status="active",
        role_name=role_name,
    )


class FakeAccounts:
    def __init__(self, *accounts):
        self.rows = {a.user_id: a for a in accounts}
        self.created = []
        self.updates = []
        self.role_assignments = []
        self.deleted = []

    def get(self, user_id):
        return self.rows.get(user_id)

    def find_id_by_email(self, email, *, exclude_id=None):
        return next((i for i, a in self.rows.items() if a.email == email and i != exclude_id), None)

    def list_page(self, *, role, status, search, limit, offset):
        rows = [{"id": a.user_id, "role": a.role_name} for a in self.rows.values()]
        return rows[offset:offset + limit]

    def count(self, *, role, status, search):
        return len(self.rows)

    def create(self, fields):
        new_id = max(self.rows, default=0) + 1
        self.created.append(dict(fields))
        self.rows[new_id] = _account(new_id, fields["email"], "Viewer")
        return new_id

    def update(self, user_id, changes):
        self.updates.append((user_id, dict(changes)))
        return True

    def assign_role(self, user_id, role_id):
        self.role_assignments.append((user_id, role_id))

    def soft_delete(self, user_id):
        self.deleted.append(user_id)
        return True


class FakeRoles:
    def __init__(self):
        names = ["Super Admin", "Admin", "Project Manager", "Manager", "Team Member", "Auditor", "Viewer"]
        self.rows = [Role(i, name, f"{name} role", True, 0) for i, name in enumerate(names, start=1)]

    def list_roles(self):
        return list(self.rows)

    def get_by_name(self, name):
        return next((r for r in self.rows if r.name == name), None)


def _service(*accounts):
    repo = FakeAccounts(*accounts)
    return UserAdminService(repo, FakeRoles(), password_policy=PasswordPolicy(), bcrypt_rounds=4), repo


def _people():
    return (
        _account(1, "root@epms.local", "Super Admin"),
        _account(2, "admin@epms.local", "Admin"),
        _account(3, "terry@epms.local", "Team Member", first_name="Terry", last_name="Member"),
    )


NEW_USER = {
    "first_name": "Sam",
    "last_name": "Lee",
    "email": "Sam.Lee@epms.local",
    "password": "Welcome@2024",
    "role": "Team Member",
}


def test_create_hashes_password_and_assigns_role():
    service, repo = _service(*_people())

    created = service.create_user(NEW_USER, granted=ADMIN)

    assert created == {
        "id": 4,
        "uuid": repo.created[0]["uuid"],
        "name": "Sam Lee",
        "email": "sam.lee@epms.local",
        "role": "Team Member",
        "status": "active",
    }
    assert verify_password("Welcome@2024", repo.created[0]["password"])
    assert repo.role_assignments == [(4, 5)]


@pytest.mark.parametrize(
    ("changes", "error", "match"),
    [
        ({"first_name": ""}, ValidationError, "First name, email, password, and role are required"),
        ({"role": None}, ValidationError, "First name, email, password, and role are required"),
        ({"email": "not-an-email"}, ValidationError, "Invalid email format"),
        ({"email": "terry@epms.local"}, ConflictError, "Email already exists"),
        ({"password": "short"}, ValidationError, "Password does not meet requirements"),
        ({"role": "Intern"}, ValidationError, "Invalid role specified"),
        ({"status": "archived"}, ValidationError, "Invalid status"),
    ],
)
def test_create_validation(changes, error, match):
    service, repo = _service(*_people())

    with pytest.raises(error, match=match):
        service.create_user({**NEW_USER, **changes}, granted=ADMIN)
    assert repo.created == []


def test_admin_cannot_create_a_super_admin():
    service, repo = _service(*_people())

    with pytest.raises(AuthorizationError, match="more permissions than your own"):
        service.create_user({**NEW_USER, "role": "Super Admin"}, granted=ADMIN)
    assert repo.created == []


def test_admin_covers_every_role_below_admin():
    for role in DEFAULT_ROLE_PERMISSIONS:
        if role not in ("Super Admin", "Admin"):
            assert set(permissions_for_role(role)) <= set(ADMIN), role


def test_update_reports_role_change_and_password_marker():
    service, repo = _service(*_people())

    diff = service.update_user(
        3,
        {"last_name": "Smith", "password": "Rotated@2024", "role": "Project Manager"},
        actor_id=2,
        granted=ADMIN,
    )

    assert diff == {
        "last_name": {"old": "Member", "new": "Smith"},
        "name": {"old": "terry", "new": "Terry Smith"},
        "password": {"old": None, "new": "changed"},
        "role": {"old": "Team Member", "new": "Project Manager"},
    }
    user_id, changes = repo.updates[0]
    assert user_id == 3
    assert verify_password("Rotated@2024", changes["password"])
    assert repo.role_assignments == [(3, 3)]


def test_update_with_same_role_is_not_a_role_change():
    service, repo = _service(*_people())

    diff = service.update_user(3, {"role": "Team Member"}, actor_id=2, granted=ADMIN)

    assert "role" not in diff
    assert repo.role_assignments == []


def test_cannot_change_own_role():
    service, repo = _service(*_people())

    with pytest.raises(AuthorizationError, match="Cannot change your own role"):
        service.update_user(2, {"role": "Viewer"}, actor_id=2, granted=ADMIN)
    assert repo.updates == []


def test_admin_cannot_touch_a_super_admin_account():
    service, repo = _service(*_people())

    with pytest.raises(AuthorizationError, match="Cannot modify a user with more permissions"):
        service.update_user(1, {"password": "Takeover@2024"}, actor_id=2, granted=ADMIN)
    with pytest.raises(AuthorizationError, match="Cannot modify a user with more permissions"):
        service.delete_user(1, actor_id=2, granted=ADMIN)
    assert repo.updates == [] and repo.deleted == []


def test_admin_cannot_promote_to_super_admin():
    service, repo = _service(*_people())

    with pytest.raises(AuthorizationError, match="Cannot assign a role"):
        service.update_user(3, {"first_name": "Tess", "role": "Super Admin"}, actor_id=2, granted=ADMIN)
    assert repo.updates == []


def test_update_rejects_taken_email_and_unknown_user():
    service, repo = _service(*_people())

    with pytest.raises(ConflictError):
        service.update_user(3, {"email": "admin@epms.local"}, actor_id=1, granted=SUPER_ADMIN)
    with pytest.raises(NotFoundError):
        service.update_user(99, {"first_name": "X"}, actor_id=1, granted=SUPER_ADMIN)
    assert repo.updates == []


def test_delete_soft_deletes_and_returns_account():
    service, repo = _service(*_people())

    removed = service.delete_user(3, actor_id=1, granted=SUPER_ADMIN)

    assert removed.email == "terry@epms.local"
    assert repo.deleted == [3]


def test_cannot_delete_own_account():
    service, repo = _service(*_people())

    with pytest.raises(AuthorizationError, match="Cannot delete your own account"):
        service.delete_user(1, actor_id=1, granted=SUPER_ADMIN)
    assert repo.deleted == []


def test_list_users_paginates():
    service, _ = _service(*_people())

    data = service.list_users(page="2", limit="2", role=None, status=None, search="  ")

    assert data["users"] == [{"id": 3, "role": "Team Member"}]
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


def test_role_listing_carries_permissions():
    roles = RoleService(FakeRoles())

    listed = roles.list_roles()

    assert [r["name"] for r in listed][:2] == ["Super Admin", "Admin"]
    assert listed[-1]["permissions"] == DEFAULT_ROLE_PERMISSIONS["Viewer"]
    assert "users.view" in roles.permission_catalog()


def test_unknown_role_permissions_fall_back_to_viewer():
    roles = RoleService(FakeRoles())

    result = roles.role_permissions("Intern")

    assert result["id"] == 0
    assert result["description"] == "Default permissions"
    assert result["permissions"] == DEFAULT_ROLE_PERMISSIONS["Viewer"]
    with pytest.raises(ValidationError):
        roles.role_permissions("")


class RecordingAuditRepo:
    def __init__(self):
        self.entries = []

    def insert(self, entry_id, entry):
        self.entries.append(entry)


def _app(actor_role, actor_id):
    settings = AuthSettings(
        access_secret="a" * 32,
        refresh_secret="r" * 32,
        csrf_secret="c" * 32,
        bcrypt_rounds=4,
    )
    tokens = TokenService(settings)
    csrf = CsrfTokenService(settings)
    guard = AuthGuard(tokens, csrf, RateLimiter(settings.api_limit), settings)
    service, repo = _service(*_people())
    audit_repo = RecordingAuditRepo()
    container = SimpleNamespace(
        auth_guard=guard,
        audit_service=AuditService(audit_repo),
        user_admin_service=service,
        role_service=RoleService(FakeRoles()),
        department_service=None,
    )
    app = Flask(__name__)
    app.json = ApiJSONProvider(app)
    app.config["TESTING"] = True
    register(app, container)

    client = app.test_client()
    claims = TokenClaims(
        user_id=actor_id,
        email=f"user{actor_id}@epms.local",
        role=actor_role,
        permissions=permissions_for_role(actor_role),
    )
    client.set_cookie("epms_access_token", tokens.generate_access_token(claims))
    return client, {"X-CSRF-Token": csrf.generate()}, repo, audit_repo


def test_role_change_route_writes_permission_change_audit():
    client, headers, _, audit_repo = _app("Admin", 2)

    resp = client.put(
        "/api/settings/users/3", json={"job_title": "Lead", "role": "Project Manager"}, headers=headers
    )

    assert resp.status_code == 200
    actions = [e.action for e in audit_repo.entries]
    assert actions == [AuditAction.UPDATE, AuditAction.PERMISSION_CHANGE]
    assert audit_repo.entries[1].changes == {"role": {"old": "Team Member", "new": "Project Manager"}}
    assert "role" not in audit_repo.entries[0].changes


def test_user_routes_need_user_permissions():
    client, headers, repo, _ = _app("Project Manager", 5)

    assert client.get("/api/settings/users").status_code == 200
    assert client.post("/api/settings/users", json=NEW_USER, headers=headers).status_code == 403
    assert client.delete("/api/settings/users/3", headers=headers).status_code == 403
    assert client.get("/api/settings/roles").status_code == 403
    assert repo.deleted == []


def test_admin_lists_roles_and_creates_users():
    client, headers, repo, audit_repo = _app("Admin", 2)

    roles = client.get("/api/settings/roles").get_json()
    created = client.post("/api/settings/users", json=NEW_USER, headers=headers)

    assert roles["success"] is True
    assert "roles.view" in roles["permissions"]
    assert created.status_code == 201
    assert created.get_json()["data"]["role"] == "Team Member"
    assert audit_repo.entries[0].action == AuditAction.CREATE
    assert audit_repo.entries[0].metadata == {"role": "Team Member"}
    assert "password" not in created.get_json()["data"]
