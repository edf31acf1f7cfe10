from flask import Flask, request

from src.epms.epms.auth.middleware import apply_security_headers, client_ip
from src.epms.epms.core.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSIONS,
    has_all_permissions,
    has_any_permission,
    permissions_for_role,
)


def test_super_admin_has_whole_catalog():
    assert set(permissions_for_role("Super Admin")) == set(PERMISSIONS)


def test_every_role_grant_is_in_catalog():
    for role, grants in DEFAULT_ROLE_PERMISSIONS.items():
        assert set(grants) <= set(PERMISSIONS), role


def test_unknown_role_falls_back_to_viewer():
    assert permissions_for_role("Intern") == DEFAULT_ROLE_PERMISSIONS["Viewer"]
    assert "projects.create" not in permissions_for_role("Intern")


def test_permissions_for_role_returns_a_copy():
    perms = permissions_for_role("Viewer")
    perms.append("settings.edit")
    assert "settings.edit" not in DEFAULT_ROLE_PERMISSIONS["Viewer"]


def test_any_and_all_checks():
    granted = ["tasks.view", "tasks.edit"]
    assert has_any_permission(granted, ["tasks.view"])
    assert has_any_permission(granted, ["tasks.delete", "tasks.edit"])
    assert not has_all_permissions(granted, ["tasks.delete", "tasks.edit"])
    assert has_all_permissions(granted, [])


def test_client_ip_prefers_forwarded_headers():
    app = Flask(__name__)
    with app.test_request_context(headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}):
        assert client_ip(request) == "203.0.113.5"
    with app.test_request_context(headers={"X-Real-IP": "198.51.100.7"}):
        assert client_ip(request) == "198.51.100.7"
    with app.test_request_context(environ_base={"REMOTE_ADDR": "127.0.0.9"}):
        assert client_ip(request) == "127.0.0.9"


def test_security_headers_add_hsts_only_in_production():
    app = Flask(__name__)
    dev = apply_security_headers(app.response_class("ok"), production=False)
    prod = apply_security_headers(app.response_class("ok"), production=True)

    assert dev.headers["X-Frame-Options"] == "DENY"
    assert dev.headers["X-Content-Type-Options"] == "nosniff"
    assert "frame-ancestors 'none'" in dev.headers["Content-Security-Policy"]
    assert "Strict-Transport-Security" not in dev.headers
    assert prod.headers["Strict-Transport-Security"].startswith("max-age=31536000")
