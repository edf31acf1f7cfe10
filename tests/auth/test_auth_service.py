from __future__ import annotations

from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from src.epms.epms.audit.service import AuditService
from src.epms.epms.auth.csrf import CsrfTokenService
from src.epms.epms.auth.passwords import hash_password, is_bcrypt_hash, verify_password
from src.epms.epms.auth.rate_limiter import RateLimiter
from src.epms.epms.auth.service import AuthService
from src.epms.epms.auth.settings import AuthSettings
from src.epms.epms.auth.tokens import TokenClaims, TokenService
from src.epms.epms.core.enums import AuditAction
from src.epms.epms.core.exceptions import AuthenticationError, RateLimitExceeded, ValidationError
from src.epms.epms.users.model import UserCredentials

SETTINGS = AuthSettings(access_secret="a" * 32, refresh_secret="r" * 32, csrf_secret="c" * 32, bcrypt_rounds=4)


class InMemoryUsers:
    def __init__(self, *users: UserCredentials):
        self.by_id = {u.user_id: u for u in users}
        self.last_login = []

    def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        return next((u for u in self.by_id.values() if u.email == email), None)

    def get_credentials_by_id(self, user_id: int) -> Optional[UserCredentials]:
        return self.by_id.get(user_id)

    def update_password(self, user_id: int, password_hash: str) -> bool:
        u = self.by_id[user_id]
        self.by_id[user_id] = UserCredentials(
            user_id=u.user_id, name=u.name, email=u.email, password=password_hash, role_name=u.role_name
        )
        return True

    def touch_last_login(self, user_id: int) -> None:
        self.last_login.append(user_id)


class RecordingAuditRepo:
    def __init__(self):
        self.entries = []

    def insert(self, entry_id, entry):
        self.entries.append(entry)

    @property
    def actions(self):
        return [e.action for e in self.entries]


def _service(users, audit_repo, **limits):
    settings = AuthSettings(
        access_secret=SETTINGS.access_secret,
        refresh_secret=SETTINGS.refresh_secret,
        csrf_secret=SETTINGS.csrf_secret,
        bcrypt_rounds=4,
        **limits,
    )
    tokens = TokenService(settings)
    return AuthService(
        users,
        tokens,
        CsrfTokenService(settings),
        RateLimiter(settings.login_limit),
        RateLimiter(settings.password_reset_limit),
        AuditService(audit_repo),
        settings,
    ), tokens


def _user(password: str, *, role: str = "Project Manager") -> UserCredentials:
    return UserCredentials(user_id=5, name="Paula", email="pm@epms.local", password=password, role_name=role)


def test_sign_in_issues_tokens_and_audits_login():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    audit = RecordingAuditRepo()
    svc, tokens = _service(users, audit)

    result = svc.sign_in("PM@epms.local ", "Secret#123", client_ip="10.0.0.1")

    assert result.user.email == "pm@epms.local"
    assert "projects.view" in result.user.permissions
    assert tokens.verify_access_token(result.tokens.access_token).user_id == 5
    assert result.csrf_token
    assert users.last_login == [5]
    assert audit.actions == [AuditAction.LOGIN]


def test_sign_in_requires_both_fields_and_valid_email():
    svc, _ = _service(InMemoryUsers(), RecordingAuditRepo())
    with pytest.raises(ValidationError, match="required"):
        svc.sign_in("", "x", client_ip="ip")
    with pytest.raises(ValidationError, match="Invalid email format"):
        svc.sign_in("not-an-email", "x", client_ip="ip")


def test_unknown_user_and_bad_password_share_one_message():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    audit = RecordingAuditRepo()
    svc, _ = _service(users, audit)

    with pytest.raises(AuthenticationError) as unknown:
        svc.sign_in("nobody@epms.local", "Secret#123", client_ip="ip")
    with pytest.raises(AuthenticationError) as wrong:
        svc.sign_in("pm@epms.local", "nope", client_ip="ip")

    assert str(unknown.value) == str(wrong.value)
    assert audit.actions == [AuditAction.LOGIN_FAILED, AuditAction.LOGIN_FAILED]
    assert audit.entries[0].metadata == {"reason": "unknown_user"}


def test_legacy_werkzeug_password_is_rehashed_with_bcrypt():
    users = InMemoryUsers(_user(generate_password_hash("Legacy#123")))
    svc, _ = _service(users, RecordingAuditRepo())

    svc.sign_in("pm@epms.local", "Legacy#123", client_ip="ip")

    stored = users.by_id[5].password
    assert is_bcrypt_hash(stored)
    assert verify_password("Legacy#123", stored)


def test_overlong_legacy_password_signs_in_without_migrating(caplog):
    long_password = "Legacy#1" + "x" * 80
    users = InMemoryUsers(_user(long_password))
    svc, _ = _service(users, RecordingAuditRepo())

    with caplog.at_level("WARNING", logger="src.epms.epms.auth.service"):
        result = svc.sign_in("pm@epms.local", long_password, client_ip="ip")

    assert result.user.user_id == 5
    assert users.by_id[5].password == long_password
    assert "too long for bcrypt" in caplog.text


def test_login_rate_limit_blocks_sixth_attempt():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    svc, _ = _service(users, RecordingAuditRepo())
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            svc.sign_in("pm@epms.local", "wrong", client_ip="1.1.1.1")

    with pytest.raises(RateLimitExceeded) as exc:
        svc.sign_in("pm@epms.local", "Secret#123", client_ip="1.1.1.1")
    assert exc.value.retry_after == 300
    assert "Too many login attempts" in str(exc.value)


def test_successful_login_resets_the_counter():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    svc, _ = _service(users, RecordingAuditRepo())
    for _ in range(4):
        with pytest.raises(AuthenticationError):
            svc.sign_in("pm@epms.local", "wrong", client_ip="2.2.2.2")
    svc.sign_in("pm@epms.local", "Secret#123", client_ip="2.2.2.2")
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            svc.sign_in("pm@epms.local", "wrong", client_ip="2.2.2.2")


def test_refresh_requires_a_valid_refresh_token():
    svc, tokens = _service(InMemoryUsers(), RecordingAuditRepo())
    with pytest.raises(AuthenticationError, match="No refresh token"):
        svc.refresh(None)

    claims = TokenClaims(user_id=5, email="pm@epms.local", role="Project Manager")
    pair = tokens.generate_token_pair(claims)
    with pytest.raises(AuthenticationError, match="Invalid or expired"):
        svc.refresh(pair.access_token)

    result = svc.refresh(pair.refresh_token)
    assert result.claims.user_id == 5
    assert tokens.verify_access_token(result.tokens.access_token) is not None


def test_change_password_enforces_policy_and_difference():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    audit = RecordingAuditRepo()
    svc, _ = _service(users, audit)
    claims = TokenClaims(user_id=5, email="pm@epms.local", role="Project Manager")

    with pytest.raises(AuthenticationError):
        svc.change_password(claims, current_password="bad", new_password="Another#456", client_ip="ip")
    with pytest.raises(ValidationError):
        svc.change_password(claims, current_password="Secret#123", new_password="weak", client_ip="ip")

    svc.change_password(claims, current_password="Secret#123", new_password="Another#456", client_ip="ip")
    assert verify_password("Another#456", users.by_id[5].password)
    assert audit.actions[-1] == AuditAction.PASSWORD_CHANGE


def test_change_password_rejects_passwords_bcrypt_cannot_hash():
    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    svc, _ = _service(users, RecordingAuditRepo())
    claims = TokenClaims(user_id=5, email="pm@epms.local", role="Project Manager")

    with pytest.raises(ValidationError, match="at most 72 bytes"):
        svc.change_password(claims, current_password="Secret#123", new_password="Aa1!" + "x" * 80, client_ip="ip")
    assert verify_password("Secret#123", users.by_id[5].password)


def test_audit_failure_does_not_break_sign_in():
    class BrokenAuditRepo:
        def insert(self, entry_id, entry):
            raise RuntimeError("db down")

    users = InMemoryUsers(_user(hash_password("Secret#123", rounds=4)))
    svc, _ = _service(users, BrokenAuditRepo())
    assert svc.sign_in("pm@epms.local", "Secret#123", client_ip="ip").user.user_id == 5
