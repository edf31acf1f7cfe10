from datetime import datetime, timedelta, timezone

from src.epms.epms.auth.settings import AuthSettings
from src.epms.epms.auth.tokens import TokenClaims, TokenService
from src.epms.epms.core.enums import TokenType

SETTINGS = AuthSettings(access_secret="a" * 32, refresh_secret="r" * 32, csrf_secret="c" * 32)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _claims() -> TokenClaims:
    return TokenClaims(user_id=7, email="pm@epms.local", role="Project Manager", permissions=["projects.view"])


def test_access_token_roundtrip():
    svc = TokenService(SETTINGS)
    claims = svc.verify_access_token(svc.generate_access_token(_claims()))
    assert claims is not None
    assert claims.user_id == 7
    assert claims.permissions == ["projects.view"]
    assert claims.token_type == TokenType.ACCESS


def test_refresh_token_is_not_an_access_token():
    svc = TokenService(SETTINGS)
    pair = svc.generate_token_pair(_claims())
    assert svc.verify_access_token(pair.refresh_token) is None
    assert svc.verify_refresh_token(pair.access_token) is None
    assert svc.verify_refresh_token(pair.refresh_token).user_id == 7


def test_pair_expiry_follows_ttl():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    svc = TokenService(SETTINGS, clock=Clock(now))
    pair = svc.generate_token_pair(_claims())
    assert pair.access_expires_at == now + timedelta(minutes=15)
    assert pair.refresh_expires_at == now + timedelta(days=7)


def test_token_signed_with_other_secret_is_rejected():
    other = TokenService(AuthSettings(access_secret="x" * 32, refresh_secret="y" * 32, csrf_secret="z" * 32))
    token = other.generate_access_token(_claims())
    assert TokenService(SETTINGS).verify_access_token(token) is None


def test_expired_token_is_rejected_and_reported():
    clock = Clock(datetime.now(timezone.utc) - timedelta(hours=1))
    svc = TokenService(SETTINGS, clock=clock)
    token = svc.generate_access_token(_claims())
    assert TokenService(SETTINGS).verify_access_token(token) is None
    assert TokenService(SETTINGS).is_token_expired(token)
    assert TokenService(SETTINGS).get_token_remaining_time(token) == 0


def test_remaining_time_counts_down():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    clock = Clock(now)
    svc = TokenService(SETTINGS, clock=clock)
    token = svc.generate_access_token(_claims())
    clock.now = now + timedelta(minutes=5)
    assert svc.get_token_remaining_time(token) == 10 * 60
    assert not svc.is_token_expired(token)


def test_garbage_is_not_a_token():
    svc = TokenService(SETTINGS)
    assert svc.verify_access_token("") is None
    assert svc.verify_access_token("abc.def.ghi") is None
    assert svc.decode_token("abc") is None
