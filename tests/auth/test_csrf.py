import base64

from src.epms.epms.auth.csrf import CsrfTokenService
from src.epms.epms.auth.settings import AuthSettings

SETTINGS = AuthSettings(access_secret="a", refresh_secret="r", csrf_secret="csrf-secret")


class MsClock:
    def __init__(self, now_ms: int):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


def test_fresh_token_validates():
    svc = CsrfTokenService(SETTINGS)
    assert svc.validate(svc.generate())


def test_token_layout_has_three_parts():
    raw = base64.b64decode(CsrfTokenService(SETTINGS).generate()).decode()
    assert len(raw.split(":")) == 3


def test_token_expires_after_one_hour():
    clock = MsClock(1_000_000)
    svc = CsrfTokenService(SETTINGS, clock_ms=clock)
    token = svc.generate()
    clock.now_ms += 60 * 60 * 1000
    assert svc.validate(token)
    clock.now_ms += 1
    assert not svc.validate(token)


def test_tampered_signature_is_rejected():
    svc = CsrfTokenService(SETTINGS)
    token_id, issued, _sig = base64.b64decode(svc.generate()).decode().split(":")
    forged = base64.b64encode(f"{token_id}:{issued}:{'0' * 64}".encode()).decode()
    assert not svc.validate(forged)


def test_other_secret_is_rejected():
    other = CsrfTokenService(AuthSettings(access_secret="a", refresh_secret="r", csrf_secret="different"))
    assert not CsrfTokenService(SETTINGS).validate(other.generate())


def test_malformed_values_are_rejected():
    svc = CsrfTokenService(SETTINGS)
    assert not svc.validate(None)
    assert not svc.validate("")
    assert not svc.validate("%%%not-base64%%%")
    assert not svc.validate(base64.b64encode(b"only:two").decode())
    assert not svc.validate(base64.b64encode(b"a:notanumber:sig").decode())
