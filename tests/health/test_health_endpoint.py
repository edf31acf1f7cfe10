from types import SimpleNamespace

import pytest
from flask import Flask

from src.epms.epms.common.http import ApiJSONProvider
from src.epms.epms.core.constants import APP_VERSION
from src.epms.epms.health.controller import register


class FakeConnection:
    def __init__(self, up):
        self.up = up

    def ping(self):
        return self.up


def _client(up):
    app = Flask(__name__)
    app.json = ApiJSONProvider(app)
    register(app, SimpleNamespace(conn=FakeConnection(up)), environment="testing")
    return app.test_client()


def test_healthy_when_database_answers():
    resp = _client(True).get("/api/health")
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["status"] == "healthy"
    assert body["version"] == APP_VERSION
    assert body["environment"] == "testing"
    assert body["checks"]["database"]["status"] == "up"
    assert body["checks"]["database"]["responseTimeMs"] >= 0


@pytest.mark.parametrize("method", ["get", "head"])
def test_unhealthy_is_503(method):
    resp = getattr(_client(False), method)("/api/health")
    assert resp.status_code == 503
    if method == "get":
        assert resp.get_json()["checks"]["database"]["status"] == "down"
