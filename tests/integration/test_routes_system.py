"""Integration tests for system routes and the app factory."""

import pytest
from fastapi.testclient import TestClient

from netroster import __version__
from netroster.app import create_app
from netroster.config import Settings


class TestHealth:
    def test_health(self, client) -> None:
        resp = client.get("/system/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["version"] == __version__
        assert body["service"] == "netroster"
        assert body["uptime_seconds"] >= 0


class TestAppFactory:
    def test_routes_registered(self, app) -> None:
        paths = {route.path for route in app.routes}
        assert {
            "/system/health",
            "/devices",
            "/devices/known",
            "/devices/{address}",
            "/scan",
            "/scan/status",
            "/scan/{address}",
            "/ws",
        } <= paths

    def test_unwired_scanner_dependency(self) -> None:
        app = create_app(Settings())
        with TestClient(app) as client:
            assert client.get("/system/health").status_code == 200
            with pytest.raises(NotImplementedError):
                client.get("/devices")
