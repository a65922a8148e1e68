"""Tests for perch.server.dev — pounce server wiring."""

import sys
import types
from typing import Any

import pytest

from perch.app import App
from perch.server.dev import run_server


@pytest.fixture
def fake_pounce(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    """Stand-in pounce modules recording how the server is built."""
    calls: dict[str, Any] = {}

    class ServerConfig:
        def __init__(self, **kwargs: Any) -> None:
            calls["config"] = kwargs

    class Server:
        def __init__(self, config: ServerConfig, app: object) -> None:
            calls["app"] = app

        def run(self) -> None:
            calls["ran"] = True

    config_mod = types.ModuleType("pounce.config")
    config_mod.ServerConfig = ServerConfig  # type: ignore[attr-defined]
    server_mod = types.ModuleType("pounce.server")
    server_mod.Server = Server  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "pounce", types.ModuleType("pounce"))
    monkeypatch.setitem(sys.modules, "pounce.config", config_mod)
    monkeypatch.setitem(sys.modules, "pounce.server", server_mod)
    return calls


class TestRunServer:
    def test_builds_and_runs(self, fake_pounce: dict[str, Any]) -> None:
        app = App()
        run_server(app, "0.0.0.0", 9000, workers=2, log_level="warning")

        assert fake_pounce["app"] is app
        assert fake_pounce["config"] == {
            "host": "0.0.0.0",
            "port": 9000,
            "workers": 2,
            "log_level": "warning",
        }
        assert fake_pounce["ran"] is True

    def test_app_run_freezes_first(self, fake_pounce: dict[str, Any]) -> None:
        app = App()

        @app.route("hello")
        def hello():
            return "hi"

        app.run(port=9001)
        assert app._frozen is True
        assert fake_pounce["config"]["port"] == 9001
        assert fake_pounce["config"]["host"] == "127.0.0.1"
