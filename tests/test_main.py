from __future__ import annotations

from tomcp.config import AppConfig, ServerConfig


def test_main_serves_app_on_configured_port(monkeypatch) -> None:
    import tomcp.main as m

    cfg = AppConfig(server=ServerConfig(host="127.0.0.1", port=9999))
    monkeypatch.setattr(m, "load_config", lambda: cfg)
    seen = {}

    def fake_run(app, host: str, port: int) -> None:
        seen["app"] = app
        seen["host"] = host
        seen["port"] = port

    monkeypatch.setattr(m.uvicorn, "run", fake_run)
    m.main()

    assert seen["host"] == "127.0.0.1"
    assert seen["port"] == 9999
    assert seen["app"].state.cfg is cfg
