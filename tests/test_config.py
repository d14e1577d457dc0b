from __future__ import annotations

from pathlib import Path

from tomcp.config import AppConfig, load_config


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config(str(tmp_path / "nope.yaml"))
    assert cfg == AppConfig()
    assert cfg.http.chat_max_chars == 30_000
    assert cfg.http.tool_max_chars == 50_000
    assert cfg.rate_limit.max_per_client == 5
    assert cfg.rate_limit.max_global == 200


def test_yaml_overrides_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "rate_limit:\n  max_global: 10\nchat:\n  max_attempts: 5\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.rate_limit.max_global == 10
    assert cfg.rate_limit.max_per_client == 5
    assert cfg.chat.max_attempts == 5
    assert cfg.server.public_url == "https://tomcp.org"


def test_app_config_env_var(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "other.yaml"
    path.write_text("http:\n  timeout_seconds: 3\n", encoding="utf-8")
    monkeypatch.setenv("APP_CONFIG", str(path))
    assert load_config().http.timeout_seconds == 3
