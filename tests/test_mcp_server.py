from __future__ import annotations

import asyncio
from typing import Any

import pytest

from tomcp.config import AppConfig
from tomcp.content import NormalizedContent


def test_mcp_server_imports() -> None:
    # Import should succeed (valid MCP SDK API usage).
    import tomcp.mcp_server  # noqa: F401


def test_build_server_registers_both_tools(monkeypatch) -> None:
    import tomcp.mcp_server as m

    monkeypatch.setattr(m, "load_config", lambda: AppConfig())
    server = m.build_server("docs.example.com")

    tools = asyncio.run(server.list_tools())
    assert sorted(t.name for t in tools) == ["fetch_page", "search"]


def test_fetch_page_tool_delegates_to_dispatcher(monkeypatch) -> None:
    import tomcp.mcp_server as m

    seen = {}

    def fake_fetch(url: str, max_chars: int, cfg: Any) -> NormalizedContent:
        seen["url"] = url
        return NormalizedContent(url=url, text="# Hello")

    monkeypatch.setattr(m, "load_config", lambda: AppConfig())
    server = m.build_server("docs.example.com", fetcher=fake_fetch)

    result = asyncio.run(server.call_tool("fetch_page", {"path": "guide"}))
    assert seen["url"] == "https://docs.example.com/guide"
    assert "# Hello" in str(result)


def test_main_requires_target(monkeypatch) -> None:
    import tomcp.mcp_server as m

    monkeypatch.setattr(m.sys, "argv", ["tomcp-mcp"])
    monkeypatch.delenv("TOMCP_TARGET", raising=False)
    with pytest.raises(SystemExit):
        m.main()
