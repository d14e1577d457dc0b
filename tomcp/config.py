from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class HttpConfig:
    user_agent: str = "toMCP/1.0 (https://tomcp.org)"
    timeout_seconds: int = 15
    chat_max_chars: int = 30_000
    tool_max_chars: int = 50_000


@dataclass
class RateLimitConfig:
    max_per_client: int = 5
    max_global: int = 200
    window_seconds: int = 24 * 60 * 60
    prune_probability: float = 0.01
    # apiKey values longer than this skip the limiter entirely
    api_key_min_length: int = 10


@dataclass
class ChatConfig:
    model: str = "@cf/meta/llama-3.1-8b-instruct"
    base_url: str = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/v1"
    account_id_env: str = "TOMCP_AI_ACCOUNT_ID"
    api_key_env: str = "TOMCP_AI_API_KEY"
    max_tokens: int = 1024
    history_turns: int = 6
    max_attempts: int = 3
    backoff_ms: int = 500


@dataclass
class ServerConfig:
    public_url: str = "https://tomcp.org"
    host: str = "0.0.0.0"
    port: int = 8787
    protocol_version: str = "2024-11-05"
    server_version: str = "1.0.0"


@dataclass
class AppConfig:
    http: HttpConfig = field(default_factory=HttpConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load config from YAML; falls back to defaults if missing."""
    cfg_path = (
        Path(path)
        if path
        else Path(os.getenv("APP_CONFIG", "env/config.yaml"))
    )
    if not cfg_path.exists():
        return AppConfig()
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    http = data.get("http", {})
    rate_limit = data.get("rate_limit", {})
    chat = data.get("chat", {})
    server = data.get("server", {})
    return AppConfig(
        http=HttpConfig(**http),
        rate_limit=RateLimitConfig(**rate_limit),
        chat=ChatConfig(**chat),
        server=ServerConfig(**server),
    )
