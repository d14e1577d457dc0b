"""
HTTP surface of the gateway.

- ``POST /chat``: rate limited, grounded chat about a website.
- ``POST /<site>``: MCP JSON-RPC endpoint for ``<site>``.
- ``GET /<site>``: redirect to the front page with the site pre-filled.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import ValidationError
from fastapi.concurrency import run_in_threadpool

from .chat import ChatModel, ChatOrchestrator, ChatRequest, build_chat_model
from .config import AppConfig, load_config
from .content import fetch_content
from .protocol import URI_SAFE, McpDispatcher, resolve_target
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def get_client_id(request: Request) -> str:
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _error(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        {"error": message, **extra}, status_code=status_code, headers=headers
    )


def create_app(
    cfg: Optional[AppConfig] = None,
    limiter: Optional[RateLimiter] = None,
    chat_model: Optional[ChatModel] = None,
    fetcher: Callable = fetch_content,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    cfg = cfg or load_config()
    if limiter is None:
        limiter = RateLimiter(cfg.rate_limit)
    if chat_model is None:
        chat_model = build_chat_model(cfg.chat)

    app = FastAPI(title="toMCP", version=cfg.server.server_version)
    app.state.cfg = cfg
    app.state.limiter = limiter
    app.state.chat_model = chat_model

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    def run_chat(raw: bytes, client_id: str) -> JSONResponse:
        try:
            req = ChatRequest.model_validate(json.loads(raw or b"null"))
        except (ValueError, ValidationError) as exc:
            logger.warning("Bad chat request body: %s", exc)
            return _error(500, str(exc))

        has_api_key = bool(req.apiKey) and (
            len(req.apiKey) > cfg.rate_limit.api_key_min_length
        )
        if not has_api_key:
            decision = limiter.check(client_id)
            if not decision.allowed:
                return _error(
                    429,
                    decision.message,
                    headers={
                        "Retry-After": str(decision.retry_after),
                        "X-RateLimit-Remaining": "0",
                    },
                    retryAfter=decision.retry_after,
                )

        if not req.url or not req.message:
            return _error(400, "Missing required fields: url and message")

        if app.state.chat_model is None:
            return _error(500, "Chat is not configured. AI binding missing.")

        full_url = req.url if req.url.startswith("http") else f"https://{req.url}"
        try:
            content = fetcher(full_url, cfg.http.chat_max_chars, cfg)
            orchestrator = ChatOrchestrator(
                app.state.chat_model, cfg.chat, sleep=sleep
            )
            answer = orchestrator.complete(
                full_url, content.text, req.message, req.history or []
            )
        except Exception as exc:
            logger.exception("Chat failed for %s", full_url)
            return _error(500, str(exc) or "Chat failed")
        return JSONResponse({"response": answer, "url": full_url})

    @app.get("/")
    def index() -> Dict[str, str]:
        base = cfg.server.public_url
        return {
            "name": "toMCP",
            "mcp": f"{base}/<website>",
            "chat": f"POST {base}/chat",
        }

    @app.post("/chat")
    async def chat(request: Request) -> JSONResponse:
        raw = await request.body()
        return await run_in_threadpool(run_chat, raw, get_client_id(request))

    @app.post("/{target:path}")
    async def mcp(target: str, request: Request) -> JSONResponse:
        if not target.strip("/"):
            return _error(404, "Missing target website")
        raw = await request.body()
        dispatcher = McpDispatcher(resolve_target(target), cfg, fetcher)
        payload = await run_in_threadpool(dispatcher.handle, raw)
        return JSONResponse(payload)

    @app.get("/{target:path}")
    def redirect_home(target: str) -> RedirectResponse:
        location = f"{cfg.server.public_url}/?url={quote(target, safe=URI_SAFE)}"
        return RedirectResponse(location, status_code=302)

    return app
