"""
JSON-RPC 2.0 dispatcher for the per-site MCP endpoint.

Each request is handled independently; the only state is the target site the
endpoint was addressed to.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import quote, urlparse

from pydantic import BaseModel, Field, ValidationError

from .config import AppConfig, load_config
from .content import NormalizedContent, fetch_content

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601

# ids are echoed back exactly as the caller sent them
RpcId = Any

_COLLAPSED_SCHEME_RE = re.compile(r"^(https?):/+", re.IGNORECASE)
# characters encodeURIComponent leaves alone
URI_SAFE = "-_.!~*'()"


class RpcRequest(BaseModel):
    jsonrpc: Any = "2.0"
    id: RpcId = None
    method: Any = None
    params: Any = None


class RpcError(BaseModel):
    code: int
    message: str


class RpcResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: RpcId = None
    result: Any = None


class RpcErrorResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: RpcId = None
    error: RpcError


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    content: List[TextContent] = Field(default_factory=list)


def make_result(id_: RpcId, result: Any) -> Dict[str, Any]:
    return RpcResponse(id=id_, result=result).model_dump(mode="json")


def make_error(id_: RpcId, code: int, message: str) -> Dict[str, Any]:
    return RpcErrorResponse(
        id=id_, error=RpcError(code=code, message=message)
    ).model_dump(mode="json")


def resolve_target(path: str) -> str:
    """Turn a request path like ``docs.stripe.com`` into a target URL."""
    path = path.lstrip("/")
    if path.lower().startswith("http"):
        # proxies and routers tend to squash "https://" to "https:/"
        return _COLLAPSED_SCHEME_RE.sub(r"\1://", path, count=1)
    return f"https://{path}"


def target_hostname(target_url: str) -> str:
    return urlparse(target_url).hostname or target_url


def page_url(target_url: str, path: str = "") -> str:
    if not path:
        return target_url
    sep = "" if path.startswith("/") else "/"
    return f"{target_url}{sep}{path}"


def search_text(target_url: str, query: Optional[str]) -> str:
    encoded = quote(str(query or ""), safe=URI_SAFE)
    return (
        "Search not directly supported. Try fetching: "
        f"{target_url}/search?q={encoded}\n\n"
        "Or use fetch_page with a specific path."
    )


def tool_descriptors(hostname: str) -> List[Dict[str, Any]]:
    return [
        {
            "name": "fetch_page",
            "description": (
                f"Fetch a page from {hostname}. Returns content as markdown."
            ),
            "inputSchema": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": (
                            'Path to fetch (e.g., "/docs/api" or leave empty '
                            "for homepage)"
                        ),
                        "default": "",
                    },
                },
            },
        },
        {
            "name": "search",
            "description": f"Search for content on {hostname}",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query",
                    },
                },
                "required": ["query"],
            },
        },
    ]


Fetcher = Callable[[str, int, Optional[AppConfig]], NormalizedContent]


class McpDispatcher:
    def __init__(
        self,
        target_url: str,
        cfg: Optional[AppConfig] = None,
        fetcher: Fetcher = fetch_content,
    ) -> None:
        self.target_url = target_url
        self.cfg = cfg or load_config()
        self.fetcher = fetcher

    @property
    def hostname(self) -> str:
        return target_hostname(self.target_url)

    def handle(self, body: Union[str, bytes]) -> Dict[str, Any]:
        """Handle one raw JSON-RPC request body and return the response."""
        try:
            data = json.loads(body)
            if not isinstance(data, dict):
                raise ValueError("request body is not a JSON object")
            req = RpcRequest.model_validate(data)
        except (ValueError, RecursionError, ValidationError) as exc:
            logger.info("Rejecting malformed JSON-RPC body: %s", exc)
            return make_error(None, PARSE_ERROR, "Parse error")
        return self.dispatch(req)

    def dispatch(self, req: RpcRequest) -> Dict[str, Any]:
        logger.debug("MCP %s for %s (id=%r)", req.method, self.target_url, req.id)
        if req.method == "initialize":
            return make_result(req.id, self.initialize())
        if req.method == "notifications/initialized":
            return make_result(req.id, {})
        if req.method == "tools/list":
            return make_result(req.id, {"tools": tool_descriptors(self.hostname)})
        if req.method == "tools/call":
            params = req.params if isinstance(req.params, dict) else {}
            return self.call_tool(req.id, params)
        return make_error(
            req.id, METHOD_NOT_FOUND, f"Method not found: {req.method}"
        )

    def initialize(self) -> Dict[str, Any]:
        return {
            "protocolVersion": self.cfg.server.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": f"toMCP - {self.hostname}",
                "version": self.cfg.server.server_version,
            },
        }

    def call_tool(self, id_: RpcId, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        args = params.get("arguments")
        if not isinstance(args, dict):
            args = {}
        if name == "fetch_page":
            text = self.fetch_page(str(args.get("path") or ""))
        elif name == "search":
            text = search_text(self.target_url, args.get("query"))
        else:
            return make_error(id_, METHOD_NOT_FOUND, f"Unknown tool: {name}")
        result = ToolResult(content=[TextContent(text=text)])
        return make_result(id_, result.model_dump(mode="json"))

    def fetch_page(self, path: str = "") -> str:
        url = page_url(self.target_url, path)
        try:
            return self.fetcher(url, self.cfg.http.tool_max_chars, self.cfg).text
        except Exception as exc:
            logger.exception("fetch_page failed for %s", url)
            return f"Error fetching page: {exc}"
