"""MCP stdio server for a single website.

Exposes the same ``fetch_page`` and ``search`` tools as the HTTP endpoint,
bound to one target site, using the official MCP Python SDK.

Run (stdio):
    tomcp-mcp docs.stripe.com
    TOMCP_TARGET=docs.stripe.com python -m tomcp.mcp_server
"""

from __future__ import annotations

import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .content import fetch_content
from .protocol import Fetcher, McpDispatcher, resolve_target, search_text

logger = logging.getLogger(__name__)


def build_server(target: str, fetcher: Fetcher = fetch_content) -> FastMCP:
    target_url = resolve_target(target)
    dispatcher = McpDispatcher(target_url, load_config(), fetcher)
    mcp = FastMCP(
        f"toMCP - {dispatcher.hostname}",
        instructions=(
            f"Tools for reading {dispatcher.hostname}: fetch a page as "
            "markdown, or get a suggested search URL."
        ),
    )

    @mcp.tool()
    def fetch_page(path: str = "") -> str:
        """Fetch a page from the site. Returns content as markdown."""
        return dispatcher.fetch_page(path)

    @mcp.tool()
    def search(query: str) -> str:
        """Search for content on the site."""
        return search_text(target_url, query)

    return mcp


def main() -> None:
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    target = sys.argv[1] if len(sys.argv) > 1 else os.getenv("TOMCP_TARGET")
    if not target:
        sys.exit("usage: tomcp-mcp <website>  (or set TOMCP_TARGET)")
    logger.info("Serving MCP over stdio for %s", target)
    # Default transport for FastMCP is stdio.
    build_server(target).run()


if __name__ == "__main__":
    main()
