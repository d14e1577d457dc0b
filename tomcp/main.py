"""HTTP server entrypoint.

Run:
    tomcp
    APP_CONFIG=env/config.yaml python -m tomcp.main
"""
from __future__ import annotations

import logging

import uvicorn

from .app import create_app
from .config import load_config

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    cfg = load_config()
    logger.info("Starting toMCP on %s:%d", cfg.server.host, cfg.server.port)
    uvicorn.run(create_app(cfg), host=cfg.server.host, port=cfg.server.port)


if __name__ == "__main__":
    main()
