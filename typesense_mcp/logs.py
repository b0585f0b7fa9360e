"""File sink for diagnostic logging.

Stdout carries the MCP stream, so log records go to an append-only file
(by default ``<tempdir>/typesense-mcp.log``) and nowhere else.
"""
from __future__ import annotations

import logging

from .config import LogConfig

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
PACKAGE_LOGGER = "typesense_mcp"


def setup_logging(cfg: LogConfig) -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_typesense_mcp", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.FileHandler(cfg.path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler._typesense_mcp = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(cfg.level.upper())
    logger.propagate = False
    return logger
