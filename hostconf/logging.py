"""Logging utilities for hostconf."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastmcp.utilities.logging import configure_logging as _fastmcp_configure_logging

_PACKAGE_LOGGER_NAME = "hostconf"
_NULL_LOGGER_NAME = f"{_PACKAGE_LOGGER_NAME}.null"
_CONFIGURED = False


def _qualify(name: str | None) -> str:
    if not name:
        return _PACKAGE_LOGGER_NAME
    if name.startswith(_PACKAGE_LOGGER_NAME):
        return name
    return f"{_PACKAGE_LOGGER_NAME}.{name}"


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | int = "INFO",
    **rich_kwargs: Any,
) -> logging.Logger:
    """Route the package logger through FastMCP's Rich handler on stderr."""

    global _CONFIGURED

    logger = logging.getLogger(_PACKAGE_LOGGER_NAME)
    _fastmcp_configure_logging(level=level, logger=logger, **rich_kwargs)

    _CONFIGURED = True
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger scoped to the package namespace."""

    if not _CONFIGURED:
        configure_logging()

    qualified = _qualify(name)
    return logging.getLogger(qualified)


def null_logger() -> logging.Logger:
    """Return a logger that discards every record.

    Used when a caller does not inject a logger; records never reach the
    package handler.
    """

    logger = logging.getLogger(_NULL_LOGGER_NAME)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger
