"""Serve an ASGI application on every URL of the resolved ``urls`` setting."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping
from urllib.parse import urlsplit

import uvicorn

from .errors import FormatError
from .logging import get_logger

__all__ = ["format_listen_address", "listen_endpoints", "run_http"]

logger = get_logger(__name__)

_DEFAULT_SCHEME_PORTS = {"http": 80, "https": 443}
# hosting URLs use these for "every interface"
_WILDCARD_HOSTS = {"*", "+"}


def listen_endpoints(conf: Mapping[str, str]) -> list[tuple[str, int]]:
    """Return the ``(host, port)`` pairs named by the ``urls`` setting."""

    raw = conf.get("urls") or ""
    endpoints: list[tuple[str, int]] = []
    for entry in raw.split(";"):
        entry = entry.strip()
        if not entry:
            continue
        parts = urlsplit(entry)
        try:
            port = parts.port
        except ValueError as exc:
            raise FormatError(f"Invalid listen URL: {entry}", details={"url": entry}) from exc
        if not parts.hostname or parts.scheme not in _DEFAULT_SCHEME_PORTS:
            raise FormatError(f"Invalid listen URL: {entry}", details={"url": entry})
        if port is None:
            port = _DEFAULT_SCHEME_PORTS[parts.scheme]
        host = "0.0.0.0" if parts.hostname in _WILDCARD_HOSTS else parts.hostname
        endpoints.append((host, port))
    return endpoints


def format_listen_address(host: str, port: int) -> str:
    """Render ``host:port``, bracketing IPv6 hosts."""

    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def run_http(app: Any, conf: Mapping[str, str]) -> None:
    """Run ``app`` with one uvicorn server per listen endpoint."""

    endpoints = listen_endpoints(conf)
    context = {"urls": [format_listen_address(host, port) for host, port in endpoints]}
    if not endpoints:
        logger.info("transport.http.skip_no_endpoints")
        return

    async def _serve() -> None:
        servers = [
            uvicorn.Server(
                uvicorn.Config(
                    app,
                    host=host,
                    port=port,
                    timeout_graceful_shutdown=0,
                    lifespan="on",
                )
            )
            for host, port in endpoints
        ]
        logger.info("transport.http.serve", extra={"context": context})
        await asyncio.gather(*(server.serve() for server in servers))

    logger.info("transport.http.start", extra={"context": context})
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("transport.http.interrupted", extra={"context": context})
        raise
    except Exception:
        logger.exception("transport.http.failed", extra={"context": context})
        raise
    else:
        logger.info("transport.http.stop", extra={"context": context})
