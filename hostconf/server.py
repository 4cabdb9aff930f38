"""Reference status service wired through :class:`~hostconf.resolver.ConfigResolver`."""

from __future__ import annotations

import ipaddress
import sys
from pathlib import Path
from typing import Mapping, Sequence

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .cli import CommandLineApplication, OptionType
from .datadir import default_data_directory
from .endpoints import Endpoint
from .errors import HostConfError
from .logging import configure_logging, get_logger
from .resolver import ConfigResolver
from .serving import format_listen_address, listen_endpoints, run_http
from .snapshot import merge_layers

__all__ = ["StatusServiceResolver", "create_app", "main"]

LOGGER = get_logger(__name__)

ENV_PREFIX = "HOSTCONF_"
DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 8765
CONFIG_FILE_NAME = "settings.config"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TEMPLATE = """\
;Settings for the hostconf status service.
;Values given here are overridden by command-line options and override
;HOSTCONF_* environment variables.

;The address(es) to listen on, host[:port]. Separate several with ';' on the command line.
;bind={host}

;The port used when a bind address does not name one.
;port={port}

;Log level (DEBUG, INFO, WARNING, ERROR).
;log-level=INFO
"""


class StatusServiceResolver(ConfigResolver):
    """Settings for the status service (``HOSTCONF_*``, ``~/.hostconf/main``)."""

    @property
    def env_prefix(self) -> str:
        return ENV_PREFIX

    def create_application_core(self) -> CommandLineApplication:
        app = CommandLineApplication("hostconf", description="Status service listening on the resolved URLs.")
        app.option("--log-level", "Logging level (default: INFO)", OptionType.SINGLE_VALUE)
        return app

    def default_data_dir(self, conf: Mapping[str, str]) -> Path:
        return default_data_directory("HostConf", "main", environ=self.environ)  # type: ignore[return-value]

    def default_config_file(self, conf: Mapping[str, str]) -> Path:
        datadir = conf.get("datadir")
        base = Path(datadir) if datadir else self.default_data_dir(conf)
        return base / CONFIG_FILE_NAME

    def config_file_template(self, conf: Mapping[str, str]) -> str:
        return _TEMPLATE.format(host=DEFAULT_HTTP_HOST, port=DEFAULT_HTTP_PORT)

    def default_endpoint(self, conf: Mapping[str, str]) -> Endpoint:
        return Endpoint(ipaddress.ip_address(DEFAULT_HTTP_HOST), DEFAULT_HTTP_PORT)


def create_app(conf: Mapping[str, str]) -> Starlette:
    """Return the ASGI app reporting where the service listens."""

    urls = [url for url in (conf.get("urls") or "").split(";") if url]
    listening = [format_listen_address(host, port) for host, port in listen_endpoints(conf)]

    async def status(_request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "urls": urls,
                "listening": listening,
                "datadir": conf.get("datadir"),
            }
        )

    return Starlette(routes=[Route("/", endpoint=status, methods=["GET"])])


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entrypoint for running the status service."""

    configure_logging()
    args = sys.argv[1:] if argv is None else list(argv)
    resolver = StatusServiceResolver(logger=get_logger("resolver"))
    try:
        conf = resolver.create_configuration(args)
    except HostConfError as exc:
        LOGGER.error("Failed to resolve configuration", extra={"context": exc.to_dict()})
        raise SystemExit(1) from exc
    if conf is None:
        return

    level = (conf.get("log-level") or "").upper()
    if level in _LOG_LEVELS:
        configure_logging(level)
    elif level:
        LOGGER.warning("Ignoring unknown log level", extra={"context": {"log_level": level}})

    listen_conf = conf
    if not conf.get("urls"):
        # no urls derived: the hosting-URL variable decides where to listen
        hosting_urls = resolver.environ.get(resolver.hosting_urls_variable) or ""
        listen_conf = merge_layers(conf, {"urls": hosting_urls})
    LOGGER.info("Configuration loaded", extra={"context": {"urls": listen_conf.get("urls")}})

    try:
        app = create_app(listen_conf)
    except HostConfError as exc:
        LOGGER.error("Invalid listen URLs", extra={"context": exc.to_dict()})
        raise SystemExit(1) from exc

    run_http(app, listen_conf)


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    main()
