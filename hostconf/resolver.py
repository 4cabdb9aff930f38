"""Layered configuration resolution for network services.

A service subclasses :class:`ConfigResolver`, supplies its defaults, and
calls :meth:`ConfigResolver.create_configuration` with ``argv``. Settings
are merged from the environment, an INI settings file and the command line,
in that order of increasing precedence. Each pass rebuilds the snapshot from
all of its layers; nothing is merged in place.

The resolver also derives the ``urls`` setting from ``--bind``/``bind`` and
``port`` so the service has one place to look up its listen addresses.
"""

from __future__ import annotations

import abc
import logging
import os
from pathlib import Path
from typing import Mapping, Sequence

from .bootstrap import ensure_config_file
from .cli import CommandLineApplication, OptionType
from .datadir import ensure_directory
from .endpoints import Endpoint, Resolver, normalize_endpoint, parse_port, render_urls, resolve_host
from .logging import null_logger
from .snapshot import ConfigSnapshot, merge_layers
from .sources import load_command_line, load_environment, load_ini_file

__all__ = [
    "BIND_SEPARATOR",
    "DEFAULT_HOSTING_URLS_VARIABLE",
    "ConfigResolver",
]

DEFAULT_HOSTING_URLS_VARIABLE = "ASPNETCORE_URLS"
BIND_SEPARATOR = ";"

# read directly from the application, never through the snapshot
_CONSUMED_OPTIONS = ("bind",)


class ConfigResolver(abc.ABC):
    """Resolve a service's settings and listen URLs from env, file and argv."""

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        environ: Mapping[str, str] | None = None,
        hosting_urls_variable: str = DEFAULT_HOSTING_URLS_VARIABLE,
        resolve: Resolver = resolve_host,
    ) -> None:
        self.logger = logger if logger is not None else null_logger()
        self.environ = os.environ if environ is None else environ
        self.hosting_urls_variable = hosting_urls_variable
        self.resolve = resolve

    @property
    @abc.abstractmethod
    def env_prefix(self) -> str:
        """Prefix selecting the environment variables imported as settings."""

    @abc.abstractmethod
    def create_application_core(self) -> CommandLineApplication:
        """Return the service's application with its own options declared."""

    @abc.abstractmethod
    def default_data_dir(self, conf: Mapping[str, str]) -> str | Path:
        ...

    @abc.abstractmethod
    def default_config_file(self, conf: Mapping[str, str]) -> str | Path:
        ...

    @abc.abstractmethod
    def config_file_template(self, conf: Mapping[str, str]) -> str:
        """Return the text written to a missing settings file."""

    @abc.abstractmethod
    def default_endpoint(self, conf: Mapping[str, str]) -> Endpoint:
        """Return the fallback endpoint.

        ``conf`` is the startup probe: environment and command line, plus an
        explicit settings file only when it already existed.
        """

    def create_application(self) -> CommandLineApplication:
        app = self.create_application_core()
        app.option("-c | --conf", "The configuration file", OptionType.SINGLE_VALUE)
        app.option("-p | --port", "The port on which to listen", OptionType.SINGLE_VALUE)
        app.option("-b | --bind", "The address on which to bind", OptionType.MULTI_VALUE)
        app.option("-d | --datadir", "The data directory", OptionType.SINGLE_VALUE)
        return app

    def create_configuration(self, args: Sequence[str]) -> ConfigSnapshot | None:
        """Resolve the final settings for ``args``.

        Returns ``None`` when the command line was not executed (help or
        version output), in which case the service should exit. The
        ``bind`` key of the result holds the ``--bind`` values joined with
        ``;`` when any were given.
        """

        args = list(args)
        app = self.create_application()
        executed = False

        def _mark_executed() -> int:
            nonlocal executed
            executed = True
            return 1

        app.on_execute(_mark_executed)
        app.execute(args)
        if not executed:
            self.logger.debug("config.not_executed")
            return None

        environment = load_environment(self.environ, self.env_prefix)
        command_line = load_command_line(args, self.create_application, consumed=_CONSUMED_OPTIONS)

        probe = merge_layers(environment, command_line)
        explicit_file = probe.get("conf")
        if explicit_file and Path(explicit_file).is_file():
            probe = merge_layers(environment, load_ini_file(explicit_file), command_line)

        datadir = Path(probe.get("datadir") or self.default_data_dir(probe))
        ensure_directory(datadir)
        self.logger.info("config.datadir", extra={"context": {"path": str(datadir.resolve())}})

        config_file = Path(probe.get("conf") or self.default_config_file(probe))
        self.logger.info("config.file", extra={"context": {"path": str(config_file.resolve())}})

        ensure_config_file(config_file, self.config_file_template, probe, logger=self.logger)
        file_settings = load_ini_file(config_file)
        conf = merge_layers(environment, file_settings, command_line)

        binds = self.bind_candidates(app, conf)
        derived: dict[str, str] = {}
        if conf.get("port") is not None or binds or not self.environ.get(self.hosting_urls_variable):
            derived["urls"] = self._derive_urls(binds, conf, probe)
            self.logger.info("config.urls", extra={"context": {"urls": derived["urls"]}})

        command_line_binds = self._command_line_binds(app)
        if command_line_binds:
            command_line = merge_layers(command_line, {"bind": BIND_SEPARATOR.join(command_line_binds)})
        return merge_layers(environment, file_settings, derived, command_line)

    def bind_candidates(self, app: CommandLineApplication, conf: Mapping[str, str]) -> list[str]:
        """Collect ``--bind`` values (split on ``;``) followed by the ``bind`` setting."""

        binds = self._command_line_binds(app)
        configured = conf.get("bind")
        if configured and configured not in binds:
            binds.append(configured)
        return binds

    def _command_line_binds(self, app: CommandLineApplication) -> list[str]:
        binds: list[str] = []
        for option in app.options:
            if option.long_name == "bind":
                for value in option.values():
                    binds.extend(piece for piece in value.split(BIND_SEPARATOR) if piece)
        return binds

    def _derive_urls(self, binds: list[str], conf: ConfigSnapshot, probe: ConfigSnapshot) -> str:
        default_endpoint = self.default_endpoint(probe)
        default_port = parse_port(conf.get("port") or "") or default_endpoint.port
        if not binds:
            binds = [str(Endpoint(default_endpoint.address, default_port))]
        endpoints = [normalize_endpoint(bind, default_port, resolve=self.resolve) for bind in binds]
        return render_urls(endpoints)
