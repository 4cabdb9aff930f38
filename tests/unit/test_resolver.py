from __future__ import annotations

import ipaddress
import logging
import socket
from pathlib import Path
from typing import Mapping

import pytest

from hostconf.cli import CommandLineApplication, OptionType
from hostconf.endpoints import Endpoint
from hostconf.errors import CommandParsingError, FormatError, UnsupportedInputError
from hostconf.resolver import ConfigResolver


def _no_lookup(host: str):
    raise AssertionError(f"unexpected host lookup: {host!r}")


class ServiceResolver(ConfigResolver):
    env_prefix = "MYSVC_"

    def __init__(self, root: Path, *, positional: bool = False, **kwargs) -> None:
        kwargs.setdefault("environ", {})
        kwargs.setdefault("resolve", _no_lookup)
        super().__init__(**kwargs)
        self.root = root
        self.positional = positional
        self.template_inputs: list[dict[str, str]] = []
        self.endpoint_inputs: list[dict[str, str]] = []

    def create_application_core(self) -> CommandLineApplication:
        app = CommandLineApplication("mysvc")
        app.option("--mode", "Operating mode", OptionType.SINGLE_VALUE)
        app.option("--verbose", "Chatty output", OptionType.FLAG)
        if self.positional:
            app.argument("target")
        return app

    def default_data_dir(self, conf: Mapping[str, str]) -> Path:
        return self.root / "data"

    def default_config_file(self, conf: Mapping[str, str]) -> Path:
        return Path(conf.get("datadir") or self.default_data_dir(conf)) / "mysvc.config"

    def config_file_template(self, conf: Mapping[str, str]) -> str:
        self.template_inputs.append(dict(conf))
        return "mode=from-template\n"

    def default_endpoint(self, conf: Mapping[str, str]) -> Endpoint:
        self.endpoint_inputs.append(dict(conf))
        return Endpoint(ipaddress.ip_address("0.0.0.0"), 5000)


def _write_settings(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "data" / "mysvc.config"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_defaults_bootstrap_file_and_default_url(tmp_path: Path) -> None:
    conf = ServiceResolver(tmp_path).create_configuration([])

    settings = tmp_path / "data" / "mysvc.config"
    assert settings.read_text(encoding="utf-8") == "mode=from-template\n"
    assert conf["mode"] == "from-template"
    assert conf["urls"] == "http://0.0.0.0:5000/"


def test_explicit_bind_ports_override_port_setting(tmp_path: Path) -> None:
    conf = ServiceResolver(tmp_path).create_configuration(
        ["--bind", "10.0.0.1:8080;[::1]:9090", "--port", "7000"]
    )

    assert conf["urls"] == "http://10.0.0.1:8080/;http://[::1]:9090/"
    assert conf["port"] == "7000"


def test_port_setting_applies_to_bind_without_port(tmp_path: Path) -> None:
    conf = ServiceResolver(tmp_path).create_configuration(["-b", "10.0.0.1", "-p", "7000"])

    assert conf["urls"] == "http://10.0.0.1:7000/"


def test_port_alone_moves_default_endpoint(tmp_path: Path) -> None:
    conf = ServiceResolver(tmp_path).create_configuration(["--port", "6000"])

    assert conf["urls"] == "http://0.0.0.0:6000/"


def test_unparseable_port_falls_back_to_default_endpoint(tmp_path: Path) -> None:
    conf = ServiceResolver(tmp_path).create_configuration(["--port", "http"])

    assert conf["urls"] == "http://0.0.0.0:5000/"
    assert conf["port"] == "http"


def test_repeated_and_compound_bind_are_equivalent(tmp_path: Path) -> None:
    repeated = ServiceResolver(tmp_path).create_configuration(
        ["--bind", "10.0.0.1;10.0.0.2", "--bind", "10.0.0.3"]
    )
    compound = ServiceResolver(tmp_path).create_configuration(["--bind", "10.0.0.1;10.0.0.2;10.0.0.3"])

    assert repeated["urls"] == compound["urls"]
    assert compound["urls"] == "http://10.0.0.1:5000/;http://10.0.0.2:5000/;http://10.0.0.3:5000/"


def test_file_bind_follows_command_line_binds(tmp_path: Path) -> None:
    _write_settings(tmp_path, "bind=10.0.0.9:81\n")

    conf = ServiceResolver(tmp_path).create_configuration(["--bind", "10.0.0.1:80"])

    assert conf["urls"] == "http://10.0.0.1:80/;http://10.0.0.9:81/"
    assert conf["bind"] == "10.0.0.1:80"


def test_file_bind_already_given_is_not_repeated(tmp_path: Path) -> None:
    _write_settings(tmp_path, "bind=10.0.0.1:80\n")

    conf = ServiceResolver(tmp_path).create_configuration(["--bind", "10.0.0.1:80"])

    assert conf["urls"] == "http://10.0.0.1:80/"


def test_environment_bind_is_used(tmp_path: Path) -> None:
    resolver = ServiceResolver(tmp_path, environ={"MYSVC_BIND": "[::]:8443"})

    conf = resolver.create_configuration([])

    assert conf["urls"] == "http://[::]:8443/"


def test_precedence_command_line_over_file_over_environment(tmp_path: Path) -> None:
    _write_settings(tmp_path, "mode=file\ncolor=red\n[db]\nhost=file-db\n")
    environ = {"MYSVC_MODE": "env", "MYSVC_COLOR": "blue", "MYSVC_SIZE": "xl", "MYSVC_DB__HOST": "env-db"}

    conf = ServiceResolver(tmp_path, environ=environ).create_configuration(["--mode", "cli"])

    assert conf["mode"] == "cli"
    assert conf["color"] == "red"
    assert conf["size"] == "xl"
    assert conf["db:host"] == "file-db"


def test_hosting_url_variable_suppresses_derivation(tmp_path: Path) -> None:
    resolver = ServiceResolver(tmp_path, environ={"ASPNETCORE_URLS": "http://*:1234"})

    conf = resolver.create_configuration([])

    assert "urls" not in conf


def test_hosting_url_variable_name_is_injectable(tmp_path: Path) -> None:
    resolver = ServiceResolver(
        tmp_path,
        environ={"MYSVC_HOSTING_URLS": "http://*:1234", "ASPNETCORE_URLS": ""},
        hosting_urls_variable="MYSVC_HOSTING_URLS",
    )

    assert "urls" not in resolver.create_configuration([])


def test_port_forces_derivation_despite_hosting_url_variable(tmp_path: Path) -> None:
    resolver = ServiceResolver(tmp_path, environ={"ASPNETCORE_URLS": "http://*:1234"})

    conf = resolver.create_configuration(["--port", "6000"])

    assert conf["urls"] == "http://0.0.0.0:6000/"


def test_derived_urls_override_file_urls(tmp_path: Path) -> None:
    _write_settings(tmp_path, "urls=http://stale:1/\n")

    conf = ServiceResolver(tmp_path).create_configuration([])

    assert conf["urls"] == "http://0.0.0.0:5000/"


def test_help_returns_none_without_side_effects(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    conf = ServiceResolver(tmp_path).create_configuration(["--help"])

    assert conf is None
    assert "--datadir" in capsys.readouterr().out
    assert not (tmp_path / "data").exists()


def test_template_receives_probe_settings(tmp_path: Path) -> None:
    resolver = ServiceResolver(tmp_path, environ={"MYSVC_COLOR": "blue"})

    resolver.create_configuration(["--mode", "cli"])

    assert resolver.template_inputs == [{"COLOR": "blue", "mode": "cli"}]


def test_explicit_conf_and_datadir(tmp_path: Path) -> None:
    conf_path = tmp_path / "etc" / "custom.config"
    datadir = tmp_path / "var" / "lib"

    conf = ServiceResolver(tmp_path).create_configuration(
        ["--conf", str(conf_path), "--datadir", str(datadir)]
    )

    assert conf_path.read_text(encoding="utf-8") == "mode=from-template\n"
    assert datadir.is_dir()
    assert not (tmp_path / "data").exists()
    assert conf["conf"] == str(conf_path)


def test_existing_conf_file_can_move_datadir(tmp_path: Path) -> None:
    datadir = tmp_path / "from-file"
    conf_path = tmp_path / "custom.config"
    conf_path.write_text(f"datadir={datadir}\n", encoding="utf-8")

    conf = ServiceResolver(tmp_path).create_configuration(["-c", str(conf_path)])

    assert datadir.is_dir()
    assert conf["datadir"] == str(datadir)
    assert not (tmp_path / "data").exists()


def test_resolution_is_repeatable(tmp_path: Path) -> None:
    resolver = ServiceResolver(tmp_path)
    args = ["--bind", "10.0.0.1:80", "--verbose"]

    first = resolver.create_configuration(args)
    settings = (tmp_path / "data" / "mysvc.config").read_text(encoding="utf-8")
    second = resolver.create_configuration(args)

    assert first == second
    assert (tmp_path / "data" / "mysvc.config").read_text(encoding="utf-8") == settings
    assert len(resolver.template_inputs) == 1
    assert second["verbose"] == "true"


def test_unresolvable_bind_fails(tmp_path: Path) -> None:
    def failing(host: str):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    resolver = ServiceResolver(tmp_path, resolve=failing)

    with pytest.raises(FormatError):
        resolver.create_configuration(["--bind", "badhost!!:1234"])


def test_hostname_bind_uses_first_address(tmp_path: Path) -> None:
    def lookup(host: str):
        assert host == "api.internal"
        return [ipaddress.ip_address("192.0.2.5"), ipaddress.ip_address("192.0.2.6")]

    conf = ServiceResolver(tmp_path, resolve=lookup).create_configuration(["--bind", "api.internal:81"])

    assert conf["urls"] == "http://192.0.2.5:81/"


def test_positional_argument_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedInputError):
        ServiceResolver(tmp_path, positional=True).create_configuration(["site"])


def test_undeclared_positional_is_a_parse_error(tmp_path: Path) -> None:
    with pytest.raises(CommandParsingError):
        ServiceResolver(tmp_path).create_configuration(["site"])


def test_injected_logger_receives_paths(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.resolver")
    caplog.set_level(logging.INFO, logger="tests.resolver")

    ServiceResolver(tmp_path, logger=logger).create_configuration([])

    messages = [record.getMessage() for record in caplog.records]
    assert "config.datadir" in messages
    assert "config.file" in messages
    assert "Creating configuration file" in messages
    datadir_record = next(record for record in caplog.records if record.getMessage() == "config.datadir")
    assert datadir_record.context == {"path": str((tmp_path / "data").resolve())}


def test_command_line_binds_win_the_bind_key(tmp_path: Path) -> None:
    _write_settings(tmp_path, "bind=10.0.0.9\n")
    environ = {"MYSVC_BIND": "10.0.0.8"}

    conf = ServiceResolver(tmp_path, environ=environ).create_configuration(
        ["--bind", "10.0.0.1;10.0.0.2", "-b", "10.0.0.3"]
    )

    assert conf["bind"] == "10.0.0.1;10.0.0.2;10.0.0.3"
    assert conf["urls"].endswith(";http://10.0.0.9:5000/")


def test_bind_key_from_file_without_command_line_binds(tmp_path: Path) -> None:
    _write_settings(tmp_path, "bind=10.0.0.9\n")

    conf = ServiceResolver(tmp_path).create_configuration([])

    assert conf["bind"] == "10.0.0.9"
    assert conf["urls"] == "http://10.0.0.9:5000/"


def test_default_endpoint_sees_startup_probe(tmp_path: Path) -> None:
    _write_settings(tmp_path, "color=red\n")
    resolver = ServiceResolver(tmp_path, environ={"MYSVC_SIZE": "xl"})

    resolver.create_configuration(["--mode", "cli"])

    assert resolver.endpoint_inputs == [{"SIZE": "xl", "mode": "cli"}]
