"""Configuration sources: command line, environment variables and INI files."""

from __future__ import annotations

import configparser
from pathlib import Path
from typing import Callable, Collection, Mapping, Sequence

from .cli import CommandLineApplication, OptionType
from .errors import FilesystemError, FormatError, UnsupportedInputError
from .snapshot import ConfigSnapshot

__all__ = [
    "SECTION_SEPARATOR",
    "load_command_line",
    "load_environment",
    "load_ini_file",
]

SECTION_SEPARATOR = ":"

_ROOT_SECTION = "__root__"
_INI_COMMENT_PREFIXES = (";", "#", "/")


def load_command_line(
    args: Sequence[str],
    app_factory: Callable[[], CommandLineApplication],
    *,
    consumed: Collection[str] = (),
) -> ConfigSnapshot:
    """Execute a fresh application against ``args`` and flatten its option values.

    Options named in ``consumed`` are read directly by the caller and left
    out. Repeatable options and positional operands cannot be represented as
    a single setting and are rejected.
    """

    skipped = {name.casefold() for name in consumed}
    app = app_factory()
    app.execute(args)

    data: dict[str, str] = {}
    for option in app.options:
        if not option.has_value() or option.long_name.casefold() in skipped:
            continue
        if option.option_type is OptionType.BOOLEAN:
            data[option.long_name] = "true" if option.bool_value else "false"
        elif option.option_type is OptionType.FLAG:
            data[option.long_name] = "true"
        elif option.option_type is OptionType.SINGLE_VALUE:
            data[option.long_name] = option.value() or ""
        else:
            raise UnsupportedInputError(
                "MultiValue options are not supported",
                details={"option": option.long_name},
            )

    for argument in app.arguments:
        if argument.value:
            raise UnsupportedInputError(
                "Arguments not supported",
                details={"argument": argument.name},
            )
    return ConfigSnapshot(data)


def load_environment(environ: Mapping[str, str], prefix: str = "") -> ConfigSnapshot:
    """Import variables starting with ``prefix`` (any case), prefix stripped.

    A double underscore in the remaining name stands for the section
    separator, so ``APP_LOGGING__LEVEL`` becomes ``logging:level``.
    """

    folded_prefix = prefix.casefold()
    data: dict[str, str] = {}
    for name, value in environ.items():
        if not name.casefold().startswith(folded_prefix):
            continue
        key = name[len(prefix) :].replace("__", SECTION_SEPARATOR)
        if key:
            data[key] = value
    return ConfigSnapshot(data)


def load_ini_file(path: str | Path) -> ConfigSnapshot:
    """Read ``key=value`` settings from an INI file.

    Keys that appear before any section header are top-level; keys under
    ``[section]`` are exposed as ``section:key``. Lines starting with ``;``,
    ``#`` or ``/`` are comments and double quotes around a value are removed.
    """

    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise FilesystemError(
            f"Unable to read settings file: {file_path}",
            details={"path": str(file_path)},
        ) from exc

    parser = configparser.ConfigParser(
        delimiters=("=",),
        comment_prefixes=_INI_COMMENT_PREFIXES,
        inline_comment_prefixes=None,
        interpolation=None,
        # no implicit [DEFAULT] inheritance
        default_section="\x00defaults",
    )
    try:
        parser.read_string(f"[{_ROOT_SECTION}]\n{text}", source=str(file_path))
    except configparser.Error as exc:
        raise FormatError(
            f"Settings file is not valid INI: {file_path}",
            details={"path": str(file_path), "reason": str(exc)},
        ) from exc

    data: dict[str, str] = {}
    for section in parser.sections():
        for key, value in parser.items(section, raw=True):
            if section != _ROOT_SECTION:
                key = f"{section}{SECTION_SEPARATOR}{key}"
            data[key] = _unquote(value)
    return ConfigSnapshot(data)


def _unquote(value: str) -> str:
    if len(value) > 1 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value
