"""Command-line application model built on :mod:`argparse`.

Options are declared with templates such as ``"-c | --conf"`` and carry a
type that decides how their values are collected. Executing the
application fills every option and argument with the values found on the
command line and then invokes the registered execution callback. A help or
version request prints through argparse and reports "not executed" by
returning ``None``; nothing here terminates the process.
"""

from __future__ import annotations

import argparse
import enum
import sys
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .errors import CommandParsingError

__all__ = [
    "BOOL_TRUE",
    "BOOL_FALSE",
    "OptionType",
    "CommandOption",
    "CommandArgument",
    "CommandLineApplication",
    "parse_bool",
]

BOOL_TRUE = {"1", "true", "t", "yes", "y", "on"}
BOOL_FALSE = {"0", "false", "f", "no", "n", "off"}


class OptionType(enum.Enum):
    FLAG = "flag"
    BOOLEAN = "boolean"
    SINGLE_VALUE = "single"
    MULTI_VALUE = "multi"


@dataclass(slots=True)
class CommandOption:
    """One declared option and the values found for it by the last execution."""

    long_name: str
    option_type: OptionType
    short_name: str | None = None
    description: str = ""
    _values: list[str] = field(default_factory=list, repr=False)

    @property
    def dest(self) -> str:
        return self.long_name.replace("-", "_")

    def has_value(self) -> bool:
        return bool(self._values)

    def value(self) -> str | None:
        return self._values[-1] if self._values else None

    def values(self) -> list[str]:
        return list(self._values)

    @property
    def bool_value(self) -> bool | None:
        if self.option_type is OptionType.FLAG:
            return True if self._values else None
        if self.option_type is not OptionType.BOOLEAN or not self._values:
            return None
        return parse_bool(self._values[-1])

    def _collect(self, parsed: object) -> None:
        if parsed is None:
            self._values = []
        elif isinstance(parsed, list):
            self._values = [str(item) for item in parsed]
        elif isinstance(parsed, bool):
            self._values = ["true" if parsed else "false"]
        else:
            self._values = [str(parsed)]


@dataclass(slots=True)
class CommandArgument:
    """A positional operand."""

    name: str
    description: str = ""
    value: str | None = None


class _ExecutionAborted(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


class _ApplicationParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise CommandParsingError(message, details={"prog": self.prog})

    def exit(self, status: int = 0, message: str | None = None) -> None:  # type: ignore[override]
        if message:
            self._print_message(message, sys.stderr)
        raise _ExecutionAborted(status)


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in BOOL_TRUE:
        return True
    if lowered in BOOL_FALSE:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _bool_argument(value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _split_template(template: str) -> tuple[str | None, str]:
    short_name: str | None = None
    long_name: str | None = None
    for part in template.split("|"):
        token = part.strip()
        if token.startswith("--"):
            long_name = token[2:]
        elif token.startswith("-"):
            short_name = token[1:]
    if not long_name:
        raise ValueError(f"Option template needs a long name: {template!r}")
    return short_name, long_name


class CommandLineApplication:
    """A command-line definition that can be executed against ``argv``."""

    def __init__(self, name: str, description: str | None = None, version: str | None = None) -> None:
        self.name = name
        self.description = description
        self.version = version
        self.options: list[CommandOption] = []
        self.arguments: list[CommandArgument] = []
        self._invoke: Callable[[], int] | None = None

    def option(
        self,
        template: str,
        description: str = "",
        option_type: OptionType = OptionType.SINGLE_VALUE,
    ) -> CommandOption:
        short_name, long_name = _split_template(template)
        option = CommandOption(
            long_name=long_name,
            option_type=option_type,
            short_name=short_name,
            description=description,
        )
        self.options.append(option)
        return option

    def argument(self, name: str, description: str = "") -> CommandArgument:
        argument = CommandArgument(name=name, description=description)
        self.arguments.append(argument)
        return argument

    def on_execute(self, callback: Callable[[], int]) -> None:
        self._invoke = callback

    def execute(self, args: Sequence[str]) -> int | None:
        """Parse ``args`` into the declared options and run the callback.

        Returns the callback's status (0 without a callback), or ``None``
        when help or version output was requested instead.
        """

        parser = self._build_parser()
        try:
            namespace = parser.parse_args(list(args))
        except _ExecutionAborted:
            return None

        for option in self.options:
            option._collect(getattr(namespace, option.dest, None))
        for argument in self.arguments:
            value = getattr(namespace, argument.name, None)
            argument.value = None if value is None else str(value)

        if self._invoke is None:
            return 0
        return self._invoke()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = _ApplicationParser(
            prog=self.name,
            description=self.description,
            allow_abbrev=False,
        )
        if self.version:
            parser.add_argument("--version", action="version", version=self.version)

        for option in self.options:
            flags = [f"--{option.long_name}"]
            if option.short_name:
                flags.insert(0, f"-{option.short_name}")
            kwargs: dict[str, object] = {"dest": option.dest, "help": option.description, "default": None}
            if option.option_type is OptionType.FLAG:
                kwargs["action"] = "store_true"
            elif option.option_type is OptionType.BOOLEAN:
                kwargs.update(nargs="?", const=True, type=_bool_argument, metavar="BOOL")
            elif option.option_type is OptionType.MULTI_VALUE:
                kwargs.update(action="append", metavar="VALUE")
            else:
                kwargs["metavar"] = "VALUE"
            parser.add_argument(*flags, **kwargs)

        for argument in self.arguments:
            parser.add_argument(argument.name, nargs="?", default=None, help=argument.description)
        return parser
