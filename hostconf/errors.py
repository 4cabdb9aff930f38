"""Error codes and exception types raised while resolving configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "UNSUPPORTED_INPUT",
    "FORMAT_ERROR",
    "RESOLUTION_ERROR",
    "FILESYSTEM_ERROR",
    "COMMAND_PARSING_ERROR",
    "HostConfError",
    "UnsupportedInputError",
    "FormatError",
    "ResolutionError",
    "FilesystemError",
    "CommandParsingError",
    "error_payload",
]

UNSUPPORTED_INPUT = "UNSUPPORTED_INPUT"
FORMAT_ERROR = "FORMAT_ERROR"
RESOLUTION_ERROR = "RESOLUTION_ERROR"
FILESYSTEM_ERROR = "FILESYSTEM_ERROR"
COMMAND_PARSING_ERROR = "COMMAND_PARSING_ERROR"


@dataclass(slots=True)
class HostConfError(Exception):
    """Base exception carrying an error code and message."""

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - delegation to message
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, details=self.details)


class UnsupportedInputError(HostConfError):
    """A command line carried an option kind the configuration cannot hold."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(UNSUPPORTED_INPUT, message, details)


class FormatError(HostConfError):
    """A value could not be interpreted (bind address, settings file syntax)."""

    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, Any] | None = None,
        code: str = FORMAT_ERROR,
    ) -> None:
        super().__init__(code, message, details)


class ResolutionError(FormatError):
    """Host name lookup failed while building an endpoint."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, details=details, code=RESOLUTION_ERROR)


class FilesystemError(HostConfError):
    """The data directory or settings file could not be created, written or read."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(FILESYSTEM_ERROR, message, details)


class CommandParsingError(HostConfError):
    """The command line could not be tokenized against the declared options."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(COMMAND_PARSING_ERROR, message, details)


def error_payload(code: str, message: str, *, details: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build a structured error payload used in log context and exit reports."""

    payload: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if details:
        payload["details"] = dict(details)
    return payload
