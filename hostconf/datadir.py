"""Per-user data directory discovery."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from .errors import FilesystemError

__all__ = ["default_data_directory", "ensure_directory"]


def ensure_directory(path: str | Path) -> Path:
    """Create ``path`` (and parents) if missing and return it."""

    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(
            f"Unable to create directory: {directory}",
            details={"path": str(directory), "reason": str(exc)},
        ) from exc
    return directory


def default_data_directory(
    app_directory: str,
    sub_directory: str,
    *,
    create: bool = True,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Return the per-user data directory for an application.

    ``$HOME/.<app>`` is used when ``HOME`` is set and ``APPDATA`` is not,
    otherwise ``$APPDATA/<app>``. ``sub_directory`` is appended to either.
    """

    env = os.environ if environ is None else environ
    home = env.get("HOME")
    app_data = env.get("APPDATA")

    if home and not app_data:
        base = Path(home) / f".{app_directory.lower()}"
    elif app_data:
        base = Path(app_data) / app_directory
    elif create:
        raise FilesystemError(
            "Could not find suitable datadir: environment variables HOME or APPDATA are not set"
        )
    else:
        return None

    directory = base / sub_directory
    if create:
        ensure_directory(directory)
    return directory
