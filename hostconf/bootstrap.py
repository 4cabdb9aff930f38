"""First-run creation of the settings file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping

from .errors import FilesystemError

__all__ = ["ensure_config_file"]


def ensure_config_file(
    path: str | Path,
    template: Callable[[Mapping[str, str]], str],
    conf: Mapping[str, str],
    *,
    logger: logging.Logger | None = None,
) -> bool:
    """Write ``template(conf)`` to ``path`` unless the file already exists.

    Returns ``True`` when the file was created. An existing file is never
    touched.
    """

    file_path = Path(path)
    if file_path.exists():
        return False

    if logger is not None:
        logger.info("Creating configuration file", extra={"context": {"path": str(file_path)}})
    content = template(conf)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise FilesystemError(
            f"Unable to create settings file: {file_path}",
            details={"path": str(file_path), "reason": str(exc)},
        ) from exc
    return True
