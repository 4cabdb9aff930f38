"""Immutable, case-insensitive configuration snapshots and the layer merge."""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping

__all__ = ["ConfigSnapshot", "merge_layers"]


class ConfigSnapshot(Mapping[str, str]):
    """Read-only mapping from setting name to string value.

    Lookups ignore case; iteration yields keys as spelled by the layer that
    last set them.
    """

    __slots__ = ("_data",)

    def __init__(self, values: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        items = values.items() if isinstance(values, Mapping) else values
        data: dict[str, tuple[str, str]] = {}
        for key, value in items:
            data[key.casefold()] = (key, value)
        self._data = data

    def __getitem__(self, key: str) -> str:
        return self._data[key.casefold()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._data

    def __iter__(self) -> Iterator[str]:
        return (original for original, _value in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ConfigSnapshot({dict(self.items())!r})"


def merge_layers(*layers: Mapping[str, str | None] | None) -> ConfigSnapshot:
    """Flatten ``layers`` into one snapshot; later layers override earlier ones."""

    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if value is None:
                continue
            merged[key.casefold()] = (key, value)
    return ConfigSnapshot(merged.values())
