# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Case-insensitive, order-preserving header container.

HTTP header field names are case-insensitive (RFC 9110), but callers and logs
want to see the casing that was originally supplied. CaselessHeaderMap keeps the
entries in an ordered list and indexes them by the lower-cased key.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Any, TypeVar

V = TypeVar("V")

_MISSING = object()


def _fold(key: str) -> str:
    return str(key).lower()


class CaselessHeaderMap(MutableMapping[str, V]):
    """Ordered mapping with case-insensitive keys."""

    def __init__(self, entries: Iterable[tuple[str, V]] | None = None):
        self._entries: list[tuple[str, V]] = []
        self._index: dict[str, int] = {}
        for key, value in entries or ():
            self.set(key, value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, V] | Iterable[tuple[str, V]] | None) -> CaselessHeaderMap[V]:
        if data is None:
            return cls()
        if isinstance(data, CaselessHeaderMap):
            return data.copy()
        if isinstance(data, Mapping):
            return cls(data.items())
        return cls(data)

    @classmethod
    def from_flat(cls, raw: Iterable[Any] | None) -> CaselessHeaderMap[str]:
        """
        Build a map from a flat `[name, value, name, value, ...]` list.

        A repeated name keeps its first position and takes the last value.
        """
        items = list(raw or ())
        pairs = ((str(items[i]), str(items[i + 1])) for i in range(0, len(items) - 1, 2))
        return cls(pairs)  # type: ignore[arg-type]

    def set(self, key: str, value: V) -> CaselessHeaderMap[V]:
        folded = _fold(key)
        position = self._index.get(folded)
        if position is None:
            self._index[folded] = len(self._entries)
            self._entries.append((key, value))
        else:
            original_key, _ = self._entries[position]
            self._entries[position] = (original_key, value)
        return self

    def get(self, key: str, default: Any = None) -> Any:
        position = self._index.get(_fold(key))
        if position is None:
            return default
        return self._entries[position][1]

    def has(self, key: str) -> bool:
        return _fold(key) in self._index

    def delete(self, key: str) -> bool:
        folded = _fold(key)
        position = self._index.pop(folded, None)
        if position is None:
            return False
        del self._entries[position]
        for shifted in range(position, len(self._entries)):
            self._index[_fold(self._entries[shifted][0])] = shifted
        return True

    def entries(self) -> list[tuple[str, V]]:
        return list(self._entries)

    def keys(self):  # type: ignore[override]
        return [key for key, _ in self._entries]

    def values(self):  # type: ignore[override]
        return [value for _, value in self._entries]

    def items(self):  # type: ignore[override]
        return self.entries()

    def copy(self) -> CaselessHeaderMap[V]:
        return type(self)(self._entries)

    def to_dict(self) -> dict[str, V]:
        return {key: value for key, value in self._entries}

    def __getitem__(self, key: str) -> V:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: V) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._entries!r})"


__all__ = ["CaselessHeaderMap"]
