"""Ordered collection of layered values held by one grid cell."""

from __future__ import annotations

import bisect
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")


class LevelList(Generic[T]):
    """Values of one cell, kept sorted by ``key`` (natural order if None).

    Equal keys keep their insertion order.
    """

    __slots__ = ("_items", "_key")

    def __init__(self, items: Iterable[T] = (), key: Callable[[T], Any] | None = None):
        self._key = key
        self._items: list[T] = []
        for item in items:
            self.insert(item)

    @property
    def key(self) -> Callable[[T], Any] | None:
        return self._key

    def insert(self, value: T) -> None:
        bisect.insort_right(self._items, value, key=self._key)

    def remove(self, value: T) -> None:
        """Remove ``value`` (matched by identity first, then equality)."""
        for i, item in enumerate(self._items):
            if item is value:
                del self._items[i]
                return
        self._items.remove(value)

    def clear(self) -> None:
        self._items.clear()

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, i: int) -> T:
        return self._items[i]

    def __contains__(self, value: object) -> bool:
        return any(item is value or item == value for item in self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LevelList):
            return NotImplemented
        return self._items == other._items

    def __copy__(self) -> "LevelList[T]":
        out: LevelList[T] = LevelList(key=self._key)
        out._items = list(self._items)
        return out

    def __repr__(self) -> str:
        return f"LevelList({self._items!r})"

    def __getstate__(self) -> dict:
        return {"items": self._items, "key": self._key}

    def __setstate__(self, state: dict) -> None:
        self._key = state["key"]
        self._items = list(state["items"])
