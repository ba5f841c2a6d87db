#!/usr/bin/env python3
"""Insertion-ordered set of requirement identifiers.

Backs the ``dependencies`` and ``blocks`` columns, serialized pipe-delimited.
The empty set serializes to the empty string.
"""

from typing import Iterable, Iterator, List

SEPARATOR = "|"


class StringSet:
    """Ordered set: a list for order plus a set for membership."""

    __slots__ = ("_items", "_index")

    def __init__(self, items: Iterable[str] = ()):
        self._items: List[str] = []
        self._index = set()
        for item in items:
            self.add(item)

    @classmethod
    def parse(cls, text: str) -> "StringSet":
        """Split on ``|``, trim whitespace, keep first occurrence order."""
        if not text:
            return cls()
        return cls(text.split(SEPARATOR))

    def add(self, item: str) -> bool:
        """Add *item* (trimmed). Returns True if it was not already present."""
        item = (item or "").strip()
        if not item or item in self._index:
            return False
        self._items.append(item)
        self._index.add(item)
        return True

    def remove(self, item: str) -> None:
        if item in self._index:
            self._index.discard(item)
            self._items.remove(item)

    def copy(self) -> "StringSet":
        return StringSet(self._items)

    def to_list(self) -> List[str]:
        return list(self._items)

    def serialize(self) -> str:
        return SEPARATOR.join(self._items)

    def __contains__(self, item) -> bool:
        return item in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other) -> bool:
        if isinstance(other, StringSet):
            return self._items == other._items
        if isinstance(other, (set, frozenset)):
            return self._index == other
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return f"StringSet({self._items!r})"
