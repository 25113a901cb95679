"""Multi-version skip list used as the in-memory table."""

from __future__ import annotations

import logging
import random
from typing import Callable, Iterator, Optional

_log = logging.getLogger(__name__)

_TRANC_ID_SIZE = 8


def _nbytes(text: str) -> int:
    return len(text.encode("utf-8", "surrogateescape"))


class _Node:
    __slots__ = ("key", "value", "tranc_id", "forward", "backward")

    def __init__(self, key: str, value: str, level: int, tranc_id: int) -> None:
        self.key = key
        self.value = value
        self.tranc_id = tranc_id
        self.forward: list[Optional[_Node]] = [None] * level
        self.backward: list[Optional[_Node]] = [None] * level

    def order(self) -> tuple[str, int]:
        # Keys ascend; for equal keys the newest transaction comes first.
        return (self.key, -self.tranc_id)

    def __lt__(self, other: "_Node") -> bool:
        return self.order() < other.order()


class SkipListIterator:
    """Position in the bottom level of a skip list; also a Python iterator of (key, value)."""

    __slots__ = ("_node",)

    def __init__(self, node: Optional[_Node] = None) -> None:
        self._node = node

    def _current(self) -> _Node:
        if self._node is None:
            raise ValueError("Dereferencing invalid iterator")
        return self._node

    def is_end(self) -> bool:
        return self._node is None

    def is_valid(self) -> bool:
        return self._node is not None and self._node.key != ""

    def key(self) -> str:
        return self._current().key

    def value(self) -> str:
        return self._current().value

    def tranc_id(self) -> int:
        return self._current().tranc_id

    def advance(self) -> "SkipListIterator":
        """Move to the next entry in place and return self."""
        if self._node is not None:
            self._node = self._node.forward[0]
        return self

    def __iter__(self) -> "SkipListIterator":
        return self

    def __next__(self) -> tuple[str, str]:
        node = self._node
        if node is None:
            raise StopIteration
        self._node = node.forward[0]
        return node.key, node.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SkipListIterator):
            return NotImplemented
        return self._node is other._node

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._node is None:
            return "SkipListIterator(end)"
        return f"SkipListIterator({self._node.key!r}, tranc_id={self._node.tranc_id})"


class SkipList:
    """Ordered multi-version key/value list with probabilistic levels."""

    def __init__(self, max_level: int = 16) -> None:
        if max_level < 1:
            raise ValueError("max_level must be at least 1")
        self.max_level = max_level
        self.current_level = 1
        self._head = _Node("", "", max_level, 0)
        self._size_bytes = 0
        self._rng = random.Random()

    def _random_level(self) -> int:
        level = 1
        while self._rng.getrandbits(1) and level < self.max_level:
            level += 1
        return level

    def _seek(self, key: str) -> Optional[_Node]:
        """First bottom-level node whose key is not less than ``key``."""
        current = self._head
        for i in range(self.current_level - 1, -1, -1):
            while current.forward[i] is not None and current.forward[i].key < key:
                current = current.forward[i]
        return current.forward[0]

    def put(self, key: str, value: str, tranc_id: int = 0) -> None:
        """Insert a version of ``key``, or overwrite the same key and transaction."""
        update: list[Optional[_Node]] = [None] * self.max_level
        new_level = max(self._random_level(), self.current_level)
        new_node = _Node(key, value, new_level, tranc_id)

        current = self._head
        for i in range(self.current_level - 1, -1, -1):
            while current.forward[i] is not None and current.forward[i] < new_node:
                current = current.forward[i]
            update[i] = current

        existing = current.forward[0]
        if existing is not None and existing.key == key and existing.tranc_id == tranc_id:
            self._size_bytes += _nbytes(value) - _nbytes(existing.value)
            existing.value = value
            return

        for i in range(self.current_level, new_level):
            update[i] = self._head

        random_bits = self._rng.getrandbits(self.max_level)
        self._size_bytes += _nbytes(key) + _nbytes(value) + _TRANC_ID_SIZE

        grows = new_level > self.current_level
        for i in range(new_level):
            if not (i == 0 or grows or random_bits & (1 << i)):
                break
            prev = update[i]
            nxt = prev.forward[i]
            new_node.forward[i] = nxt
            if nxt is not None:
                nxt.backward[i] = new_node
            prev.forward[i] = new_node
            new_node.backward[i] = prev

        self.current_level = new_level

    def get(self, key: str, tranc_id: int = 0) -> SkipListIterator:
        """Find ``key``; with a non-zero ``tranc_id`` only versions at or below it are visible."""
        current = self._seek(key)
        if tranc_id == 0:
            if current is not None and current.key == key:
                return SkipListIterator(current)
        else:
            while current is not None and current.key == key:
                if current.tranc_id <= tranc_id:
                    return SkipListIterator(current)
                current = current.forward[0]
        _log.debug("skiplist get(%r): not found", key)
        return SkipListIterator()

    def remove(self, key: str) -> None:
        """Physically unlink the newest version of ``key``."""
        update: list[_Node] = [self._head] * self.max_level
        current = self._head
        for i in range(len(self._head.forward) - 1, -1, -1):
            while current.forward[i] is not None and current.forward[i].key < key:
                current = current.forward[i]
            update[i] = current

        target = current.forward[0]
        if target is None or target.key != key:
            return

        for i in range(self.current_level):
            if update[i].forward[i] is not target:
                break
            update[i].forward[i] = target.forward[i]

        for i in range(min(len(target.backward), self.current_level)):
            nxt = target.forward[i]
            if nxt is not None:
                nxt.backward[i] = update[i]

        self._size_bytes -= _nbytes(key) + _nbytes(target.value) + _TRANC_ID_SIZE

        while self.current_level > 1 and self._head.forward[self.current_level - 1] is None:
            self.current_level -= 1

    def flush(self) -> list[tuple[str, str, int]]:
        """Every entry in order as (key, value, tranc_id)."""
        data = []
        node = self._head.forward[0]
        while node is not None:
            data.append((node.key, node.value, node.tranc_id))
            node = node.forward[0]
        _log.debug("skiplist flush: %d entries", len(data))
        return data

    def size(self) -> int:
        """Approximate memory footprint in bytes."""
        return self._size_bytes

    def clear(self) -> None:
        self._head = _Node("", "", self.max_level, 0)
        self.current_level = 1
        self._size_bytes = 0

    def begin(self) -> SkipListIterator:
        return SkipListIterator(self._head.forward[0])

    def end(self) -> SkipListIterator:
        return SkipListIterator()

    def begin_prefix(self, prefix: str) -> SkipListIterator:
        """First entry whose key is at least ``prefix``."""
        return SkipListIterator(self._seek(prefix))

    def end_prefix(self, prefix: str) -> SkipListIterator:
        """First entry after ``prefix``'s range that does not start with it."""
        current = self._seek(prefix)
        while current is not None and current.key.startswith(prefix):
            current = current.forward[0]
        return SkipListIterator(current)

    def iters_monotony_predicate(
        self, predicate: Callable[[str], int]
    ) -> Optional[tuple[SkipListIterator, SkipListIterator]]:
        """Half-open range of keys where ``predicate`` is 0, or None.

        ``predicate`` returns 0 inside the range, a positive number for keys
        left of it and a negative number for keys right of it.
        """
        current = self._head
        found = False
        for i in range(self.current_level - 1, -1, -1):
            while not found:
                nxt = current.forward[i]
                if nxt is None:
                    break
                direction = predicate(nxt.key)
                if direction == 0:
                    found = True
                    current = nxt
                    break
                if direction < 0:
                    break
                current = nxt

        if not found:
            return None

        last = current
        for i in range(len(current.backward) - 1, -1, -1):
            while True:
                prev = current.backward[i]
                if prev is None or prev is self._head:
                    break
                direction = predicate(prev.key)
                if direction == 0:
                    current = prev
                elif direction > 0:
                    break
                else:
                    raise RuntimeError("iters_predicate: invalid direction")

        for i in range(len(last.forward) - 1, -1, -1):
            while True:
                nxt = last.forward[i]
                if nxt is None:
                    break
                direction = predicate(nxt.key)
                if direction == 0:
                    last = nxt
                elif direction < 0:
                    break
                else:
                    raise RuntimeError("iters_predicate: invalid direction")

        return SkipListIterator(current), SkipListIterator(last.forward[0])

    def dump(self) -> str:
        """Text picture of every active level."""
        lines = []
        for level in range(self.current_level):
            keys = []
            node = self._head.forward[level]
            while node is not None:
                keys.append(node.key)
                node = node.forward[level]
            lines.append(f"Level {level}: " + " -> ".join(keys))
        return "\n".join(lines)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return self.begin()