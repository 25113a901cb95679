"""Redis-style string, hash and list commands over an ordered key/value store."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .skiplist import SkipList

NIL = "$-1\r\n"
EMPTY_ARRAY = "*0\r\n"
OK = "+OK\r\n"


@dataclass(frozen=True)
class RedisConfig:
    """Key layout used to map Redis data types onto flat keys."""

    hash_value_prefix: str = "REDIS_HASH_VALUE_"
    field_separator: str = "$"
    field_prefix: str = "REDIS_FIELD_"
    expire_header: str = "REDIS_EXPIRE_"
    list_separator: str = "#"
    sorted_set_prefix: str = "REDIS_SORTED_SET_"
    sorted_set_score_len: int = 32
    set_prefix: str = "REDIS_SET_"


def _prefix_predicate(prefix: str):
    size = len(prefix)

    def predicate(key: str) -> int:
        head = key[:size]
        if head == prefix:
            return 0
        return 1 if head < prefix else -1

    return predicate


class _MemoryStore:
    """In-memory store backed by a skip list."""

    def __init__(self) -> None:
        self._list = SkipList()

    def get(self, key: str) -> Optional[str]:
        it = self._list.get(key, 0)
        return None if it.is_end() else it.value()

    def put(self, key: str, value: str) -> None:
        self._list.put(key, value, 0)

    def remove(self, key: str) -> None:
        self._list.remove(key)

    def put_batch(self, pairs: Iterable[tuple[str, str]]) -> None:
        for key, value in pairs:
            self.put(key, value)

    def remove_batch(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)

    def scan_prefix(self, prefix: str) -> Iterator[tuple[str, str]]:
        found = self._list.iters_monotony_predicate(_prefix_predicate(prefix))
        if found is None:
            return
        it, end = found
        while it != end:
            yield it.key(), it.value()
            it.advance()

    def clear(self) -> None:
        self._list.clear()

    def flush(self) -> list[tuple[str, str, int]]:
        """Snapshot of every entry in key order."""
        return self._list.flush()


def _bulk(value: str) -> str:
    return f"${len(value)}\r\n{value}\r\n"


def _integer(number) -> str:
    return f":{number}\r\n"


def _array(items: Iterable[str]) -> str:
    items = list(items)
    return f"*{len(items)}\r\n" + "".join(_bulk(item) for item in items)


def _split(text: str, sep: str) -> list[str]:
    """Split like reading tokens up to ``sep``: no token for a trailing separator."""
    if not text:
        return []
    parts = text.split(sep)
    if parts[-1] == "":
        parts.pop()
    return parts


def _now() -> int:
    return int(time.time())


def _is_expired(expire_value: Optional[str]) -> bool:
    if expire_value is None:
        return False
    return int(expire_value) < _now()


class RedisCore:
    """Basic, hash and list commands returning RESP-encoded replies.

    ``store`` needs ``get``, ``put``, ``remove``, ``put_batch``,
    ``remove_batch``, ``scan_prefix``, ``clear`` and ``flush``; an in-memory
    store is used when none is given.
    """

    def __init__(self, store=None, config: Optional[RedisConfig] = None) -> None:
        self.store = store if store is not None else _MemoryStore()
        self.config = config if config is not None else RedisConfig()
        self._lock = threading.RLock()

    # ---- key layout -------------------------------------------------------

    def _expire_key(self, key: str) -> str:
        return self.config.expire_header + key

    def _hash_field_key(self, key: str, field: str) -> str:
        return f"{self.config.field_prefix}{key}_{field}"

    def _fields_of(self, hash_value: Optional[str]) -> list[str]:
        text = hash_value or ""
        if text:
            text = text[len(self.config.hash_value_prefix):]
        return _split(text, self.config.field_separator)

    def _hash_value(self, fields: list[str]) -> str:
        return self.config.hash_value_prefix + self.config.field_separator.join(fields)

    def _is_hash_value(self, value: str) -> bool:
        return value.startswith(self.config.hash_value_prefix)

    def _list_items(self, key: str) -> Optional[list[str]]:
        value = self.store.get(key)
        if value is None:
            return None
        return _split(value, self.config.list_separator)

    def _scan_prefix(self, prefix: str) -> list[tuple[str, str]]:
        return list(self.store.scan_prefix(prefix))

    # ---- expiry cleanup ---------------------------------------------------

    def _expire_hash_clean(self, key: str) -> bool:
        expire_key = self._expire_key(key)
        if not _is_expired(self.store.get(expire_key)):
            return False
        for field in self._fields_of(self.store.get(key)):
            self.store.remove(self._hash_field_key(key, field))
        self.store.remove(key)
        self.store.remove(expire_key)
        return True

    def _expire_list_clean(self, key: str) -> bool:
        expire_key = self._expire_key(key)
        if not _is_expired(self.store.get(expire_key)):
            return False
        self.store.remove(key)
        self.store.remove(expire_key)
        return True

    def _expire_clean_with_prefix(self, key: str, prefix: str) -> bool:
        """Drop an expired ``key`` together with every entry under ``prefix``."""
        expire_key = self._expire_key(key)
        if not _is_expired(self.store.get(expire_key)):
            return False
        self.store.remove(key)
        self.store.remove(expire_key)
        self.store.remove_batch([k for k, _ in self._scan_prefix(prefix)])
        return True

    # ---- basic commands ---------------------------------------------------

    def redis_set(self, key: str, value: str) -> str:
        with self._lock:
            self.store.put(key, value)
            expire_key = self._expire_key(key)
            if self.store.get(expire_key) is not None:
                self.store.remove(expire_key)
            return OK

    def redis_get(self, key: str) -> str:
        with self._lock:
            value = self.store.get(key)
            expire_key = self._expire_key(key)
            expire_value = self.store.get(expire_key)
            if value is not None:
                if _is_expired(expire_value):
                    self.store.remove(key)
                    self.store.remove(expire_key)
                    return NIL
                return _bulk(value)
            if expire_value is not None:
                self.store.remove(expire_key)
            return NIL

    def redis_del(self, keys: Iterable[str]) -> str:
        with self._lock:
            deleted = 0
            for key in keys:
                value = self.store.get(key)
                if value is not None:
                    if self._is_hash_value(value):
                        for field in self._fields_of(value):
                            self.store.remove(self._hash_field_key(key, field))
                    self.store.remove(key)
                    deleted += 1
                expire_key = self._expire_key(key)
                if self.store.get(expire_key) is not None:
                    self.store.remove(expire_key)
            return _integer(deleted)

    def _add_to_counter(self, key: str, delta: int) -> str:
        with self._lock:
            current = self.store.get(key)
            new_value = str(delta if current is None else int(current) + delta)
            self.store.put(key, new_value)
            return new_value

    def redis_incr(self, key: str) -> str:
        """Increment the integer at ``key``; returns the new value as plain text."""
        return self._add_to_counter(key, 1)

    def redis_decr(self, key: str) -> str:
        """Decrement the integer at ``key``; returns the new value as plain text."""
        return self._add_to_counter(key, -1)

    def redis_expire(self, key: str, seconds) -> str:
        with self._lock:
            self.store.put(self._expire_key(key), str(_now() + int(seconds)))
            return _integer(1)

    def redis_ttl(self, key: str) -> str:
        with self._lock:
            if self.store.get(key) is None:
                return _integer(-1)
            expire_value = self.store.get(self._expire_key(key))
            if expire_value is None:
                return _integer(-1)
            now = _now()
            deadline = int(expire_value)
            if deadline < now:
                return _integer(-2)
            return _integer(deadline - now)

    # ---- hash commands ----------------------------------------------------

    def redis_hset_batch(self, key: str, pairs: Iterable[tuple[str, str]]) -> str:
        with self._lock:
            self._expire_hash_clean(key)
            fields = self._fields_of(self.store.get(key))
            known = set(fields)
            added = 0
            for field, value in pairs:
                self.store.put(self._hash_field_key(key, field), value)
                if field not in known:
                    fields.append(field)
                    known.add(field)
                    added += 1
            self.store.put(key, self._hash_value(fields))
            return _integer(added)

    def redis_hset(self, key: str, field: str, value: str) -> str:
        with self._lock:
            self._expire_hash_clean(key)
            self.store.put(self._hash_field_key(key, field), value)
            fields = self._fields_of(self.store.get(key))
            if field not in fields:
                fields.append(field)
                self.store.put(key, self._hash_value(fields))
            return OK

    def redis_hget(self, key: str, field: str) -> str:
        with self._lock:
            if self._expire_hash_clean(key):
                return NIL
            value = self.store.get(self._hash_field_key(key, field))
            return NIL if value is None else _bulk(value)

    def redis_hdel(self, key: str, field: str) -> str:
        with self._lock:
            if self._expire_hash_clean(key):
                return _integer(0)
            deleted = 0
            field_key = self._hash_field_key(key, field)
            if self.store.get(field_key) is not None:
                deleted += 1
                self.store.remove(field_key)
            fields = self._fields_of(self.store.get(key))
            if field in fields:
                fields.remove(field)
                if fields:
                    self.store.put(key, self._hash_value(fields))
                else:
                    self.store.remove(key)
            return _integer(deleted)

    def redis_hkeys(self, key: str) -> str:
        with self._lock:
            if self._expire_hash_clean(key):
                return EMPTY_ARRAY
            return _array(self._fields_of(self.store.get(key)))

    # ---- list commands ----------------------------------------------------

    def _push(self, key: str, value: str, left: bool) -> str:
        with self._lock:
            self._expire_list_clean(key)
            sep = self.config.list_separator
            current = self.store.get(key) or ""
            if current:
                current = value + sep + current if left else current + sep + value
            else:
                current = value
            self.store.put(key, current)
            return _integer(len(_split(current, sep)))

    def redis_lpush(self, key: str, value: str) -> str:
        return self._push(key, value, left=True)

    def redis_rpush(self, key: str, value: str) -> str:
        return self._push(key, value, left=False)

    def _pop(self, key: str, left: bool) -> str:
        with self._lock:
            if self._expire_list_clean(key):
                return NIL
            items = self._list_items(key)
            if not items:
                return NIL
            value = items.pop(0) if left else items.pop()
            if items:
                self.store.put(key, self.config.list_separator.join(items))
            else:
                self.store.remove(key)
            return _bulk(value)

    def redis_lpop(self, key: str) -> str:
        return self._pop(key, left=True)

    def redis_rpop(self, key: str) -> str:
        return self._pop(key, left=False)

    def redis_llen(self, key: str) -> str:
        with self._lock:
            if self._expire_list_clean(key):
                return _integer(0)
            items = self._list_items(key)
            return _integer(0 if items is None else len(items))

    def redis_lrange(self, key: str, start, stop) -> str:
        start, stop = int(start), int(stop)
        with self._lock:
            if self._expire_list_clean(key):
                return EMPTY_ARRAY
            items = self._list_items(key)
            if not items:
                return EMPTY_ARRAY
            count = len(items)
            if start < 0:
                start += count
            if stop < 0:
                stop += count
            start = max(start, 0)
            stop = min(stop, count - 1)
            if start > stop:
                return EMPTY_ARRAY
            return _array(items[start:stop + 1])

    # ---- store management -------------------------------------------------

    def clear(self) -> None:
        with self._lock:
            self.store.clear()

    def flushall(self):
        with self._lock:
            return self.store.flush()