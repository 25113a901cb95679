"""Sorted-set and set commands plus a command dispatcher on top of RedisCore."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from .redis_core import EMPTY_ARRAY, NIL, RedisConfig, RedisCore


def _bulk(value: str) -> str:
    return f"${len(value)}\r\n{value}\r\n"


def _integer(number) -> str:
    return f":{number}\r\n"


def _array(items: Iterable[str]) -> str:
    items = list(items)
    return f"*{len(items)}\r\n" + "".join(_bulk(item) for item in items)


def _wrong_args(command: str) -> str:
    return f"-ERR wrong number of arguments for '{command}' command\r\n"


def _leading_int(text: str) -> int:
    """Integer part of a numeric string, as a C ``stol`` would read it."""
    return int(float(text))


class RedisWrapper(RedisCore):
    """Full command set: strings, hashes, lists, sorted sets and sets."""

    def __init__(self, store=None, config: Optional[RedisConfig] = None) -> None:
        super().__init__(store, config)
        self._commands: dict[str, tuple[int, Callable[[list[str]], str]]] = {
            "SET": (3, lambda a: self.redis_set(a[1], a[2])),
            "GET": (2, lambda a: self.redis_get(a[1])),
            "DEL": (2, lambda a: self.redis_del(a[1:])),
            "INCR": (2, lambda a: self.redis_incr(a[1])),
            "DECR": (2, lambda a: self.redis_decr(a[1])),
            "EXPIRE": (3, lambda a: self.redis_expire(a[1], a[2])),
            "TTL": (2, lambda a: self.redis_ttl(a[1])),
            "HSET": (4, self._cmd_hset),
            "HGET": (3, lambda a: self.redis_hget(a[1], a[2])),
            "HDEL": (3, lambda a: self.redis_hdel(a[1], a[2])),
            "HKEYS": (2, lambda a: self.redis_hkeys(a[1])),
            "LPUSH": (3, lambda a: self.redis_lpush(a[1], a[2])),
            "RPUSH": (3, lambda a: self.redis_rpush(a[1], a[2])),
            "LPOP": (2, lambda a: self.redis_lpop(a[1])),
            "RPOP": (2, lambda a: self.redis_rpop(a[1])),
            "LLEN": (2, lambda a: self.redis_llen(a[1])),
            "LRANGE": (4, lambda a: self.redis_lrange(a[1], int(a[2]), int(a[3]))),
            "ZADD": (4, self._cmd_zadd),
            "ZREM": (3, lambda a: self.redis_zrem(a[1], a[2:])),
            "ZRANGE": (4, lambda a: self.redis_zrange(a[1], int(a[2]), int(a[3]))),
            "ZCARD": (2, lambda a: self.redis_zcard(a[1])),
            "ZSCORE": (3, lambda a: self.redis_zscore(a[1], a[2])),
            "ZINCRBY": (4, lambda a: self.redis_zincrby(a[1], a[2], a[3])),
            "ZRANK": (3, lambda a: self.redis_zrank(a[1], a[2])),
            "SADD": (3, lambda a: self.redis_sadd(a[1], a[2:])),
            "SREM": (3, lambda a: self.redis_srem(a[1], a[2:])),
            "SISMEMBER": (3, lambda a: self.redis_sismember(a[1], a[2])),
            "SCARD": (2, lambda a: self.redis_scard(a[1])),
            "SMEMBERS": (2, lambda a: self.redis_smembers(a[1])),
        }

    # ---- key layout -------------------------------------------------------

    def _zset_prefix(self, key: str) -> str:
        return f"{self.config.sorted_set_prefix}{key}_"

    def _zset_score_prefix(self, key: str) -> str:
        return f"{self.config.sorted_set_prefix}{key}_SCORE_"

    def _zset_score_key(self, key: str, score: str) -> str:
        padded = str(score).rjust(self.config.sorted_set_score_len, "0")
        return self._zset_score_prefix(key) + padded

    def _zset_elem_key(self, key: str, elem: str) -> str:
        return f"{self.config.sorted_set_prefix}{key}_ELEM_{elem}"

    def _set_prefix(self, key: str) -> str:
        return f"{self.config.set_prefix}{key}_"

    def _set_member_key(self, key: str, member: str) -> str:
        return self._set_prefix(key) + member

    def _expire_zset_clean(self, key: str) -> bool:
        return self._expire_clean_with_prefix(key, self._zset_prefix(key))

    def _expire_set_clean(self, key: str) -> bool:
        return self._expire_clean_with_prefix(key, self._set_prefix(key))

    # ---- sorted sets ------------------------------------------------------

    def redis_zadd(self, key: str, score_members: Iterable[tuple]) -> str:
        """Add (score, member) pairs; counts members added or re-scored."""
        with self._lock:
            self._expire_zset_clean(key)
            puts: list[tuple[str, str]] = []
            removes: list[str] = []
            if self.store.get(key) is None:
                puts.append((key, self._zset_prefix(key)))
            added = 0
            for score, elem in score_members:
                score = str(score)
                elem_key = self._zset_elem_key(key, elem)
                old_score = self.store.get(elem_key)
                if old_score is not None:
                    if old_score == score:
                        continue
                    removes.append(self._zset_score_key(key, old_score))
                puts.append((self._zset_score_key(key, score), elem))
                puts.append((elem_key, score))
                added += 1
            self.store.remove_batch(removes)
            self.store.put_batch(puts)
            return _integer(added)

    def redis_zrem(self, key: str, members: Iterable[str]) -> str:
        members = list(members)
        if not members:
            return _wrong_args("zrem")
        with self._lock:
            if self._expire_zset_clean(key):
                return _integer(0)
            removed = 0
            for elem in members:
                elem_key = self._zset_elem_key(key, elem)
                score = self.store.get(elem_key)
                if score is not None:
                    self.store.remove(elem_key)
                    self.store.remove(self._zset_score_key(key, score))
                    removed += 1
            return _integer(removed)

    def _zset_members(self, key: str) -> list[str]:
        return [elem for _, elem in self._scan_prefix(self._zset_score_prefix(key))]

    def redis_zrange(self, key: str, start, stop) -> str:
        start, stop = int(start), int(stop)
        with self._lock:
            if self._expire_zset_clean(key):
                return EMPTY_ARRAY
            members = self._zset_members(key)
            if not members:
                return EMPTY_ARRAY
            count = len(members)
            if start < 0:
                start += count
            if stop < 0:
                stop += count
            start = max(start, 0)
            stop = min(stop, count - 1)
            if start > stop:
                return EMPTY_ARRAY
            return _array(members[start:stop + 1])

    def redis_zcard(self, key: str) -> str:
        with self._lock:
            if self._expire_zset_clean(key):
                return _integer(0)
            return _integer(len(self._zset_members(key)))

    def redis_zscore(self, key: str, elem: str) -> str:
        with self._lock:
            if self._expire_zset_clean(key):
                return NIL
            score = self.store.get(self._zset_elem_key(key, elem))
            return NIL if score is None else _bulk(score)

    def redis_zincrby(self, key: str, increment, elem: str) -> str:
        """Add ``increment`` to ``elem``'s score, creating it if absent."""
        with self._lock:
            self._expire_zset_clean(key)
            elem_key = self._zset_elem_key(key, elem)
            old_score = self.store.get(elem_key)
            if old_score is not None:
                new_score = int(_leading_int(old_score) + float(increment))
                self.store.remove(self._zset_score_key(key, old_score))
            else:
                new_score = int(float(increment))
            new_text = str(new_score)
            self.store.put(elem_key, new_text)
            self.store.put(self._zset_score_key(key, new_text), elem)
            return _integer(new_text)

    def redis_zrank(self, key: str, elem: str) -> str:
        with self._lock:
            if self._expire_zset_clean(key):
                return NIL
            score = self.store.get(self._zset_elem_key(key, elem))
            if score is None:
                return NIL
            target = self._zset_score_key(key, score)
            for rank, (score_key, _) in enumerate(
                self._scan_prefix(self._zset_score_prefix(key))
            ):
                if score_key == target:
                    return _integer(rank)
            return NIL

    # ---- sets -------------------------------------------------------------

    def redis_sadd(self, key: str, members: Iterable[str]) -> str:
        with self._lock:
            self._expire_set_clean(key)
            new_keys: dict[str, None] = {}
            for member in members:
                member_key = self._set_member_key(key, member)
                if self.store.get(member_key) is None:
                    new_keys[member_key] = None
            size = len(new_keys)
            previous = self.store.get(key)
            if previous is not None:
                size += int(previous)
            puts = [(member_key, "1") for member_key in new_keys]
            puts.append((key, str(size)))
            self.store.put_batch(puts)
            return _integer(len(new_keys))

    def redis_srem(self, key: str, members: Iterable[str]) -> str:
        with self._lock:
            if self._expire_set_clean(key):
                return _integer(0)
            doomed: dict[str, None] = {}
            for member in members:
                member_key = self._set_member_key(key, member)
                if self.store.get(member_key) is not None:
                    doomed[member_key] = None
            size = -len(doomed)
            previous = self.store.get(key)
            if previous is not None:
                size += int(previous)
            self.store.put(key, str(size))
            self.store.remove_batch(list(doomed))
            return _integer(len(doomed))

    def redis_sismember(self, key: str, member: str) -> str:
        with self._lock:
            if self._expire_set_clean(key):
                return _integer(0)
            present = self.store.get(self._set_member_key(key, member)) is not None
            return _integer(1 if present else 0)

    def redis_scard(self, key: str) -> str:
        with self._lock:
            if self._expire_set_clean(key):
                return _integer(0)
            size = self.store.get(key)
            return _integer(0 if size is None else size)

    def redis_smembers(self, key: str) -> str:
        with self._lock:
            if self._expire_set_clean(key):
                return EMPTY_ARRAY
            prefix = self._set_prefix(key)
            return _array(k[len(prefix):] for k, _ in self._scan_prefix(prefix))

    # ---- dispatch ---------------------------------------------------------

    def _cmd_hset(self, args: list[str]) -> str:
        if len(args) < 4 or (len(args) - 1) % 2 != 1:
            return _wrong_args("hset")
        pairs = list(zip(args[2::2], args[3::2]))
        return self.redis_hset_batch(args[1], pairs)

    def _cmd_zadd(self, args: list[str]) -> str:
        if (len(args) - 2) % 2 != 0:
            return _wrong_args("zadd")
        return self.redis_zadd(args[1], list(zip(args[2::2], args[3::2])))

    def execute(self, args: Iterable) -> str:
        """Run one command given as ``[name, arg, ...]`` and return its reply."""
        args = [str(a) for a in args]
        if not args:
            return "-ERR empty command\r\n"
        name = args[0].upper()
        spec = self._commands.get(name)
        if spec is None:
            return f"-ERR unknown command '{args[0]}'\r\n"
        arity, handler = spec
        if len(args) < arity:
            return _wrong_args(name.lower())
        try:
            return handler(args)
        except ValueError:
            return "-ERR value is not an integer or out of range\r\n"