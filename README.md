# tinylsm

Building blocks of a small log-structured merge-tree key-value store, and a
Redis-style command layer that answers in the Redis serialisation protocol
(RESP) on top of an ordered key-value store.

No third-party libraries are needed.

## Modules

- `tinylsm.bloom_filter`: `BloomFilter(expected_elements, false_positive_rate)`
  sizes its bit array and hash count from the two parameters. `add`,
  `possibly_contains` (also `key in bf`) and `clear`; `encode()` gives bytes
  (a little-endian header followed by the bit array) and
  `BloomFilter.decode(data)` rebuilds the filter.
- `tinylsm.files`: `StdFile` (buffered random-access I/O) and `MmapFile`
  (memory-mapped) backends, wrapped by `FileObj`. `FileObj.open(path, create)`
  and `FileObj.create_and_write(path, buf)` build one; it offers
  bounds-checked `read_to_slice`, little-endian `read_uint8/16/32/64`,
  `write`, `append`, `sync`, `delete` and `close`, and works as a context
  manager. Reads past the end of the file raise `IndexError`.
- `tinylsm.record`: `Record` (with `create`, `commit`, `rollback`, `put` and
  `delete` constructors) and `OperationType`. `Record.encode()` produces the
  binary form; `Record.decode(data)` turns a concatenation of encoded records
  back into a list and raises `ValueError` on truncated data.
- `tinylsm.skiplist`: `SkipList(max_level)`, a memtable that keeps several
  versions of a key ordered by transaction id (newest first). `put`, `get`
  (with a transaction id, only versions at or below it are visible), `remove`,
  `flush` (all `(key, value, tranc_id)` tuples in order), `size` (approximate
  bytes), `clear`, `begin`/`end`, `begin_prefix`/`end_prefix`,
  `iters_monotony_predicate` and `dump`. Iterating a `SkipList` yields
  `(key, value)` pairs; `SkipListIterator` also has `key()`, `value()`,
  `tranc_id()` and `advance()`.
- `tinylsm.wal`: `WAL(log_dir, buffer_size, max_finished_tranc_id,
  clean_interval, file_size_limit)` creates `log_dir` if needed, buffers
  records in `log(records, force_flush)`, writes them to `wal.<seq>` files and
  starts a new file once the active one grows past `file_size_limit`. A
  background thread calls `clean_wal_files()` every `clean_interval` seconds,
  deleting rotated files whose transactions are all at or below the value
  given to `set_max_finished_tranc_id`. `WAL.recover(log_dir,
  max_flushed_tranc_id)` returns the records of newer transactions as a dict
  keyed by transaction id. `close()` (or leaving a `with` block) flushes and
  stops the cleaner.
- `tinylsm.redis_core`: `RedisCore(store=None, config=None)` with string,
  counter, expiry, hash and list commands (`redis_set`, `redis_get`,
  `redis_del`, `redis_incr`, `redis_decr`, `redis_expire`, `redis_ttl`,
  `redis_hset`, `redis_hset_batch`, `redis_hget`, `redis_hdel`, `redis_hkeys`,
  `redis_lpush`, `redis_rpush`, `redis_lpop`, `redis_rpop`, `redis_llen`,
  `redis_lrange`), plus `clear` and `flushall` (which returns a snapshot of
  every entry). `RedisConfig` holds the key prefixes and separators used to
  lay Redis types out as flat keys.
- `tinylsm.redis_wrapper`: `RedisWrapper` extends `RedisCore` with sorted sets
  (`redis_zadd`, `redis_zrem`, `redis_zrange`, `redis_zcard`, `redis_zscore`,
  `redis_zincrby`, `redis_zrank`), sets (`redis_sadd`, `redis_srem`,
  `redis_sismember`, `redis_scard`, `redis_smembers`) and `execute(args)`,
  which dispatches a command given as a list such as `["SET", "k", "v"]`.

Without a `store`, the Redis layer keeps its data in an in-memory `SkipList`.
Any object with `get`, `put`, `remove`, `put_batch`, `remove_batch`,
`scan_prefix`, `clear` and `flush` can be passed instead.

Replies are RESP strings, except `redis_incr` and `redis_decr`, which return
the new value as plain text. Sorted-set scores are stored as text, left-padded
with zeros, so members are ordered by score for non-negative integer scores.
Expired keys are removed lazily when they are next touched.

## Installation

```
pip install .
```

Tests:

```
pip install .[test]
pytest
```

## Examples

```python
from tinylsm.skiplist import SkipList
from tinylsm.record import Record
from tinylsm.wal import WAL

memtable = SkipList(16)
memtable.put("apple", "red", 1)
memtable.put("banana", "yellow", 2)
print(memtable.get("apple", 0).value())  # red
print(list(memtable))                    # [('apple', 'red'), ('banana', 'yellow')]

with WAL("/tmp/wal-demo", 16, 0, 1, 4096) as wal:
    wal.log([Record.create(1), Record.put(1, "apple", "red"), Record.commit(1)], True)

print(WAL.recover("/tmp/wal-demo", 0))   # {1: [Record(...), Record(...), Record(...)]}
```

```python
from tinylsm.redis_wrapper import RedisWrapper

redis = RedisWrapper()
redis.execute(["SET", "greeting", "hello"])      # '+OK\r\n'
redis.execute(["GET", "greeting"])               # '$5\r\nhello\r\n'
redis.execute(["ZADD", "board", "10", "alice"])  # ':1\r\n'
redis.execute(["ZRANGE", "board", "0", "-1"])    # '*1\r\n$5\r\nalice\r\n'
redis.execute(["NOPE"])                          # "-ERR unknown command 'NOPE'\r\n"
```

## What this package does not do

- It has no network server: commands are run by calling `execute` or the
  `redis_*` methods directly.
- It has no on-disk sorted table files, compaction or storage engine that
  ties the skip list, the WAL and the Bloom filter together; the Redis layer's
  default store lives in memory only and is lost when the process ends.