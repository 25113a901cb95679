"""Skip list, write-ahead log, Bloom filter, file access and a Redis-style command layer for a small LSM-tree store."""

__version__ = "0.1.0"
__all__ = ["bloom_filter", "files", "record", "skiplist", "wal", "redis_core", "redis_wrapper"]