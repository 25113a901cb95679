"""Write-ahead log records and their binary encoding."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

_HEADER = struct.Struct("<HQB")
_LEN = struct.Struct("<H")


class OperationType(enum.IntEnum):
    CREATE = 0
    COMMIT = 1
    ROLLBACK = 2
    PUT = 3
    DELETE = 4


def _to_bytes(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _to_str(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


@dataclass(frozen=True, eq=False)
class Record:
    """One transaction log entry."""

    tranc_id: int
    operation_type: OperationType
    key: str = ""
    value: str = ""

    @classmethod
    def create(cls, tranc_id: int) -> "Record":
        return cls(tranc_id, OperationType.CREATE)

    @classmethod
    def commit(cls, tranc_id: int) -> "Record":
        return cls(tranc_id, OperationType.COMMIT)

    @classmethod
    def rollback(cls, tranc_id: int) -> "Record":
        return cls(tranc_id, OperationType.ROLLBACK)

    @classmethod
    def put(cls, tranc_id: int, key: str, value: str) -> "Record":
        return cls(tranc_id, OperationType.PUT, key, value)

    @classmethod
    def delete(cls, tranc_id: int, key: str) -> "Record":
        return cls(tranc_id, OperationType.DELETE, key)

    @property
    def record_len(self) -> int:
        """Encoded size in bytes, including the length field itself."""
        size = _HEADER.size
        if self.operation_type in (OperationType.PUT, OperationType.DELETE):
            size += _LEN.size + len(_to_bytes(self.key))
        if self.operation_type is OperationType.PUT:
            size += _LEN.size + len(_to_bytes(self.value))
        return size

    def encode(self) -> bytes:
        length = self.record_len
        if length > 0xFFFF:
            raise ValueError("record too large to encode")
        parts = [_HEADER.pack(length, self.tranc_id, int(self.operation_type))]
        if self.operation_type in (OperationType.PUT, OperationType.DELETE):
            key = _to_bytes(self.key)
            parts += [_LEN.pack(len(key)), key]
        if self.operation_type is OperationType.PUT:
            value = _to_bytes(self.value)
            parts += [_LEN.pack(len(value)), value]
        return b"".join(parts)

    @staticmethod
    def decode(data: bytes) -> list["Record"]:
        """Decode a concatenation of encoded records."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            return []

        def take(pos: int, n: int) -> bytes:
            if pos + n > len(data):
                raise ValueError("Data length does not match record length")
            return data[pos:pos + n]

        records = []
        pos = 0
        while pos < len(data):
            record_len, tranc_id, op = _HEADER.unpack(take(pos, _HEADER.size))
            if len(data) < record_len:
                raise ValueError("Data length does not match record length")
            pos += _HEADER.size
            op_type = OperationType(op)
            key = value = ""
            if op_type in (OperationType.PUT, OperationType.DELETE):
                (key_len,) = _LEN.unpack(take(pos, _LEN.size))
                pos += _LEN.size
                key = _to_str(take(pos, key_len))
                pos += key_len
            if op_type is OperationType.PUT:
                (value_len,) = _LEN.unpack(take(pos, _LEN.size))
                pos += _LEN.size
                value = _to_str(take(pos, value_len))
                pos += value_len
            records.append(Record(tranc_id, op_type, key, value))
        return records

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        if (self.tranc_id, self.operation_type) != (other.tranc_id, other.operation_type):
            return False
        if self.operation_type in (
            OperationType.CREATE,
            OperationType.COMMIT,
            OperationType.ROLLBACK,
        ):
            return True
        if self.operation_type is OperationType.DELETE:
            return self.key == other.key
        return self.key == other.key and self.value == other.value

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return (
            f"Record: tranc_id={self.tranc_id}, "
            f"operation_type={int(self.operation_type)}, "
            f"key={self.key}, value={self.value}"
        )