"""File backends and a byte-oriented file object."""

from __future__ import annotations

import io
import mmap
import os
import struct

_BINARY = getattr(os, "O_BINARY", 0)


class StdFile:
    """Buffered random-access file."""

    def __init__(self) -> None:
        self.filename = ""
        self._file: io.BufferedRandom | None = None

    def _handle(self) -> io.BufferedRandom:
        if self._file is None:
            raise ValueError("file is not open")
        return self._file

    def open(self, filename, create: bool = False) -> None:
        """Open ``filename`` for reading and writing; ``create`` truncates."""
        self.close()
        self.filename = os.fspath(filename)
        self._file = io.open(self.filename, "w+b" if create else "r+b")

    def create(self, filename, buf: bytes) -> None:
        """Create (or truncate) ``filename`` and write ``buf`` to it."""
        self.open(filename, True)
        if buf:
            self.write(0, buf)

    def close(self) -> None:
        if self._file is not None:
            self.sync()
            self._file.close()
            self._file = None

    def size(self) -> int:
        f = self._handle()
        f.flush()
        return os.fstat(f.fileno()).st_size

    def read(self, offset: int, length: int) -> bytes:
        f = self._handle()
        f.seek(offset)
        data = f.read(length)
        if len(data) < length:
            raise OSError("Failed to read from file")
        return data

    def write(self, offset: int, data: bytes) -> None:
        f = self._handle()
        f.seek(offset)
        f.write(bytes(data))

    def sync(self) -> None:
        f = self._handle()
        f.flush()
        os.fsync(f.fileno())

    def remove(self) -> None:
        self.close()
        os.remove(self.filename)


class MmapFile:
    """File accessed through a shared memory mapping."""

    def __init__(self) -> None:
        self.filename = ""
        self._fd = -1
        self._map: mmap.mmap | None = None
        self._size = 0

    def _map_file(self) -> None:
        self._map = mmap.mmap(self._fd, self._size) if self._size > 0 else None

    def _unmap(self) -> None:
        if self._map is not None:
            self._map.close()
            self._map = None

    def open(self, filename, create: bool = False) -> None:
        """Open and map ``filename``; ``create`` allows a new file."""
        self.close()
        self.filename = os.fspath(filename)
        flags = os.O_RDWR | _BINARY | (os.O_CREAT if create else 0)
        self._fd = os.open(self.filename, flags, 0o644)
        try:
            self._size = os.fstat(self._fd).st_size
            self._map_file()
        except OSError:
            self.close()
            raise

    def create(self, filename, buf: bytes) -> None:
        """Create ``filename`` sized to ``buf`` and fill it."""
        self.close()
        self.filename = os.fspath(filename)
        self._fd = os.open(
            self.filename, os.O_RDWR | os.O_CREAT | os.O_TRUNC | _BINARY, 0o644
        )
        try:
            self._size = len(buf)
            os.ftruncate(self._fd, self._size)
            self._map_file()
        except OSError:
            self.close()
            raise
        if self._map is not None:
            self._map[:] = bytes(buf)
        self.sync()

    def close(self) -> None:
        self._unmap()
        if self._fd != -1:
            os.close(self._fd)
            self._fd = -1
        self._size = 0

    def size(self) -> int:
        return self._size

    def read(self, offset: int, length: int) -> bytes:
        if offset < 0 or offset + length > self._size:
            raise ValueError("read beyond mapped region")
        if length == 0:
            return b""
        return self._map[offset:offset + length]

    def write(self, offset: int, data: bytes) -> None:
        """Resize the file to ``offset + len(data)`` and write ``data`` there."""
        if self._fd == -1:
            raise ValueError("file is not open")
        data = bytes(data)
        new_size = offset + len(data)
        self._unmap()
        os.ftruncate(self._fd, new_size)
        self._size = new_size
        self._map_file()
        if data:
            self._map[offset:new_size] = data
        self.sync()

    def sync(self) -> None:
        if self._map is not None:
            self._map.flush()

    def remove(self) -> None:
        self.close()
        os.remove(self.filename)


class FileObj:
    """Byte-level file access with bounds-checked reads."""

    def __init__(self, backend: StdFile | MmapFile | None = None) -> None:
        self._file = backend if backend is not None else StdFile()

    @classmethod
    def open(cls, path, create: bool = False) -> "FileObj":
        obj = cls()
        obj._file.open(path, create)
        return obj

    @classmethod
    def create_and_write(cls, path, buf: bytes) -> "FileObj":
        obj = cls()
        obj._file.create(path, bytes(buf))
        obj._file.sync()
        return obj

    def size(self) -> int:
        return self._file.size()

    def read_to_slice(self, offset: int, length: int) -> bytes:
        if offset < 0 or offset + length > self._file.size():
            raise IndexError("Read beyond file size")
        return self._file.read(offset, length)

    def _read_struct(self, fmt: str, offset: int) -> int:
        return struct.unpack(fmt, self.read_to_slice(offset, struct.calcsize(fmt)))[0]

    def read_uint8(self, offset: int) -> int:
        return self._read_struct("<B", offset)

    def read_uint16(self, offset: int) -> int:
        return self._read_struct("<H", offset)

    def read_uint32(self, offset: int) -> int:
        return self._read_struct("<I", offset)

    def read_uint64(self, offset: int) -> int:
        return self._read_struct("<Q", offset)

    def write(self, offset: int, buf: bytes) -> None:
        self._file.write(offset, buf)

    def append(self, buf: bytes) -> None:
        self._file.write(self._file.size(), buf)

    def sync(self) -> None:
        self._file.sync()

    def delete(self) -> None:
        self._file.remove()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "FileObj":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()