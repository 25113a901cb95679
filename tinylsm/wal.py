"""Write-ahead log with size-based rotation and background cleaning."""

from __future__ import annotations

import logging
import os
import threading
from typing import Iterable

from .files import FileObj
from .record import Record

_log = logging.getLogger(__name__)

_PREFIX = "wal."
_LEN_SIZE = 2
_ID_SIZE = 8


def _seq_of(name: str) -> int:
    return int(name.rsplit(".", 1)[1])


def _wal_files(log_dir: str) -> list[tuple[int, str]]:
    found = []
    with os.scandir(log_dir) as entries:
        for entry in entries:
            if entry.is_file() and entry.name.startswith(_PREFIX):
                found.append((_seq_of(entry.name), entry.path))
    found.sort(key=lambda item: item[0])
    return found


class WAL:
    """Buffered, rotating transaction log."""

    def __init__(
        self,
        log_dir,
        buffer_size: int,
        max_finished_tranc_id: int,
        clean_interval: float,
        file_size_limit: int,
    ) -> None:
        log_dir = os.fspath(log_dir)
        os.makedirs(log_dir, exist_ok=True)
        self._buffer_size = buffer_size
        self._max_finished_tranc_id = max_finished_tranc_id
        self._clean_interval = clean_interval
        self._file_size_limit = file_size_limit
        self._buffer: list[Record] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._closed = False
        self._active_path = os.path.join(log_dir, f"{_PREFIX}0")
        self._file = FileObj.open(self._active_path, True)
        self._cleaner = threading.Thread(target=self._clean_loop, daemon=True)
        self._cleaner.start()

    @property
    def active_path(self) -> str:
        return self._active_path

    @staticmethod
    def recover(log_dir, max_flushed_tranc_id: int) -> dict[int, list[Record]]:
        """Records of transactions newer than ``max_flushed_tranc_id``, by transaction id."""
        log_dir = os.fspath(log_dir)
        if not os.path.exists(log_dir):
            return {}
        grouped: dict[int, list[Record]] = {}
        for _, path in _wal_files(log_dir):
            with FileObj.open(path, False) as wal_file:
                data = wal_file.read_to_slice(0, wal_file.size())
            for record in Record.decode(data):
                if record.tranc_id > max_flushed_tranc_id:
                    grouped.setdefault(record.tranc_id, []).append(record)
        return dict(sorted(grouped.items()))

    def flush(self) -> None:
        """Write every buffered record to disk."""
        self.log([], True)

    def set_max_finished_tranc_id(self, max_finished_tranc_id: int) -> None:
        with self._lock:
            self._max_finished_tranc_id = max_finished_tranc_id

    def log(self, records: Iterable[Record], force_flush: bool = False) -> None:
        """Buffer ``records``; write them once the buffer is full or when forced."""
        with self._lock:
            self._buffer.extend(records)
            if len(self._buffer) < self._buffer_size and not force_flush:
                return
            pending, self._buffer = self._buffer, []
            for record in pending:
                self._file.append(record.encode())
            self._file.sync()
            if self._file.size() > self._file_size_limit:
                self._reset_file()

    def _reset_file(self) -> None:
        base, seq = self._active_path.rsplit(".", 1)
        self._active_path = f"{base}.{int(seq) + 1}"
        old = self._file
        self._file = FileObj.create_and_write(self._active_path, b"")
        old.close()

    def _clean_loop(self) -> None:
        while not self._stop.wait(self._clean_interval):
            try:
                self.clean_wal_files()
            except OSError:
                _log.exception("wal cleaning failed")

    def clean_wal_files(self) -> None:
        """Delete rotated log files whose transactions are all finished."""
        with self._lock:
            log_dir = os.path.dirname(self._active_path) or "."
            max_finished = self._max_finished_tranc_id

        files = _wal_files(log_dir)
        for _, path in files[:-1]:
            wal_file = FileObj.open(path, False)
            try:
                size = wal_file.size()
                offset = 0
                unfinished = False
                while offset + _LEN_SIZE < size:
                    record_size = wal_file.read_uint16(offset)
                    tranc_id = wal_file.read_uint64(offset + _LEN_SIZE)
                    if record_size == 0 or tranc_id > max_finished:
                        unfinished = True
                        break
                    offset += record_size
            except (OSError, IndexError):
                wal_file.close()
                raise
            if unfinished:
                wal_file.close()
            else:
                wal_file.delete()

    def close(self) -> None:
        """Flush the buffer, stop the cleaner and close the active file."""
        if self._closed:
            return
        self.log([], True)
        self._stop.set()
        if self._cleaner.is_alive():
            self._cleaner.join()
        with self._lock:
            self._file.sync()
            self._file.close()
            self._closed = True

    def __enter__(self) -> "WAL":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()