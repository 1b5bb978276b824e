"""
Key-value database served by the server: an in-memory table made durable by a
write-ahead log. Opening the database replays the log.
"""

import logging
import os
import threading
from typing import Dict, Iterator, Optional, Tuple

from bootstrap.options import DatabaseOptions, WriteBufferMode
from config import WAL_FILE_NAME
from storage.wal import OP_DELETE, OP_PUT, WAL, WALRecord


logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """The database could not be opened"""


class Database:
    """
    Durable key-value table.

    In direct write-buffer mode every write is synced before it returns. In
    adaptive mode a background thread syncs the log every
    write_buffer_flush_timeout milliseconds, and on close. A timeout of 0
    disables the background thread.
    """

    def __init__(self, path: str, options: DatabaseOptions):
        self.path = path
        self.options = options
        self.write_buffer_mode = options.write_buffer_mode or WriteBufferMode(options.write_buffer_mode_str)

        self._table: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()
        self._closed = threading.Event()
        self._flusher: Optional[threading.Thread] = None
        self._stats = {
            'puts': 0,
            'gets': 0,
            'deletes': 0,
            'range_scans': 0,
            'flushes': 0,
            'recovered': 0,
        }

        self._prepare_directory()
        self.wal = WAL(os.path.join(path, WAL_FILE_NAME),
                       sync_on_write=self.write_buffer_mode is WriteBufferMode.DIRECT)
        self._recover()
        self.wal.open()

        # A zero flush timeout leaves buffered writes to be synced on close only
        if (self.write_buffer_mode is WriteBufferMode.ADAPTIVE
                and options.write_buffer_flush_timeout > 0):
            self._flusher = threading.Thread(target=self._flush_worker,
                                             name='wal-flusher', daemon=True)
            self._flusher.start()

    def _prepare_directory(self) -> None:
        exists = os.path.isdir(self.path)
        if exists and self.options.error_if_exists:
            raise DatabaseError(f"Database already exists at [{self.path}]")
        if not exists:
            if not self.options.create_if_missing:
                raise DatabaseError(f"Database does not exist at [{self.path}]")
            try:
                os.makedirs(self.path, exist_ok=True)
            except OSError as e:
                raise DatabaseError(f"Could not create database at [{self.path}]: {e.strerror}") from e

    def _recover(self) -> None:
        for record in self.wal.replay():
            if record.operation == OP_PUT:
                self._table[record.key] = record.value
            else:
                self._table.pop(record.key, None)
            self._stats['recovered'] += 1
        if self._stats['recovered']:
            logger.info("Recovered %d records from %s", self._stats['recovered'], self.wal.path)

    def _flush_worker(self) -> None:
        interval = self.options.write_buffer_flush_timeout / 1000.0
        while not self._closed.wait(interval):
            self.flush()

    def flush(self) -> None:
        self.wal.flush()
        with self._lock:
            self._stats['flushes'] += 1

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self.wal.append(WALRecord(OP_PUT, key, value))
            self._table[key] = value
            self._stats['puts'] += 1

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            self._stats['gets'] += 1
            return self._table.get(key)

    def delete(self, key: bytes) -> bool:
        """Returns False when the key did not exist"""
        with self._lock:
            if key not in self._table:
                return False
            self.wal.append(WALRecord(OP_DELETE, key))
            del self._table[key]
            self._stats['deletes'] += 1
            return True

    def range_scan(self, start_key: bytes, end_key: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Yield pairs with start_key <= key < end_key, in key order"""
        with self._lock:
            pairs = sorted((k, v) for k, v in self._table.items() if start_key <= k < end_key)
            self._stats['range_scans'] += 1
        yield from pairs

    def get_stats(self) -> dict:
        with self._lock:
            stats = self._stats.copy()
            stats['keys'] = len(self._table)
            stats['wal_size'] = self.wal.get_size()
            stats['write_buffer_mode'] = self.write_buffer_mode.value
            stats['compression'] = self.options.compression_algorithm
            stats['hashing'] = self.options.hashing_algorithm
            return stats

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        if self._flusher is not None:
            self._flusher.join()
        self.wal.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
